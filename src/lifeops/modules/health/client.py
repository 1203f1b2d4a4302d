"""Fitbit Web API client for daily metrics and sleep data.

Uses the implicit-grant flow: :meth:`FitbitClient.authorize_url` builds the
consent URL, and the access token is read back from the redirect URL's
fragment. Token lifecycle beyond that is the caller's concern.
"""

from __future__ import annotations

import asyncio
import logging
import os
from datetime import date
from typing import Any
from urllib.parse import parse_qs, urlencode, urlparse

import httpx
from pydantic import BaseModel, ConfigDict, Field

from lifeops.errors import AdapterError

logger = logging.getLogger(__name__)

FITBIT_AUTHORIZE_URL = "https://www.fitbit.com/oauth2/authorize"
FITBIT_API_BASE_URL = "https://api.fitbit.com"
FITBIT_ACCESS_TOKEN_ENV = "FITBIT_ACCESS_TOKEN"
DEFAULT_SCOPES = [
    "activity",
    "heartrate",
    "respiratory_rate",
    "cardio_fitness",
    "oxygen_saturation",
    "temperature",
    "sleep",
]


class HealthConfig(BaseModel):
    """Configuration for the [health] section."""

    model_config = ConfigDict(extra="forbid")

    client_id: str | None = None
    redirect_uri: str | None = None
    scopes: list[str] = Field(default_factory=lambda: list(DEFAULT_SCOPES))
    access_token_env: str = FITBIT_ACCESS_TOKEN_ENV
    api_base_url: str = FITBIT_API_BASE_URL


class DailyMetrics(BaseModel):
    """One day of Fitbit metrics. Missing readings are ``None``."""

    day: date
    activity: dict[str, Any] = Field(default_factory=dict)
    breathing_rate: float | None = None
    cardio_score: str | None = None
    hrv: dict[str, Any] | None = None
    spo2: dict[str, Any] | None = None
    skin_temperature: dict[str, Any] | None = None


def _first_value(payload: dict[str, Any], key: str) -> Any:
    entries = payload.get(key)
    if not isinstance(entries, list) or not entries:
        return None
    first = entries[0]
    return first.get("value") if isinstance(first, dict) else None


def extract_access_token(redirect_url: str) -> str | None:
    """Return the ``access_token`` carried in a redirect URL fragment, if any."""
    fragment = urlparse(redirect_url).fragment
    values = parse_qs(fragment).get("access_token")
    return values[0] if values else None


class FitbitClient:
    def __init__(
        self,
        config: HealthConfig | None = None,
        *,
        access_token: str | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config or HealthConfig()
        self._access_token = (
            access_token or os.environ.get(self._config.access_token_env, "").strip() or None
        )
        self._owns_http_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=30.0)

    def authorize_url(self) -> str:
        """Build the implicit-grant authorization URL.

        Raises
        ------
        AdapterError
            If ``client_id`` or ``redirect_uri`` is not configured.
        """
        if not self._config.client_id or not self._config.redirect_uri:
            raise AdapterError(
                "Fitbit client_id and redirect_uri must be configured",
                operation="health.authorize_url",
            )
        query = urlencode(
            {
                "response_type": "token",
                "client_id": self._config.client_id,
                "redirect_uri": self._config.redirect_uri,
                "scope": " ".join(self._config.scopes),
            }
        )
        return f"{FITBIT_AUTHORIZE_URL}?{query}"

    def set_access_token(self, token: str) -> None:
        self._access_token = token.strip() or None

    def authenticate_from_redirect(self, redirect_url: str) -> str:
        token = extract_access_token(redirect_url)
        if token is None:
            raise AdapterError(
                "Redirect URL does not carry an access token", operation="health.authenticate"
            )
        self.set_access_token(token)
        return token

    async def _get(self, path: str, *, operation: str, target_id: str) -> dict[str, Any]:
        if self._access_token is None:
            raise AdapterError(
                "Fitbit API not authenticated", operation=operation, target_id=target_id
            )
        try:
            response = await self._http_client.get(
                f"{self._config.api_base_url}{path}",
                headers={"Authorization": f"Bearer {self._access_token}"},
            )
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise AdapterError(
                f"Fitbit request failed: {exc}", operation=operation, target_id=target_id
            ) from exc
        if not isinstance(payload, dict):
            raise AdapterError(
                "Fitbit returned an unexpected payload shape",
                operation=operation,
                target_id=target_id,
            )
        return payload

    async def fetch_daily_metrics(self, day: date | str) -> DailyMetrics:
        """Fetch activity, breathing rate, cardio score, HRV, SpO2 and skin temperature."""
        day = date.fromisoformat(day) if isinstance(day, str) else day
        stamp = day.isoformat()
        paths = (
            f"/1/user/-/activities/date/{stamp}.json",
            f"/1/user/-/br/date/{stamp}.json",
            f"/1/user/-/cardioscore/date/{stamp}.json",
            f"/1/user/-/hrv/date/{stamp}.json",
            f"/1/user/-/spo2/date/{stamp}.json",
            f"/1/user/-/temp/skin/date/{stamp}.json",
        )
        activity, breathing, cardio, hrv, spo2, skin = await asyncio.gather(
            *(self._get(path, operation="health.daily_metrics", target_id=stamp) for path in paths)
        )

        breathing_value = _first_value(breathing, "br")
        cardio_value = _first_value(cardio, "cardioScore")
        spo2_value = spo2.get("value")
        return DailyMetrics(
            day=day,
            activity=activity,
            breathing_rate=(
                breathing_value.get("breathingRate") if isinstance(breathing_value, dict) else None
            ),
            cardio_score=cardio_value.get("vo2Max") if isinstance(cardio_value, dict) else None,
            hrv=_first_value(hrv, "hrv"),
            spo2=spo2_value if isinstance(spo2_value, dict) else None,
            skin_temperature=_first_value(skin, "tempSkin"),
        )

    async def fetch_sleep_data(self, day: date | str) -> dict[str, Any]:
        day = date.fromisoformat(day) if isinstance(day, str) else day
        stamp = day.isoformat()
        return await self._get(
            f"/1.2/user/-/sleep/date/{stamp}.json", operation="health.sleep", target_id=stamp
        )

    async def shutdown(self) -> None:
        if self._owns_http_client:
            await self._http_client.aclose()
