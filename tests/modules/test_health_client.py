"""Unit tests for the Fitbit client."""

from __future__ import annotations

from datetime import date
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from lifeops.errors import AdapterError
from lifeops.modules.health import FitbitClient, HealthConfig, extract_access_token

pytestmark = pytest.mark.unit

_PAYLOADS = {
    "/1/user/-/activities/date/2026-03-02.json": {"summary": {"steps": 9120}},
    "/1/user/-/br/date/2026-03-02.json": {
        "br": [{"dateTime": "2026-03-02", "value": {"breathingRate": 15.2}}]
    },
    "/1/user/-/cardioscore/date/2026-03-02.json": {
        "cardioScore": [{"dateTime": "2026-03-02", "value": {"vo2Max": "44-48"}}]
    },
    "/1/user/-/hrv/date/2026-03-02.json": {
        "hrv": [{"dateTime": "2026-03-02", "value": {"dailyRmssd": 41.3}}]
    },
    "/1/user/-/spo2/date/2026-03-02.json": {
        "dateTime": "2026-03-02",
        "value": {"avg": 96.4, "min": 93.1, "max": 98.8},
    },
    "/1/user/-/temp/skin/date/2026-03-02.json": {"tempSkin": []},
}


def _client(handler, **config) -> FitbitClient:
    return FitbitClient(
        HealthConfig(**config),
        access_token="fitbit-token",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


def _serve_payloads(request: httpx.Request) -> httpx.Response:
    assert request.headers["Authorization"] == "Bearer fitbit-token"
    return httpx.Response(200, json=_PAYLOADS[request.url.path])


class TestAuthorization:
    def test_authorize_url_requests_implicit_grant(self):
        client = FitbitClient(
            HealthConfig(client_id="ABC123", redirect_uri="https://localhost/callback")
        )

        url = urlparse(client.authorize_url())
        query = parse_qs(url.query)

        assert url.netloc == "www.fitbit.com"
        assert query["response_type"] == ["token"]
        assert query["client_id"] == ["ABC123"]
        assert query["redirect_uri"] == ["https://localhost/callback"]
        assert "sleep" in query["scope"][0].split()

    def test_authorize_url_requires_client_config(self):
        with pytest.raises(AdapterError, match="client_id and redirect_uri"):
            FitbitClient(HealthConfig(client_id="ABC123")).authorize_url()

    def test_extract_access_token_from_fragment(self):
        redirect = "https://localhost/callback#access_token=tok-1&user_id=U1&token_type=Bearer"
        assert extract_access_token(redirect) == "tok-1"

    def test_extract_access_token_missing(self):
        assert extract_access_token("https://localhost/callback?code=abc") is None

    def test_authenticate_from_redirect_sets_token(self):
        client = FitbitClient(HealthConfig(), access_token=None)
        assert client.authenticate_from_redirect("https://x/cb#access_token=tok-2") == "tok-2"

    def test_authenticate_from_redirect_without_token(self):
        with pytest.raises(AdapterError, match="does not carry"):
            FitbitClient(HealthConfig()).authenticate_from_redirect("https://x/cb")


class TestDailyMetrics:
    async def test_combines_all_endpoints(self):
        metrics = await _client(_serve_payloads).fetch_daily_metrics("2026-03-02")

        assert metrics.day == date(2026, 3, 2)
        assert metrics.activity == {"summary": {"steps": 9120}}
        assert metrics.breathing_rate == 15.2
        assert metrics.cardio_score == "44-48"
        assert metrics.hrv == {"dailyRmssd": 41.3}
        assert metrics.spo2 == {"avg": 96.4, "min": 93.1, "max": 98.8}
        assert metrics.skin_temperature is None

    async def test_uses_configured_base_url(self):
        hosts: set[str] = set()

        def handler(request: httpx.Request) -> httpx.Response:
            hosts.add(request.url.host)
            return _serve_payloads(request)

        await _client(handler, api_base_url="https://fitbit.test").fetch_daily_metrics(
            date(2026, 3, 2)
        )
        assert hosts == {"fitbit.test"}

    async def test_unauthenticated_client_raises(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv("FITBIT_ACCESS_TOKEN", raising=False)
        client = FitbitClient(
            HealthConfig(),
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(_serve_payloads)),
        )
        with pytest.raises(AdapterError, match="not authenticated"):
            await client.fetch_daily_metrics(date(2026, 3, 2))

    async def test_token_read_from_environment(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("FITBIT_ACCESS_TOKEN", "fitbit-token")
        client = FitbitClient(
            HealthConfig(),
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(_serve_payloads)),
        )
        metrics = await client.fetch_daily_metrics(date(2026, 3, 2))
        assert metrics.breathing_rate == 15.2

    async def test_http_failure_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"errors": [{"errorType": "expired_token"}]})

        with pytest.raises(AdapterError) as excinfo:
            await _client(handler).fetch_daily_metrics(date(2026, 3, 2))
        assert excinfo.value.target_id == "2026-03-02"


class TestSleep:
    async def test_fetch_sleep_data(self):
        paths: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            paths.append(request.url.path)
            return httpx.Response(200, json={"sleep": [], "summary": {"totalMinutesAsleep": 412}})

        payload = await _client(handler).fetch_sleep_data("2026-03-02")

        assert paths == ["/1.2/user/-/sleep/date/2026-03-02.json"]
        assert payload["summary"]["totalMinutesAsleep"] == 412
