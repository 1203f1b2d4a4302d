"""Errors raised by the remote calendar integration."""

from __future__ import annotations

from lifeops.errors import AdapterError


class CalendarAuthError(AdapterError):
    """Google Calendar could not be reached or answered with something unusable."""


class CalendarCredentialError(CalendarAuthError):
    """The OAuth credential JSON is missing or malformed."""


class CalendarTokenRefreshError(CalendarAuthError):
    """Exchanging the refresh token for an access token failed."""


class CalendarRequestError(CalendarAuthError):
    """A Calendar API call returned a non-2xx status."""

    def __init__(
        self,
        *,
        status_code: int,
        message: str,
        operation: str | None = None,
        target_id: str | None = None,
    ) -> None:
        self.status_code = status_code
        super().__init__(
            f"Google Calendar API request failed ({status_code}): {message}",
            operation=operation,
            target_id=target_id,
        )
