"""Health metrics from the Fitbit Web API."""

from lifeops.modules.health.client import (
    DailyMetrics,
    FitbitClient,
    HealthConfig,
    extract_access_token,
)

__all__ = ["DailyMetrics", "FitbitClient", "HealthConfig", "extract_access_token"]
