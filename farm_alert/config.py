"""Application configuration loaded from environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = "farm-alert"
    debug: bool = False
    log_level: str = "INFO"

    # Scheduling
    cycle_interval_minutes: int = 60
    cleanup_interval_hours: int = 24
    worker_concurrency: int = 3
    pacing_seconds: float = 1.0

    # Alert lifecycle
    suppression_window_hours: int = 6
    alert_ttl_days: int = 7
    snapshot_retention_days: int = 30

    # Rule evaluation
    forecast_window_points: int = 8
    frost_trigger_c: float = 2.0
    frost_high_c: float = 0.0
    frost_critical_c: float = -2.0
    drought_humidity_pct: float = 40.0
    drought_humidity_high_pct: float = 30.0
    drought_temperature_c: float = 25.0
    fungal_temperature_min_c: float = 15.0
    fungal_temperature_max_c: float = 25.0
    fungal_humidity_pct: float = 85.0
    rain_total_mm: float = 20.0
    rain_high_mm: float = 50.0
    wind_speed_ms: float = 15.0
    wind_high_ms: float = 25.0
    heat_wave_c: float = 35.0

    # Storage: empty path keeps alerts in memory
    database_path: str = ""

    # Web push
    vapid_private_key: str = ""
    vapid_public_key: str = ""
    vapid_email: str = "mailto:alerts@example.com"
    push_timeout_seconds: int = 10

    model_config = {"env_prefix": "FARM_ALERT_"}


settings = Settings()
