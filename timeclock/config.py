"""
Timeclock Configuration.

Manages environment variables for the attendance tracker.
Uses prefix TIMECLOCK_ to avoid conflicts with other services on the host.
"""

from functools import lru_cache
from typing import Annotated

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class TimeclockSettings(BaseSettings):
    """
    Settings loaded from environment variables or a .env file.

    Sensitive values use SecretStr so they never end up in logs or reprs.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Application
    app_name: str = Field(default="Timeclock", validation_alias="TIMECLOCK_APP_NAME")
    debug: bool = Field(default=False, validation_alias="TIMECLOCK_DEBUG")
    log_level: str = Field(default="INFO", validation_alias="TIMECLOCK_LOG_LEVEL")
    server_host: str = Field(default="127.0.0.1", validation_alias="TIMECLOCK_SERVER_HOST")
    server_port: int = Field(default=8000, validation_alias="TIMECLOCK_SERVER_PORT")

    timezone: Annotated[
        str,
        Field(
            default="Asia/Bangkok",
            description="IANA zone used for every timestamp written or parsed",
            validation_alias="TIMECLOCK_TIMEZONE",
        )
    ] = "Asia/Bangkok"

    # Ragic (remote store)
    ragic_api_key: SecretStr = Field(default=SecretStr(""), validation_alias="TIMECLOCK_RAGIC_API_KEY")
    ragic_base_url: str = Field(default="https://ap13.ragic.com", validation_alias="TIMECLOCK_RAGIC_BASE_URL")
    http_timeout: float = Field(default=30.0, validation_alias="TIMECLOCK_HTTP_TIMEOUT")
    http_max_connections: int = Field(default=20, ge=1, validation_alias="TIMECLOCK_HTTP_MAX_CONNECTIONS")
    http_max_keepalive: int = Field(default=10, ge=0, validation_alias="TIMECLOCK_HTTP_MAX_KEEPALIVE")
    ragic_ledger_path: str = Field(default="", validation_alias="TIMECLOCK_RAGIC_LEDGER_PATH")
    ragic_on_work_path: str = Field(default="", validation_alias="TIMECLOCK_RAGIC_ON_WORK_PATH")
    ragic_roster_path: str = Field(default="", validation_alias="TIMECLOCK_RAGIC_ROSTER_PATH")

    # Cache TTLs (seconds)
    cache_ttl_roster: float = Field(default=300.0, validation_alias="TIMECLOCK_CACHE_TTL_ROSTER")
    cache_ttl_on_work: float = Field(default=60.0, validation_alias="TIMECLOCK_CACHE_TTL_ON_WORK")
    cache_ttl_ledger: float = Field(default=30.0, validation_alias="TIMECLOCK_CACHE_TTL_LEDGER")
    cache_ttl_stats: float = Field(default=120.0, validation_alias="TIMECLOCK_CACHE_TTL_STATS")
    emergency_ttl: Annotated[
        float,
        Field(
            default=3600.0,
            description="TTL applied to every dataset while emergency mode is on",
            validation_alias="TIMECLOCK_EMERGENCY_TTL",
        )
    ] = 3600.0

    # Call budget
    rate_limit_per_minute: int = Field(default=100, validation_alias="TIMECLOCK_RATE_LIMIT_PER_MINUTE")
    rate_limit_per_hour: int = Field(default=1000, validation_alias="TIMECLOCK_RATE_LIMIT_PER_HOUR")
    rate_limit_burst: int = Field(default=75, validation_alias="TIMECLOCK_RATE_LIMIT_BURST")
    burst_reset_seconds: float = Field(default=5.0, validation_alias="TIMECLOCK_BURST_RESET_SECONDS")

    # Auto checkout
    auto_checkout_enabled: bool = Field(default=True, validation_alias="TIMECLOCK_AUTO_CHECKOUT_ENABLED")
    auto_checkout_hour: int = Field(default=23, ge=0, le=23, validation_alias="TIMECLOCK_AUTO_CHECKOUT_HOUR")
    auto_checkout_minute: int = Field(default=59, ge=0, le=59, validation_alias="TIMECLOCK_AUTO_CHECKOUT_MINUTE")
    exempt_employees: Annotated[
        list[str],
        Field(
            default_factory=list,
            description="Names never auto-closed (JSON list, e.g. night guards)",
            validation_alias="TIMECLOCK_EXEMPT_EMPLOYEES",
        )
    ]

    # Downstream notifications
    map_webhook_url: str = Field(default="", validation_alias="TIMECLOCK_MAP_WEBHOOK_URL")
    webhook_secret: SecretStr = Field(default=SecretStr(""), validation_alias="TIMECLOCK_WEBHOOK_SECRET")
    line_channel_access_token: SecretStr = Field(
        default=SecretStr(""), validation_alias="TIMECLOCK_LINE_CHANNEL_ACCESS_TOKEN"
    )
    line_admin_target: str = Field(default="", validation_alias="TIMECLOCK_LINE_ADMIN_TARGET")

    # Reverse geocoding
    geocoding_enabled: bool = Field(default=True, validation_alias="TIMECLOCK_GEOCODING_ENABLED")
    geocoding_url: str = Field(
        default="https://nominatim.openstreetmap.org/reverse",
        validation_alias="TIMECLOCK_GEOCODING_URL",
    )
    geocoding_language: str = Field(default="th", validation_alias="TIMECLOCK_GEOCODING_LANGUAGE")

    # Admin token verification (issuance lives elsewhere)
    jwt_secret_key: SecretStr = Field(default=SecretStr(""), validation_alias="TIMECLOCK_JWT_SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", validation_alias="TIMECLOCK_JWT_ALGORITHM")

    def dataset_ttls(self) -> dict[str, float]:
        """Base TTL per dataset key."""
        return {
            "roster": self.cache_ttl_roster,
            "on_work": self.cache_ttl_on_work,
            "ledger": self.cache_ttl_ledger,
            "stats": self.cache_ttl_stats,
        }


@lru_cache
def get_settings() -> TimeclockSettings:
    """
    Get cached settings.

    Uses LRU cache to ensure settings are loaded only once.

    Returns:
        TimeclockSettings: Settings instance.
    """
    return TimeclockSettings()
