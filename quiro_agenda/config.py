"""Application configuration."""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_parse_none_str="null",
    )

    # Application
    app_name: str = Field(default="Quiro Ferreira Agenda", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    environment: str = Field(default="development", alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")
    api_v1_prefix: str = Field(default="/api/v1", alias="API_V1_PREFIX")

    # Server
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8000, alias="PORT")
    reload: bool = Field(default=False, alias="RELOAD")

    # Database
    database_url: str = Field(..., alias="DATABASE_URL")

    # Redis
    redis_host: str = Field(default="localhost", alias="REDIS_HOST")
    redis_port: int = Field(default=6379, alias="REDIS_PORT")
    redis_username: str = Field(default="default", alias="REDIS_USERNAME")
    redis_password: str = Field(default="", alias="REDIS_PASSWORD")

    # JWT
    jwt_secret_key: str = Field(..., alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(default=30, alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    # CORS
    cors_origins_str: str = Field(
        default="http://localhost:3000",
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")

    @property
    def cors_origins(self) -> list[str]:
        """Get CORS origins as a list."""
        if isinstance(self.cors_origins_str, str):
            return [origin.strip() for origin in self.cors_origins_str.split(",") if origin.strip()]
        return [self.cors_origins_str]

    # Scheduling
    scheduling_timezone_offset_minutes: int = Field(
        default=-180,
        alias="SCHEDULING_TIMEZONE_OFFSET_MINUTES",
        description="Fixed offset of the clinic's wall clock from UTC (no DST)",
    )
    scheduling_default_slot_minutes: int = Field(
        default=30,
        gt=0,
        alias="SCHEDULING_DEFAULT_SLOT_MINUTES",
    )
    scheduling_recurrence_max_occurrences: int = Field(
        default=50,
        ge=1,
        alias="SCHEDULING_RECURRENCE_MAX_OCCURRENCES",
    )
    scheduling_sweep_local_time: str = Field(
        default="00:05",
        alias="SCHEDULING_SWEEP_LOCAL_TIME",
        description="Local wall-clock time (HH:MM) of the daily subscription sweep",
    )
    scheduling_tx_max_retries: int = Field(default=3, ge=1, alias="SCHEDULING_TX_MAX_RETRIES")
    scheduling_tx_isolation_level: str = Field(
        default="SERIALIZABLE",
        alias="SCHEDULING_TX_ISOLATION_LEVEL",
    )

    @field_validator("scheduling_sweep_local_time")
    @classmethod
    def validate_sweep_time(cls, v: str) -> str:
        """Validate HH:MM format of the sweep time."""
        hours, _, minutes = v.partition(":")
        if not (hours.isdigit() and minutes.isdigit()):
            raise ValueError("Sweep time must be in HH:MM format")
        if not (0 <= int(hours) <= 23 and 0 <= int(minutes) <= 59):
            raise ValueError("Sweep time must be a valid time of day")
        return v

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="json", alias="LOG_FORMAT")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()  # type: ignore[call-arg]


# Global settings instance
settings = get_settings()
