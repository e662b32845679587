"""Application settings and configuration.

This module defines all configuration options for the QR presence service.
Settings are loaded from environment variables with sensible defaults.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

ScoringPolicyName = Literal["population", "fixed"]


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="QR Presence", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=3000, alias="PORT")

    # Token key material (base64 of 32 raw bytes); random per process when unset
    qr_secret_key: str | None = Field(default=None, alias="QR_SECRET_KEY")

    # Payload fields stamped by the issuer
    payload_version: int = Field(default=1, ge=0, le=255, alias="PAYLOAD_VERSION")
    room_code: int = Field(default=1, ge=0, le=255, alias="ROOM_CODE")

    # Ingestion log retention
    attend_log_capacity: int = Field(default=500, gt=0, alias="ATTEND_LOG_CAPACITY")

    # Issuance loop pacing
    target_fps: int = Field(default=60, gt=0, alias="TARGET_FPS")
    display_refresh_hz: float = Field(default=60.0, gt=0, alias="DISPLAY_REFRESH_HZ")
    mint_failure_threshold: int = Field(default=10, gt=0, alias="MINT_FAILURE_THRESHOLD")
    log_refresh_interval_seconds: float = Field(
        default=1.0,
        gt=0,
        alias="LOG_REFRESH_INTERVAL_SECONDS",
    )

    # Clock synchronization against a remote time oracle
    server_time_url: str | None = Field(default=None, alias="SERVER_TIME_URL")
    clock_sync_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        alias="CLOCK_SYNC_TIMEOUT_SECONDS",
    )

    # Fixed-threshold scoring (milliseconds)
    fixed_normal_threshold_ms: int = Field(default=250, alias="FIXED_NORMAL_THRESHOLD_MS")
    fixed_suspect_threshold_ms: int = Field(default=600, alias="FIXED_SUSPECT_THRESHOLD_MS")

    # Population-relative scoring
    dead_zone_ms: float = Field(default=50.0, ge=0, alias="DEAD_ZONE_MS")
    robust_z_threshold: float = Field(default=2.0, gt=0, alias="ROBUST_Z_THRESHOLD")
    robust_max_iterations: int = Field(default=10, gt=0, alias="ROBUST_MAX_ITERATIONS")
    robust_tolerance: float = Field(default=0.1, ge=0, alias="ROBUST_TOLERANCE")
    scoring_policy: ScoringPolicyName = Field(default="population", alias="SCORING_POLICY")

    # CORS configuration for generator and attend pages
    cors_origins: list[str] = Field(
        default=["*"],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(
        default=["*"],
        alias="CORS_ALLOW_HEADERS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def min_token_interval_ms(self) -> int:
        """Return the minimum spacing between mints for the configured rate.

        Returns:
            Milliseconds between two token mints at ``target_fps``
        """
        return round(1000 / self.target_fps)


settings = Settings()
