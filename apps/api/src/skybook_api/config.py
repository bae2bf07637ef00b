"""API configuration via environment variables."""

from __future__ import annotations

from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict


class ApiSettings(BaseSettings):
    """Application settings loaded from environment / .env file."""

    database_url: str = "postgresql+asyncpg://localhost:5432/skybook"
    redis_url: str = "redis://localhost:6379/0"
    jwt_secret: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    token_expire_hours: int = 24
    cors_origins: list[str] = ["http://localhost:3000"]
    rate_limit_per_minute: int = 60  # 0 disables the limiter

    # Dynamic pricing
    surge_search_threshold: int = 3
    surge_window_minutes: int = 5
    price_reset_minutes: int = 10
    surge_multiplier: Decimal = Decimal("1.10")

    # Wallet / bookings
    opening_wallet_balance: Decimal = Decimal("50000")
    cancellation_refund_ratio: Decimal = Decimal("0.90")
    max_passengers_per_booking: int = 9
    search_result_limit: int = 10

    # Concurrency
    lock_timeout_ms: int = 5000
    conflict_max_retries: int = 3

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="API_", env_file=".env", extra="ignore"
    )


settings = ApiSettings()
