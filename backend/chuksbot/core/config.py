"""
Application Configuration
"""
from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings
from pydantic import model_validator


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "ChuksBot"
    APP_ENV: Literal["development", "staging", "production"] = "development"
    DEBUG: bool = False

    # Redis (primary session tier). Empty disables it.
    REDIS_URL: str = "redis://localhost:6379/0"

    # Sessions
    SESSION_TTL_SECONDS: int = 600
    SESSION_TIMEOUT_MS: int = 600_000
    SWEEP_INTERVAL_SECONDS: int = 600
    RUN_SCHEDULER: bool = False

    # Deferred ("loading") tasks
    DEFERRED_DELAY_SECONDS: float = 0.1
    DEFERRED_WORKERS: int = 4

    # WhatsApp gateway (360dialog)
    WHATSAPP_BASE_URL: str = "https://waba-v2.360dialog.io"
    WHATSAPP_API_KEY: str = ""
    WHATSAPP_TEST_MODE: bool = True
    VERIFY_TOKEN: str = ""

    # Insurance backend API
    INSURANCE_API_URL: str = "http://localhost:8080/api"
    INSURANCE_API_TOKEN: str = ""
    INSURANCE_API_TIMEOUT: float = 30.0

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        """Validate critical settings for non-development environments."""
        if self.APP_ENV != "development":
            if not self.WHATSAPP_TEST_MODE and not self.WHATSAPP_API_KEY:
                raise ValueError(
                    "WHATSAPP_API_KEY is required when WHATSAPP_TEST_MODE is off in production/staging. "
                    "Set it in your .env file or environment variables."
                )

            if self.DEBUG:
                import warnings
                warnings.warn(
                    "DEBUG mode is enabled in a non-development environment. "
                    "This is not recommended for production.",
                    UserWarning,
                )

        if self.SESSION_TTL_SECONDS <= 0 or self.SESSION_TIMEOUT_MS <= 0:
            raise ValueError("SESSION_TTL_SECONDS and SESSION_TIMEOUT_MS must be positive.")

        if self.DEFERRED_WORKERS < 1:
            raise ValueError("DEFERRED_WORKERS must be at least 1.")

        return self

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Cached settings instance."""
    return Settings()


settings = get_settings()
