"""
Application Configuration - Pydantic Settings for type-safe config.

NO DICTIONARIES - All configuration is strongly typed.
FAIL FAST - Critical config is validated at startup.
"""

import sys

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when critical configuration is missing or invalid."""

    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_title: str = "IAP Receipts API"
    api_version: str = "0.1.0"
    api_description: str = "App Store receipt verification and entitlement resolution"

    # Security - when set, callers must send a matching X-API-Key header
    api_key: str | None = None

    # Apple verifyReceipt
    apple_shared_secret: str = ""  # App-specific shared secret (needed for subscriptions)
    apple_environment: str = "production"  # Environment tried first: production or sandbox
    apple_request_timeout: float = 30.0  # seconds
    apple_exclude_old_transactions: bool = False

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # json or console

    # Observability - Metrics
    metrics_enabled: bool = True

    # Observability - Tracing
    tracing_enabled: bool = False
    otlp_endpoint: str = "http://otel-collector:4317"
    otlp_insecure: bool = True
    service_name: str = "iap-receipts-api"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def validate_critical_config(self) -> "Settings":
        """
        FAIL FAST: Validate critical configuration at startup.

        A misspelled environment would otherwise only surface on the first
        receipt verification.
        """
        errors: list[str] = []

        if self.apple_environment.lower() not in ("production", "sandbox"):
            errors.append(
                f"APPLE_ENVIRONMENT must be 'production' or 'sandbox', got: {self.apple_environment}"
            )

        if self.apple_request_timeout <= 0:
            errors.append("APPLE_REQUEST_TIMEOUT must be positive")

        if self.log_format not in ("json", "console"):
            errors.append(f"LOG_FORMAT must be 'json' or 'console', got: {self.log_format}")

        if errors:
            error_msg = "\n".join(
                [
                    "",
                    "=" * 60,
                    "CRITICAL CONFIGURATION ERROR - APPLICATION CANNOT START",
                    "=" * 60,
                    *[f"  ✗ {e}" for e in errors],
                    "=" * 60,
                    "",
                ]
            )
            print(error_msg, file=sys.stderr)
            raise ConfigurationError(error_msg)

        return self


# Global settings instance - validates at import time
settings = Settings()


def get_settings() -> Settings:
    """Get application settings instance."""
    return settings
