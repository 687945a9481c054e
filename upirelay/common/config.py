"""Environment-driven settings for the relay process.

Loaded once at startup via `load_settings()` and handed to every component
explicitly (see `.env.example`).
"""

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


SANDBOX_BASE_URL = "https://sandbox.cashfree.com/pg"
PRODUCTION_BASE_URL = "https://api.cashfree.com/pg"

_MODE_ALIASES = {
    "sandbox": "sandbox",
    "test": "sandbox",
    "production": "production",
    "prod": "production",
    "live": "production",
}


class ConfigurationError(RuntimeError):
    """Raised at startup when the relay cannot serve payments."""


class RelaySettings(BaseSettings):
    """Typed view of runtime configuration from environment variables."""

    service_name: str = "upi-relay"
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 3000
    cashfree_app_id: str | None = None
    cashfree_secret_key: SecretStr | None = None
    cashfree_mode: str = "sandbox"
    cashfree_api_version: str = "2023-08-01"
    gateway_timeout_seconds: float = 10.0
    order_currency: str = "INR"
    static_dir: str = "public"
    webhook_tolerance_seconds: int | None = None
    otel_exporter_otlp_endpoint: str | None = None
    require_credentials: bool = True
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @field_validator("cashfree_mode")
    @classmethod
    def _normalize_mode(cls, value: str) -> str:
        mode = _MODE_ALIASES.get(value.strip().lower())
        if mode is None:
            raise ValueError(f"unknown cashfree mode: {value!r}")
        return mode

    @property
    def is_production(self) -> bool:
        return self.cashfree_mode == "production"

    @property
    def environment(self) -> str:
        return self.cashfree_mode

    @property
    def mode_label(self) -> str:
        return "PRODUCTION" if self.is_production else "SANDBOX"

    @property
    def gateway_base_url(self) -> str:
        return PRODUCTION_BASE_URL if self.is_production else SANDBOX_BASE_URL

    @property
    def secret_value(self) -> str:
        if self.cashfree_secret_key is None:
            return ""
        return self.cashfree_secret_key.get_secret_value()

    @property
    def has_credentials(self) -> bool:
        return bool(self.cashfree_app_id) and bool(self.secret_value)


def load_settings() -> RelaySettings:
    """Build settings from the process environment (and `.env`)."""

    return RelaySettings()
