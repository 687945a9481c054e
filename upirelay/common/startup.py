"""Startup-time helpers for safe config logging."""

from upirelay.common.config import RelaySettings
from upirelay.common.logging import logger


def mask_suffix(value: str | None) -> str | None:
    """Return `***` plus the last four characters, or None when unset."""

    if not value:
        return None
    return "***" + value[-4:]


def log_startup_config(settings: RelaySettings) -> None:
    """Log the effective configuration with credentials reduced to a suffix."""

    config = {
        "service": settings.service_name,
        "mode": settings.mode_label,
        "base_url": settings.gateway_base_url,
        "api_version": settings.cashfree_api_version,
        "gateway_timeout_seconds": settings.gateway_timeout_seconds,
        "webhook_tolerance_seconds": settings.webhook_tolerance_seconds,
        "app_id": mask_suffix(settings.cashfree_app_id) or "<unset>",
        "secret_key": mask_suffix(settings.secret_value) or "<unset>",
    }
    logger.info("startup_config=%s", config)
    if not settings.has_credentials:
        logger.error("CASHFREE_APP_ID or CASHFREE_SECRET_KEY is missing; payment endpoints are unusable")
