"""Startup config dump with secrets masked."""

from sqlalchemy.engine import make_url

from coinledger.common.config import Settings
from coinledger.common.logging import logger

SECRET_MARKERS = ("key", "secret", "password", "token")


def _masked(field: str, value):
    if value is None:
        return "<unset>"
    if any(marker in field for marker in SECRET_MARKERS):
        return "<redacted>"
    if field == "database_url":
        # Keep driver/host/db, drop the password.
        return make_url(value).render_as_string(hide_password=True)
    return value


def log_startup_config(config: Settings, fields: list[str]) -> None:
    """Log the named settings once at boot so misconfiguration shows up in the first lines."""

    snapshot = {"service": config.service_name}
    for field in fields:
        snapshot[field] = _masked(field, getattr(config, field, None))
    logger.info("startup_config=%s", snapshot)
