import logging

from app.core.config import get_settings


class SecretsFilter(logging.Filter):
    """Mask credentials passed to log calls as extras."""

    BLOCKED_KEYS = {"password", "token", "authorization"}

    def filter(self, record: logging.LogRecord) -> bool:
        for key in self.BLOCKED_KEYS:
            if hasattr(record, key):
                setattr(record, key, "[REDACTED]")
        return True


def configure_logging() -> None:
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    secrets_filter = SecretsFilter()
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, SecretsFilter) for f in handler.filters):
            handler.addFilter(secrets_filter)
