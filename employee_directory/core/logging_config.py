import logging

from employee_directory.core.config import Settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d | %(message)s"


def configure_logging(settings: Settings) -> None:
    """Configure application-wide logging once at startup."""
    level = logging.DEBUG if settings.debug else getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)
    # Vendor SDK request logs include document payload sizes on every call
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))


def preview(text: str, limit: int) -> str:
    """Bounded slice of ``text`` that is safe to put in a log line."""
    if text is None:
        return ""
    if len(text) <= limit:
        return text
    return f"{text[:limit]}... [{len(text) - limit} more chars]"
