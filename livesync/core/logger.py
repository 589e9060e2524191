from __future__ import annotations

import logging
from typing import Iterable

from .config import settings
from .logging_config import configure_logging as _configure_json_logging


class RedactingFilter(logging.Filter):
    """Masks whole messages that mention a sensitive pattern."""

    def __init__(self, patterns: Iterable[str]):
        super().__init__()
        self.patterns = [p.lower() for p in patterns]

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        msg = record.getMessage().lower()
        if any(p in msg for p in self.patterns):
            record.msg = "[REDACTED SENSITIVE LOG CONTENT]"
            record.args = ()
        return True


_configured = False


def configure_logging(force: bool = False) -> None:
    global _configured
    if _configured and not force:
        return
    root = _configure_json_logging(
        service=settings.otel_service_name,
        environment=settings.app_environment,
        level=settings.app_log_level,
        redaction_patterns=settings.app_log_redaction_patterns,
    )
    for h in root.handlers:
        h.addFilter(RedactingFilter(settings.app_log_redaction_patterns))
    _configured = True


def get_logger(name: str) -> logging.Logger:
    configure_logging()
    return logging.getLogger(name)
