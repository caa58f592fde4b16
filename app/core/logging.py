"""
Logging utilities for the FastAPI application.

Provides a consistent logging format. Context passed through ``extra=`` (team,
user and board identifiers) is appended to each line as ``key=value`` pairs.
"""

import logging
import sys

_CONTEXT_FIELDS = ("team_id", "user_id", "board_id", "key", "status_code")


class ContextFormatter(logging.Formatter):
    """Formatter that renders known ``extra`` attributes after the message."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        context = [
            f"{name}={getattr(record, name)}"
            for name in _CONTEXT_FIELDS
            if getattr(record, name, None) is not None
        ]
        if not context:
            return message
        return f"{message} | {' '.join(context)}"


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging with a sensible default format."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        ContextFormatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s")
    )
    logging.basicConfig(level=level.upper(), handlers=[handler], force=True)


__all__ = ["ContextFormatter", "configure_logging"]
