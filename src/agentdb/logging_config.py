"""Logging configuration for AgentDB command-line use."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Optional

from agentdb.config import Settings

# Context fields the store attaches through ``extra=``.
_CONTEXT_FIELDS = ("path", "entries", "elapsed_ms", "action")


class JsonFormatter(logging.Formatter):
    """One JSON object per record, with any store context fields attached."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(
            (key, getattr(record, key))
            for key in _CONTEXT_FIELDS
            if getattr(record, key, None) is not None
        )
        return json.dumps(entry, default=str)


def setup_logging(settings: Optional[Settings] = None) -> None:
    """Configure the ``agentdb`` logger from LOG_FORMAT and LOG_LEVEL."""
    if settings is None:
        settings = Settings.from_env()

    logger = logging.getLogger("agentdb")

    # Avoid duplicate setup
    if getattr(logger, "_agentdb_configured", False):
        return
    logger._agentdb_configured = True  # type: ignore[attr-defined]

    level = getattr(logging, settings.log_level, logging.INFO)
    logger.setLevel(level)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)

    if settings.log_format == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
        )

    logger.handlers.clear()
    logger.addHandler(handler)
