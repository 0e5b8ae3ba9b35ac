"""Structured JSON logging for ReplyGate."""

import json
import logging
import sys
from datetime import datetime, timezone

# Attributes passed through ``extra=`` that are copied into the JSON line.
CONTEXT_FIELDS = ("user_id", "plan", "reason", "used", "limit", "status_code")


class JSONFormatter(logging.Formatter):
    """One JSON object per line, with any known ``extra`` context attached."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in CONTEXT_FIELDS:
            if hasattr(record, field):
                entry[field] = getattr(record, field)
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(level: str = "INFO") -> None:
    """Send ``replygate.*`` records to stdout as JSON lines.

    Idempotent: the app factory may run several times in one process.
    """
    root = logging.getLogger("replygate")
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.propagate = False
    if any(isinstance(h.formatter, JSONFormatter) for h in root.handlers):
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())
    root.addHandler(handler)
