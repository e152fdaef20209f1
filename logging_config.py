"""Logging setup for the POS service.

Records go to stdout as one JSON object per line so that the sync warnings
from the data gateway can be picked up by whatever collects the process
output. Extra context passed through ``extra={"user_id": ...}`` is copied
into the record.
"""

import json
import logging
from datetime import datetime, timezone

CONTEXT_FIELDS = ("user_id", "order_id", "collection")


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        log_record = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in CONTEXT_FIELDS:
            if hasattr(record, name):
                log_record[name] = getattr(record, name)
        if record.exc_info:
            log_record["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(log_record)


def configure_logging(level: str = "INFO") -> None:
    """Replace the root handlers with a single JSON console handler."""
    root = logging.getLogger()
    root.setLevel(level.upper() if isinstance(level, str) else level)
    for handler in list(root.handlers):
        root.removeHandler(handler)
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root.addHandler(handler)
