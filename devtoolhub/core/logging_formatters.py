"""Log formatters wired up in ``settings.LOGGING``."""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict

_RECORD_ATTRIBUTES = (
    ("user_id", "user_id"),
    ("user_email", "user_email"),
    ("ip", "ip"),
    ("request_id", "request_id"),
    ("path", "path"),
    ("http_method", "http_method"),
)


class StructuredJSONFormatter(logging.Formatter):
    """One JSON object per line; request attributes and ``context`` are merged in."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for attr, key in _RECORD_ATTRIBUTES:
            value = getattr(record, attr, None)
            if value not in (None, ""):
                payload[key] = value

        context = getattr(record, "context", None)
        if isinstance(context, dict):
            for key, value in context.items():
                if key not in payload:
                    payload[key] = value
                elif payload[key] != value:
                    payload[f"context_{key}"] = value

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)
