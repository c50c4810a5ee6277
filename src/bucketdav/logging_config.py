"""Logging setup for BucketDAV.

Records emitted while a request is in flight are stamped with that
request's id, so a subtree copy or a store failure deep inside a handler
can be matched to its access line. In JSON mode the access-log fields are
grouped under ``http`` and the tree operator's fields under ``tree``.
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone

request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)

# Extras set by the access-log middleware
HTTP_FIELDS = ("method", "path", "status", "duration_ms")

# Extras set by the tree operator for DELETE, COPY and MOVE of collections
TREE_FIELDS = ("operation", "source", "destination", "entries", "skipped")


def _group(record: logging.LogRecord, fields: tuple[str, ...]) -> dict:
    return {
        key: getattr(record, key) for key in fields if getattr(record, key, None) is not None
    }


class RequestContextFilter(logging.Filter):
    """Attach the current request id to every record passing the handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            record.request_id = request_id_var.get()
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line.

    Always present: timestamp, level, logger, message. Optional:
    request_id, exception, and the ``http`` and ``tree`` groups.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        request_id = getattr(record, "request_id", None)
        if request_id:
            entry["request_id"] = request_id
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        http = _group(record, HTTP_FIELDS)
        if http:
            entry["http"] = http
        tree = _group(record, TREE_FIELDS)
        if tree:
            entry["tree"] = tree
        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable lines with the request id in brackets when known."""

    def __init__(self) -> None:
        super().__init__("%(asctime)s %(levelname)s %(name)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        request_id = getattr(record, "request_id", None)
        if request_id:
            return f"[{request_id}] {line}"
        return line


def configure_logging(level: str = "INFO", fmt: str = "text") -> None:
    """Replace the root handlers with one stderr handler.

    Args:
        level: Log level name; unknown names fall back to INFO.
        fmt: 'text' or 'json'.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(numeric_level)

    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(numeric_level)
    handler.addFilter(RequestContextFilter())
    handler.setFormatter(JSONFormatter() if fmt == "json" else TextFormatter())
    root.addHandler(handler)
