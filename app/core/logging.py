"""
Process-wide log setup.

``LOG_FORMAT`` picks ``json`` (one object per line, the default) or ``text``
for local runs. Anything passed through ``extra={...}`` is carried as
structured fields in both formats.
"""
import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Optional

# Attributes every LogRecord has; anything else came in through ``extra``.
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime", "taskName"}

_HANDLER_NAME = "timeledger"


def record_fields(record: logging.LogRecord) -> dict:
    return {k: v for k, v in vars(record).items() if k not in _RECORD_ATTRS and not k.startswith("_")}


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "msg": record.getMessage(),
        }
        fields = record_fields(record)
        if fields:
            payload["fields"] = fields
        if record.exc_info:
            exc_type = record.exc_info[0]
            payload["exception"] = {
                "type": exc_type.__name__ if exc_type else None,
                "traceback": self.formatException(record.exc_info),
            }
        return json.dumps(payload, default=str)


class TextFormatter(logging.Formatter):
    def __init__(self):
        super().__init__("%(asctime)s %(levelname)-7s %(name)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = record_fields(record)
        if not fields:
            return line
        head, sep, tail = line.partition("\n")
        pairs = " ".join(f"{k}={v!r}" for k, v in sorted(fields.items()))
        return f"{head} [{pairs}]{sep}{tail}"


def _formatter_for(fmt: str) -> logging.Formatter:
    if fmt == "text":
        return TextFormatter()
    return JsonFormatter()


def configure_logging(level: Optional[str] = None, fmt: Optional[str] = None) -> logging.Handler:
    """
    Install a single stderr handler on the root logger.

    Calling again (app reloads, test clients) replaces the handler instead
    of stacking another one.
    """
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    fmt_name = (fmt or os.getenv("LOG_FORMAT", "json")).lower()

    root = logging.getLogger()
    for existing in list(root.handlers):
        if existing.get_name() == _HANDLER_NAME:
            root.removeHandler(existing)

    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(_formatter_for(fmt_name))
    root.addHandler(handler)
    root.setLevel(getattr(logging, level_name, logging.INFO))
    return handler
