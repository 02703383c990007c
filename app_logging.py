"""
JSON logging for the app.

Loggers come from ``get_logger(name, **defaults)``; keyword arguments on a log
call become top-level keys of the JSON line::

    logger.info("seed_students_loaded", count=10)
"""
import json
import logging
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, MutableMapping, Optional, Tuple
from uuid import uuid4

_CORRELATION_ID: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

# keyword arguments the stdlib logger itself understands
_LOGGING_KWARGS = frozenset({"exc_info", "stack_info", "stacklevel", "extra"})


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        line: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "event": record.getMessage(),
        }
        cid = _CORRELATION_ID.get()
        if cid:
            line["correlation_id"] = cid
        line.update(getattr(record, "fields", None) or {})
        if record.exc_info:
            line["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(line, default=str)


class FieldsAdapter(logging.LoggerAdapter):
    """Moves unknown keyword arguments of a log call into ``record.fields``."""

    def process(self, msg: str, kwargs: MutableMapping[str, Any]) -> Tuple[str, MutableMapping[str, Any]]:
        fields = dict(self.extra or {})
        for key in [k for k in kwargs if k not in _LOGGING_KWARGS]:
            fields[key] = kwargs.pop(key)
        kwargs["extra"] = {**(kwargs.get("extra") or {}), "fields": fields}
        return msg, kwargs


def configure_logging(*, level: str = "INFO", environment: str = "dev") -> None:
    """Install one JSON stream handler on the root logger.

    ``dev`` and ``test`` turn the default INFO into DEBUG; ``prod`` never goes
    below INFO. Calling it again is a no-op.
    """
    root = logging.getLogger()
    if any(isinstance(h.formatter, JsonFormatter) for h in root.handlers):
        return

    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        numeric = logging.INFO
    if environment in ("dev", "test") and numeric == logging.INFO:
        numeric = logging.DEBUG
    elif environment == "prod":
        numeric = max(numeric, logging.INFO)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(numeric)
    logging.getLogger("pymongo").setLevel(max(numeric, logging.INFO))


def get_logger(name: str, **defaults: Any) -> FieldsAdapter:
    return FieldsAdapter(logging.getLogger(name), defaults)


@contextmanager
def correlation_context(correlation_id: Optional[str] = None) -> Iterator[str]:
    """Tag every log line inside the block with a correlation id."""
    cid = correlation_id or uuid4().hex
    token = _CORRELATION_ID.set(cid)
    try:
        yield cid
    finally:
        _CORRELATION_ID.reset(token)
