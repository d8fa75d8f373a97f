"""Structured log output for the engine.

Customer identifiers pass through log messages (reservation notes, payment
references), so e-mail addresses and phone numbers are masked before a record
is written.
"""

import json
import logging
import re
from datetime import datetime, timezone
from typing import Any

from .context import request_id_ctx

EMAIL_RE = re.compile(r"[\w.+-]+@[\w-]+\.[\w.-]+", re.I)
PHONE_RE = re.compile(r"\+?\b\d{10,13}\b")

# Structured extras copied from ``logger.info(..., extra={...})`` calls.
EXTRA_FIELDS = (
    "entity",
    "entity_id",
    "table_id",
    "reservation_id",
    "order_id",
    "payment_id",
    "status",
    "code",
)


def _redact_pii(text: str) -> str:
    """Mask e-mail addresses and phone numbers in ``text``."""
    text = EMAIL_RE.sub("***", text)
    text = PHONE_RE.sub("***", text)
    return text


class RequestIdFilter(logging.Filter):
    """Copy the caller's request id onto every record as ``req_id``."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.req_id = request_id_ctx.get(None)
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per record, including the engine's entity extras."""

    def format(self, record: logging.LogRecord) -> str:
        data: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "req_id": getattr(record, "req_id", None),
            "msg": _redact_pii(record.getMessage()),
        }
        for key in EXTRA_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                data[key] = str(value)
        if record.exc_info:
            data["exc"] = self.formatException(record.exc_info)
        return json.dumps(data)


def configure_logging(level: int | str | None = None, json_output: bool | None = None) -> None:
    """Install a single stderr handler on the root logger.

    ``level`` and ``json_output`` default to ``log_level`` and ``log_json``
    from the settings.
    """

    from ..config import get_settings

    settings = get_settings()
    level = level if level is not None else settings.log_level
    json_output = settings.log_json if json_output is None else json_output

    stream = logging.StreamHandler()
    if json_output:
        stream.setFormatter(JsonFormatter())
    else:
        stream.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s [%(req_id)s] %(message)s")
        )
    stream.addFilter(RequestIdFilter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(stream)
    root.setLevel(level)
