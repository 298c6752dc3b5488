# groovelib/logs.py
import json
import logging
import os
import re
import sys
import uuid
from datetime import datetime, timezone

logger = logging.getLogger("groove")

MAX_REQUEST_ID_LENGTH = 128
REQUEST_ID_PATTERN = re.compile(r"[A-Za-z0-9._:-]+")

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


def debug_logs_enabled() -> bool:
    return os.environ.get("GROOVE_DEBUG_LOGS") == "true"


def configure_logging(debug=None):
    """Attach a stderr handler to the groove logger (idempotent)."""
    if debug is None:
        debug = debug_logs_enabled()
    logger.setLevel(logging.DEBUG if debug else logging.INFO)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
        logger.propagate = False
    return logger


def get_request_id(incoming=None) -> str:
    """Reuse a caller-supplied request id when it is short and safe, else mint one."""
    if incoming:
        incoming = incoming.strip()
        if (
            incoming
            and len(incoming) <= MAX_REQUEST_ID_LENGTH
            and REQUEST_ID_PATTERN.fullmatch(incoming)
        ):
            return incoming
    return str(uuid.uuid4())


def serialize_error(error):
    if isinstance(error, BaseException):
        return {"name": type(error).__name__, "message": str(error)}
    return {"name": "NonError", "message": str(error)}


def log_event(level, route, request_id, event, **details):
    """Write one structured record: a JSON object per line."""
    log_level = _LEVELS[level]
    if not logger.isEnabledFor(log_level):
        return
    payload = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "level": level,
        "route": route,
        "requestId": request_id,
        "event": event,
    }
    payload.update(details)
    logger.log(log_level, json.dumps(payload, default=str))
