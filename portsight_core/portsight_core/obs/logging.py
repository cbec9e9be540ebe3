from __future__ import annotations
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

# Structured fields callers may attach via ``extra=``
STRUCTURED_FIELDS = (
    "provider", "duration_ms", "count", "port", "pid", "host",
    "service_id", "events", "error_code", "check",
)


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for key in STRUCTURED_FIELDS:
            if hasattr(record, key):
                payload[key] = getattr(record, key)
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def get_logger(name: str = "portsight") -> logging.Logger:
    """Logger under the ``portsight`` tree, configuring defaults on first use."""
    if not logging.getLogger("portsight").handlers:
        configure_logging()
    return logging.getLogger(name)


def configure_logging(level: str = "INFO", json_output: bool = True, stream: Optional[object] = None) -> logging.Logger:
    """
    Configure the ``portsight`` logger tree once at startup.

    Every module logs through ``logging.getLogger('portsight.<area>')`` so a
    single handler on the root ``portsight`` logger covers the whole package.
    Logs go to stderr by default so that JSON written to stdout by the CLI
    stays machine-readable.
    """
    logger = logging.getLogger("portsight")
    for h in list(logger.handlers):
        logger.removeHandler(h)
    h = logging.StreamHandler(stream or sys.stderr)
    if json_output:
        h.setFormatter(JsonFormatter())
    else:
        h.setFormatter(logging.Formatter("%(levelname)s %(name)s %(message)s"))
    logger.addHandler(h)
    logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    logger.propagate = False
    return logger
