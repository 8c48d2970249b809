"""Logging setup.

Logs go to stdout. The JSON format carries the structured fields passed via
``extra=`` (report_id, period, attempts, error).
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from bookkeeping.config import Settings, settings

# Attributes every LogRecord has; anything else came in through ``extra=``.
_RESERVED_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def build_formatter(config: Settings = settings) -> logging.Formatter:
    if (config.log_format or "").lower() == "text":
        return logging.Formatter(
            fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    return JsonFormatter()


def setup_logging(config: Settings = settings, logger: Optional[logging.Logger] = None) -> None:
    """Attach a stdout handler to ``logger`` (root by default) once."""
    target = logger or logging.getLogger()
    level = getattr(logging, (config.log_level or "INFO").upper(), logging.INFO)
    target.setLevel(level)

    # Repeated calls must not stack handlers
    if target.handlers:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(build_formatter(config))
    target.addHandler(handler)
