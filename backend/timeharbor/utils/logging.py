"""Logging setup: custom TRACE level and optional JSON output."""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

# Custom TRACE level
TRACE = 5
logging.TRACE = TRACE
logging.addLevelName(TRACE, "TRACE")


def trace_method(self, msg, *args, **kwargs):
    if self.isEnabledFor(TRACE):
        self._log(TRACE, msg, args, **kwargs)


logging.Logger.trace = trace_method


class JSONFormatter(logging.Formatter):
    """One JSON object per log line."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj: Dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "msg": record.getMessage(),
            "logger": record.name,
            "service": "timeharbor",
        }
        for key in ("user_id", "team_id", "clock_session_id", "ticket_id"):
            if hasattr(record, key):
                log_obj[key] = getattr(record, key)
        if record.exc_info:
            log_obj["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(log_obj)


def configure_logging(log_level_str: str = "INFO", use_json: bool = False) -> None:
    """Configure the root logger once. HTTP client chatter stays at WARNING unless TRACE."""
    log_level_str = log_level_str.upper()
    log_level = TRACE if log_level_str == "TRACE" else getattr(logging, log_level_str, logging.INFO)

    root = logging.getLogger()
    if root.hasHandlers():
        root.setLevel(log_level)
        return

    handler = logging.StreamHandler(sys.stdout)
    if use_json:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)-8s - %(message)s'))

    logging.basicConfig(level=log_level, handlers=[handler])

    http_level = TRACE if log_level_str == "TRACE" else logging.WARNING
    logging.getLogger("httpcore").setLevel(http_level)
    logging.getLogger("httpx").setLevel(http_level)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if log_level_str == "TRACE" else logging.WARNING)

    if log_level_str == "TRACE":
        root.trace("Trace logging enabled at startup (verbose details).")
    else:
        root.debug("Debug logging enabled at startup.")
