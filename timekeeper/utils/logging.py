"""
Logging configuration with optional JSON output.
"""
import logging
import sys
import json
import os
from datetime import datetime, timezone
from typing import Any, Dict

# Extra attributes lifted from log records into JSON output
EXTRA_FIELDS = (
    "request_id",
    "path",
    "status",
    "duration_ms",
    "account_id",
    "organization_id",
    "timesheet_id",
    "action",
)


class JSONFormatter(logging.Formatter):
    """JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj: Dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "msg": record.getMessage(),
            "logger": record.name,
            "service": "timekeeper",
        }

        for field in EXTRA_FIELDS:
            if hasattr(record, field):
                log_obj[field] = getattr(record, field)

        if record.exc_info:
            log_obj["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(log_obj, default=str)


def configure_logging(level: int = logging.INFO) -> None:
    """
    Configure logging with optional JSON format.
    Set LOG_JSON=true in env to enable JSON logging.
    """
    use_json = os.getenv("LOG_JSON", "").lower() in ("true", "1", "yes")

    handler = logging.StreamHandler(sys.stdout)

    if use_json:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )

    logging.basicConfig(
        level=level,
        handlers=[handler],
    )
