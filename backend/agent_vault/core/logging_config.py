"""
Logging setup.

Production emits one JSON object per line. Lifecycle log calls attach
`operation`, `agent_id` and `code` through `extra=`, and those keys are
lifted into the JSON record when present.
"""

import json
import logging
import sys

from .config import Settings

# Record attributes copied into structured output when set via extra=
CONTEXT_FIELDS = ("operation", "agent_id", "caller", "code")


class JSONFormatter(logging.Formatter):
    """One JSON object per record"""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                entry[field] = value
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


def configure_logging(settings: Settings) -> None:
    level = logging.DEBUG if settings.db_echo else logging.INFO

    if settings.environment == "production":
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter(datefmt="%Y-%m-%dT%H:%M:%S"))
        logging.root.handlers = [handler]
        logging.root.setLevel(level)
        return

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-7s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
    )
