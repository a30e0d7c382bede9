"""
Logging configuration for applications using beholder.

Library modules only create loggers; handlers are installed here, either
human-readable (default) or JSON-formatted for log collectors.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Optional, Union

DEFAULT_LEVEL = "WARNING"
LEVEL_ENV_VAR = "BEHOLDER_LOG_LEVEL"


class JSONFormatter(logging.Formatter):
    """Format log records as single-line JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data)


def setup_logging(
    level: Optional[Union[str, int]] = None,
    json_format: bool = False,
) -> logging.Logger:
    """Configure the root logger.

    Args:
        level: Log level name or number (default: $BEHOLDER_LOG_LEVEL or WARNING)
        json_format: Emit JSON lines instead of human-readable text

    Returns:
        The configured root logger
    """
    if level is None:
        level = os.environ.get(LEVEL_ENV_VAR, DEFAULT_LEVEL)
    if isinstance(level, str):
        level = level.upper()

    handler = logging.StreamHandler(sys.stderr)
    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)-8s %(name)s: %(message)s")
        )

    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)
    root.addHandler(handler)
    root.setLevel(level)
    return root
