import logging
import os
import sys
from typing import Optional

from pythonjsonlogger import jsonlogger

GRID_LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"


def setup_logging(level: Optional[str] = None):
    """
    Route the root logger to stdout as structured JSON.

    Args:
        level: Explicit level name; falls back to LOG_LEVEL, then INFO.
    """
    level_name = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    log = logging.getLogger()
    log.setLevel(getattr(logging, level_name, logging.INFO))

    # A second call (e.g. app factory reused in tests) must not stack handlers
    if log.handlers:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(jsonlogger.JsonFormatter(GRID_LOG_FORMAT))
    log.addHandler(handler)
