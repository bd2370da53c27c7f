"""
Logging setup for the Phish Trust Scorer.

Library modules only ask for a named logger; the root handler and format
are installed once by the deployment entry point (main.py) through
configure_logging(). Importing the engine never touches logging config.
"""

import json
import logging
import sys

from config import get_settings

DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"

_configured = False


class JsonFormatter(logging.Formatter):
    """One JSON object per line, which Cloud Logging parses into fields."""

    def format(self, record):
        log = {
            "timestamp": self.formatTime(record, self.datefmt),
            "severity": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            log["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(log)


def configure_logging(settings=None, force=False):
    """Install the stdout root handler. Later calls are no-ops unless forced."""
    global _configured
    if _configured and not force:
        return

    settings = settings or get_settings()
    if settings.log_format == "json":
        formatter = JsonFormatter(datefmt=DATE_FORMAT)
    else:
        formatter = logging.Formatter(DEFAULT_FORMAT, DATE_FORMAT)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        handlers=[handler],
        force=True,
    )
    _configured = True


def get_logger(name=None):
    return logging.getLogger(name)
