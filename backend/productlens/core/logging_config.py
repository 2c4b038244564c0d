"""Structured logging configuration.

Two modes via LOG_FORMAT:
- "json": one JSON object per line (python-json-logger), with request_id
- "text": human-readable lines for local development and the CLI
"""

import logging
import sys

from pythonjsonlogger.json import JsonFormatter

from productlens.middleware.request_id import get_request_id

TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(request_id)s] %(message)s"


class RequestIDFilter(logging.Filter):
    """Inject request_id into every log record."""

    def filter(self, record):
        record.request_id = get_request_id()
        return True


class PlaywrightPipeFilter(logging.Filter):
    """Drop Playwright's 'pipe closed by peer' warnings.

    When the shared browser crashes, Playwright logs this once per pending
    write; the disconnect itself is already logged by the browser manager.
    """

    def filter(self, record):
        return "pipe closed by peer" not in record.getMessage()


def configure_logging(log_format: str = "json", log_level: str = "INFO", stream=None):
    """Configure the root logger.

    Args:
        log_format: "json" or "text"
        log_level: Python log level name
        stream: Output stream (stdout by default; the CLI passes stderr)
    """
    root = logging.getLogger()
    root.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.addFilter(RequestIDFilter())
    handler.addFilter(PlaywrightPipeFilter())

    if log_format == "json":
        formatter = JsonFormatter(
            fmt="%(asctime)s %(name)s %(levelname)s %(message)s %(request_id)s",
            rename_fields={
                "levelname": "level",
                "name": "logger",
                "asctime": "timestamp",
            },
        )
    else:
        formatter = logging.Formatter(TEXT_FORMAT)

    handler.setFormatter(formatter)
    root.addHandler(handler)
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    logging.getLogger("playwright").setLevel(logging.ERROR)
    # readability-lxml logs every candidate it scores at INFO
    logging.getLogger("readability").setLevel(logging.WARNING)
