"""
Logging setup.

One stdout handler (gunicorn / the container runtime collects it). Every
record carries the current request id, read from a context variable that
the request-id middleware sets per request.
"""
from __future__ import annotations

import logging
import logging.config
from contextvars import ContextVar

from app.core.config import Settings

request_id_var: ContextVar[str] = ContextVar("request_id", default="-")

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] [%(request_id)s] %(message)s"


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = request_id_var.get()
        return True


def configure_logging(settings: Settings) -> None:
    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "request_id": {"()": RequestIdFilter},
        },
        "formatters": {
            "default": {"format": LOG_FORMAT},
        },
        "handlers": {
            "stdout": {
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stdout",
                "formatter": "default",
                "filters": ["request_id"],
            },
        },
        "loggers": {
            "app": {
                "handlers": ["stdout"],
                "level": settings.LOG_LEVEL,
                "propagate": False,
            },
        },
    })
