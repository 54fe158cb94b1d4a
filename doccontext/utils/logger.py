import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import List

import structlog
from pythonjsonlogger.json import JsonFormatter

from doccontext.config import config
from doccontext.utils.logging_context import get_current_trace_id

LOGGER_NAME = "doccontext"


def _ensure_log_dir(path: str):
    log_dir = os.path.dirname(path) or "."
    if log_dir and not os.path.exists(log_dir):
        os.makedirs(log_dir, exist_ok=True)


def _add_trace_id(logger, method_name, event_dict):
    trace = get_current_trace_id()
    if trace and "trace_id" not in event_dict:
        event_dict["trace_id"] = trace
    return event_dict


class TraceIDFilter(logging.Filter):
    """Attach the active trace id to stdlib records that bypass structlog."""

    def filter(self, record):
        if not getattr(record, "trace_id", None):
            record.trace_id = get_current_trace_id() or ""
        return True


class Logger:
    """Structured logger wrapper with trace-id injection.

    structlog builds the event dict; records are handed to the stdlib
    ``doccontext`` logger and rendered as JSON lines by python-json-logger, or
    as console lines when ``logging.format`` is ``console``.
    """

    def __init__(self):
        self.logger = None
        self._handlers: List[logging.Handler] = []
        self._setup_logging()

    @property
    def _json(self) -> bool:
        return config.get("logging.format", "json") == "json"

    def _get_formatter(self) -> logging.Formatter:
        if self._json:
            return JsonFormatter(
                "%(asctime)s %(levelname)s %(name)s %(message)s %(trace_id)s",
                rename_fields={"levelname": "level"},
            )
        return logging.Formatter("%(asctime)s - %(levelname)s - %(name)s - %(message)s")

    def _setup_handlers(self) -> List[logging.Handler]:
        handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]

        path = config.get("logging.log_file")
        if path:
            path = str(path)
            _ensure_log_dir(path)
            handlers.append(
                RotatingFileHandler(
                    path,
                    maxBytes=int(config.get("logging.rotate_size", 10 * 1024 * 1024)),
                    backupCount=int(config.get("logging.backup_count", 5)),
                    encoding="utf-8",
                )
            )

        formatter = self._get_formatter()
        trace_filter = TraceIDFilter()
        for handler in handlers:
            handler.setFormatter(formatter)
            handler.addFilter(trace_filter)
        return handlers

    def _configure_stdlib_logger(self) -> logging.Logger:
        base = logging.getLogger(LOGGER_NAME)
        base.setLevel(getattr(logging, str(config.get("logging.log_level", "INFO")).upper(), logging.INFO))
        for handler in self._handlers:
            base.removeHandler(handler)
            handler.close()
        self._handlers = self._setup_handlers()
        for handler in self._handlers:
            base.addHandler(handler)
        return base

    def _configure_structlog(self):
        renderer = (
            structlog.stdlib.render_to_log_kwargs
            if self._json
            else structlog.dev.ConsoleRenderer(colors=False)
        )
        structlog.configure(
            processors=[
                structlog.stdlib.filter_by_level,
                structlog.stdlib.PositionalArgumentsFormatter(),
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                _add_trace_id,
                renderer,
            ],
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )
        self.logger = structlog.get_logger(LOGGER_NAME)

    def _setup_logging(self):
        self._configure_stdlib_logger()
        self._configure_structlog()

    def get_logger(self):
        return self.logger

    def shutdown(self):
        base = logging.getLogger(LOGGER_NAME)
        for handler in self._handlers:
            base.removeHandler(handler)
            handler.close()
        self._handlers = []


# Global logger instance
logger_instance = Logger()
logger = logger_instance.get_logger()
