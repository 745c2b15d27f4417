"""Structured log events for routing API responses (frontend logs panel)."""

import logging
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator

_LEVEL_NAMES = {
    logging.DEBUG: "debug",
    logging.INFO: "info",
    logging.WARNING: "warn",
    logging.ERROR: "error",
    logging.CRITICAL: "error",
}


def log_event(level: str, step: str, message: str, debug: str | None = None) -> dict:
    """Return a structured log event: { ts, level, step, message, debug? }."""
    ev = {
        "ts": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z",
        "level": level,
        "step": step,
        "message": message,
    }
    if debug:
        ev["debug"] = debug
    return ev


class EventLogHandler(logging.Handler):
    """Collects engine log records as log_event dicts tagged with one step name."""

    def __init__(self, step: str, level: int = logging.WARNING):
        super().__init__(level)
        self.step = step
        self.events: list[dict] = []
        self.thread_id = threading.get_ident()

    def emit(self, record: logging.LogRecord) -> None:
        if record.thread != self.thread_id:
            return
        level = _LEVEL_NAMES.get(record.levelno, "info")
        self.events.append(log_event(level, self.step, record.getMessage()))


@contextmanager
def capture_logs(step: str, logger_name: str = "channel_router") -> Iterator[list[dict]]:
    """Yield a list that fills with warnings logged under `logger_name` while the block runs."""
    handler = EventLogHandler(step)
    logger = logging.getLogger(logger_name)
    logger.addHandler(handler)
    try:
        yield handler.events
    finally:
        logger.removeHandler(handler)
