"""
Logging setup for the canvas run server.

Every line carries the id of the run it was logged under, so the
interleaved output of concurrent runs can be told apart. The id travels in
a context variable: it follows the run's coroutine and is copied into the
step worker threads by ``utils.async_helpers.run_in_thread``.
"""
import contextvars
import json
import logging
import os
import re
from contextlib import contextmanager
from typing import Iterator, Optional

NO_RUN = "-"

_current_run_id: contextvars.ContextVar = contextvars.ContextVar("canvas_run_id", default=NO_RUN)


def current_run_id() -> str:
    return _current_run_id.get()


@contextmanager
def run_log_context(run_id: str) -> Iterator[None]:
    """Tag every log line emitted inside the block with ``run_id``."""
    token = _current_run_id.set(run_id)
    try:
        yield
    finally:
        _current_run_id.reset(token)


class RunContextFilter(logging.Filter):
    """Stamps ``record.run_id`` so formatters can reference ``%(run_id)s``."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "run_id"):
            record.run_id = current_run_id()
        return True


class OneLineFormatter(logging.Formatter):
    """Collapses multi-line messages (tracebacks, JSON) onto one line, optionally truncated."""

    _ws_re = re.compile(r"\s+")

    def __init__(self, fmt=None, datefmt=None, style="%", max_len: Optional[int] = None):
        super().__init__(fmt=fmt, datefmt=datefmt, style=style)
        self.max_len = max_len

    def format(self, record: logging.LogRecord) -> str:
        msg = self._ws_re.sub(" ", super().format(record)).strip()
        if self.max_len and len(msg) > self.max_len:
            msg = msg[: self.max_len] + " …(truncated)"
        return msg


def compact_json(data) -> str:
    """Single-line JSON for log messages; falls back to ``str`` for anything unserializable."""
    try:
        return json.dumps(data, separators=(",", ":"), ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return str(data)


def _max_len_from_env() -> int:
    raw = os.getenv("CANVAS_LOG_MAX_LEN", "0")
    try:
        return int(raw) if raw else 0
    except ValueError:
        return 0


def setup_logging() -> None:
    level_name = os.getenv("CANVAS_LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

    root = logging.getLogger()
    # Already configured (pytest, gunicorn): only adjust the level
    if root.handlers:
        root.setLevel(level)
        return

    root.setLevel(level)
    handler = logging.StreamHandler()
    handler.addFilter(RunContextFilter())
    fmt = "%(asctime)s %(levelname)s [%(name)s] run=%(run_id)s - %(message)s"
    handler.setFormatter(OneLineFormatter(fmt=fmt, datefmt="%H:%M:%S", max_len=_max_len_from_env() or None))
    root.addHandler(handler)

    # Request logs from the dev server stay quiet unless explicitly asked for
    for noisy in ("werkzeug", "urllib3", "flask_cors"):
        logging.getLogger(noisy).setLevel(max(logging.WARNING, level))
