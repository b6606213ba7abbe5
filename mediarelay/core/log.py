"""
Request-scoped logging.

Every record carries the id of the request it was emitted for, so the
output of concurrent requests can be told apart.
"""
import contextvars
import logging
import sys
import uuid
from contextlib import contextmanager

LOG_FORMAT = "%(asctime)s %(levelname)s [%(request_id)s] %(name)s: %(message)s"

_request_id = contextvars.ContextVar("mediarelay_request_id", default="-")


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = _request_id.get()
        return True


def new_request_id() -> str:
    return uuid.uuid4().hex[:12]


def current_request_id() -> str:
    return _request_id.get()


@contextmanager
def request_scope(request_id: str):
    token = _request_id.set(request_id)
    try:
        yield request_id
    finally:
        _request_id.reset(token)


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger("mediarelay")
    root.setLevel(level.upper())
    for h in list(root.handlers):
        if getattr(h, "_mediarelay", False):
            root.removeHandler(h)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(RequestIdFilter())
    handler._mediarelay = True
    root.addHandler(handler)
