"""
Logging configuration for mcp_orchestrator.

JSON structured logging for log shippers; human-readable text for local dev.
Every record carries the request id and user id of the API request that
produced it, so one query can be followed through selection, tool calls,
chaining and background persistence.
"""

import json
import logging
import logging.handlers
import os
import sys
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Iterator

SERVICE_NAME = "mcp_orchestrator"

_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)
_user_id: ContextVar[str | None] = ContextVar("user_id", default=None)


def new_request_id() -> str:
    return uuid.uuid4().hex[:12]


@contextmanager
def request_context(user_id: str, request_id: str | None = None) -> Iterator[str]:
    """
    Tag log records emitted inside the block with user_id and a request id.

    Tasks created inside the block inherit the tags. Yields the request id.
    """
    request_id = request_id or new_request_id()
    rid_token = _request_id.set(request_id)
    uid_token = _user_id.set(user_id)
    try:
        yield request_id
    finally:
        _user_id.reset(uid_token)
        _request_id.reset(rid_token)


def current_request_id() -> str | None:
    return _request_id.get()


class RequestContextFilter(logging.Filter):
    """Copy the bound request id and user id onto each record ('-' outside a request)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = _request_id.get() or "-"
        record.user_id = _user_id.get() or "-"
        return True


class JsonFormatter(logging.Formatter):
    """Structured JSON log formatter, one object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "service": SERVICE_NAME,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        request_id = getattr(record, "request_id", "-")
        if request_id != "-":
            log["request_id"] = request_id
            log["user_id"] = getattr(record, "user_id", "-")
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log)


_TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s [%(request_id)s]: %(message)s"


def setup_logging(log_level: str, logs_dir: str, json_logs: bool) -> None:
    """Configure root logger with appropriate format and handlers."""
    os.makedirs(logs_dir, exist_ok=True)

    level = getattr(logging, log_level.upper(), logging.INFO)
    context_filter = RequestContextFilter()

    handlers: list[logging.Handler] = []

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    if json_logs:
        console.setFormatter(JsonFormatter())
    else:
        console.setFormatter(logging.Formatter(fmt=_TEXT_FORMAT, datefmt="%H:%M:%S"))
    handlers.append(console)

    # 10MB per file, keep 5 backups
    file_handler = logging.handlers.RotatingFileHandler(
        os.path.join(logs_dir, "orchestrator.log"),
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(JsonFormatter())
    handlers.append(file_handler)

    for handler in handlers:
        handler.addFilter(context_filter)

    logging.basicConfig(level=level, handlers=handlers, force=True)

    for noisy in ("httpx", "httpcore", "anthropic", "aiohttp.access"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
