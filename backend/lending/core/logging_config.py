"""
Logging setup for the lending service.

Every record emitted while a request is being served is stamped with the
request id and the authenticated member id, so a borrow that fails deep in
the service can be tied back to the HTTP call that caused it.

Usage:
    from lending.core.logging_config import setup_logging, get_logger

    setup_logging(app, log_level="INFO")

    logger = get_logger(__name__)
    logger.info("Book borrowed", extra={"context": {"loan_id": "..."}})
"""

import json
import logging
import logging.handlers
import sys
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union

from flask import Flask, g, has_request_context, request
from flask_login import current_user

LOG_DIR = Path(__file__).resolve().parents[2] / "logs"
_MAX_BYTES = 10 * 1024 * 1024
_BACKUP_COUNT = 5


class RequestContextFilter(logging.Filter):
    """Copy ``request_id`` and ``member_id`` from ``flask.g`` onto records."""

    def filter(self, record: logging.LogRecord) -> bool:
        if has_request_context():
            record.request_id = g.get("request_id")
            record.member_id = g.get("member_id")
        else:
            record.request_id = getattr(record, "request_id", None)
            record.member_id = getattr(record, "member_id", None)
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line: level, logger, message, request ids, context."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in ("request_id", "member_id"):
            value = getattr(record, key, None)
            if value is not None:
                payload[key] = value
        context = getattr(record, "context", None)
        if context is not None:
            payload["context"] = context
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class ConsoleFormatter(logging.Formatter):
    """Coloured level names plus inline context, for local development."""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        # Work on a copy; file handlers see the same record
        painted = logging.makeLogRecord(record.__dict__)
        color = self.LEVEL_COLORS.get(record.levelno, "")
        painted.levelname = f"{color}{record.levelname:8}{self.RESET}"
        line = super().format(painted)
        context = getattr(record, "context", None)
        if context:
            line += " | " + json.dumps(context, default=str)
        return line


def _resolve_level(log_level: Union[int, str]) -> int:
    if isinstance(log_level, int):
        return log_level
    return getattr(logging, str(log_level).upper(), logging.INFO)


def _rotating_handler(path: Path, level: int) -> Optional[logging.Handler]:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.handlers.RotatingFileHandler(
            path, maxBytes=_MAX_BYTES, backupCount=_BACKUP_COUNT, encoding="utf-8"
        )
    except OSError as e:
        logging.getLogger("lending.logging").warning(
            f"Cannot write {path.name}: {e}. Logging to console only.",
            extra={"context": {"component": "logging_setup", "path": str(path)}},
        )
        return None
    handler.setLevel(level)
    handler.setFormatter(JSONFormatter())
    return handler


def register_request_hooks(app: Flask) -> None:
    """Assign a request id to each request and log its start and outcome."""

    @app.before_request
    def _start_request():
        g.request_started = time.perf_counter()
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        g.member_id = (
            current_user.get_id()
            if current_user and current_user.is_authenticated
            else None
        )
        logging.getLogger("lending.http").debug(
            f"{request.method} {request.path}",
            extra={"context": {"remote_addr": request.remote_addr}},
        )

    @app.after_request
    def _finish_request(response):
        started = g.get("request_started")
        if started is None:
            return response
        response.headers["X-Request-ID"] = g.request_id
        duration_ms = (time.perf_counter() - started) * 1000
        logging.getLogger("lending.http").info(
            f"{request.method} {request.path} -> {response.status_code}",
            extra={
                "context": {
                    "status_code": response.status_code,
                    "duration_ms": round(duration_ms, 2),
                }
            },
        )
        return response


def setup_logging(
    app: Optional[Flask] = None,
    log_level: Union[int, str] = "INFO",
    log_to_file: bool = True,
    use_json_format: bool = False,
) -> None:
    """
    Configure the root logger for the lending service.

    Args:
        app: Flask app to register request hooks on (optional)
        log_level: Level name or number
        log_to_file: Also write ``lending.log`` and ``lending_errors.log``
        use_json_format: JSON on the console instead of coloured text
    """
    level = _resolve_level(log_level)
    root = logging.getLogger()
    root.setLevel(level)
    for existing in list(root.handlers):
        existing.close()
        root.removeHandler(existing)

    handlers = []
    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(
        JSONFormatter()
        if use_json_format
        else ConsoleFormatter(
            "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    handlers.append(console)
    root.addHandler(console)

    if log_to_file:
        for filename, file_level in (
            ("lending.log", level),
            ("lending_errors.log", logging.ERROR),
        ):
            handler = _rotating_handler(LOG_DIR / filename, file_level)
            if handler is not None:
                handlers.append(handler)
                root.addHandler(handler)

    request_filter = RequestContextFilter()
    for handler in handlers:
        handler.addFilter(request_filter)

    if app is not None:
        register_request_hooks(app)

    logging.getLogger("werkzeug").setLevel(logging.WARNING)

    logging.getLogger("lending").info(
        "Logging configured",
        extra={
            "context": {
                "level": logging.getLevelName(level),
                "log_to_file": log_to_file,
                "json_format": use_json_format,
            }
        },
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def log_performance(operation: str, duration_ms: float, **context) -> None:
    """Record how long a lending operation took at DEBUG level."""
    context.update({"operation": operation, "duration_ms": round(duration_ms, 2)})
    get_logger("lending.performance").debug(
        f"{operation} took {duration_ms:.2f}ms", extra={"context": context}
    )
