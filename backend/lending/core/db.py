"""
Slow statement alerts for the lending database.

Borrow and return hold row locks for the length of their unit of work, so
a statement that waits on a lock or scans too much shows up here first.
Alerts go to the ``sql.alerts`` logger with the request id of the HTTP call
that issued the statement, when there is one.
"""

import logging
import time
from typing import Any, Dict, Optional

from flask import g, has_request_context
from sqlalchemy import event
from sqlalchemy.engine import Engine

from lending.core import config

logger = logging.getLogger("sql.alerts")

_MASKED_PARAM_MARKERS = ("email", "token", "secret", "password")
_STATEMENT_PREVIEW = 500
_PARAM_PREVIEW = 200


def _preview(value: Any, limit: int) -> str:
    text = str(value)
    return text if len(text) <= limit else text[:limit] + "..."


def _mask_params(params: Any) -> Any:
    """Hide member emails and credentials before parameters reach a log line."""
    if isinstance(params, dict):
        return {
            key: "***"
            if any(marker in str(key).lower() for marker in _MASKED_PARAM_MARKERS)
            else _mask_params(value)
            for key, value in params.items()
        }
    if isinstance(params, (list, tuple)):
        return [_mask_params(item) for item in params]
    if isinstance(params, (bytes, bytearray)):
        return "<binary>"
    return _preview(params, _PARAM_PREVIEW)


class SlowQueryMonitor:
    """Times each cursor execution on one engine and logs the slow ones."""

    def __init__(self, db_info: Optional[Dict[str, Any]] = None):
        self.db_info = {k: v for k, v in (db_info or {}).items() if v}

    def before_execute(self, conn, cursor, statement, parameters, context, executemany):
        context._lending_started = time.perf_counter()

    def after_execute(self, conn, cursor, statement, parameters, context, executemany):
        started = getattr(context, "_lending_started", None)
        if started is None or not config.get_slow_query_alerts_enabled():
            return
        duration_ms = (time.perf_counter() - started) * 1000.0
        if duration_ms < config.get_slow_query_threshold_ms():
            return
        alert = {
            "alert_type": "slow_query",
            "duration_ms": round(duration_ms, 2),
            "statement": _preview(statement or "", _STATEMENT_PREVIEW),
            "params": _mask_params(parameters),
            **self.db_info,
        }
        if has_request_context():
            alert["request_id"] = g.get("request_id")
        logger.warning("Slow query detected", extra={"context": alert})


def register_query_timing(
    engine: Engine, db_info: Optional[Dict[str, Any]] = None
) -> None:
    """Attach a ``SlowQueryMonitor`` to ``engine`` once."""
    if getattr(engine, "_lending_slow_query_monitor", None) is not None:
        return
    if db_info is None:
        db_info = {"db_host": engine.url.host, "db_name": engine.url.database}
    monitor = SlowQueryMonitor(db_info)
    event.listen(engine, "before_cursor_execute", monitor.before_execute)
    event.listen(engine, "after_cursor_execute", monitor.after_execute)
    engine._lending_slow_query_monitor = monitor
