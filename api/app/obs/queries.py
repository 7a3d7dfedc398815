from __future__ import annotations

import hashlib
import logging
import os
import random
import time

from sqlalchemy import event
from sqlalchemy.engine import Engine

SLOW_QUERY_MS = int(os.getenv("DB_SLOW_QUERY_MS", "200"))
SAMPLE_RATE = 0.01

logger = logging.getLogger("obs")


def _compact(statement: str, limit: int = 200) -> str:
    sql = " ".join(statement.split())
    return sql if len(sql) <= limit else sql[: limit - 3] + "..."


def add_query_logger(
    engine: Engine,
    label: str,
    *,
    slow_ms: int | None = None,
    sample_rate: float = SAMPLE_RATE,
) -> None:
    """Attach timing-based logging to ``engine``, tagging lines with ``label``.

    Statements slower than ``slow_ms`` are logged at warning level; a small
    sample of the rest goes out at debug level. Bound parameters can carry
    customer references, so only a short digest of them is written.
    """
    threshold = SLOW_QUERY_MS if slow_ms is None else slow_ms
    target = engine.sync_engine if hasattr(engine, "sync_engine") else engine

    def before_cursor_execute(
        conn, cursor, statement, parameters, context, executemany
    ):  # type: ignore[no-untyped-def]
        context._query_start_time = time.perf_counter()

    def after_cursor_execute(
        conn, cursor, statement, parameters, context, executemany
    ):  # type: ignore[no-untyped-def]
        started = getattr(context, "_query_start_time", None)
        if started is None:
            return
        elapsed_ms = int((time.perf_counter() - started) * 1000)
        params_hash = hashlib.sha256(repr(parameters).encode()).hexdigest()[:8]
        if elapsed_ms >= threshold:
            log_fn = logger.warning
        elif random.random() < sample_rate:
            log_fn = logger.debug
        else:
            return
        log_fn(
            "%s %dms db=%s sql=%s params=%s",
            "slow query" if log_fn is logger.warning else "query",
            elapsed_ms,
            label,
            _compact(statement),
            params_hash,
        )

    event.listen(target, "before_cursor_execute", before_cursor_execute)
    event.listen(target, "after_cursor_execute", after_cursor_execute)
