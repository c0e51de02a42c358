# Overview: Transaction helpers for write paths: row locks, write-transaction start, bounded retry.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import LedgerTimeout
from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_write_transaction()
    takes the database write lock up front there instead.
    """
    return query.with_for_update()


def begin_write_transaction() -> None:
    """
    Start the current unit of work as a write transaction with a bounded duration.

    - SQLite: BEGIN IMMEDIATE, so concurrent writers serialize before reading.
    - PostgreSQL: SET LOCAL statement_timeout for this transaction only.
    """
    dialect = db.session.get_bind().dialect.name
    if dialect == "sqlite":
        dbapi_conn = db.session.connection().connection.dbapi_connection
        if not dbapi_conn.in_transaction:
            db.session.execute(text("BEGIN IMMEDIATE"))
    elif dialect == "postgresql":
        timeout_ms = int(current_app.config.get("LEDGER_STATEMENT_TIMEOUT_MS", 5000))
        db.session.execute(text(f"SET LOCAL statement_timeout = {timeout_ms}"))


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks, statement timeouts) and
    StaleDataError (optimistic locking conflicts). Each retry starts from a
    full rollback, so func re-reads state and re-checks its invariants.
    When attempts run out the caller gets LedgerTimeout.
    """
    if attempts is None:
        attempts = int(current_app.config.get("LEDGER_RETRY_ATTEMPTS", 3))

    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            current_app.logger.warning(
                "Concurrent write conflict (attempt %s/%s): %s",
                attempt + 1,
                attempts,
                exc.__class__.__name__,
            )
            if attempt >= attempts - 1:
                raise LedgerTimeout(
                    "The operation could not complete in time and was rolled back; retry it"
                ) from exc
            time.sleep(backoff_base * (2 ** attempt))

