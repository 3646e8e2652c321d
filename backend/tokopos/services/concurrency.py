# Overview: Unit-of-work helpers; row locks, retries and the transaction time budget.

"""
tokopos Unit-of-Work Rules (authoritative)

- Every check-then-mutate sequence (stock check + decrement, receivable
  balance check + update) runs inside ONE call to run_atomic().
- Rows whose values drive a decision are read with lock_for_update().
  SQLite ignores FOR UPDATE, so run_atomic() opens SQLite units with
  BEGIN IMMEDIATE, which takes the database write lock up front.
- A unit either commits completely or rolls back completely.
- Lock conflicts and optimistic version conflicts are retried from scratch;
  the operation function must therefore be safe to re-run.
- One deadline of TRANSACTION_TIMEOUT_SECONDS covers every attempt and
  lock wait of a call; a unit that passes it is rolled back and
  reported as TransactionTimeout (retryable by the caller).
"""

from __future__ import annotations

import logging
import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..errors import PersistenceError, TransactionTimeout

logger = logging.getLogger(__name__)

_LOCK_TIMEOUT_MARKERS = (
    "database is locked",
    "lock timeout",
    "lock_timeout",
    "statement timeout",
    "canceling statement",
    "deadlock",
)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    Rows already in the identity map are refreshed from the locked read.
    """
    return query.with_for_update().populate_existing()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1, deadline: float | None = None):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). With a `deadline` (time.monotonic()
    value) no new attempt starts once the backoff would run past it.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            delay = backoff_base * (2 ** attempt)
            if deadline is not None and time.monotonic() + delay >= deadline:
                raise
            logger.warning("Retrying unit of work after %s (attempt %d/%d)", type(exc).__name__, attempt + 1, attempts)
            time.sleep(delay)
    if last_exc:
        raise last_exc


def _begin_unit_of_work(remaining_seconds: float) -> None:
    """Open the unit; lock waits may use at most `remaining_seconds`."""
    budget_ms = max(1, int(remaining_seconds * 1000))
    dialect = db.engine.dialect.name
    if dialect == "sqlite":
        dbapi_connection = db.session.connection().connection.dbapi_connection
        if not dbapi_connection.in_transaction:
            dbapi_connection.execute(f"PRAGMA busy_timeout = {budget_ms}")
            db.session.execute(text("BEGIN IMMEDIATE"))
    elif dialect == "postgresql":
        db.session.execute(text(f"SET LOCAL statement_timeout = {budget_ms}"))
        db.session.execute(text(f"SET LOCAL lock_timeout = {budget_ms}"))


def _is_lock_timeout(exc: OperationalError) -> bool:
    message = str(getattr(exc, "orig", exc)).lower()
    return any(marker in message for marker in _LOCK_TIMEOUT_MARKERS)


def _timeout(timeout_seconds: float, started: float) -> TransactionTimeout:
    return TransactionTimeout(
        f"Transaction exceeded {timeout_seconds:g}s budget; retry the operation",
        details={"elapsed_seconds": round(time.monotonic() - started, 3)},
    )


def run_atomic(func, *, timeout_seconds: float | None = None, attempts: int | None = None):
    """
    Run `func` as one isolated, all-or-nothing unit of work and commit it.

    `timeout_seconds` bounds the whole call, retries and lock waits
    included. Domain errors raised by `func` roll the unit back and
    propagate unchanged. Storage failures surface as PersistenceError /
    TransactionTimeout.
    """
    config = current_app.config
    if timeout_seconds is None:
        timeout_seconds = config.get("TRANSACTION_TIMEOUT_SECONDS", 15)
    if attempts is None:
        attempts = config.get("TRANSACTION_RETRY_ATTEMPTS", 3)
    started = time.monotonic()
    deadline = started + timeout_seconds

    def _op():
        try:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise _timeout(timeout_seconds, started)
            _begin_unit_of_work(remaining)
            result = func()
            if time.monotonic() > deadline:
                raise _timeout(timeout_seconds, started)
            db.session.commit()
            return result
        except Exception:
            db.session.rollback()
            raise

    try:
        return run_with_retry(_op, attempts=attempts, deadline=deadline)
    except OperationalError as exc:
        if _is_lock_timeout(exc) or time.monotonic() >= deadline:
            raise _timeout(timeout_seconds, started) from exc
        raise PersistenceError("Database rejected the transaction") from exc
    except StaleDataError as exc:
        raise PersistenceError("Concurrent update conflict; retry the operation") from exc
    except IntegrityError as exc:
        raise PersistenceError("Database constraint rejected the transaction") from exc
