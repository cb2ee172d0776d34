from __future__ import annotations

import time

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


CONCURRENCY_ERRORS = (OperationalError, StaleDataError)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1, retry_on=CONCURRENCY_ERRORS):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts) by default. Callers racing on a unique
    key add IntegrityError via `retry_on` so the next attempt sees the
    winner's row.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except retry_on as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc


def retry_on_unique_race(func, *, attempts: int = 3, backoff_base: float = 0.05):
    """run_with_retry that also treats unique-constraint violations as retryable."""
    return run_with_retry(
        func,
        attempts=attempts,
        backoff_base=backoff_base,
        retry_on=CONCURRENCY_ERRORS + (IntegrityError,),
    )
