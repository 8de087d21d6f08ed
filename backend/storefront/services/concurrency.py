# Overview: Retry and row-locking helpers for checkout and order writes.

from __future__ import annotations

import time

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


RETRYABLE_ERRORS = (OperationalError, StaleDataError)

# Order numbers come from the clock, so two checkouts in the same
# millisecond collide on the unique index and must be regenerated.
UNIQUE_RETRY_ERRORS = RETRYABLE_ERRORS + (IntegrityError,)


def lock_for_update(query):
    """
    SELECT ... FOR UPDATE for order rows changed by admin status updates.

    SQLite ignores the clause; Postgres/MySQL hold the lock until commit.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1, retry_on=RETRYABLE_ERRORS):
    """
    Call `func` until it succeeds or `attempts` runs out.

    The session is rolled back between tries and the wait doubles each time.
    The last exception propagates unchanged.
    """
    for attempt in range(1, attempts + 1):
        try:
            return func()
        except retry_on:
            db.session.rollback()
            if attempt == attempts:
                raise
            time.sleep(backoff_base * 2 ** (attempt - 1))
