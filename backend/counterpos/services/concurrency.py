# Overview: Locking, conditional-update and retry helpers for stock and balance writes.

from __future__ import annotations

import time

from sqlalchemy import update
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def conditional_decrement(
    model,
    column,
    *,
    row_id: int,
    amount: int,
    credit: int = 0,
    extra_values: dict | None = None,
) -> bool:
    """
    UPDATE <table> SET column = column - :amount + :credit
    WHERE id = :id AND column >= :amount

    Returns True when the row was updated. The check and the write happen in
    one statement, so two writers can never both take the last unit.
    """
    values = {column.key: column - amount + credit}
    if extra_values:
        values.update(extra_values)
    stmt = (
        update(model)
        .where(model.id == row_id, column >= amount)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    return bool(result.rowcount)


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts).
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
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc
