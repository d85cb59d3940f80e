# Overview: Transaction helpers: row locking, retry on lock/stale errors, batch partitioning.

from __future__ import annotations

import time
from typing import Iterable, TypeVar

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db

T = TypeVar("T")


def lock_for_update(query):
    """SELECT ... FOR UPDATE on the query rows (a no-op on SQLite)."""
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Call `func` until it succeeds, at most `attempts` times.

    Lock timeouts, deadlocks (OperationalError) and version conflicts
    (StaleDataError) roll the session back and retry with exponential
    backoff; the last failure is re-raised.
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


def chunked(items: Iterable[T], size: int) -> list[list[T]]:
    """
    Split items into consecutive lists of at most `size` elements.

    250 items with size 100 -> [100, 100, 50].
    """
    if size <= 0:
        raise ValueError("size must be positive")
    items = list(items)
    return [items[i:i + size] for i in range(0, len(items), size)]
