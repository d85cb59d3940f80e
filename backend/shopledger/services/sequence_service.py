# Overview: Named sequence allocation and master-collection counters.

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Sequence, Counter
from .concurrency import run_with_retry
from .errors import InvalidRange


def next_sequence(name: str) -> int:
    """
    Atomically increment and return the named sequence.

    The first call for a name returns 1. Uses an UPDATE ... SET value=value+1
    so two concurrent callers can never receive the same value.
    """
    if not name:
        raise InvalidRange("sequence name is required")

    def _op() -> int:
        stmt = (
            update(Sequence)
            .where(Sequence.name == name)
            .values(value=Sequence.value + 1)
        )
        result = db.session.execute(stmt)
        if not result.rowcount:
            db.session.add(Sequence(name=name, value=1))
            try:
                db.session.flush()
            except IntegrityError:
                # Another caller created the row first
                db.session.rollback()
                result = db.session.execute(stmt)
                if not result.rowcount:
                    raise
        db.session.flush()
        value = db.session.query(Sequence.value).filter_by(name=name).scalar()
        db.session.commit()
        return int(value)

    return run_with_retry(_op)


def bump_counter(name: str, delta: int) -> None:
    """
    Add `delta` to a collection counter inside the caller's transaction.

    Does not commit: counters change together with the row they count.
    """
    result = db.session.execute(
        update(Counter)
        .where(Counter.name == name)
        .values(all_count=Counter.all_count + delta)
    )
    if not result.rowcount:
        db.session.add(Counter(name=name, all_count=delta))
        db.session.flush()


def get_counter(name: str) -> int:
    value = db.session.query(Counter.all_count).filter_by(name=name).scalar()
    return int(value or 0)
