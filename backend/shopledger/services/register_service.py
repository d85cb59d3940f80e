"""
Register session management.

One RegisterStatus row per shop per business date. Opening stamps
opened_at; closing stamps closed_at and sends the daily closing for that
date.

DESIGN PRINCIPLES:
- Only one open session per shop at a time
- Sessions are not reopened once closed
- Closing is retryable: a closed session can be sent again
"""

from __future__ import annotations

from shopledger.extensions import db
from shopledger.models import RegisterStatus
from shopledger.time_utils import day_key, local_today, utcnow
from .closing_service import coerce_date, send_daily_closing
from .concurrency import lock_for_update
from .errors import InvalidRange, NotFound
from .external_system import ExternalSystem
from .master_service import get_shop


def get_open_session(shop_code: str) -> RegisterStatus | None:
    return db.session.query(RegisterStatus).filter(
        RegisterStatus.shop_code == shop_code,
        RegisterStatus.closed_at.is_(None),
    ).order_by(RegisterStatus.opened_at.desc()).first()


def open_register(shop_code: str, on_date=None) -> RegisterStatus:
    """
    Open the register of a shop for a business date (default: today).

    Re-opening an already open session for the same date returns it.

    Raises:
        NotFound: unknown shop
        InvalidRange: another session is still open, or the date was closed
    """
    on_date = coerce_date(on_date) if on_date is not None else local_today()
    get_shop(shop_code)

    existing = db.session.query(RegisterStatus).filter_by(
        shop_code=shop_code,
        date=on_date,
    ).first()
    if existing is not None:
        if existing.is_open:
            return existing
        raise InvalidRange(f"register of shop {shop_code} was already closed for {day_key(on_date)}")

    open_session = get_open_session(shop_code)
    if open_session is not None:
        raise InvalidRange(
            f"register of shop {shop_code} is still open for {day_key(open_session.date)}"
        )

    status = RegisterStatus(shop_code=shop_code, date=on_date, opened_at=utcnow())
    db.session.add(status)
    db.session.commit()
    return status


def close_register(
    shop_code: str,
    system: ExternalSystem,
    on_date=None,
    *,
    uploader=None,
) -> dict:
    """
    Close the register session of a date and send its daily closing.

    Returns {"register": RegisterStatus dict, "closing": send_daily_closing result}.
    """
    on_date = coerce_date(on_date) if on_date is not None else local_today()

    status = lock_for_update(
        db.session.query(RegisterStatus).filter_by(shop_code=shop_code, date=on_date)
    ).first()
    if status is None:
        raise NotFound(f"no register session for shop {shop_code} on {day_key(on_date)}")

    if status.closed_at is None:
        status.closed_at = utcnow()
        db.session.commit()

    closing = send_daily_closing(shop_code, on_date, system, uploader=uploader, register=status)
    return {"register": status.to_dict(), "closing": closing}
