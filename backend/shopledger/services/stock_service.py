# Overview: Live stock totals and month-end stock snapshots.

from __future__ import annotations

from datetime import date

from flask import current_app
from sqlalchemy import func

from shopledger.extensions import db
from shopledger.models import Shop, Stock, MonthlyStock
from shopledger.time_utils import add_months, local_today, month_label, parse_month
from .errors import InvalidRange


def total_stock(product_code: str) -> int:
    """Sum of live stock for a product across every shop."""
    value = db.session.query(func.coalesce(func.sum(Stock.quantity), 0)).filter(
        Stock.product_code == product_code,
    ).scalar()
    return int(value or 0)


def previous_month_label(today: date | None = None) -> str:
    """Label of the month that ended before `today` (the scheduled run's target)."""
    today = today or local_today()
    return month_label(add_months(today, -1))


def snapshot_shop(shop_code: str, label: str) -> int:
    """
    Copy one shop's live stock rows into MonthlyStock under `label`.

    Existing rows for the same (shop, month, product) are overwritten.
    Does not commit. Returns the number of rows written.
    """
    existing = {
        row.product_code: row
        for row in db.session.query(MonthlyStock).filter_by(shop_code=shop_code, month=label)
    }
    written = 0
    for stock in db.session.query(Stock).filter_by(shop_code=shop_code).order_by(Stock.product_code):
        row = existing.get(stock.product_code)
        if row is None:
            row = MonthlyStock(shop_code=shop_code, month=label, product_code=stock.product_code)
            db.session.add(row)
        row.product_name = stock.product_name
        row.quantity = stock.quantity
        written += 1
    return written


def create_monthly_stocks(month=None) -> dict:
    """
    Snapshot every shop's live stock for `month` (default: previous month).

    Each shop is committed on its own. Returns {"month", "shops", "rows"}.
    """
    if month is None:
        label = previous_month_label()
    else:
        try:
            label = month_label(parse_month(month))
        except ValueError as exc:
            raise InvalidRange(f"invalid month: {month!r}", cause=exc)

    shops = [code for (code,) in db.session.query(Shop.code).order_by(Shop.code)]
    rows = 0
    for code in shops:
        rows += snapshot_shop(code, label)
        db.session.commit()

    current_app.logger.info("Monthly stock snapshot %s: %s shops, %s rows", label, len(shops), rows)
    return {"month": label, "shops": len(shops), "rows": rows}
