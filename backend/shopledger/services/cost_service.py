# Overview: Moving weighted average cost recomputation from a day's purchases.

"""
Average cost job.

For a target business date, every purchase line dated that day (hidden shops
excluded) is folded into its product's avg_cost_price:

    new = (prior_avg * prior_stock + SUM(q * c)) / (prior_stock + SUM(q))

prior_stock is the live stock summed over all shops and is only read when a
prior average exists; a product without one starts from its purchases alone.
When the denominator is <= 0 the product is skipped. The result is rounded
half-up to whole yen.

WARNING: the job is not idempotent. Running it twice for the same date folds
the same purchases in twice.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from shopledger.extensions import db
from shopledger.models import Product, Purchase, PurchaseDetail, Shop
from shopledger.time_utils import local_yesterday, parse_business_date
from .concurrency import lock_for_update, run_with_retry
from .errors import InvalidRange, PersistenceFailure
from .stock_service import total_stock


@dataclass
class PurchaseTotals:
    quantity: int = 0
    amount: int = 0


def round_half_up(numerator: int, denominator: int) -> int:
    """Integer division rounded half away from zero for positive denominators."""
    if numerator >= 0:
        return (2 * numerator + denominator) // (2 * denominator)
    return -((2 * -numerator + denominator) // (2 * denominator))


def compute_moving_average(prior_avg: int | None, prior_stock: int, quantity: int, amount: int) -> int | None:
    """
    New average cost, or None when the weighted denominator is <= 0.

    prior_avg None means "unset": the prior stock carries no weight.
    """
    if prior_avg is None:
        prior_avg, prior_stock = 0, 0
    denominator = prior_stock + quantity
    if denominator <= 0:
        return None
    return round_half_up(prior_avg * prior_stock + amount, denominator)


def collect_purchases(target_date: date) -> dict[str, PurchaseTotals]:
    """Per-product quantity and cost totals of purchases dated `target_date`."""
    rows = db.session.query(
        PurchaseDetail.product_code,
        func.coalesce(func.sum(PurchaseDetail.quantity), 0),
        func.coalesce(func.sum(PurchaseDetail.quantity * func.coalesce(PurchaseDetail.cost_price, 0)), 0),
    ).join(
        Purchase, Purchase.id == PurchaseDetail.purchase_id,
    ).join(
        Shop, Shop.code == Purchase.shop_code,
    ).filter(
        Purchase.date == target_date,
        Shop.hidden.is_(False),
    ).group_by(PurchaseDetail.product_code).order_by(PurchaseDetail.product_code).all()

    return {
        code: PurchaseTotals(quantity=int(qty), amount=int(amount))
        for code, qty, amount in rows
    }


def update_product_average(product_code: str, totals: PurchaseTotals) -> dict:
    """Fold one product's purchases in, in its own transaction."""

    def _op() -> dict:
        product = lock_for_update(
            db.session.query(Product).filter_by(code=product_code)
        ).first()
        if product is None:
            return {"product_code": product_code, "status": "unknown_product"}

        prior_avg = product.avg_cost_price
        prior_stock = total_stock(product_code) if prior_avg is not None else 0
        new_avg = compute_moving_average(prior_avg, prior_stock, totals.quantity, totals.amount)
        if new_avg is None:
            db.session.rollback()
            return {
                "product_code": product_code,
                "status": "skipped",
                "prior_avg_cost_price": prior_avg,
                "prior_stock": prior_stock,
            }

        product.avg_cost_price = new_avg
        db.session.commit()
        return {
            "product_code": product_code,
            "status": "updated",
            "prior_avg_cost_price": prior_avg,
            "prior_stock": prior_stock,
            "quantity": totals.quantity,
            "avg_cost_price": new_avg,
        }

    return run_with_retry(_op)


def update_avg_cost_prices(target_date=None) -> dict:
    """
    Run the average cost job for `target_date` (default: yesterday).

    One product failing does not stop the others; it is reported with
    status "failed". Returns {"date", "products": [...], "updated",
    "skipped", "failed"}.
    """
    if target_date is None:
        target_date = local_yesterday()
    else:
        try:
            target_date = parse_business_date(target_date)
        except ValueError as exc:
            raise InvalidRange(f"invalid date: {target_date!r}", cause=exc)

    try:
        purchases = collect_purchases(target_date)
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise PersistenceFailure("failed to read purchases", cause=exc)

    results = []
    for product_code, totals in purchases.items():
        try:
            result = update_product_average(product_code, totals)
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.exception("Average cost update failed for %s", product_code)
            result = {"product_code": product_code, "status": "failed", "error": str(exc)}
        if result["status"] == "unknown_product":
            current_app.logger.warning("Purchase for unknown product %s skipped", product_code)
        results.append(result)

    summary = {
        "date": target_date.isoformat(),
        "products": results,
        "updated": sum(1 for r in results if r["status"] == "updated"),
        "skipped": sum(1 for r in results if r["status"] in ("skipped", "unknown_product")),
        "failed": sum(1 for r in results if r["status"] == "failed"),
    }
    current_app.logger.info(
        "Average cost %s: %s updated, %s skipped, %s failed",
        summary["date"], summary["updated"], summary["skipped"], summary["failed"],
    )
    return summary
