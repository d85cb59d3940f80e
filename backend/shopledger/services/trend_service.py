# Overview: Item trend report: day-by-day movement and running stock of one product at one shop.

"""
Item trends.

Four transaction streams are bucketed by business day ("yyyy/mm/dd"):

    purchases    +quantity, cost = quantity * cost_price
    deliveries   -quantity, cost = quantity * cost_price
    rejections   -quantity, cost = quantity * cost_price (returns and waste)
    sales        -quantity * sign, OTC (division "5") lines only,
                 amount = selling_price * quantity * sign - discount

Documents are bucketed by their header date; sales by the local date of
created_at. Only days with at least one movement or stocktake appear.

Running stock starts from the MonthlyStock snapshot labelled with the month
before the range and folds forward over the sorted day keys:

    stock[d] = stock[d-1] + purchase[d] - sales[d] - delivery[d] - rejection[d]

A stocktake (Inventory line for the product) on day d replaces stock[d]
with the counted quantity, valued at the count's cost price; the fold
continues from it. Other days are valued at the current final cost price.

The month range is inclusive and may not exceed TREND_MAX_MONTHS (6). The
range is validated before any query runs.
"""

from __future__ import annotations

from datetime import date

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from shopledger.extensions import db
from shopledger.models import (
    Delivery,
    DeliveryDetail,
    Inventory,
    InventoryDetail,
    MonthlyStock,
    Purchase,
    PurchaseDetail,
    Rejection,
    RejectionDetail,
    Sale,
    SaleDetail,
)
from shopledger.time_utils import (
    add_months,
    day_key,
    local_date_of,
    local_day_start_utc,
    month_label,
    months_spanned,
    parse_month,
)
from .closing_service import OTC_DIVISION
from .errors import InvalidRange, PersistenceFailure
from .master_service import get_product_price, get_shop

FLOW_FIELDS = (
    "purchase_count",
    "purchase_cost_total",
    "sales_count",
    "sales_total",
    "delivery_count",
    "delivery_cost_total",
    "rejection_count",
    "rejection_cost_total",
)

TREND_FIELDS = FLOW_FIELDS + ("stock_count", "stock_cost_total")

# (header model, detail model, detail FK column name, field prefix)
DOCUMENT_STREAMS = (
    (Purchase, PurchaseDetail, "purchase_id", "purchase"),
    (Delivery, DeliveryDetail, "delivery_id", "delivery"),
    (Rejection, RejectionDetail, "rejection_id", "rejection"),
)


def validate_month_range(month_from, month_to, max_months: int | None = None) -> tuple[date, date]:
    """
    Parse and check an inclusive month range; returns first days of both months.

    Jan..Jun is six months and accepted; Jan..Jul is rejected.
    """
    if max_months is None:
        max_months = current_app.config.get("TREND_MAX_MONTHS", 6)
    try:
        start = parse_month(month_from)
        end = parse_month(month_to)
    except ValueError as exc:
        raise InvalidRange(str(exc), cause=exc)
    if end < start:
        raise InvalidRange("month_to is before month_from")
    spanned = months_spanned(start, end)
    if spanned > max_months:
        raise InvalidRange(f"range covers {spanned} months; at most {max_months} allowed")
    return start, end


def _empty_day() -> dict:
    return {name: 0 for name in FLOW_FIELDS}


def _document_stream(model, detail_model, fk_name, shop_code, product_code, start, end_exclusive):
    fk = getattr(detail_model, fk_name)
    return db.session.query(
        model.date,
        func.coalesce(func.sum(detail_model.quantity), 0),
        func.coalesce(func.sum(detail_model.quantity * func.coalesce(detail_model.cost_price, 0)), 0),
    ).join(
        detail_model, fk == model.id,
    ).filter(
        model.shop_code == shop_code,
        detail_model.product_code == product_code,
        model.date >= start,
        model.date < end_exclusive,
    ).group_by(model.date).all()


def collect_movements(shop_code: str, product_code: str, start: date, end_exclusive: date) -> dict:
    """Per-day flow fields from the four streams, keyed by "yyyy/mm/dd"."""
    days: dict[str, dict] = {}

    for model, detail_model, fk_name, prefix in DOCUMENT_STREAMS:
        for day, quantity, cost in _document_stream(
            model, detail_model, fk_name, shop_code, product_code, start, end_exclusive
        ):
            entry = days.setdefault(day_key(day), _empty_day())
            entry[f"{prefix}_count"] += int(quantity)
            entry[f"{prefix}_cost_total"] += int(cost)

    sale_rows = db.session.query(Sale, SaleDetail).join(
        SaleDetail, SaleDetail.sale_id == Sale.id,
    ).filter(
        Sale.shop_code == shop_code,
        Sale.created_at >= local_day_start_utc(start),
        Sale.created_at < local_day_start_utc(end_exclusive),
        SaleDetail.product_code == product_code,
        SaleDetail.division == OTC_DIVISION,
    ).order_by(Sale.created_at.asc()).all()

    for sale, detail in sale_rows:
        sign = -1 if sale.status == "Return" else 1
        entry = days.setdefault(day_key(local_date_of(sale.created_at)), _empty_day())
        entry["sales_count"] += detail.quantity * sign
        entry["sales_total"] += detail.selling_price * detail.quantity * sign - (detail.discount or 0)

    return days


def collect_stocktakes(shop_code: str, product_code: str, start: date, end_exclusive: date) -> dict:
    """Counted quantities by day: {"yyyy/mm/dd": (quantity, cost_price)}."""
    rows = db.session.query(
        Inventory.date,
        InventoryDetail.quantity,
        InventoryDetail.cost_price,
    ).join(
        InventoryDetail, InventoryDetail.inventory_id == Inventory.id,
    ).filter(
        Inventory.shop_code == shop_code,
        InventoryDetail.product_code == product_code,
        Inventory.date >= start,
        Inventory.date < end_exclusive,
    ).all()
    return {day_key(day): (int(quantity), cost_price) for day, quantity, cost_price in rows}


def baseline_stock(shop_code: str, product_code: str, start: date) -> int:
    label = month_label(add_months(start, -1))
    value = db.session.query(MonthlyStock.quantity).filter_by(
        shop_code=shop_code,
        month=label,
        product_code=product_code,
    ).scalar()
    return int(value or 0)


def fold_running_stock(
    days: dict,
    baseline: int,
    final_cost_price: int | None,
    stocktakes: dict | None = None,
) -> dict:
    """
    Fill stock_count/stock_cost_total over the sorted day keys.

    Returns a new dict ordered by day key; `days` is not modified.
    """
    stocktakes = stocktakes or {}
    price = final_cost_price or 0
    keys = sorted(set(days) | set(stocktakes))

    result: dict[str, dict] = {}
    stock = baseline
    for key in keys:
        entry = dict(days.get(key) or _empty_day())
        if key in stocktakes:
            counted, cost_price = stocktakes[key]
            stock = counted
            entry["stock_count"] = counted
            entry["stock_cost_total"] = counted * (cost_price if cost_price is not None else price)
        else:
            stock = (
                stock
                + entry["purchase_count"]
                - entry["sales_count"]
                - entry["delivery_count"]
                - entry["rejection_count"]
            )
            entry["stock_count"] = stock
            entry["stock_cost_total"] = stock * price
        result[key] = entry
    return result


def summarize_months(trends: dict) -> dict:
    """
    Per-month ("yyyy/mm") sums of the flow fields.

    Month stock is the stock of the last trend day in that month.
    """
    summaries: dict[str, dict] = {}
    for key in sorted(trends):
        entry = trends[key]
        month = key[:7]
        summary = summaries.setdefault(month, {name: 0 for name in TREND_FIELDS})
        for name in FLOW_FIELDS:
            summary[name] += entry[name]
        summary["stock_count"] = entry["stock_count"]
        summary["stock_cost_total"] = entry["stock_cost_total"]
    return summaries


def query_item_trends(
    shop_code: str,
    product_code: str,
    month_from,
    month_to,
    final_cost_price: int | None = None,
) -> dict:
    """
    Build the item trend report.

    Returns {"shop_code", "product_code", "month_from", "month_to",
    "final_cost_price", "baseline_stock", "trends", "summaries"}.
    """
    start, end = validate_month_range(month_from, month_to)
    end_exclusive = add_months(end, 1)

    get_shop(shop_code)
    if final_cost_price is None:
        final_cost_price = get_product_price(shop_code, product_code)["final_cost_price"]

    try:
        days = collect_movements(shop_code, product_code, start, end_exclusive)
        stocktakes = collect_stocktakes(shop_code, product_code, start, end_exclusive)
        baseline = baseline_stock(shop_code, product_code, start)
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise PersistenceFailure("failed to read item movements", cause=exc)

    trends = fold_running_stock(days, baseline, final_cost_price, stocktakes)
    return {
        "shop_code": shop_code,
        "product_code": product_code,
        "month_from": start.strftime("%Y/%m"),
        "month_to": end.strftime("%Y/%m"),
        "final_cost_price": final_cost_price,
        "baseline_stock": baseline,
        "trends": trends,
        "summaries": summarize_months(trends),
    }
