# Overview: Daily closing report: register-session sales aggregated into accounting buckets.

"""
Daily closing.

A closing covers one register session: the latest RegisterStatus of the shop
opened before the end of the business date, from opened_at to closed_at (an
open session is closed "now").

Every receipt line is classified by its division code:

    division  bucket
    1         health_copayment      (health insurance copayment)
    2         medicine              (dispensed medicine sales)
    3         container             (container cost)
    4         copayment_adjustment
    5         otc_normal / otc_reduced by selling_tax 10 / 8
    7         care_copayment        (long-term care copayment)
    8         return_fee            (shipping / return fee)
    9         container             (plastic bag)
    10        health_copayment      (hearing aid)
    11        health_copayment      (hearing aid accessories)

Unknown divisions are logged and left out of the buckets; their amounts
still count toward the receipt's payment total.

AMOUNTS (yen, integers):
    line amount = (selling_price * quantity - discount) * sign
    sign = -1 for "Return" receipts

OTC tax is computed per receipt: floor(subtotal * rate / 100) for tax
exclusive lines, floor(subtotal * rate / (100 + rate)) carved out of tax
inclusive lines. Floor rounds toward negative infinity on return receipts
too (a 999 yen return refunds 100 yen of tax at 10%).

A Credit receipt also pushes a "credit" entry of
-(line total + otc tax normal + otc tax reduced).
"""

from __future__ import annotations

from datetime import date, timedelta

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from shopledger.extensions import db
from shopledger.models import RegisterStatus, Sale, SaleDetail
from shopledger.time_utils import (
    day_key,
    local_day_start_utc,
    parse_business_date,
    to_utc_z,
    utcnow,
)
from .errors import InvalidRange, NotFound, PersistenceFailure
from .external_system import ExternalSystem, sign_out_quietly
from .file_transfer import build_uploader
from .master_service import get_shop

OTC_DIVISION = "5"

DIVISION_BUCKETS = {
    "1": "health_copayment",
    "2": "medicine",
    "3": "container",
    "4": "copayment_adjustment",
    "7": "care_copayment",
    "8": "return_fee",
    "9": "container",
    "10": "health_copayment",
    "11": "health_copayment",
}

BUCKETS = (
    "health_copayment",
    "medicine",
    "container",
    "copayment_adjustment",
    "otc_normal",
    "otc_reduced",
    "care_copayment",
    "return_fee",
)

PAYMENT_TYPES = ("Cash", "Credit", "Digital", "Receivable")

NORMAL_RATE = 10
REDUCED_RATE = 8


def coerce_date(value) -> date:
    try:
        return parse_business_date(value)
    except ValueError as exc:
        raise InvalidRange(f"invalid date: {value!r}", cause=exc)


def classify_line(division: str, selling_tax: int | None) -> str | None:
    """Bucket name for a receipt line, or None for an unknown division."""
    division = str(division or "").strip()
    if division == OTC_DIVISION:
        return "otc_reduced" if selling_tax == REDUCED_RATE else "otc_normal"
    return DIVISION_BUCKETS.get(division)


def sale_sign(sale: Sale) -> int:
    return -1 if sale.status == "Return" else 1


def line_amount(detail: SaleDetail, sign: int) -> int:
    return (detail.selling_price * detail.quantity - (detail.discount or 0)) * sign


def otc_tax(subtotal: int, rate: int, tax_class: str) -> int:
    if tax_class == "free":
        return 0
    if tax_class == "inclusive":
        return (subtotal * rate) // (100 + rate)
    return (subtotal * rate) // 100


def find_register_session(shop_code: str, on_date: date) -> RegisterStatus:
    """Latest register session opened before the end of `on_date`."""
    day_end = local_day_start_utc(on_date + timedelta(days=1))
    status = db.session.query(RegisterStatus).filter(
        RegisterStatus.shop_code == shop_code,
        RegisterStatus.opened_at < day_end,
    ).order_by(RegisterStatus.opened_at.desc()).first()
    if status is None:
        raise NotFound(f"no register session for shop {shop_code} on {day_key(on_date)}")
    return status


def aggregate_sales(sales: list[Sale]) -> dict:
    """Fold receipts into bucket, tax, payment and division totals."""
    buckets = {name: 0 for name in BUCKETS}
    taxes = {"otc_normal": 0, "otc_reduced": 0}
    payments = {name: 0 for name in PAYMENT_TYPES}
    divisions: dict[str, dict] = {}
    entries: list[dict] = []
    unknown_divisions: set[str] = set()

    for sale in sales:
        sign = sale_sign(sale)
        sale_total = 0
        # (rate, tax class) -> OTC subtotal of this receipt
        otc_subtotals: dict[tuple[int, str], int] = {}

        for detail in sorted(sale.details, key=lambda d: d.line_index):
            amount = line_amount(detail, sign)
            sale_total += amount

            div = divisions.setdefault(
                str(detail.division),
                {"count": 0, "amount": 0, "discount_count": 0, "discount_amount": 0},
            )
            div["count"] += 1
            div["amount"] += amount
            if detail.discount:
                div["discount_count"] += 1
                div["discount_amount"] += -detail.discount * sign

            bucket = classify_line(detail.division, detail.selling_tax)
            if bucket is None:
                unknown_divisions.add(str(detail.division))
                current_app.logger.warning(
                    "Sale %s line %s has unknown division %r; counted in payments only",
                    sale.code, detail.line_index, detail.division,
                )
                continue

            if bucket in ("otc_normal", "otc_reduced"):
                rate = REDUCED_RATE if bucket == "otc_reduced" else NORMAL_RATE
                key = (rate, detail.selling_tax_class or "exclusive")
                otc_subtotals[key] = otc_subtotals.get(key, 0) + amount
                continue
            buckets[bucket] += amount

        tax_normal = 0
        tax_reduced = 0
        for (rate, tax_class), subtotal in otc_subtotals.items():
            tax = otc_tax(subtotal, rate, tax_class)
            pre_tax = subtotal - tax if tax_class == "inclusive" else subtotal
            if rate == REDUCED_RATE:
                buckets["otc_reduced"] += pre_tax
                tax_reduced += tax
            else:
                buckets["otc_normal"] += pre_tax
                tax_normal += tax
            if tax_class == "inclusive":
                # inclusive tax is already inside the line total
                sale_total -= tax
        taxes["otc_normal"] += tax_normal
        taxes["otc_reduced"] += tax_reduced

        receipt_total = sale_total + tax_normal + tax_reduced
        if sale.payment_type in payments:
            payments[sale.payment_type] += receipt_total
        if sale.payment_type == "Credit":
            entries.append({"kind": "credit", "sale_code": sale.code, "amount": -receipt_total})

    return {
        "buckets": buckets,
        "taxes": taxes,
        "payments": payments,
        "divisions": dict(sorted(divisions.items(), key=lambda kv: int(kv[0]) if kv[0].isdigit() else 0)),
        "entries": entries,
        "unknown_divisions": sorted(unknown_divisions),
        "total": sum(payments.values()),
    }


def build_daily_closing_report(shop_code: str, on_date, register: RegisterStatus | None = None) -> dict:
    """Closing report of `register`, or of the session found for `on_date`."""
    on_date = coerce_date(on_date)
    get_shop(shop_code)

    try:
        session = register or find_register_session(shop_code, on_date)
        opened_at = session.opened_at
        closed_at = session.closed_at or utcnow()

        sales = db.session.query(Sale).filter(
            Sale.shop_code == shop_code,
            Sale.created_at >= opened_at,
            Sale.created_at < closed_at,
        ).order_by(Sale.created_at.asc(), Sale.id.asc()).all()

        totals = aggregate_sales(sales)
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise PersistenceFailure("failed to read register sales", cause=exc)

    return {
        "shop_code": shop_code,
        "date": day_key(on_date),
        "opened_at": to_utc_z(opened_at),
        "closed_at": to_utc_z(closed_at),
        "sales_count": len(sales),
        **totals,
    }


def closing_filename(shop_code: str, on_date: date) -> str:
    return f"{shop_code}_{on_date.strftime('%Y%m%d')}.json"


def send_daily_closing(
    shop_code: str,
    on_date,
    system: ExternalSystem,
    uploader=None,
    register: RegisterStatus | None = None,
) -> dict:
    """
    Build the closing report, upload it over FTP, then trigger KKB's closing.

    The KKB session is signed out in every case before an error surfaces.
    Returns {"report", "remote_path"}.
    """
    on_date = coerce_date(on_date)
    try:
        report = build_daily_closing_report(shop_code, on_date, register)
        if uploader is None:
            uploader = build_uploader()
        remote_path = uploader.upload_json(closing_filename(shop_code, on_date), report)

        system.authenticate()
        system.trigger_closing(shop_code, on_date)
    finally:
        sign_out_quietly(system)

    current_app.logger.info(
        "Daily closing for shop %s on %s sent (%s sales)",
        shop_code, day_key(on_date), report["sales_count"],
    )
    return {"report": report, "remote_path": remote_path}
