# Overview: Shop roster synchronization from KKB into the shops table.

"""
Shop sync job.

Flow:
1. Authenticate to KKB and pull today's roster.
2. Sign out (best-effort, also on failure).
3. Split the roster into batches of SHOP_SYNC_BATCH_SIZE (100).
4. Per batch: provision login identities, upsert shop rows, commit once.

Batches are independent: a failing batch is rolled back on its own and the
run continues with the next one. Shops whose identity was created in this
run are flagged hidden=False / role="shop"; existing shops only get their
roster fields refreshed.
"""

from __future__ import annotations

from datetime import date

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from shopledger.extensions import db
from shopledger.models import Shop
from shopledger.time_utils import local_today
from .auth_service import ensure_shop_account, SHOP_ROLE
from .concurrency import chunked
from .errors import JobError
from .external_system import ExternalSystem, RosterEntry, sign_out_quietly
from .sequence_service import bump_counter


def fetch_roster(system: ExternalSystem, on_date: date) -> list[RosterEntry]:
    try:
        system.authenticate()
        return system.fetch_roster(on_date)
    finally:
        sign_out_quietly(system)


def _dedupe(entries: list[RosterEntry]) -> list[RosterEntry]:
    """Last row wins when KKB lists a shop twice."""
    by_code: dict[str, RosterEntry] = {}
    for entry in entries:
        by_code[entry.code] = entry
    return list(by_code.values())


def upsert_shop(entry: RosterEntry, newly_provisioned: bool) -> tuple[Shop, bool]:
    """
    Merge roster fields into the shop row; returns (shop, inserted).

    Does not commit.
    """
    shop = db.session.query(Shop).filter_by(code=entry.code).first()
    inserted = shop is None
    if inserted:
        shop = Shop(code=entry.code, name="")
        db.session.add(shop)
        bump_counter("shops", 1)

    for attr in Shop.ROSTER_FIELDS:
        if attr in entry.fields:
            value = entry.fields[attr]
            if attr == "name":
                value = value or ""
            setattr(shop, attr, value)

    if newly_provisioned:
        shop.hidden = False
        shop.role = SHOP_ROLE
    return shop, inserted


def sync_batch(entries: list[RosterEntry]) -> dict:
    """
    Provision identities for a batch, then upsert its shops.

    Identities, role claims and shop rows of the batch share one transaction,
    so a failed batch leaves no identity behind and its shops are flagged on
    the next run.
    """
    provisioned = set()
    for entry in entries:
        _, created = ensure_shop_account(entry.code, commit=False)
        if created:
            provisioned.add(entry.code)

    inserted, updated = [], []
    for entry in entries:
        _, was_inserted = upsert_shop(entry, entry.code in provisioned)
        (inserted if was_inserted else updated).append(entry.code)
    db.session.commit()

    return {
        "inserted": inserted,
        "updated": updated,
        "provisioned": sorted(provisioned),
    }


def sync_shops(
    system: ExternalSystem,
    *,
    today: date | None = None,
    batch_size: int | None = None,
) -> dict:
    """
    Run the shop sync job.

    Returns {"date", "total", "batches", "inserted", "updated",
    "provisioned", "failed_batches"}. Roster fetch failures propagate
    (ExternalSystemFailure); batch failures are counted and logged.
    """
    today = today or local_today()
    batch_size = batch_size or current_app.config.get("SHOP_SYNC_BATCH_SIZE", 100)

    entries = _dedupe(fetch_roster(system, today))
    batches = chunked(entries, batch_size)

    summary = {
        "date": today.isoformat(),
        "total": len(entries),
        "batches": [len(b) for b in batches],
        "inserted": [],
        "updated": [],
        "provisioned": [],
        "failed_batches": 0,
    }

    for number, batch in enumerate(batches, start=1):
        try:
            result = sync_batch(batch)
        except (SQLAlchemyError, JobError):
            db.session.rollback()
            summary["failed_batches"] += 1
            current_app.logger.exception(
                "Shop sync batch %s/%s failed (%s shops)", number, len(batches), len(batch)
            )
            continue
        for key in ("inserted", "updated", "provisioned"):
            summary[key].extend(result[key])

    current_app.logger.info(
        "Shop sync %s: %s shops, %s inserted, %s provisioned, %s failed batches",
        summary["date"],
        summary["total"],
        len(summary["inserted"]),
        len(summary["provisioned"]),
        summary["failed_batches"],
    )
    return summary
