from __future__ import annotations

from ..extensions import db
from shopledger.time_utils import to_utc_z


class RegisterStatus(db.Model):
    """
    Register session for one shop and business date.

    LIFECYCLE:
    - open: closed_at is NULL, the register accumulates sales
    - closed: closed_at set; the daily closing report covers
      [opened_at, closed_at)

    One row per shop per business date.
    """
    __tablename__ = "register_statuses"
    __table_args__ = (
        db.UniqueConstraint("shop_code", "date", name="uq_register_statuses_shop_date"),
        db.Index("ix_register_statuses_shop_opened", "shop_code", "opened_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_code = db.Column(db.String(32), db.ForeignKey("shops.code"), nullable=False, index=True)
    date = db.Column(db.Date, nullable=False)

    opened_at = db.Column(db.DateTime(timezone=True), nullable=False)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    @property
    def is_open(self) -> bool:
        return self.closed_at is None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_code": self.shop_code,
            "date": self.date.isoformat(),
            "opened_at": to_utc_z(self.opened_at),
            "closed_at": to_utc_z(self.closed_at) if self.closed_at else None,
        }
