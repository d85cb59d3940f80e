from __future__ import annotations

from ..extensions import db
from shopledger.time_utils import to_utc_z


class Stock(db.Model):
    """
    Live on-hand quantity per shop/product.

    Unlike a ledger-derived quantity, this is a mutable row updated by the
    register and the purchase/delivery/rejection screens. Average cost
    recomputation reads the sum of these rows across all shops.
    """
    __tablename__ = "stocks"
    __table_args__ = (
        db.UniqueConstraint("shop_code", "product_code", name="uq_stocks_shop_product"),
        db.Index("ix_stocks_product", "product_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_code = db.Column(db.String(32), db.ForeignKey("shops.code"), nullable=False, index=True)
    product_code = db.Column(db.String(32), nullable=False)
    product_name = db.Column(db.String(255), nullable=True)
    quantity = db.Column(db.Integer, nullable=False, default=0)

    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_code": self.shop_code,
            "product_code": self.product_code,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "updated_at": to_utc_z(self.updated_at),
        }


class MonthlyStock(db.Model):
    """
    Month-end copy of Stock, labelled YYYYMM.

    Written only by the monthly snapshot job. Re-running the job for the same
    month overwrites the rows with the current live values.
    """
    __tablename__ = "monthly_stocks"
    __table_args__ = (
        db.UniqueConstraint("shop_code", "month", "product_code", name="uq_monthly_stocks_shop_month_product"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_code = db.Column(db.String(32), db.ForeignKey("shops.code"), nullable=False, index=True)
    month = db.Column(db.String(6), nullable=False, index=True)
    product_code = db.Column(db.String(32), nullable=False)
    product_name = db.Column(db.String(255), nullable=True)
    quantity = db.Column(db.Integer, nullable=False, default=0)

    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "shop_code": self.shop_code,
            "month": self.month,
            "product_code": self.product_code,
            "product_name": self.product_name,
            "quantity": self.quantity,
        }


class Inventory(db.Model):
    """Physical stocktake at a shop on a business date."""
    __tablename__ = "inventories"
    __table_args__ = (
        db.UniqueConstraint("shop_code", "date", name="uq_inventories_shop_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_code = db.Column(db.String(32), db.ForeignKey("shops.code"), nullable=False, index=True)
    date = db.Column(db.Date, nullable=False, index=True)
    fixed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_code": self.shop_code,
            "date": self.date.isoformat(),
            "fixed_at": to_utc_z(self.fixed_at) if self.fixed_at else None,
            "created_at": to_utc_z(self.created_at),
        }


class InventoryDetail(db.Model):
    __tablename__ = "inventory_details"
    __table_args__ = (
        db.UniqueConstraint("inventory_id", "product_code", name="uq_inventory_details_product"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    inventory_id = db.Column(db.Integer, db.ForeignKey("inventories.id"), nullable=False, index=True)
    product_code = db.Column(db.String(32), nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=True)
    quantity = db.Column(db.Integer, nullable=False)
    cost_price = db.Column(db.Integer, nullable=True)

    inventory = db.relationship("Inventory", backref=db.backref("details", lazy=True, cascade="all, delete-orphan"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "inventory_id": self.inventory_id,
            "product_code": self.product_code,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "cost_price": self.cost_price,
        }
