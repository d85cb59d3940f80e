from __future__ import annotations

from ..extensions import db
from shopledger.time_utils import to_utc_z


# =============================================================================
# STOCK MOVEMENT DOCUMENTS
# =============================================================================
#
# Each document is a header (shop, number, business date) with detail lines.
# Lines are immutable once written except for product name cascades.
# Trend aggregation buckets lines by the HEADER date, never the line's own
# timestamp.

class Purchase(db.Model):
    """Goods received at a shop from a supplier (or an internal delivery)."""
    __tablename__ = "purchases"
    __table_args__ = (
        db.UniqueConstraint("shop_code", "number", name="uq_purchases_shop_number"),
        db.Index("ix_purchases_shop_date", "shop_code", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_code = db.Column(db.String(32), db.ForeignKey("shops.code"), nullable=False, index=True)
    number = db.Column(db.Integer, nullable=False)
    date = db.Column(db.Date, nullable=False, index=True)
    supplier_code = db.Column(db.String(32), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
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
            "number": self.number,
            "date": self.date.isoformat(),
            "supplier_code": self.supplier_code,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class PurchaseDetail(db.Model):
    __tablename__ = "purchase_details"
    __table_args__ = (
        db.Index("ix_purchase_details_product", "product_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=False, index=True)
    product_code = db.Column(db.String(32), nullable=False)
    product_name = db.Column(db.String(255), nullable=True)
    quantity = db.Column(db.Integer, nullable=False)
    cost_price = db.Column(db.Integer, nullable=True)

    purchase = db.relationship("Purchase", backref=db.backref("details", lazy=True, cascade="all, delete-orphan"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_id": self.purchase_id,
            "product_code": self.product_code,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "cost_price": self.cost_price,
        }


class Delivery(db.Model):
    """Goods shipped out of a shop (to another shop or a customer)."""
    __tablename__ = "deliveries"
    __table_args__ = (
        db.UniqueConstraint("shop_code", "number", name="uq_deliveries_shop_number"),
        db.Index("ix_deliveries_shop_date", "shop_code", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_code = db.Column(db.String(32), db.ForeignKey("shops.code"), nullable=False, index=True)
    number = db.Column(db.Integer, nullable=False)
    date = db.Column(db.Date, nullable=False, index=True)
    dest_shop_code = db.Column(db.String(32), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
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
            "number": self.number,
            "date": self.date.isoformat(),
            "dest_shop_code": self.dest_shop_code,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class DeliveryDetail(db.Model):
    __tablename__ = "delivery_details"
    __table_args__ = (
        db.Index("ix_delivery_details_product", "product_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    delivery_id = db.Column(db.Integer, db.ForeignKey("deliveries.id"), nullable=False, index=True)
    product_code = db.Column(db.String(32), nullable=False)
    product_name = db.Column(db.String(255), nullable=True)
    quantity = db.Column(db.Integer, nullable=False)
    cost_price = db.Column(db.Integer, nullable=True)

    delivery = db.relationship("Delivery", backref=db.backref("details", lazy=True, cascade="all, delete-orphan"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "delivery_id": self.delivery_id,
            "product_code": self.product_code,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "cost_price": self.cost_price,
        }


class Rejection(db.Model):
    """Goods returned to a supplier or written off as waste."""
    __tablename__ = "rejections"
    __table_args__ = (
        db.UniqueConstraint("shop_code", "number", name="uq_rejections_shop_number"),
        db.Index("ix_rejections_shop_date", "shop_code", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_code = db.Column(db.String(32), db.ForeignKey("shops.code"), nullable=False, index=True)
    number = db.Column(db.Integer, nullable=False)
    date = db.Column(db.Date, nullable=False, index=True)
    kind = db.Column(db.String(16), nullable=False, default="return")  # return, waste
    supplier_code = db.Column(db.String(32), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
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
            "number": self.number,
            "date": self.date.isoformat(),
            "kind": self.kind,
            "supplier_code": self.supplier_code,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class RejectionDetail(db.Model):
    __tablename__ = "rejection_details"
    __table_args__ = (
        db.Index("ix_rejection_details_product", "product_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    rejection_id = db.Column(db.Integer, db.ForeignKey("rejections.id"), nullable=False, index=True)
    product_code = db.Column(db.String(32), nullable=False)
    product_name = db.Column(db.String(255), nullable=True)
    quantity = db.Column(db.Integer, nullable=False)
    cost_price = db.Column(db.Integer, nullable=True)

    rejection = db.relationship("Rejection", backref=db.backref("details", lazy=True, cascade="all, delete-orphan"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "rejection_id": self.rejection_id,
            "product_code": self.product_code,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "cost_price": self.cost_price,
        }


# =============================================================================
# SEQUENCES & COUNTERS
# =============================================================================

class Sequence(db.Model):
    """
    Named monotonically increasing integers (purchases, rejections, ...).

    WHY: Document numbers are allocated by the server so that concurrent
    registers never hand out the same number.
    """
    __tablename__ = "sequences"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False, unique=True, index=True)
    value = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "value": self.value,
            "updated_at": to_utc_z(self.updated_at),
        }


class Counter(db.Model):
    """
    Running row totals per master collection (products, suppliers, shops).

    Maintained in the same transaction as the create/delete it counts.
    """
    __tablename__ = "counters"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False, unique=True, index=True)
    all_count = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "all": self.all_count,
            "updated_at": to_utc_z(self.updated_at),
        }
