from __future__ import annotations

from ..extensions import db
from shopledger.time_utils import to_utc_z


class Sale(db.Model):
    """
    Register receipt.

    STATUS: "Sales" for a normal sale, "Return" for a refund receipt. Return
    receipts store positive quantities; every aggregation inverts their sign.

    PAYMENT TYPES: Cash, Credit, Digital, Receivable.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("shop_code", "code", name="uq_sales_shop_code"),
        db.Index("ix_sales_shop_created", "shop_code", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_code = db.Column(db.String(32), db.ForeignKey("shops.code"), nullable=False, index=True)
    code = db.Column(db.String(64), nullable=False)

    status = db.Column(db.String(16), nullable=False, default="Sales")
    payment_type = db.Column(db.String(16), nullable=False, default="Cash")

    # Totals as rung up at the register (yen)
    sales_total = db.Column(db.Integer, nullable=False, default=0)
    tax_total = db.Column(db.Integer, nullable=False, default=0)
    discount_total = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_code": self.shop_code,
            "code": self.code,
            "status": self.status,
            "payment_type": self.payment_type,
            "sales_total": self.sales_total,
            "tax_total": self.tax_total,
            "discount_total": self.discount_total,
            "created_at": to_utc_z(self.created_at),
        }


class SaleDetail(db.Model):
    """
    Receipt line.

    The product's price and tax fields are copied onto the line when it is
    rung up; later master edits never change historical lines except for
    the product name.
    """
    __tablename__ = "sale_details"
    __table_args__ = (
        db.UniqueConstraint("sale_id", "line_index", name="uq_sale_details_sale_line"),
        db.Index("ix_sale_details_product_division", "product_code", "division"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    line_index = db.Column(db.Integer, nullable=False)

    product_code = db.Column(db.String(32), nullable=False)
    product_name = db.Column(db.String(255), nullable=True)
    division = db.Column(db.String(4), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    selling_price = db.Column(db.Integer, nullable=False, default=0)
    selling_tax = db.Column(db.Integer, nullable=True)
    selling_tax_class = db.Column(db.String(16), nullable=True)
    discount = db.Column(db.Integer, nullable=False, default=0)

    sale = db.relationship("Sale", backref=db.backref("details", lazy=True, cascade="all, delete-orphan"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "line_index": self.line_index,
            "product_code": self.product_code,
            "product_name": self.product_name,
            "division": self.division,
            "quantity": self.quantity,
            "selling_price": self.selling_price,
            "selling_tax": self.selling_tax,
            "selling_tax_class": self.selling_tax_class,
            "discount": self.discount,
        }
