from __future__ import annotations

from ..extensions import db
from shopledger.time_utils import to_utc_z


class Shop(db.Model):
    """
    Shop master data.

    Roster fields (name, address, phone...) are mirrored from the external
    back-office system by the shop sync job. `role` and `hidden` are set
    locally: the sync job only sets them for shops whose login identity it
    created in the same run.

    Hidden shops are excluded from average-cost recomputation.
    """
    __tablename__ = "shops"
    __table_args__ = (
        db.Index("ix_shops_hidden", "hidden"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), nullable=False, unique=True, index=True)
    name = db.Column(db.String(255), nullable=False, default="")
    formal_name = db.Column(db.String(255), nullable=True)
    kana = db.Column(db.String(255), nullable=True)

    zip = db.Column(db.String(16), nullable=True)
    prefecture = db.Column(db.String(32), nullable=True)
    city = db.Column(db.String(128), nullable=True)
    address1 = db.Column(db.String(255), nullable=True)
    address2 = db.Column(db.String(255), nullable=True)
    tel = db.Column(db.String(32), nullable=True)
    fax = db.Column(db.String(32), nullable=True)

    role = db.Column(db.String(32), nullable=True)
    hidden = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    # Fields the roster is allowed to overwrite on upsert
    ROSTER_FIELDS = (
        "name",
        "formal_name",
        "kana",
        "zip",
        "prefecture",
        "city",
        "address1",
        "address2",
        "tel",
        "fax",
    )

    def __repr__(self) -> str:
        return f"<Shop code={self.code!r} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "formal_name": self.formal_name,
            "kana": self.kana,
            "zip": self.zip,
            "prefecture": self.prefecture,
            "city": self.city,
            "address1": self.address1,
            "address2": self.address2,
            "tel": self.tel,
            "fax": self.fax,
            "role": self.role,
            "hidden": self.hidden,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Supplier(db.Model):
    __tablename__ = "suppliers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), nullable=False, unique=True, index=True)
    name = db.Column(db.String(255), nullable=False)

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
            "code": self.code,
            "name": self.name,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Product(db.Model):
    """
    Product master data.

    CODE: Product.code (JAN or internal code) is the unique key every other
    table refers to. Product names are denormalized into stock, price and
    transaction-detail rows; master_service.update_product cascades renames.

    AVERAGE COST: avg_cost_price is NULL until the first purchase is folded
    in by the average cost job. It is only ever revised forward.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_supplier", "supplier_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), nullable=False, unique=True, index=True)
    name = db.Column(db.String(255), nullable=False)
    kana = db.Column(db.String(255), nullable=True)
    abbr = db.Column(db.String(64), nullable=True)

    # Yen amounts (integers)
    selling_price = db.Column(db.Integer, nullable=True)
    cost_price = db.Column(db.Integer, nullable=True)
    avg_cost_price = db.Column(db.Integer, nullable=True)

    # 10 (normal) or 8 (reduced); tax class: exclusive / inclusive / free
    selling_tax = db.Column(db.Integer, nullable=True)
    selling_tax_class = db.Column(db.String(16), nullable=True)

    supplier_code = db.Column(db.String(32), nullable=True)

    hidden = db.Column(db.Boolean, nullable=False, default=False)
    no_return = db.Column(db.Boolean, nullable=False, default=False)
    unregistered = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Product code={self.code!r} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "kana": self.kana,
            "abbr": self.abbr,
            "selling_price": self.selling_price,
            "cost_price": self.cost_price,
            "avg_cost_price": self.avg_cost_price,
            "selling_tax": self.selling_tax,
            "selling_tax_class": self.selling_tax_class,
            "supplier_code": self.supplier_code,
            "hidden": self.hidden,
            "no_return": self.no_return,
            "unregistered": self.unregistered,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ShopProductPrice(db.Model):
    """Per-shop cost/selling price overrides."""
    __tablename__ = "shop_product_prices"
    __table_args__ = (
        db.UniqueConstraint("shop_code", "product_code", name="uq_shop_product_prices"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_code = db.Column(db.String(32), db.ForeignKey("shops.code"), nullable=False, index=True)
    product_code = db.Column(db.String(32), nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=True)

    final_cost_price = db.Column(db.Integer, nullable=True)
    selling_price = db.Column(db.Integer, nullable=True)

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
            "final_cost_price": self.final_cost_price,
            "selling_price": self.selling_price,
            "updated_at": to_utc_z(self.updated_at),
        }
