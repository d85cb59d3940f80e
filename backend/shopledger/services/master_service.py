# Overview: Service-layer operations for product, supplier and shop masters.

"""
Master data writes.

Invariants kept here rather than in the screens:
- Counter rows ("products", "suppliers", "shops") move with every
  create/delete, in the same transaction.
- A product rename is copied onto every row that carries a denormalized
  product name (prices, live stock, transaction details). Monthly stock
  snapshots are frozen and keep the name they were taken with.
"""

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import (
    Product,
    Supplier,
    Shop,
    ShopProductPrice,
    Stock,
    PurchaseDetail,
    DeliveryDetail,
    RejectionDetail,
    InventoryDetail,
    SaleDetail,
)
from .errors import NotFound, InvalidRange
from .sequence_service import bump_counter

PRODUCT_WRITABLE_FIELDS = {
    "name",
    "kana",
    "abbr",
    "selling_price",
    "cost_price",
    "selling_tax",
    "selling_tax_class",
    "supplier_code",
    "hidden",
    "no_return",
    "unregistered",
}

# Tables holding a copy of Product.name keyed by product_code
NAME_COPY_MODELS = (
    ShopProductPrice,
    Stock,
    PurchaseDetail,
    DeliveryDetail,
    RejectionDetail,
    InventoryDetail,
    SaleDetail,
)

TAX_CLASSES = {"exclusive", "inclusive", "free"}


def _check_fields(data: dict) -> None:
    unknown = set(data) - PRODUCT_WRITABLE_FIELDS
    if unknown:
        raise InvalidRange(f"unknown product fields: {', '.join(sorted(unknown))}")
    if data.get("selling_tax") not in (None, 8, 10):
        raise InvalidRange("selling_tax must be 8 or 10")
    if data.get("selling_tax_class") not in (None, *TAX_CLASSES):
        raise InvalidRange("selling_tax_class must be exclusive, inclusive or free")


def get_product(code: str) -> Product:
    product = db.session.query(Product).filter_by(code=code).first()
    if product is None:
        raise NotFound(f"product {code} not found")
    return product


def get_shop(code: str) -> Shop:
    shop = db.session.query(Shop).filter_by(code=code).first()
    if shop is None:
        raise NotFound(f"shop {code} not found")
    return shop


def create_product(code: str, **fields) -> Product:
    if not code:
        raise InvalidRange("product code is required")
    if not fields.get("name"):
        raise InvalidRange("product name is required")
    _check_fields(fields)
    if db.session.query(Product.id).filter_by(code=code).first():
        raise InvalidRange(f"product {code} already exists")

    product = Product(code=code, **fields)
    db.session.add(product)
    bump_counter("products", 1)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise InvalidRange(f"product {code} already exists", cause=exc)
    return product


def rename_product_copies(code: str, name: str) -> int:
    """Copy a new product name onto denormalized rows; returns rows touched."""
    touched = 0
    for model in NAME_COPY_MODELS:
        result = db.session.execute(
            update(model)
            .where(model.product_code == code)
            .values(product_name=name)
        )
        touched += result.rowcount or 0
    return touched


def update_product(code: str, data: dict) -> Product:
    _check_fields(data)
    if "name" in data and not data["name"]:
        raise InvalidRange("product name is required")
    product = get_product(code)
    old_name = product.name

    for key, value in data.items():
        setattr(product, key, value)

    if "name" in data and data["name"] != old_name:
        rename_product_copies(code, data["name"])

    db.session.commit()
    return product


def delete_product(code: str) -> None:
    product = get_product(code)
    db.session.delete(product)
    bump_counter("products", -1)
    db.session.commit()


def create_supplier(code: str, name: str) -> Supplier:
    if not code or not name:
        raise InvalidRange("supplier code and name are required")
    if db.session.query(Supplier.id).filter_by(code=code).first():
        raise InvalidRange(f"supplier {code} already exists")
    supplier = Supplier(code=code, name=name)
    db.session.add(supplier)
    bump_counter("suppliers", 1)
    db.session.commit()
    return supplier


def delete_supplier(code: str) -> None:
    supplier = db.session.query(Supplier).filter_by(code=code).first()
    if supplier is None:
        raise NotFound(f"supplier {code} not found")
    db.session.delete(supplier)
    bump_counter("suppliers", -1)
    db.session.commit()


def delete_shop(code: str) -> None:
    shop = get_shop(code)
    db.session.delete(shop)
    bump_counter("shops", -1)
    db.session.commit()


def get_product_price(shop_code: str, product_code: str) -> dict:
    """
    Effective prices of a product at a shop.

    The shop's own price row wins; the product master fills the gaps.
    """
    product = get_product(product_code)
    shop_price = db.session.query(ShopProductPrice).filter_by(
        shop_code=shop_code,
        product_code=product_code,
    ).first()

    final_cost_price = product.cost_price
    selling_price = product.selling_price
    if shop_price is not None:
        if shop_price.final_cost_price is not None:
            final_cost_price = shop_price.final_cost_price
        if shop_price.selling_price is not None:
            selling_price = shop_price.selling_price

    return {
        "product": product.to_dict(),
        "final_cost_price": final_cost_price,
        "selling_price": selling_price,
        "no_return": product.no_return,
        "supplier_code": product.supplier_code,
    }
