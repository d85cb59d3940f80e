from datetime import date, datetime

import pytest

from shopledger.extensions import db
from shopledger.models import (
    MonthlyStock,
    Product,
    PurchaseDetail,
    SaleDetail,
    ShopProductPrice,
    Stock,
)
from shopledger.services import master_service, sequence_service
from shopledger.services.errors import InvalidRange, NotFound
from shopledger.services.sequence_service import get_counter


P = "4900000000011"


def test_sequences_increment_per_name(db_session):
    assert sequence_service.next_sequence("purchases") == 1
    assert sequence_service.next_sequence("purchases") == 2
    assert sequence_service.next_sequence("rejections") == 1
    assert sequence_service.next_sequence("purchases") == 3


def test_sequence_name_required(db_session):
    with pytest.raises(InvalidRange):
        sequence_service.next_sequence("")


def test_product_counter_follows_create_and_delete(db_session):
    master_service.create_product("A", name="Alpha")
    master_service.create_product("B", name="Beta", selling_tax=8)
    assert get_counter("products") == 2

    master_service.delete_product("A")
    assert get_counter("products") == 1
    assert db.session.query(Product).count() == 1


def test_duplicate_product_rejected(db_session):
    master_service.create_product("A", name="Alpha")
    with pytest.raises(InvalidRange):
        master_service.create_product("A", name="Alpha again")
    assert get_counter("products") == 1


def test_product_field_validation(db_session):
    with pytest.raises(InvalidRange):
        master_service.create_product("A", name="Alpha", selling_tax=5)
    with pytest.raises(InvalidRange):
        master_service.create_product("A", name="Alpha", colour="red")
    with pytest.raises(InvalidRange):
        master_service.create_product("A", name="")


def test_supplier_and_shop_counters(make):
    master_service.create_supplier("S1", "Supplier One")
    master_service.create_supplier("S2", "Supplier Two")
    master_service.delete_supplier("S1")
    assert get_counter("suppliers") == 1

    make.shop("0101")
    before = get_counter("shops")
    master_service.delete_shop("0101")
    assert get_counter("shops") == before - 1

    with pytest.raises(NotFound):
        master_service.delete_supplier("S1")


def test_rename_cascades_to_copies(make):
    make.shop("0101")
    make.product(P, name="Old Name")
    make.stock("0101", P, 3, product_name="Old Name")
    make.monthly_stock("0101", "202404", P, 3)
    db.session.query(MonthlyStock).update({"product_name": "Old Name"})
    db.session.commit()
    db.session.add(ShopProductPrice(shop_code="0101", product_code=P, product_name="Old Name", final_cost_price=500))
    db.session.commit()
    make.purchase("0101", date(2024, 5, 1), [(P, 1, 500)])
    make.sale("0101", datetime(2024, 5, 1, 1, 0), [{"product_code": P, "product_name": "Old Name"}])

    master_service.update_product(P, {"name": "New Name"})

    assert db.session.query(Product).filter_by(code=P).one().name == "New Name"
    assert db.session.query(Stock).one().product_name == "New Name"
    assert db.session.query(ShopProductPrice).one().product_name == "New Name"
    assert db.session.query(PurchaseDetail).one().product_name == "New Name"
    assert db.session.query(SaleDetail).one().product_name == "New Name"
    # month-end snapshots stay frozen
    assert db.session.query(MonthlyStock).one().product_name == "Old Name"


def test_empty_rename_rejected_without_changes(make):
    make.product(P, name="Keep Me")

    with pytest.raises(InvalidRange):
        master_service.update_product(P, {"name": "", "selling_price": 1})

    product = db.session.query(Product).filter_by(code=P).one()
    assert product.name == "Keep Me"
    assert product.selling_price == 1000


def test_shop_price_overrides_master(make):
    make.shop("0101")
    make.shop("0102")
    make.product(P, cost_price=600, selling_price=1000)
    make.price("0101", P, final_cost_price=550)

    overridden = master_service.get_product_price("0101", P)
    assert overridden["final_cost_price"] == 550
    assert overridden["selling_price"] == 1000

    fallback = master_service.get_product_price("0102", P)
    assert fallback["final_cost_price"] == 600


def test_unknown_product_price(db_session):
    with pytest.raises(NotFound):
        master_service.get_product_price("0101", "missing")
