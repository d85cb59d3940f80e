"""
Pytest fixtures for shopledger backend tests.

Provides the test app on in-memory SQLite, a clean database per test, data
builders, and fake KKB / FTP collaborators.
"""

import pytest
from shopledger import create_app
from shopledger.extensions import db
from shopledger.models import (
    Shop,
    Product,
    ShopProductPrice,
    Stock,
    MonthlyStock,
    Purchase,
    PurchaseDetail,
    Delivery,
    DeliveryDetail,
    Rejection,
    RejectionDetail,
    Inventory,
    InventoryDetail,
    Sale,
    SaleDetail,
    RegisterStatus,
)
from shopledger.services.errors import ExternalSystemFailure
from shopledger.services.external_system import ExternalSystem, RosterEntry


class FakeExternalSystem(ExternalSystem):
    """Records every call; `fail_on` names the call that raises."""

    def __init__(self, roster=None, fail_on=None):
        self.roster = list(roster or [])
        self.fail_on = fail_on
        self.calls = []

    def _record(self, name, *args):
        self.calls.append((name, *args))
        if self.fail_on == name:
            raise ExternalSystemFailure(f"KKB {name} failed")

    def authenticate(self):
        self._record("authenticate")

    def fetch_roster(self, on_date):
        self._record("fetch_roster", on_date)
        return list(self.roster)

    def trigger_closing(self, shop_code, on_date):
        self._record("trigger_closing", shop_code, on_date)

    def sign_out(self):
        self._record("sign_out")

    @property
    def call_names(self):
        return [c[0] for c in self.calls]


class FakeUploader:
    def __init__(self, fail=False):
        self.fail = fail
        self.uploads = []

    def upload_json(self, filename, payload):
        if self.fail:
            raise ExternalSystemFailure(f"FTP upload of {filename} failed")
        self.uploads.append((filename, payload))
        return f"closing/{filename}"


class Builder:
    """Row builders; each commits what it creates."""

    def shop(self, code="0101", name=None, hidden=False, **fields):
        shop = Shop(code=code, name=name or f"Shop {code}", hidden=hidden, **fields)
        db.session.add(shop)
        db.session.commit()
        return shop

    def product(self, code="4900000000011", name="Cold Remedy", **fields):
        fields.setdefault("selling_price", 1000)
        fields.setdefault("cost_price", 600)
        fields.setdefault("selling_tax", 10)
        fields.setdefault("selling_tax_class", "exclusive")
        product = Product(code=code, name=name, **fields)
        db.session.add(product)
        db.session.commit()
        return product

    def price(self, shop_code, product_code, final_cost_price=None, selling_price=None):
        row = ShopProductPrice(
            shop_code=shop_code,
            product_code=product_code,
            final_cost_price=final_cost_price,
            selling_price=selling_price,
        )
        db.session.add(row)
        db.session.commit()
        return row

    def stock(self, shop_code, product_code, quantity, product_name="Cold Remedy"):
        row = Stock(shop_code=shop_code, product_code=product_code, product_name=product_name, quantity=quantity)
        db.session.add(row)
        db.session.commit()
        return row

    def monthly_stock(self, shop_code, month, product_code, quantity):
        row = MonthlyStock(shop_code=shop_code, month=month, product_code=product_code, quantity=quantity)
        db.session.add(row)
        db.session.commit()
        return row

    def _document(self, header_model, detail_model, shop_code, on_date, lines, **header):
        number = db.session.query(header_model).filter_by(shop_code=shop_code).count() + 1
        doc = header_model(shop_code=shop_code, number=number, date=on_date, **header)
        for product_code, quantity, cost_price in lines:
            doc.details.append(detail_model(
                product_code=product_code,
                product_name="Cold Remedy",
                quantity=quantity,
                cost_price=cost_price,
            ))
        db.session.add(doc)
        db.session.commit()
        return doc

    def purchase(self, shop_code, on_date, lines):
        return self._document(Purchase, PurchaseDetail, shop_code, on_date, lines)

    def delivery(self, shop_code, on_date, lines):
        return self._document(Delivery, DeliveryDetail, shop_code, on_date, lines)

    def rejection(self, shop_code, on_date, lines, kind="return"):
        return self._document(Rejection, RejectionDetail, shop_code, on_date, lines, kind=kind)

    def stocktake(self, shop_code, on_date, lines):
        inventory = Inventory(shop_code=shop_code, date=on_date)
        for product_code, quantity, cost_price in lines:
            inventory.details.append(InventoryDetail(
                product_code=product_code,
                quantity=quantity,
                cost_price=cost_price,
            ))
        db.session.add(inventory)
        db.session.commit()
        return inventory

    def sale(self, shop_code, created_at, lines, status="Sales", payment_type="Cash", code=None):
        """lines: dicts with product_code, division, quantity, selling_price and optional tax/discount."""
        count = db.session.query(Sale).filter_by(shop_code=shop_code).count()
        sale = Sale(
            shop_code=shop_code,
            code=code or f"{shop_code}-{count + 1:05d}",
            status=status,
            payment_type=payment_type,
            created_at=created_at,
        )
        for index, line in enumerate(lines, start=1):
            sale.details.append(SaleDetail(
                line_index=index,
                product_code=line.get("product_code", "4900000000011"),
                product_name=line.get("product_name", "Cold Remedy"),
                division=line.get("division", "5"),
                quantity=line.get("quantity", 1),
                selling_price=line.get("selling_price", 1000),
                selling_tax=line.get("selling_tax", 10),
                selling_tax_class=line.get("selling_tax_class", "exclusive"),
                discount=line.get("discount", 0),
            ))
        db.session.add(sale)
        db.session.commit()
        return sale

    def register(self, shop_code, on_date, opened_at, closed_at=None):
        status = RegisterStatus(shop_code=shop_code, date=on_date, opened_at=opened_at, closed_at=closed_at)
        db.session.add(status)
        db.session.commit()
        return status


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'FUNCTIONS_API_TOKEN': '',
        'BCRYPT_ROUNDS': 4,
        'KKB_LOGIN_SETTLE_SECONDS': 0,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def make(db_session):
    return Builder()


@pytest.fixture(scope='function')
def fake_kkb():
    return FakeExternalSystem()


@pytest.fixture(scope='function')
def fake_uploader():
    return FakeUploader()


@pytest.fixture(scope='function')
def use_fakes(app, fake_kkb, fake_uploader):
    """Route build_external_system()/build_uploader() to the fakes."""
    app.config['EXTERNAL_SYSTEM_FACTORY'] = lambda: fake_kkb
    app.config['CLOSING_UPLOADER_FACTORY'] = lambda: fake_uploader
    yield fake_kkb, fake_uploader
    app.config['EXTERNAL_SYSTEM_FACTORY'] = None
    app.config['CLOSING_UPLOADER_FACTORY'] = None


def roster_entries(count, start=1):
    return [
        RosterEntry(code=f"{n:04d}", fields={"name": f"Shop {n:04d}", "prefecture": "Tokyo"})
        for n in range(start, start + count)
    ]


@pytest.fixture
def make_roster():
    return roster_entries


# Re-exported for tests that build their own fakes
@pytest.fixture
def fake_classes():
    return FakeExternalSystem, FakeUploader

