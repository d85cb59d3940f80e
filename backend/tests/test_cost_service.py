from datetime import date

import pytest

from shopledger.extensions import db
from shopledger.models import Product
from shopledger.services import cost_service
from shopledger.services.cost_service import compute_moving_average, round_half_up
from shopledger.services.errors import InvalidRange


MAY_1 = date(2024, 5, 1)


def test_moving_average_weights_prior_stock():
    # (100 * 10 + 10 * 200) / (10 + 10)
    assert compute_moving_average(100, 10, 10, 2000) == 150


def test_moving_average_rounds_half_up():
    # 201 / 2 = 100.5
    assert compute_moving_average(100, 1, 1, 101) == 101
    # 200 / 3 = 66.67
    assert compute_moving_average(100, 1, 2, 100) == 67
    assert round_half_up(5, 2) == 3
    assert round_half_up(4, 3) == 1


def test_unset_average_ignores_prior_stock():
    assert compute_moving_average(None, 50, 4, 1000) == 250


def test_non_positive_denominator_skips():
    assert compute_moving_average(100, -5, 5, 500) is None
    assert compute_moving_average(100, -10, 3, 300) is None
    assert compute_moving_average(None, 0, 0, 0) is None


def test_job_folds_purchases_of_visible_shops(make):
    make.shop("0101")
    make.shop("0999", hidden=True)
    make.product("P1", avg_cost_price=100)
    make.stock("0101", "P1", 10)

    make.purchase("0101", MAY_1, [("P1", 10, 200)])
    make.purchase("0999", MAY_1, [("P1", 5, 1000)])  # hidden shop
    make.purchase("0101", date(2024, 5, 2), [("P1", 7, 900)])  # other day

    summary = cost_service.update_avg_cost_prices("2024/05/01")

    assert summary["date"] == "2024-05-01"
    assert summary["updated"] == 1
    [result] = summary["products"]
    assert result["product_code"] == "P1"
    assert result["prior_stock"] == 10
    assert result["avg_cost_price"] == 150
    assert db.session.query(Product).filter_by(code="P1").one().avg_cost_price == 150


def test_job_sums_stock_across_shops(make):
    make.shop("0101")
    make.shop("0102")
    make.product("P1", avg_cost_price=100)
    make.stock("0101", "P1", 6)
    make.stock("0102", "P1", 4)
    make.purchase("0102", MAY_1, [("P1", 10, 200)])

    cost_service.update_avg_cost_prices(MAY_1)

    assert db.session.query(Product).filter_by(code="P1").one().avg_cost_price == 150


def test_job_sets_first_average_from_purchases(make):
    make.shop("0101")
    make.product("P2", avg_cost_price=None)
    make.stock("0101", "P2", 99)
    make.purchase("0101", MAY_1, [("P2", 3, 333), ("P2", 1, 334)])

    cost_service.update_avg_cost_prices(MAY_1)

    # 1333 / 4 = 333.25
    assert db.session.query(Product).filter_by(code="P2").one().avg_cost_price == 333


def test_job_skips_non_positive_denominator(make):
    make.shop("0101")
    make.product("P3", avg_cost_price=100)
    make.stock("0101", "P3", -20)
    make.purchase("0101", MAY_1, [("P3", 5, 100)])

    summary = cost_service.update_avg_cost_prices(MAY_1)

    assert summary["products"][0]["status"] == "skipped"
    assert summary["skipped"] == 1
    assert db.session.query(Product).filter_by(code="P3").one().avg_cost_price == 100


def test_job_reports_unknown_products(make):
    make.shop("0101")
    make.purchase("0101", MAY_1, [("GHOST", 1, 100)])

    summary = cost_service.update_avg_cost_prices(MAY_1)

    assert summary["products"] == [{"product_code": "GHOST", "status": "unknown_product"}]


def test_rerun_folds_same_purchases_again(make):
    make.shop("0101")
    make.product("P1", avg_cost_price=100)
    make.stock("0101", "P1", 10)
    make.purchase("0101", MAY_1, [("P1", 10, 200)])

    cost_service.update_avg_cost_prices(MAY_1)
    cost_service.update_avg_cost_prices(MAY_1)

    # (150 * 10 + 2000) / 20
    assert db.session.query(Product).filter_by(code="P1").one().avg_cost_price == 175


def test_invalid_date_is_rejected(db_session):
    with pytest.raises(InvalidRange):
        cost_service.update_avg_cost_prices("2024-13-40")
