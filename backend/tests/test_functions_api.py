from datetime import date, datetime

from shopledger.extensions import db
from shopledger.models import MonthlyStock, RegisterStatus


def call(client, name, payload=None, headers=None):
    return client.post(f"/api/functions/{name}", json=payload or {}, headers=headers or {})


def test_get_sequence(client, db_session):
    first = call(client, "getSequence", {"docId": "purchases"})
    second = call(client, "getSequence", {"docId": "purchases"})

    assert first.status_code == 200
    assert first.get_json() == {"result": 1}
    assert second.get_json() == {"result": 2}


def test_missing_argument_is_invalid_range(client, db_session):
    response = call(client, "getSequence", {})

    assert response.status_code == 400
    error = response.get_json()["error"]
    assert error["kind"] == "InvalidRange"
    assert error["retryable"] is False


def test_unknown_function(client, db_session):
    response = call(client, "doesNotExist")

    assert response.status_code == 404
    assert response.get_json()["error"]["kind"] == "NotFound"


def test_get_auth_user_by_code(client, db_session):
    missing = call(client, "getAuthUserByCode", {"uid": "0101"})
    assert missing.status_code == 404

    from shopledger.services.auth_service import ensure_shop_account
    ensure_shop_account("0101")

    found = call(client, "getAuthUserByCode", {"uid": "0101"})
    assert found.status_code == 200
    assert found.get_json()["result"]["email"] == "0101@ebondregister.com"


def test_token_required_when_configured(app, client, db_session):
    app.config["FUNCTIONS_API_TOKEN"] = "s3cret"
    try:
        assert call(client, "getSequence", {"docId": "x"}).status_code == 401
        assert call(client, "getSequence", {"docId": "x"}, {"Authorization": "Bearer nope"}).status_code == 401
        ok = call(client, "getSequence", {"docId": "x"}, {"Authorization": "Bearer s3cret"})
        assert ok.status_code == 200
    finally:
        app.config["FUNCTIONS_API_TOKEN"] = ""


def test_update_shops_from_kkb(client, db_session, use_fakes, make_roster):
    fake_kkb, _ = use_fakes
    fake_kkb.roster = make_roster(3)

    response = call(client, "updateShopsFromKKb")

    assert response.status_code == 200
    result = response.get_json()["result"]
    assert result["batches"] == [3]
    assert result["inserted"] == ["0001", "0002", "0003"]


def test_update_shops_external_failure(client, db_session, use_fakes):
    fake_kkb, _ = use_fakes
    fake_kkb.fail_on = "authenticate"

    response = call(client, "updateShopsFromKKb")

    assert response.status_code == 502
    error = response.get_json()["error"]
    assert error["kind"] == "ExternalSystemFailure"
    assert error["retryable"] is True
    assert fake_kkb.call_names == ["authenticate", "sign_out"]


def test_send_daily_closing_data(client, make, use_fakes):
    fake_kkb, fake_uploader = use_fakes
    make.shop("0101")
    make.register("0101", date(2024, 5, 1), datetime(2024, 5, 1, 0, 0), datetime(2024, 5, 1, 10, 0))
    make.sale("0101", datetime(2024, 5, 1, 1, 0), [{"division": "5", "selling_price": 200}])

    response = call(client, "sendDailyClosingData", {"code": "0101", "date": "2024/05/01"})

    assert response.status_code == 200
    assert fake_uploader.uploads[0][0] == "0101_20240501.json"
    assert response.get_json()["result"]["report"]["buckets"]["otc_normal"] == 200
    assert fake_kkb.call_names[-1] == "sign_out"


def test_update_avg_cost_prices(client, make):
    make.shop("0101")
    make.product("P1", avg_cost_price=None)
    make.purchase("0101", date(2024, 5, 1), [("P1", 2, 300)])

    response = call(client, "updateAvgCostPrices", {"date": "2024/05/01"})

    assert response.status_code == 200
    assert response.get_json()["result"]["products"][0]["avg_cost_price"] == 300


def test_create_monthly_stocks(client, make):
    make.shop("0101")
    make.stock("0101", "P1", 4)

    response = call(client, "createMonthlyStocks", {"month": "2024-04"})

    assert response.status_code == 200
    assert response.get_json()["result"]["month"] == "202404"
    assert db.session.query(MonthlyStock).count() == 1


def test_item_trends_range_rejected(client, db_session):
    response = client.get(
        "/api/reports/item-trends",
        query_string={"shop_code": "0101", "product_code": "P1", "from": "2024-01", "to": "2024-07"},
    )

    assert response.status_code == 400
    assert response.get_json()["error"]["kind"] == "InvalidRange"


def test_item_trends(client, make):
    make.shop("0101")
    make.product("P1")
    make.purchase("0101", date(2024, 5, 1), [("P1", 2, 300)])

    response = client.get(
        "/api/reports/item-trends",
        query_string={"shop_code": "0101", "product_code": "P1", "from": "2024-05", "to": "2024-05"},
    )

    assert response.status_code == 200
    assert response.get_json()["trends"]["2024/05/01"]["stock_count"] == 2


def test_register_open_and_close(client, make, use_fakes):
    fake_kkb, fake_uploader = use_fakes
    make.shop("0101")

    opened = client.post("/api/registers/0101/open", json={"date": "2024-05-01"})
    assert opened.status_code == 201
    assert opened.get_json()["register"]["closed_at"] is None

    closed = client.post("/api/registers/0101/close", json={"date": "2024-05-01"})
    assert closed.status_code == 200
    assert closed.get_json()["register"]["closed_at"] is not None
    assert db.session.query(RegisterStatus).one().closed_at is not None
    assert [u[0] for u in fake_uploader.uploads] == ["0101_20240501.json"]


def test_product_endpoints(client, db_session):
    created = client.post("/api/products", json={"code": "P1", "name": "Alpha", "selling_price": 500})
    assert created.status_code == 201

    renamed = client.patch("/api/products/P1", json={"name": "Alpha Plus"})
    assert renamed.get_json()["product"]["name"] == "Alpha Plus"

    assert client.delete("/api/products/P1").status_code == 204
    assert client.get("/api/products/P1").status_code == 404


def test_health(client, db_session):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.get_json()["status"] == "healthy"
