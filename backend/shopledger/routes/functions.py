# Overview: Callable endpoints (POST /api/functions/<name>) for screens and schedulers.

"""
Server-side callables.

Every callable takes a JSON object and answers {"result": ...}. Failures
answer {"error": {"kind", "message", "cause", "retryable"}} with the status
of the error kind (see services/errors.py).

    getSequence           {"docId": "purchases"}            -> int
    updateShopsFromKKb    {}                                -> sync summary
    sendDailyClosingData  {"code": "0101", "date": "2024/05/01"} -> closing
    getAuthUserByCode     {"uid": "0101"}                   -> identity
    updateAvgCostPrices   {"date": "2024/05/01"?}           -> job summary
    createMonthlyStocks   {"month": "2024-04"?}             -> snapshot summary
"""

from flask import Blueprint, jsonify

from ..decorators import require_api_token, json_body
from ..services import (
    auth_service,
    closing_service,
    cost_service,
    sequence_service,
    shop_sync_service,
    stock_service,
)
from ..services.errors import InvalidRange, NotFound
from ..services.external_system import build_external_system

functions_bp = Blueprint("functions", __name__, url_prefix="/api/functions")


def _require(data: dict, key: str) -> str:
    value = data.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise InvalidRange(f"{key} is required")
    return value


def get_sequence(data: dict):
    return sequence_service.next_sequence(_require(data, "docId"))


def update_shops_from_kkb(data: dict):
    return shop_sync_service.sync_shops(build_external_system())


def send_daily_closing_data(data: dict):
    return closing_service.send_daily_closing(
        _require(data, "code"),
        _require(data, "date"),
        build_external_system(),
    )


def get_auth_user_by_code(data: dict):
    code = data.get("uid") or _require(data, "code")
    return auth_service.get_user_by_code(code).to_dict()


def update_avg_cost_prices(data: dict):
    return cost_service.update_avg_cost_prices(data.get("date"))


def create_monthly_stocks(data: dict):
    return stock_service.create_monthly_stocks(data.get("month"))


CALLABLES = {
    "getSequence": get_sequence,
    "updateShopsFromKKb": update_shops_from_kkb,
    "sendDailyClosingData": send_daily_closing_data,
    "getAuthUserByCode": get_auth_user_by_code,
    "updateAvgCostPrices": update_avg_cost_prices,
    "createMonthlyStocks": create_monthly_stocks,
}


@functions_bp.post("/<name>")
@require_api_token
def call_function(name):
    handler = CALLABLES.get(name)
    if handler is None:
        raise NotFound(f"unknown function {name}")
    return jsonify({"result": handler(json_body())}), 200
