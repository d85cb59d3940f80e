from flask import Blueprint, jsonify, request

from ..decorators import require_api_token
from ..services import trend_service
from ..services.errors import InvalidRange


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/item-trends")
@require_api_token
def item_trends():
    shop_code = request.args.get("shop_code")
    product_code = request.args.get("product_code")
    if not shop_code or not product_code:
        raise InvalidRange("shop_code and product_code are required")

    month_from = request.args.get("from")
    month_to = request.args.get("to")
    if not month_from or not month_to:
        raise InvalidRange("from and to months are required")

    final_cost_price = request.args.get("final_cost_price", type=int)

    report = trend_service.query_item_trends(
        shop_code,
        product_code,
        month_from,
        month_to,
        final_cost_price=final_cost_price,
    )
    return jsonify(report), 200
