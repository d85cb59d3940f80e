# Overview: Register open/close endpoints; closing a register sends its daily closing.

from flask import Blueprint, jsonify

from ..decorators import require_api_token, json_body
from ..services import register_service
from ..services.external_system import build_external_system

registers_bp = Blueprint("registers", __name__, url_prefix="/api/registers")


@registers_bp.post("/<shop_code>/open")
@require_api_token
def open_register(shop_code):
    data = json_body()
    status = register_service.open_register(shop_code, data.get("date"))
    return jsonify({"register": status.to_dict()}), 201


@registers_bp.post("/<shop_code>/close")
@require_api_token
def close_register(shop_code):
    data = json_body()
    result = register_service.close_register(
        shop_code,
        build_external_system(),
        data.get("date"),
    )
    return jsonify(result), 200
