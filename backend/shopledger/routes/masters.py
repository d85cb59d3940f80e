# Overview: Flask API routes for product and supplier masters.

"""
Master data routes.

Writes go through master_service so collection counters and product name
copies stay consistent with the master row.
"""
from flask import Blueprint, jsonify

from ..decorators import require_api_token, json_body
from ..services import master_service
from ..services.errors import InvalidRange

masters_bp = Blueprint("masters", __name__, url_prefix="/api")


@masters_bp.post("/products")
@require_api_token
def create_product():
    data = json_body()
    code = data.pop("code", None)
    if not code:
        raise InvalidRange("code is required")
    product = master_service.create_product(code, **data)
    return jsonify({"product": product.to_dict()}), 201


@masters_bp.get("/products/<code>")
@require_api_token
def get_product(code):
    return jsonify({"product": master_service.get_product(code).to_dict()}), 200


@masters_bp.patch("/products/<code>")
@require_api_token
def update_product(code):
    product = master_service.update_product(code, json_body())
    return jsonify({"product": product.to_dict()}), 200


@masters_bp.delete("/products/<code>")
@require_api_token
def delete_product(code):
    master_service.delete_product(code)
    return "", 204


@masters_bp.get("/shops/<shop_code>/products/<product_code>/price")
@require_api_token
def product_price(shop_code, product_code):
    return jsonify(master_service.get_product_price(shop_code, product_code)), 200


@masters_bp.post("/suppliers")
@require_api_token
def create_supplier():
    data = json_body()
    supplier = master_service.create_supplier(data.get("code"), data.get("name"))
    return jsonify({"supplier": supplier.to_dict()}), 201


@masters_bp.delete("/suppliers/<code>")
@require_api_token
def delete_supplier(code):
    master_service.delete_supplier(code)
    return "", 204


@masters_bp.delete("/shops/<code>")
@require_api_token
def delete_shop(code):
    master_service.delete_shop(code)
    return "", 204
