# Overview: Flask API routes for coupons; parses input and returns JSON responses.

from __future__ import annotations

from flask import Blueprint, jsonify, request

from ..decorators import require_actor, require_role
from ..services import coupon_service
from ..validation import ValidationError
from . import service_error_response, pagination_args, pagination_meta

coupons_bp = Blueprint("coupons", __name__, url_prefix="/api/coupons")


@coupons_bp.route("", methods=["GET"])
@require_actor
def list_coupons():
    try:
        is_active = request.args.get("is_active")
        if is_active is not None:
            is_active = is_active.lower() == "true"
        page, limit = pagination_args()
        items, total = coupon_service.list_coupons(
            request.args.get("search") or None, is_active, page=page, limit=limit
        )
        return jsonify({
            "coupons": [c.to_dict() for c in items],
            "pagination": pagination_meta(page, limit, total),
        })
    except Exception as exc:
        return service_error_response(exc, "Failed to list coupons")


@coupons_bp.route("", methods=["POST"])
@require_actor
@require_role("admin", "manager")
def create_coupon():
    try:
        coupon = coupon_service.create_coupon(request.get_json(silent=True) or {})
        return jsonify({"coupon": coupon.to_dict()}), 201
    except Exception as exc:
        return service_error_response(exc, "Failed to create coupon")


@coupons_bp.route("/<int:coupon_id>", methods=["GET"])
@require_actor
def get_coupon(coupon_id: int):
    try:
        return jsonify({"coupon": coupon_service.get_coupon(coupon_id).to_dict()})
    except Exception as exc:
        return service_error_response(exc, "Failed to get coupon")


@coupons_bp.route("/<int:coupon_id>", methods=["PATCH"])
@require_actor
@require_role("admin", "manager")
def update_coupon(coupon_id: int):
    try:
        coupon = coupon_service.update_coupon(coupon_id, request.get_json(silent=True) or {})
        return jsonify({"coupon": coupon.to_dict()})
    except Exception as exc:
        return service_error_response(exc, "Failed to update coupon")


@coupons_bp.route("/<int:coupon_id>", methods=["DELETE"])
@require_actor
@require_role("admin", "manager")
def delete_coupon(coupon_id: int):
    try:
        coupon_service.delete_coupon(coupon_id)
        return jsonify({"deleted": True})
    except Exception as exc:
        return service_error_response(exc, "Failed to delete coupon")


@coupons_bp.route("/validate", methods=["POST"])
@require_actor
def validate_coupon():
    """
    Request body: {"code": "SAVE15", "product_id": "p-1" (optional)}

    Returns 200 with {"valid", "reason", "coupon"}; 404 for an unknown code.
    """
    try:
        data = request.get_json(silent=True) or {}
        result = coupon_service.validate_coupon(data.get("code"), data.get("product_id"))
        return jsonify(result)
    except Exception as exc:
        return service_error_response(exc, "Failed to validate coupon")


@coupons_bp.route("/redeem", methods=["POST"])
@require_actor
@require_role("admin", "manager", "sales")
def redeem_coupon():
    """
    Request body: {"code": "SAVE15", "amount_minor": 200000, "product_id": "p-1" (optional)}

    Returns 200 with {"discount_minor", "coupon"}.
    """
    try:
        data = request.get_json(silent=True) or {}
        if "amount_minor" not in data:
            raise ValidationError("amount_minor is required")
        result = coupon_service.redeem_coupon(
            data.get("code"), data["amount_minor"], data.get("product_id")
        )
        return jsonify(result)
    except Exception as exc:
        return service_error_response(exc, "Failed to redeem coupon")
