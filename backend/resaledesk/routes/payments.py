# Overview: Flask API routes for payments operations; parses input and returns JSON responses.

# backend/resaledesk/routes/payments.py
"""
Payment API Routes

Every create/update/delete reconciles the owning purchase before the
response is sent; the response carries the purchase's new settlement.

SECURITY:
- Create: admin, manager, sales, finance (sales: CLIENT payments only)
- Update / delete: admin, manager, finance
- Reads: any authenticated actor
"""

from flask import Blueprint, request, jsonify, g

from ..decorators import require_actor, require_role
from ..services import payment_service, purchase_service
from ..models.payments import PAYMENT_TYPE_CLIENT
from . import service_error_response, date_arg, pagination_args, pagination_meta


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


def _settlement_of(purchase_id: int) -> dict:
    purchase = purchase_service.get_purchase(purchase_id)
    data = purchase.to_dict()
    return {"status": data["status"], **data["settlement"]}


# =============================================================================
# PAYMENT QUERIES
# =============================================================================

@payments_bp.get("")
@require_actor
def list_payments_route():
    """
    List payments.

    Query params:
    - purchase_id, type (CLIENT/VENDOR)
    - from, to: paid_on range (ISO dates, inclusive)
    - page, limit
    """
    try:
        page, limit = pagination_args()
        items, total = payment_service.list_payments(
            purchase_id=request.args.get("purchase_id", type=int),
            payment_type=(request.args.get("type") or "").upper() or None,
            date_from=date_arg("from"),
            date_to=date_arg("to"),
            page=page,
            limit=limit,
        )
        return jsonify({
            "payments": [p.to_dict() for p in items],
            "pagination": pagination_meta(page, limit, total),
        })
    except Exception as exc:
        return service_error_response(exc, "Failed to list payments")


@payments_bp.get("/<int:payment_id>")
@require_actor
def get_payment_route(payment_id: int):
    try:
        return jsonify({"payment": payment_service.get_payment(payment_id).to_dict()})
    except Exception as exc:
        return service_error_response(exc, "Failed to load payment")


# =============================================================================
# PAYMENT WRITES
# =============================================================================

@payments_bp.post("")
@require_actor
@require_role("admin", "manager", "sales", "finance")
def create_payment_route():
    """
    Record a payment.

    Request body:
    {
        "purchase_id": 12,
        "type": "CLIENT",
        "amount_minor": 50000,
        "paid_on": "2025-02-01",
        "method": "UPI",  (optional)
        "reference": "UTR123"  (optional)
    }

    Returns:
        201: Payment created, with updated settlement
        400: Invalid input
        403: Sales actor recording a VENDOR payment
        404: Purchase not found
    """
    try:
        data = request.get_json(silent=True) or {}
        payment_type = str(data.get("type") or "").strip().upper()
        if g.actor_role == "sales" and payment_type != PAYMENT_TYPE_CLIENT:
            return jsonify({"error": "Sales users can only create client payments"}), 403

        payment = payment_service.create_payment(data, g.actor_id)
        return jsonify({
            "payment": payment.to_dict(),
            "settlement": _settlement_of(payment.purchase_id),
        }), 201
    except Exception as exc:
        return service_error_response(exc, "Failed to create payment")


@payments_bp.patch("/<int:payment_id>")
@require_actor
@require_role("admin", "manager", "finance")
def update_payment_route(payment_id: int):
    try:
        payment = payment_service.update_payment(payment_id, request.get_json(silent=True))
        return jsonify({
            "payment": payment.to_dict(),
            "settlement": _settlement_of(payment.purchase_id),
        })
    except Exception as exc:
        return service_error_response(exc, "Failed to update payment")


@payments_bp.delete("/<int:payment_id>")
@require_actor
@require_role("admin", "manager", "finance")
def delete_payment_route(payment_id: int):
    try:
        purchase_id = payment_service.delete_payment(payment_id)
        return jsonify({"deleted": True, "settlement": _settlement_of(purchase_id)})
    except Exception as exc:
        return service_error_response(exc, "Failed to delete payment")
