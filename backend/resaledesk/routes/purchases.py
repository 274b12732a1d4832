# Overview: Flask API routes for purchases; parses input and returns JSON responses.

# backend/resaledesk/routes/purchases.py
"""
Purchase API Routes

DESIGN:
- Create/update stamp derived dates and recompute settlement
- Order id generated when the request omits it
- Reads never include the sealed secret (activation.has_secret instead)
- The secret is returned only by the dedicated /secret endpoint

SECURITY (actor and role forwarded by the upstream gateway):
- Create: admin, manager, sales
- Update / attach files: admin, manager, sales, finance
- Cancel / delete / reveal secret: admin, manager
- Reads: any authenticated actor
"""

from flask import Blueprint, request, jsonify, g, current_app

from .. import get_vault
from ..decorators import require_actor, require_role
from ..services import purchase_service, payment_service, order_id_service
from . import service_error_response, date_arg, pagination_args, pagination_meta


purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")


def _serialize(purchase) -> dict:
    return purchase_service.serialize_purchase(
        purchase, expiring_soon_days=current_app.config["EXPIRING_SOON_DAYS"]
    )


# =============================================================================
# PURCHASE QUERIES
# =============================================================================

@purchases_bp.get("")
@require_actor
def list_purchases_route():
    """
    List purchases, newest purchase date first.

    Query params:
    - from, to: purchase date range (ISO dates, inclusive)
    - status: OPEN, COMPLETED, CANCELLED
    - client_id, vendor_id, product_id
    - search: order id substring
    - page, limit (default 1, 20; limit max 100)
    """
    try:
        page, limit = pagination_args()
        items, total = purchase_service.list_purchases(
            date_from=date_arg("from"),
            date_to=date_arg("to"),
            status=request.args.get("status") or None,
            client_id=request.args.get("client_id") or None,
            vendor_id=request.args.get("vendor_id") or None,
            product_id=request.args.get("product_id") or None,
            search=request.args.get("search") or None,
            page=page,
            limit=limit,
        )
        return jsonify({
            "purchases": [_serialize(p) for p in items],
            "pagination": pagination_meta(page, limit, total),
        })
    except Exception as exc:
        return service_error_response(exc, "Failed to list purchases")


@purchases_bp.get("/next-order-id")
@require_actor
def next_order_id_route():
    """Preview the next order id (nothing is reserved)."""
    try:
        order_id = order_id_service.next_order_id(request.args.get("prefix") or None)
        return jsonify({"order_id": order_id})
    except Exception as exc:
        return service_error_response(exc, "Failed to compute next order id")


@purchases_bp.get("/<int:purchase_id>")
@require_actor
def get_purchase_route(purchase_id: int):
    try:
        purchase = purchase_service.get_purchase(purchase_id)
        return jsonify({"purchase": _serialize(purchase)})
    except Exception as exc:
        return service_error_response(exc, "Failed to load purchase")


@purchases_bp.get("/<int:purchase_id>/payments")
@require_actor
def get_purchase_payments_route(purchase_id: int):
    try:
        purchase_service.get_purchase(purchase_id)
        payments = payment_service.get_purchase_payments(purchase_id)
        return jsonify({"payments": [p.to_dict() for p in payments]})
    except Exception as exc:
        return service_error_response(exc, "Failed to load purchase payments")


@purchases_bp.get("/<int:purchase_id>/secret")
@require_actor
@require_role("admin", "manager")
def reveal_secret_route(purchase_id: int):
    """
    Return the decrypted LOGIN_CREDENTIALS secret.

    Returns:
        200: {"secret": "..."} or {"secret": null} when none is stored
        404: Purchase not found
        500: Stored envelope failed to decrypt
    """
    try:
        secret = purchase_service.reveal_secret(purchase_id, get_vault())
        current_app.logger.info("Secret for purchase %s revealed to actor %s", purchase_id, g.actor_id)
        return jsonify({"secret": secret})
    except Exception as exc:
        return service_error_response(exc, "Failed to reveal secret")


# =============================================================================
# PURCHASE WRITES
# =============================================================================

@purchases_bp.post("")
@require_actor
@require_role("admin", "manager", "sales")
def create_purchase_route():
    """
    Create a purchase.

    Request body (amounts in minor units):
    {
        "order_id": "PH-2025-00008",  (optional; generated when absent)
        "client_id": "c-1", "product_id": "p-1", "vendor_id": "v-1",
        "purchase_date": "2025-01-31",
        "validity_duration_months": 12, "validity_start_date": "2025-02-01",
        "has_warranty": true, "warranty_months": 6,
        "client_pay_total_minor": 200000, "vendor_pay_total_minor": 150000,
        "activation": {"method": "LOGIN_CREDENTIALS", "username": "u", "secret": "s"}
    }

    Query params:
    - prefix: order id prefix when generating (default ORDER_ID_PREFIX)

    Returns:
        201: Purchase created
        400: Invalid input
        409: Order id conflict
    """
    try:
        purchase = purchase_service.create_purchase(
            request.get_json(silent=True),
            g.actor_id,
            get_vault(),
            order_prefix=request.args.get("prefix") or None,
        )
        return jsonify({"purchase": _serialize(purchase)}), 201
    except Exception as exc:
        return service_error_response(exc, "Failed to create purchase")


@purchases_bp.patch("/<int:purchase_id>")
@require_actor
@require_role("admin", "manager", "sales", "finance")
def update_purchase_route(purchase_id: int):
    try:
        purchase = purchase_service.update_purchase(
            purchase_id, request.get_json(silent=True), g.actor_id, get_vault()
        )
        return jsonify({"purchase": _serialize(purchase)})
    except Exception as exc:
        return service_error_response(exc, "Failed to update purchase")


@purchases_bp.post("/<int:purchase_id>/cancel")
@require_actor
@require_role("admin", "manager")
def cancel_purchase_route(purchase_id: int):
    try:
        purchase = purchase_service.cancel_purchase(purchase_id, g.actor_id)
        return jsonify({"purchase": _serialize(purchase)})
    except Exception as exc:
        return service_error_response(exc, "Failed to cancel purchase")


@purchases_bp.post("/<int:purchase_id>/files")
@require_actor
@require_role("admin", "manager", "sales", "finance")
def attach_files_route(purchase_id: int):
    """
    Attach payment-proof URLs.

    Request body: {"type": "client" | "vendor", "urls": ["https://..."]}
    """
    try:
        data = request.get_json(silent=True) or {}
        purchase = purchase_service.attach_proof_urls(
            purchase_id, data.get("type"), data.get("urls"), g.actor_id
        )
        return jsonify({"files": _serialize(purchase)["files"]})
    except Exception as exc:
        return service_error_response(exc, "Failed to attach files")


@purchases_bp.delete("/<int:purchase_id>")
@require_actor
@require_role("admin", "manager")
def delete_purchase_route(purchase_id: int):
    """Delete a purchase and all of its payments."""
    try:
        purchase_service.delete_purchase(purchase_id)
        return jsonify({"deleted": True})
    except Exception as exc:
        return service_error_response(exc, "Failed to delete purchase")
