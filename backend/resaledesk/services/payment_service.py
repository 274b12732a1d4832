# Overview: Service-layer operations for payment; encapsulates business logic and database work.

"""
Payment Write Path

WHY: Client and vendor payments arrive piecemeal (advance, balance,
corrections). Each one changes what is still due on its purchase.

DESIGN PRINCIPLES:
- Payments are separate from purchases (many-to-one relationship)
- Every create/update/delete reconciles the owning purchase in the SAME
  transaction; the payment and the new settlement commit together or not
  at all
- A payment whose purchase does not exist is a data-integrity violation:
  the operation fails with NotFoundError and nothing is written
- Moving a payment to another purchase reconciles both purchases
"""

from __future__ import annotations

from ..extensions import db
from ..models import Payment, Purchase
from ..models.payments import PAYMENT_TYPES, PAYMENT_METHODS
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_payment,
    ValidationError,
    NotFoundError,
)
from .concurrency import run_with_retry
from .settlement_service import reconcile_settlement


PAYMENT_POLICY = ModelValidationPolicy(
    writable_fields={
        "purchase_id", "type", "amount_minor", "paid_on",
        "method", "reference", "screenshot_url", "notes",
    },
    required_on_create={"purchase_id", "type", "amount_minor", "paid_on"},
    choices={"type": PAYMENT_TYPES, "method": PAYMENT_METHODS},
    upper_fields={"type", "method"},
)


def _validated(data: dict, *, partial: bool) -> dict:
    patch = validate_payload(model=Payment, payload=data, policy=PAYMENT_POLICY, partial=partial)
    enforce_rules_payment(patch)
    return patch


def _require_purchase(purchase_id: int) -> None:
    if db.session.get(Purchase, purchase_id) is None:
        raise NotFoundError(f"Purchase {purchase_id} not found")


# =============================================================================
# PAYMENT CREATION / UPDATE / DELETION
# =============================================================================

def create_payment(data: dict, actor_id: str) -> Payment:
    """
    Record a payment and reconcile its purchase.

    Args:
        data: purchase_id, type (CLIENT/VENDOR), amount_minor (> 0),
            paid_on, and optional method, reference, screenshot_url, notes
        actor_id: Audit attribution (created_by)

    Raises:
        ValidationError: invalid payload
        NotFoundError: purchase does not exist
    """
    patch = _validated(data, partial=False)

    def _op():
        _require_purchase(patch["purchase_id"])
        payment = Payment(created_by=str(actor_id), **patch)
        db.session.add(payment)
        db.session.flush()
        reconcile_settlement(payment.purchase_id)
        db.session.commit()
        return payment

    return _run(_op)


def update_payment(payment_id: int, data: dict) -> Payment:
    """Patch a payment and reconcile the purchase(s) it affects."""
    patch = _validated(data, partial=True)
    if "purchase_id" in patch and patch["purchase_id"] is None:
        raise ValidationError("purchase_id cannot be null")

    def _op():
        payment = get_payment(payment_id)
        previous_purchase_id = payment.purchase_id
        if "purchase_id" in patch:
            _require_purchase(patch["purchase_id"])

        for key, value in patch.items():
            setattr(payment, key, value)
        db.session.flush()

        reconcile_settlement(payment.purchase_id)
        if previous_purchase_id != payment.purchase_id:
            reconcile_settlement(previous_purchase_id)

        db.session.commit()
        return payment

    return _run(_op)


def delete_payment(payment_id: int) -> int:
    """Delete a payment and reconcile its purchase. Returns the purchase id."""
    def _op():
        payment = get_payment(payment_id)
        purchase_id = payment.purchase_id
        db.session.delete(payment)
        db.session.flush()
        reconcile_settlement(purchase_id)
        db.session.commit()
        return purchase_id

    return _run(_op)


def _run(op):
    try:
        return run_with_retry(op)
    except Exception:
        db.session.rollback()
        raise


# =============================================================================
# PAYMENT QUERIES
# =============================================================================

def get_payment(payment_id: int) -> Payment:
    payment = db.session.get(Payment, payment_id)
    if payment is None:
        raise NotFoundError(f"Payment {payment_id} not found")
    return payment


def get_purchase_payments(purchase_id: int) -> list[Payment]:
    """Payments for a purchase, most recent first."""
    return (
        db.session.query(Payment)
        .filter_by(purchase_id=purchase_id)
        .order_by(Payment.paid_on.desc(), Payment.id.desc())
        .all()
    )


def list_payments(
    *,
    purchase_id: int | None = None,
    payment_type: str | None = None,
    date_from=None,
    date_to=None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[Payment], int]:
    if payment_type is not None and payment_type not in PAYMENT_TYPES:
        raise ValidationError(f"type must be one of {sorted(PAYMENT_TYPES)}")
    if page < 1 or not 1 <= limit <= 100:
        raise ValidationError("page must be >= 1 and limit between 1 and 100")

    q = db.session.query(Payment)
    if purchase_id:
        q = q.filter(Payment.purchase_id == purchase_id)
    if payment_type:
        q = q.filter(Payment.type == payment_type)
    if date_from:
        q = q.filter(Payment.paid_on >= date_from)
    if date_to:
        q = q.filter(Payment.paid_on <= date_to)

    total = q.count()
    items = (
        q.order_by(Payment.paid_on.desc(), Payment.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return items, total
