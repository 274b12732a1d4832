# Overview: Service-layer operations for purchases; encapsulates business logic and database work.

"""
Purchase write and read path.

WRITE ORDER (every create/update, one transaction):
1. Validate payload and activation (nothing written on failure)
2. Apply fields; seal a new login secret with the injected vault
3. calculate_derived_fields() stamps validity/warranty end dates
4. settlement_service.apply_settlement() recomputes paid/due and status
5. Commit

READS never include the sealed secret; Purchase.to_dict() reports
activation.has_secret instead. reveal_secret() is the only way to get the
plaintext back.
"""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..activation import (
    activation_from_payload,
    read_activation,
    write_activation,
    LoginCredentials,
)
from ..extensions import db
from ..models import Purchase, Payment
from ..models.purchases import (
    PURCHASE_STATUSES,
    SOURCE_PLATFORMS,
    STATUS_OPEN,
    STATUS_CANCELLED,
)
from ..money import DEFAULT_CURRENCY
from ..time_utils import utcnow
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_purchase,
    ValidationError,
    ConflictError,
    NotFoundError,
)
from .concurrency import run_with_retry
from .derived_fields import calculate_derived_fields, is_expiring_soon
from .order_id_service import allocate_order_id, validate_order_id
from .settlement_service import apply_settlement


PURCHASE_POLICY = ModelValidationPolicy(
    writable_fields={
        "order_id", "source_platform", "source_ref",
        "client_id", "product_id", "vendor_id",
        "purchase_date",
        "validity_duration_months", "validity_start_date",
        "has_warranty", "warranty_months",
        "client_pay_total_minor", "vendor_pay_total_minor",
        "discount_minor", "taxes_minor", "fees_minor", "currency",
        "vendor_contact_name", "vendor_contact_phone",
        "status",
    },
    required_on_create={
        "client_id", "product_id", "purchase_date",
        "client_pay_total_minor", "vendor_pay_total_minor",
    },
    choices={
        "source_platform": SOURCE_PLATFORMS,
        # COMPLETED is reached through settlement only
        "status": {STATUS_OPEN, STATUS_CANCELLED},
        "currency": {DEFAULT_CURRENCY},
    },
    upper_fields={"order_id", "source_platform", "status", "currency"},
)

PROOF_TYPES = {"client": "client_proof_urls", "vendor": "vendor_proof_urls"}


def _split_payload(data) -> tuple[dict, dict | None]:
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")
    fields = {k: v for k, v in data.items() if k != "activation"}
    return fields, data.get("activation")


def _apply_and_settle(purchase: Purchase, patch: dict, activation) -> Purchase:
    for key, value in patch.items():
        setattr(purchase, key, value)
    if activation is not None:
        write_activation(purchase, activation)
    calculate_derived_fields(purchase)
    # Assigns the id of a new purchase (and fires the order_id constraint)
    db.session.flush()
    apply_settlement(purchase)
    return purchase


# =============================================================================
# CREATE / UPDATE
# =============================================================================

def create_purchase(data: dict, actor_id: str, vault, *, order_prefix: str | None = None) -> Purchase:
    """
    Create a purchase.

    When `order_id` is omitted one is allocated with the order id sequencer
    (retried on collision). A caller-supplied order id that is already taken
    raises ConflictError without retry.

    Raises:
        ValidationError: invalid payload or activation
        ConflictError: order id collision
    """
    fields, activation_data = _split_payload(data)
    if activation_data is None:
        raise ValidationError("Missing required fields: activation")

    patch = validate_payload(model=Purchase, payload=fields, policy=PURCHASE_POLICY, partial=False)
    enforce_rules_purchase(patch)
    if patch.get("order_id"):
        validate_order_id(patch["order_id"])
    activation = activation_from_payload(activation_data, vault=vault)

    def _build(order_id: str) -> Purchase:
        purchase = Purchase(
            order_id=order_id,
            created_by=str(actor_id),
            status=STATUS_OPEN,
            client_proof_urls=[],
            vendor_proof_urls=[],
        )
        db.session.add(purchase)
        _apply_and_settle(purchase, {k: v for k, v in patch.items() if k != "order_id"}, activation)
        return purchase

    def _op():
        if patch.get("order_id"):
            purchase = _build(patch["order_id"])
            db.session.flush()
        else:
            purchase = allocate_order_id(_build, order_prefix)
        db.session.commit()
        return purchase

    try:
        purchase = run_with_retry(_op)
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f"Order id {patch.get('order_id')} already exists")
    except Exception:
        db.session.rollback()
        raise

    return purchase


def update_purchase(purchase_id: int, data: dict, actor_id: str, vault) -> Purchase:
    """
    Patch a purchase and recompute its derived fields and settlement.

    Status may be set to CANCELLED (terminal until re-opened) or OPEN
    (re-open; settlement may immediately complete it again).
    """
    fields, activation_data = _split_payload(data)
    patch = validate_payload(model=Purchase, payload=fields, policy=PURCHASE_POLICY, partial=True)
    enforce_rules_purchase(patch)
    if "order_id" in patch:
        validate_order_id(patch["order_id"])

    def _op():
        purchase = get_purchase(purchase_id)
        activation = None
        if activation_data is not None:
            activation = activation_from_payload(
                activation_data, vault=vault, existing=read_activation(purchase)
            )
        _apply_and_settle(purchase, patch, activation)
        purchase.updated_by = str(actor_id)
        db.session.commit()
        return purchase

    try:
        return run_with_retry(_op)
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f"Order id {patch.get('order_id')} already exists")
    except Exception:
        db.session.rollback()
        raise


def cancel_purchase(purchase_id: int, actor_id: str) -> Purchase:
    def _op():
        purchase = get_purchase(purchase_id)
        purchase.status = STATUS_CANCELLED
        purchase.updated_by = str(actor_id)
        apply_settlement(purchase)
        db.session.commit()
        return purchase

    return run_with_retry(_op)


def attach_proof_urls(purchase_id: int, proof_type: str, urls, actor_id: str) -> Purchase:
    """Append payment-proof URLs (already uploaded to the asset host)."""
    column = PROOF_TYPES.get(proof_type)
    if column is None:
        raise ValidationError("type must be client or vendor")
    if not isinstance(urls, list) or not urls or not all(isinstance(u, str) and u.strip() for u in urls):
        raise ValidationError("urls must be a non-empty list of strings")

    def _op():
        purchase = get_purchase(purchase_id)
        # Reassign so the JSON column is flagged dirty
        setattr(purchase, column, list(getattr(purchase, column) or []) + [u.strip() for u in urls])
        purchase.updated_by = str(actor_id)
        db.session.commit()
        return purchase

    return run_with_retry(_op)


def delete_purchase(purchase_id: int) -> None:
    """Delete a purchase together with all of its payments."""
    def _op():
        purchase = get_purchase(purchase_id)
        db.session.query(Payment).filter_by(purchase_id=purchase.id).delete(synchronize_session=False)
        db.session.delete(purchase)
        db.session.commit()

    run_with_retry(_op)


# =============================================================================
# READS
# =============================================================================

def get_purchase(purchase_id: int) -> Purchase:
    purchase = db.session.get(Purchase, purchase_id)
    if purchase is None:
        raise NotFoundError(f"Purchase {purchase_id} not found")
    return purchase


def serialize_purchase(purchase: Purchase, *, expiring_soon_days: int = 30) -> dict:
    data = purchase.to_dict()
    data["is_expiring_soon"] = is_expiring_soon(purchase, utcnow().date(), expiring_soon_days)
    return data


def list_purchases(
    *,
    date_from=None,
    date_to=None,
    status: str | None = None,
    client_id: str | None = None,
    vendor_id: str | None = None,
    product_id: str | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[Purchase], int]:
    """Filtered, newest-first page of purchases plus the total match count."""
    if status is not None and status not in PURCHASE_STATUSES:
        raise ValidationError(f"status must be one of {sorted(PURCHASE_STATUSES)}")
    if page < 1 or not 1 <= limit <= 100:
        raise ValidationError("page must be >= 1 and limit between 1 and 100")

    q = db.session.query(Purchase)
    if date_from:
        q = q.filter(Purchase.purchase_date >= date_from)
    if date_to:
        q = q.filter(Purchase.purchase_date <= date_to)
    if status:
        q = q.filter(Purchase.status == status)
    if client_id:
        q = q.filter(Purchase.client_id == client_id)
    if vendor_id:
        q = q.filter(Purchase.vendor_id == vendor_id)
    if product_id:
        q = q.filter(Purchase.product_id == product_id)
    if search:
        q = q.filter(Purchase.order_id.ilike(f"%{search.strip()}%"))

    total = q.count()
    items = (
        q.order_by(Purchase.purchase_date.desc(), Purchase.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return items, total


def reveal_secret(purchase_id: int, vault) -> str | None:
    """
    Decrypt the LOGIN_CREDENTIALS secret of a purchase.

    Returns None when the purchase has no stored secret.

    Raises:
        NotFoundError: unknown purchase
        DecryptionFailedError: envelope corrupted or tampered with
    """
    activation = read_activation(get_purchase(purchase_id))
    if not isinstance(activation, LoginCredentials) or not activation.has_secret:
        return None
    return vault.open(activation.secret_sealed)
