# Overview: Service-layer operations for coupons; encapsulates business logic and database work.

"""
Coupon Engine

DISCOUNT TYPES:
- PERCENT: discount_value in basis points; floor(amount * value / 10000)
- FLAT: discount_value in minor units, capped at the amount
- anything else: no discount

Rounding is always down, so a client is never discounted more than the
coupon entitles. An invalid coupon discounts 0.

REDEMPTION: used_count is incremented with a conditional UPDATE
(used_count < max_uses), so two concurrent redemptions of the last use
cannot both succeed.
"""

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Coupon
from ..models.coupons import DISCOUNT_PERCENT, DISCOUNT_FLAT, DISCOUNT_TYPES
from ..money import BASIS_POINTS, require_minor_units
from ..time_utils import utcnow
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_coupon,
    ValidationError,
    ConflictError,
    NotFoundError,
)
from .concurrency import run_with_retry


REASON_INACTIVE = "INACTIVE"
REASON_USAGE_LIMIT = "USAGE_LIMIT_REACHED"
REASON_NOT_YET_VALID = "NOT_YET_VALID"
REASON_EXPIRED = "EXPIRED"
REASON_NOT_APPLICABLE = "NOT_APPLICABLE"

COUPON_POLICY = ModelValidationPolicy(
    writable_fields={
        "code", "product_id", "discount_type", "discount_value",
        "max_uses", "valid_from", "valid_to", "is_active",
    },
    required_on_create={"code"},
    choices={"discount_type": DISCOUNT_TYPES},
    upper_fields={"code", "discount_type"},
)


def normalize_code(code: str) -> str:
    """Normalize to uppercase, no surrounding spaces."""
    if not isinstance(code, str) or not code.strip():
        raise ValidationError("code is required")
    return code.strip().upper()


# =============================================================================
# VALIDITY & DISCOUNT
# =============================================================================

def invalid_reason(coupon: Coupon, now) -> str | None:
    """Why `coupon` cannot be used at `now`, or None if it can."""
    if not coupon.is_active:
        return REASON_INACTIVE
    if coupon.max_uses is not None and (coupon.used_count or 0) >= coupon.max_uses:
        return REASON_USAGE_LIMIT
    if coupon.valid_from is not None and now < coupon.valid_from:
        return REASON_NOT_YET_VALID
    if coupon.valid_to is not None and now > coupon.valid_to:
        return REASON_EXPIRED
    return None


def is_valid(coupon: Coupon, now) -> bool:
    return invalid_reason(coupon, now) is None


def calculate_discount(coupon: Coupon, amount_minor: int, now) -> int:
    """
    Discount in minor units for `amount_minor` at `now`.

    Returns 0 for an invalid coupon or an unknown discount type.
    """
    require_minor_units(amount_minor, "amount_minor")

    if not is_valid(coupon, now):
        return 0

    value = coupon.discount_value or 0
    if coupon.discount_type == DISCOUNT_PERCENT:
        return min((amount_minor * value) // BASIS_POINTS, amount_minor)
    if coupon.discount_type == DISCOUNT_FLAT:
        return min(value, amount_minor)
    return 0


# =============================================================================
# LOOKUP & VALIDATION BY CODE
# =============================================================================

def get_coupon_by_code(code: str) -> Coupon:
    coupon = db.session.query(Coupon).filter_by(code=normalize_code(code)).first()
    if coupon is None:
        raise NotFoundError(f"Coupon {code!r} not found")
    return coupon


def _check(coupon: Coupon, product_id: str | None, now) -> str | None:
    if coupon.product_id and product_id and coupon.product_id != str(product_id):
        return REASON_NOT_APPLICABLE
    return invalid_reason(coupon, now)


def validate_coupon(code: str, product_id: str | None = None, now=None) -> dict:
    """
    Validate a coupon code, optionally for a specific product.

    Product-scoped coupons only apply to their product; coupons without a
    product apply to any.

    Returns:
        {"valid": bool, "reason": str | None, "coupon": dict}

    Raises:
        NotFoundError: no coupon with that code
    """
    now = now or utcnow()
    coupon = get_coupon_by_code(code)
    reason = _check(coupon, product_id, now)
    return {"valid": reason is None, "reason": reason, "coupon": coupon.to_dict()}


def redeem_coupon(code: str, amount_minor: int, product_id: str | None = None, now=None) -> dict:
    """
    Consume one use of a coupon and return the discount for `amount_minor`.

    Raises:
        NotFoundError: unknown code
        ValidationError: coupon not usable (reason in the message)
        ConflictError: the last use was taken concurrently
    """
    require_minor_units(amount_minor, "amount_minor")
    now = now or utcnow()

    def _op():
        coupon = get_coupon_by_code(code)
        reason = _check(coupon, product_id, now)
        if reason is not None:
            raise ValidationError(f"Coupon cannot be applied: {reason}")

        discount = calculate_discount(coupon, amount_minor, now)

        stmt = update(Coupon).where(Coupon.id == coupon.id, Coupon.is_active.is_(True))
        if coupon.max_uses is not None:
            stmt = stmt.where(Coupon.used_count < Coupon.max_uses)
        result = db.session.execute(stmt.values(used_count=Coupon.used_count + 1))

        if not result.rowcount:
            db.session.rollback()
            raise ConflictError("Coupon usage limit reached")

        db.session.commit()
        db.session.refresh(coupon)
        return {"discount_minor": discount, "coupon": coupon.to_dict()}

    return run_with_retry(_op)


# =============================================================================
# MANAGEMENT
# =============================================================================

def list_coupons(
    search: str | None = None,
    is_active: bool | None = None,
    *,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[Coupon], int]:
    """Newest-first page of coupons plus the total match count."""
    if page < 1 or not 1 <= limit <= 100:
        raise ValidationError("page must be >= 1 and limit between 1 and 100")

    q = db.session.query(Coupon)
    if is_active is not None:
        q = q.filter(Coupon.is_active.is_(is_active))
    if search:
        q = q.filter(Coupon.code.ilike(f"%{search.strip()}%"))

    total = q.count()
    items = (
        q.order_by(Coupon.created_at.desc(), Coupon.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return items, total


def get_coupon(coupon_id: int) -> Coupon:
    coupon = db.session.get(Coupon, coupon_id)
    if coupon is None:
        raise NotFoundError(f"Coupon {coupon_id} not found")
    return coupon


def create_coupon(data: dict) -> Coupon:
    patch = validate_payload(model=Coupon, payload=data, policy=COUPON_POLICY, partial=False)
    enforce_rules_coupon(patch)

    if db.session.query(Coupon.id).filter_by(code=patch["code"]).first():
        raise ConflictError(f"Coupon code {patch['code']} already exists")

    coupon = Coupon(**patch)
    db.session.add(coupon)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f"Coupon code {patch['code']} already exists")
    return coupon


def update_coupon(coupon_id: int, data: dict) -> Coupon:
    coupon = get_coupon(coupon_id)
    patch = validate_payload(model=Coupon, payload=data, policy=COUPON_POLICY, partial=True)

    merged = {
        "valid_from": coupon.valid_from,
        "valid_to": coupon.valid_to,
        "discount_type": coupon.discount_type,
        "discount_value": coupon.discount_value,
        **patch,
    }
    enforce_rules_coupon(merged)

    for key, value in patch.items():
        setattr(coupon, key, value)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f"Coupon code {patch.get('code')} already exists")
    return coupon


def delete_coupon(coupon_id: int) -> None:
    """
    Delete a coupon.

    Purchases keep their activation coupon code as plain text, so nothing
    else is touched.
    """
    coupon = get_coupon(coupon_id)
    db.session.delete(coupon)
    db.session.commit()
