from __future__ import annotations
from datetime import date, datetime
from resaledesk.time_utils import parse_iso_datetime, parse_iso_date

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text, Date, DateTime, JSON
from sqlalchemy.orm import DeclarativeMeta


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate order id)."""


class NotFoundError(LookupError):
    """404-level missing purchase, payment, or coupon."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - choices: enum-like string fields and their allowed values
    - upper_fields: string fields normalized to upper case
    """
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)
    choices: dict[str, set[str]] = field(default_factory=dict)
    upper_fields: set[str] = field(default_factory=set)


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        # Already an int (but not bool which is a subclass of int)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        # String input - must be plain digits (with optional leading minus)
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                raise ValidationError(f"{col.key} must be an integer")
            # Reject scientific notation (e.g., "1e15", "1E10")
            if 'e' in stripped.lower():
                raise ValidationError(f"{col.key} must be a plain integer (scientific notation not allowed)")
            # Reject decimal points (e.g., "12.5")
            if '.' in stripped:
                raise ValidationError(f"{col.key} must be an integer (no decimals)")
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError(f"{col.key} must be an integer")
        # Reject floats explicitly
        if isinstance(value, float):
            raise ValidationError(f"{col.key} must be an integer, not a decimal")
        # Other types
        raise ValidationError(f"{col.key} must be an integer")

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be true or false")

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{col.key} must be a datetime")

    # Calendar dates ("YYYY-MM-DD", or a datetime whose UTC date is kept)
    if isinstance(coltype, Date):
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            try:
                d = parse_iso_date(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 date")
            if d is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 date")
            return d
        raise ValidationError(f"{col.key} must be a date")

    if isinstance(coltype, JSON):
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ValidationError(f"{col.key} must be a list of strings")
        return list(value)

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    # Default: leave as-is
    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    - choices / upper_fields
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(f for f in policy.required_on_create if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        # NULL handling
        if raw is None:
            if not col.nullable and col.default is None:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if k in policy.upper_fields and isinstance(val, str):
            val = val.upper()

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        allowed = policy.choices.get(k)
        if allowed is not None and val not in allowed:
            raise ValidationError(f"{k} must be one of {sorted(allowed)}")

        patch[k] = val

    # Non-nullable columns with a default are filled by the model, not by null input
    return {k: v for k, v in patch.items() if v is not None or cols[k].nullable}


def _require_range(patch: dict, key: str, *, minimum: int) -> None:
    if key in patch and patch[key] is not None and patch[key] < minimum:
        raise ValidationError(f"{key} must be >= {minimum}")


def enforce_rules_purchase(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    from .money import require_minor_units

    for key in (
        "client_pay_total_minor",
        "vendor_pay_total_minor",
        "discount_minor",
        "taxes_minor",
        "fees_minor",
    ):
        if key in patch and patch[key] is not None:
            require_minor_units(patch[key], key)

    _require_range(patch, "validity_duration_months", minimum=1)
    _require_range(patch, "warranty_months", minimum=0)


def enforce_rules_payment(patch: dict) -> None:
    from .money import require_minor_units

    if "amount_minor" in patch:
        require_minor_units(patch["amount_minor"], "amount_minor", positive=True)


def enforce_rules_coupon(patch: dict) -> None:
    from .money import BASIS_POINTS

    if "code" in patch and len(patch["code"]) < 3:
        raise ValidationError("code must be at least 3 characters")

    _require_range(patch, "discount_value", minimum=0)
    if patch.get("discount_type") == "PERCENT" and (patch.get("discount_value") or 0) > BASIS_POINTS:
        raise ValidationError(f"PERCENT discount_value cannot exceed {BASIS_POINTS} basis points (100%)")
    _require_range(patch, "max_uses", minimum=1)
    _require_range(patch, "used_count", minimum=0)

    valid_from = patch.get("valid_from")
    valid_to = patch.get("valid_to")
    if valid_from and valid_to and valid_from > valid_to:
        raise ValidationError("valid_from must not be after valid_to")
