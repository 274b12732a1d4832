# Overview: Computes a purchase's validity and warranty end dates before it is stored.

"""
Derived-Field Calculator

WHY: validity_end_date and warranty_end_date drive expiry reminders and
warranty claims, so they are stored (and indexed) rather than computed on
read. They are always recomputed from the authoritative source fields,
never from a previously computed value, which makes the call idempotent.

RULES:
- validity_end_date = (validity_start_date or purchase_date) + validity_duration_months
- warranty_end_date = purchase_date + warranty_months, only when has_warranty
- Month arithmetic clamps to the end of the month (time_utils.add_months)
- Missing inputs leave the end date unset (None), never zero-dated
"""

from __future__ import annotations

from ..time_utils import add_months
from ..validation import ValidationError


def calculate_derived_fields(purchase):
    """
    Stamp validity_end_date and warranty_end_date on `purchase` in place.

    Raises ValidationError (before anything is written) when the source
    fields are out of range. Returns the same object for chaining.
    """
    if purchase.purchase_date is None:
        raise ValidationError("purchase_date is required")

    duration = purchase.validity_duration_months
    if duration is not None and duration < 1:
        raise ValidationError("validity_duration_months must be >= 1")

    warranty_months = purchase.warranty_months
    if warranty_months is not None and warranty_months < 0:
        raise ValidationError("warranty_months must be >= 0")

    if duration is not None:
        start = purchase.validity_start_date or purchase.purchase_date
        validity_end = add_months(start, duration)
    else:
        validity_end = None

    if purchase.has_warranty and warranty_months is not None:
        warranty_end = add_months(purchase.purchase_date, warranty_months)
    else:
        warranty_end = None

    purchase.validity_end_date = validity_end
    purchase.warranty_end_date = warranty_end
    return purchase


def is_expiring_soon(purchase, today, days: int = 30) -> bool:
    """True when validity ends within `days` days after `today` (exclusive of today)."""
    if purchase.validity_end_date is None:
        return False
    days_left = (purchase.validity_end_date - today).days
    return 0 < days_left <= days
