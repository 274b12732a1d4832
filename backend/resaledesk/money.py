# Overview: Integer minor-unit helpers (paise, cents) shared by settlement and coupons.

"""
Money primitives.

All amounts are integers in the currency's smallest unit. Floats are never
accepted. Sums are checked against MAX_SAFE_MINOR_UNITS so totals stay exact
for every JSON consumer of the API (2**53 - 1 is the largest integer a
double can hold without rounding).
"""

from __future__ import annotations

from typing import Iterable

from .validation import ValidationError


MAX_SAFE_MINOR_UNITS = 2 ** 53 - 1

DEFAULT_CURRENCY = "INR"

# 1 basis point = 0.01%; 10_000 = 100%
BASIS_POINTS = 10_000


class AmountOverflowError(ValidationError):
    """Raised when a minor-unit total would exceed MAX_SAFE_MINOR_UNITS."""


def require_minor_units(value, field: str, *, positive: bool = False) -> int:
    """Return `value` if it is a usable minor-unit integer, else raise ValidationError."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer amount in minor units")
    if positive and value <= 0:
        raise ValidationError(f"{field} must be > 0")
    if value < 0:
        raise ValidationError(f"{field} must be >= 0")
    if value > MAX_SAFE_MINOR_UNITS:
        raise AmountOverflowError(f"{field} cannot exceed {MAX_SAFE_MINOR_UNITS}")
    return value


def checked_sum(amounts: Iterable[int], field: str = "amount") -> int:
    """Sum non-negative minor-unit amounts, rejecting overflow instead of wrapping."""
    total = 0
    for amount in amounts:
        require_minor_units(amount, field)
        total += amount
        if total > MAX_SAFE_MINOR_UNITS:
            raise AmountOverflowError(
                f"{field} total exceeds {MAX_SAFE_MINOR_UNITS} minor units"
            )
    return total
