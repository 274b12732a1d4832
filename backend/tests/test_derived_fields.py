"""
Validity and warranty end-date stamping.
"""

from datetime import date

import pytest

from resaledesk.models import Purchase
from resaledesk.services.derived_fields import calculate_derived_fields, is_expiring_soon
from resaledesk.validation import ValidationError


def _purchase(**fields):
    defaults = {
        "purchase_date": date(2025, 1, 31),
        "validity_duration_months": None,
        "validity_start_date": None,
        "has_warranty": False,
        "warranty_months": None,
    }
    defaults.update(fields)
    return Purchase(**defaults)


class TestValidity:
    def test_from_purchase_date(self):
        p = calculate_derived_fields(_purchase(validity_duration_months=1))
        assert p.validity_end_date == date(2025, 2, 28)

    def test_from_explicit_start(self):
        p = calculate_derived_fields(_purchase(
            validity_duration_months=12,
            validity_start_date=date(2025, 2, 10),
        ))
        assert p.validity_end_date == date(2026, 2, 10)

    def test_absent_duration_leaves_none(self):
        p = calculate_derived_fields(_purchase())
        assert p.validity_end_date is None

    def test_zero_duration_rejected(self):
        with pytest.raises(ValidationError):
            calculate_derived_fields(_purchase(validity_duration_months=0))

    def test_missing_purchase_date_rejected(self):
        with pytest.raises(ValidationError):
            calculate_derived_fields(_purchase(purchase_date=None))


class TestWarranty:
    def test_set_only_with_flag(self):
        p = calculate_derived_fields(_purchase(has_warranty=True, warranty_months=6))
        assert p.warranty_end_date == date(2025, 7, 31)

        p = calculate_derived_fields(_purchase(has_warranty=False, warranty_months=6))
        assert p.warranty_end_date is None

    def test_flag_without_months(self):
        p = calculate_derived_fields(_purchase(has_warranty=True))
        assert p.warranty_end_date is None

    def test_clearing_flag_clears_end_date(self):
        p = calculate_derived_fields(_purchase(has_warranty=True, warranty_months=3))
        p.has_warranty = False
        calculate_derived_fields(p)
        assert p.warranty_end_date is None

    def test_negative_months_rejected(self):
        with pytest.raises(ValidationError):
            calculate_derived_fields(_purchase(has_warranty=True, warranty_months=-1))


def test_recalculation_is_idempotent():
    p = _purchase(validity_duration_months=1, has_warranty=True, warranty_months=1)
    calculate_derived_fields(p)
    first = (p.validity_end_date, p.warranty_end_date)
    calculate_derived_fields(p)
    assert (p.validity_end_date, p.warranty_end_date) == first


class TestExpiringSoon:
    def test_window(self):
        p = _purchase(validity_duration_months=1)
        calculate_derived_fields(p)  # ends 2025-02-28

        assert is_expiring_soon(p, date(2025, 2, 1), days=30)
        assert not is_expiring_soon(p, date(2025, 1, 1), days=30)
        assert not is_expiring_soon(p, date(2025, 2, 28), days=30)
        assert not is_expiring_soon(p, date(2025, 3, 5), days=30)

    def test_no_validity(self):
        assert not is_expiring_soon(_purchase(), date(2025, 1, 1))
