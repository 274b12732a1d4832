"""
Calendar helpers used for validity and warranty dates.
"""

from datetime import date, datetime

import pytest

from resaledesk.time_utils import add_months, parse_iso_date, parse_iso_datetime, to_utc_z


class TestAddMonths:
    @pytest.mark.parametrize(
        "start,months,expected",
        [
            (date(2024, 1, 31), 1, date(2024, 2, 29)),
            (date(2023, 1, 31), 1, date(2023, 2, 28)),
            (date(2025, 3, 31), 1, date(2025, 4, 30)),
            (date(2025, 1, 15), 12, date(2026, 1, 15)),
            (date(2025, 11, 30), 3, date(2026, 2, 28)),
            (date(2024, 2, 29), 12, date(2025, 2, 28)),
            (date(2025, 6, 10), 0, date(2025, 6, 10)),
        ],
    )
    def test_clamps_to_month_end(self, start, months, expected):
        assert add_months(start, months) == expected

    def test_negative_months_rejected(self):
        with pytest.raises(ValueError):
            add_months(date(2025, 1, 1), -1)


class TestParsing:
    def test_plain_date(self):
        assert parse_iso_date("2025-01-31") == date(2025, 1, 31)

    def test_datetime_keeps_utc_date(self):
        assert parse_iso_date("2025-01-31T23:30:00-02:00") == date(2025, 2, 1)

    def test_blank_is_none(self):
        assert parse_iso_date("  ") is None
        assert parse_iso_datetime(None) is None

    def test_offset_normalized_to_utc(self):
        assert parse_iso_datetime("2025-05-01T10:00:00+05:30") == datetime(2025, 5, 1, 4, 30)

    def test_to_utc_z(self):
        assert to_utc_z(datetime(2025, 5, 1, 4, 30, 12, 999)) == "2025-05-01T04:30:12Z"
