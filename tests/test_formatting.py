"""Tests for Rupiah and date formatting."""

from datetime import date, datetime

import pytest

from kas_manager.formatting import (
    format_date,
    format_datetime,
    format_rupiah,
    format_short_rupiah,
    month_name,
    year_options,
)


class TestRupiah:
    """Tests for full and short Rupiah amounts."""

    @pytest.mark.parametrize("amount,expected", [
        (100000, "Rp 100.000"),
        (0, "Rp 0"),
        (999, "Rp 999"),
        (1500000, "Rp 1.500.000"),
        (-10000, "-Rp 10.000"),
    ])
    def test_full_format(self, amount, expected):
        """Full amounts use '.' separators and no decimals."""
        assert format_rupiah(amount) == expected

    @pytest.mark.parametrize("amount,expected", [
        (100000, "100k"),
        (12500, "12.5k"),
        (1000, "1k"),
        (1500000, "1.5jt"),
        (2000000, "2jt"),
        (1234567, "1.2jt"),
        (500, "500"),
        (0, "0"),
    ])
    def test_short_format(self, amount, expected):
        """Short amounts use 'k' and 'jt' with one decimal at most."""
        assert format_short_rupiah(amount) == expected

    @pytest.mark.parametrize("amount,expected", [
        (12250, "12.3k"),
        (1250, "1.3k"),
        (1050000, "1.1jt"),
        (12240, "12.2k"),
    ])
    def test_short_format_rounds_half_up(self, amount, expected):
        """A quotient ending in exactly .x5 rounds up, not to even."""
        assert format_short_rupiah(amount) == expected

    @pytest.mark.parametrize("amount,expected", [
        (999_999, "1jt"),
        (999_950, "1jt"),
        (999_949, "999.9k"),
        (999_000, "999k"),
    ])
    def test_short_format_rolls_over_to_millions(self, amount, expected):
        """Amounts that would round to 1000k are shown as millions."""
        assert format_short_rupiah(amount) == expected


class TestDates:
    """Tests for Indonesian month names and dates."""

    def test_month_names(self):
        """Month numbers map to Indonesian names; out of range is empty."""
        assert month_name(1) == "Januari"
        assert month_name(5) == "Mei"
        assert month_name(12) == "Desember"
        assert month_name(13) == ""

    def test_format_date(self):
        """Dates use the abbreviated Indonesian month."""
        assert format_date(date(2025, 1, 5)) == "5 Jan 2025"
        assert format_date(date(2025, 8, 17)) == "17 Agu 2025"

    def test_format_datetime(self):
        """Times use a '.' between hours and minutes."""
        assert format_datetime(datetime(2025, 10, 3, 9, 5)) == "3 Okt 2025 09.05"

    def test_year_options(self):
        """Year options count back from the current year."""
        assert year_options(today=date(2025, 6, 1)) == [2025, 2024, 2023]
        assert year_options(count=1, today=date(2025, 6, 1)) == [2025]
