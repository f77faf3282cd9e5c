"""
Display formatting in Indonesian conventions.

Rupiah amounts have no decimals and use '.' as the thousands separator.
"""

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Union


_TENTH = Decimal("0.1")

MONTH_NAMES = [
    "Januari", "Februari", "Maret", "April", "Mei", "Juni",
    "Juli", "Agustus", "September", "Oktober", "November", "Desember",
]

MONTH_ABBREVIATIONS = [
    "Jan", "Feb", "Mar", "Apr", "Mei", "Jun",
    "Jul", "Agu", "Sep", "Okt", "Nov", "Des",
]


def _group_thousands(value: int) -> str:
    return f"{value:,}".replace(",", ".")


def format_rupiah(amount: int) -> str:
    """
    Full Rupiah amount.

    >>> format_rupiah(100000)
    'Rp 100.000'
    >>> format_rupiah(-10000)
    '-Rp 10.000'
    """
    sign = "-" if amount < 0 else ""
    return f"{sign}Rp {_group_thousands(abs(int(amount)))}"


def _one_decimal(amount: int, unit: int) -> Decimal:
    return (Decimal(amount) / unit).quantize(_TENTH, rounding=ROUND_HALF_UP)


def _trim(value: Decimal) -> str:
    text = f"{value:f}"
    return text[:-2] if text.endswith(".0") else text


def format_short_rupiah(amount: int) -> str:
    """
    Compact amount for chat messages: 'jt' for millions, 'k' for thousands.

    The quotient is rounded half-up to one decimal and a trailing .0 is
    dropped. An amount that rounds to 1000k is shown in 'jt'.

    >>> format_short_rupiah(100000)
    '100k'
    >>> format_short_rupiah(12250)
    '12.3k'
    >>> format_short_rupiah(999999)
    '1jt'
    >>> format_short_rupiah(500)
    '500'
    """
    if amount < 1_000:
        return str(amount)
    thousands = _one_decimal(amount, 1_000)
    if thousands < 1000:
        return f"{_trim(thousands)}k"
    return f"{_trim(_one_decimal(amount, 1_000_000))}jt"


def month_name(month: int) -> str:
    """Indonesian month name for a 1-based month; '' when out of range."""
    if 1 <= month <= 12:
        return MONTH_NAMES[month - 1]
    return ""


def format_date(value: Union[date, datetime]) -> str:
    """e.g. '5 Jan 2025'."""
    return f"{value.day} {MONTH_ABBREVIATIONS[value.month - 1]} {value.year}"


def format_datetime(value: datetime) -> str:
    """e.g. '5 Jan 2025 14.30'."""
    return f"{format_date(value)} {value.hour:02d}.{value.minute:02d}"


def current_year_month(today: Optional[date] = None) -> tuple[int, int]:
    today = today or date.today()
    return today.year, today.month


def year_options(count: int = 3, today: Optional[date] = None) -> list[int]:
    """The current year and the (count - 1) years before it, newest first."""
    year, _ = current_year_month(today)
    return [year - i for i in range(count)]
