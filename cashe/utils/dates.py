"""Calendar helpers: local clock, month arithmetic and card statement cycles."""

from calendar import monthrange
from datetime import date, datetime, timedelta
from typing import Optional, Tuple

import pytz

from .config import settings


def get_timezone():
    return pytz.timezone(settings.timezone)


def local_now() -> datetime:
    """Current time in the configured Argentine timezone."""
    return datetime.now(get_timezone())


def local_today() -> date:
    return local_now().date()


def last_day_of_month(year: int, month: int) -> int:
    return monthrange(year, month)[1]


def shift_month(year: int, month: int, delta: int) -> Tuple[int, int]:
    """Move (year, month) by ``delta`` months."""
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def add_months(value: date, months: int, day: Optional[int] = None) -> date:
    """Add months to a date, clamping the day to the target month's length."""
    year, month = shift_month(value.year, value.month, months)
    target_day = day if day is not None else value.day
    return date(year, month, min(target_day, last_day_of_month(year, month)))


def month_bounds(year: int, month: int) -> Tuple[date, date]:
    return date(year, month, 1), date(year, month, last_day_of_month(year, month))


def first_installment_month(purchase_date: date, closing_day: int) -> Tuple[int, int]:
    """Due month of the statement a card purchase lands in.

    Purchases on or before the closing day are billed next month,
    later ones the month after.
    """
    offset = 1 if purchase_date.day <= closing_day else 2
    return shift_month(purchase_date.year, purchase_date.month, offset)


def first_installment_date(purchase_date: date, closing_day: int) -> date:
    """Date of the first cuota: the closing day inside the statement month."""
    year, month = first_installment_month(purchase_date, closing_day)
    return date(year, month, min(closing_day, last_day_of_month(year, month)))


def current_statement_month(today: date, closing_day: int) -> Tuple[int, int]:
    """The most recently closed statement, the one that is due for payment."""
    year, month = first_installment_month(today, closing_day)
    return shift_month(year, month, -1)


def statement_close_date(year: int, month: int, closing_day: int) -> date:
    """Closing date of the statement due in (year, month)."""
    close_year, close_month = shift_month(year, month, -1)
    return date(close_year, close_month, min(closing_day, last_day_of_month(close_year, close_month)))


def statement_key(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def parse_statement_key(key: str) -> Tuple[int, int]:
    year, month = key.split("-")
    return int(year), int(month)


def start_of_week(value: date) -> date:
    """Monday of the week containing ``value``."""
    return value - timedelta(days=value.weekday())
