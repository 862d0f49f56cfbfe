#!/usr/bin/env python3
"""
Formatting helpers for bot replies.
Argentine money and date formats plus template interpolation.
"""

import re
from datetime import date
from typing import Any, Dict, Optional

from cashe.constants.aliases import MONTH_DISPLAY, MONTH_SHORT
from cashe.schemas.core import QueryPeriod
from cashe.utils.dates import parse_statement_key

_PLACEHOLDER = re.compile(r"\{(\w+)\}")


class MoneyFormatter:
    """Formats amounts the way es-AR locales do: 1.500,00."""

    CURRENCY_PREFIX = {
        "ARS": "$",
        "USD": "u$s ",
    }

    @classmethod
    def format_number(cls, amount: float) -> str:
        """
        Format a number with '.' thousands and ',' decimals.

        Args:
            amount: Value to format

        Returns:
            String like "1.500,00"
        """
        text = f"{abs(amount):,.2f}"
        text = text.replace(",", "X").replace(".", ",").replace("X", ".")
        return f"-{text}" if amount < 0 else text

    @classmethod
    def format_currency(cls, amount: float, currency: str = "ARS") -> str:
        """
        Format an amount with its currency prefix.

        Args:
            amount: Value to format
            currency: ARS or USD

        Returns:
            "$1.500,00" for ARS, "u$s 1.500,00" for USD
        """
        prefix = cls.CURRENCY_PREFIX.get((currency or "ARS").upper(), "$")
        if amount < 0:
            return f"-{prefix}{cls.format_number(-amount)}"
        return f"{prefix}{cls.format_number(amount)}"


class DateFormatter:
    """Human-friendly dates for chat replies."""

    @classmethod
    def format_date(cls, value: date) -> str:
        """dd/mm/yyyy"""
        return value.strftime("%d/%m/%Y")

    @classmethod
    def format_date_display(cls, value: date, today: date) -> str:
        """'Hoy', 'Ayer' or '15 ene'."""
        if value == today:
            return "Hoy"
        if (today - value).days == 1:
            return "Ayer"
        return f"{value.day} {MONTH_SHORT[value.month - 1]}"

    @classmethod
    def month_label(cls, year: int, month: int) -> str:
        """'Marzo 2026'"""
        return f"{MONTH_DISPLAY[month - 1]} {year}"

    @classmethod
    def statement_label(cls, key: Optional[str]) -> str:
        if not key:
            return "-"
        year, month = parse_statement_key(key)
        return cls.month_label(year, month)

    @classmethod
    def period_label(cls, period: Optional[QueryPeriod], today: date) -> str:
        """Phrase that completes 'Gastos {periodo}'."""
        if period is None:
            return f"de {MONTH_DISPLAY[today.month - 1].lower()}"
        labels = {
            "today": "de hoy",
            "yesterday": "de ayer",
            "this_week": "de esta semana",
            "last_week": "de la semana pasada",
            "this_month": "de este mes",
            "last_month": "del mes pasado",
            "this_year": "de este año",
        }
        if period.value in labels:
            return labels[period.value]
        if period.value.startswith("last_") and period.value.endswith("_days"):
            return f"de los últimos {period.value[5:-5]} días"
        if period.type == "month" and period.start_date:
            return f"de {cls.month_label(period.start_date.year, period.start_date.month).lower()}"
        if period.start_date and period.end_date:
            if period.start_date == period.end_date:
                return f"del {cls.format_date(period.start_date)}"
            return f"del {cls.format_date(period.start_date)} al {cls.format_date(period.end_date)}"
        return ""


def interpolate(template: str, values: Dict[str, Any]) -> str:
    """Fill ``{key}`` placeholders; empty values render as '-'."""

    def _replace(match: "re.Match") -> str:
        key = match.group(1)
        if key not in values:
            return match.group(0)
        value = values[key]
        return "-" if value is None or value == "" else str(value)

    return _PLACEHOLDER.sub(_replace, template)
