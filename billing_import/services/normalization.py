from __future__ import annotations

import math
import re
from datetime import date, datetime, timedelta
from typing import Any

"""Cell and value normalization shared by every decoder and engine.

All helpers are total: malformed input degrades to 0 / "" instead of raising,
so a single bad cell never aborts an import.
"""

__all__ = [
    "VAT_RATE",
    "VAT_TOLERANCE",
    "CURRENT_PERIOD_LABEL",
    "round_currency",
    "to_number",
    "normalize_phone",
    "phone_variants",
    "normalize_contract_number",
    "format_date",
    "month_label",
    "tariff_key",
]

VAT_RATE = 0.20
VAT_TOLERANCE = 0.02

CURRENT_PERIOD_LABEL = "текущий период"

MONTHS = [
    "Январь",
    "Февраль",
    "Март",
    "Апрель",
    "Май",
    "Июнь",
    "Июль",
    "Август",
    "Сентябрь",
    "Октябрь",
    "Ноябрь",
    "Декабрь",
]

# Spreadsheet date serials count days from this epoch (1900 date system)
SERIAL_EPOCH = datetime(1899, 12, 30)

_DATE_RE = re.compile(r"^(\d{2})\.(\d{2})\.(\d{4})$")
_NON_DIGITS_RE = re.compile(r"\D")
_WHITESPACE_RE = re.compile(r"\s")
_DECIMAL_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)$")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def round_currency(value: float) -> float:
    """Round to cents, half-up on the scaled integer."""
    return math.floor(value * 100 + 0.5) / 100


def to_number(value: Any) -> float:
    if value is None:
        return 0.0
    if _is_number(value):
        return float(value) if math.isfinite(value) else 0.0
    text = _WHITESPACE_RE.sub("", str(value)).replace(",", ".", 1)
    if not _DECIMAL_RE.match(text):
        return 0.0
    number = float(text)
    return number if math.isfinite(number) else 0.0


def normalize_phone(value: Any) -> str:
    if value is None:
        return ""
    if _is_number(value):
        if not math.isfinite(value):
            return ""
        raw = str(math.trunc(value))
    else:
        raw = str(value)
    return _NON_DIGITS_RE.sub("", raw)


def phone_variants(value: Any) -> list[str]:
    """Digit-string forms of a phone number with and without the 7 prefix.

    >>> phone_variants("+7 (900) 123-45-67")
    ['79001234567', '9001234567']
    >>> phone_variants("9001234567")
    ['9001234567', '79001234567']
    """
    normalized = normalize_phone(value)
    if not normalized:
        return []
    if len(normalized) == 11 and normalized.startswith("7"):
        return [normalized, normalized[1:]]
    if len(normalized) == 10:
        return [normalized, f"7{normalized}"]
    return [normalized]


def normalize_contract_number(value: Any) -> str:
    if value is None:
        return ""
    if _is_number(value):
        if not math.isfinite(value):
            return ""
        return str(math.trunc(value))
    return str(value).strip()


def format_date(value: Any) -> str:
    """Render a period cell as dd.mm.yyyy where possible."""
    if value is None or value == "":
        return ""
    if isinstance(value, (datetime, date)):
        return value.strftime("%d.%m.%Y")
    if _is_number(value):
        if not math.isfinite(value) or value <= 0:
            return ""
        try:
            parsed = SERIAL_EPOCH + timedelta(days=math.floor(value))
        except OverflowError:
            return str(value)
        return parsed.strftime("%d.%m.%Y")
    return str(value).strip()


def month_label(date_text: str) -> str:
    """'30.11.2025' -> 'Ноябрь 2025'; anything unparseable -> current period label."""
    match = _DATE_RE.match(date_text or "")
    if not match:
        return CURRENT_PERIOD_LABEL
    month_index = int(match.group(2)) - 1
    if not 0 <= month_index < len(MONTHS):
        return CURRENT_PERIOD_LABEL
    return f"{MONTHS[month_index]} {match.group(3)}"


def tariff_key(operator_id: Any, tariff_name: str) -> str:
    return f"{operator_id}:{tariff_name.strip().lower()}"
