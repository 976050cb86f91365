from __future__ import annotations

import logging
import re
from dataclasses import dataclass, replace
from functools import reduce

from ..models.import_row import ImportRow
from ..services.normalization import VAT_RATE, month_label, normalize_phone, round_currency

"""Carrier detail-bill state machine.

Shared by the CSV and PDF dialects: both are reduced to a normalized line
sequence first, then folded through ``step``. Per-subscriber figures
accumulate in ``StatementState`` and are emitted by ``flush`` whenever a new
subscriber block starts and once more at end of input.

Contract number and billing period are document-level: the first
"Договор ... № X" line wins for the contract, the last date range wins for
the period.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "StatementMeta",
    "StatementState",
    "scan_meta",
    "step",
    "flush",
    "parse_statement_lines",
]

SUBSCRIBER_MARKER = "Абонентский номер"
TARIFF_MARKER = "Тарифный план"
TOTAL_MARKER_RE = re.compile(r"Итого\s+начислено")
VAT_MARKER = "в том числе НДС"
NOT_CONSUMED_MARKER = "не потреблялись"

_AMOUNT_RE = re.compile(r"-?\d+,\d{2}")
_PHONE_RE = re.compile(r"\b\d{10,11}\b")
_ANGLE_RE = re.compile(r"<([^>]+)>")
_GUILLEMET_RE = re.compile(r"«([^»]+)»")
_TARIFF_PREFIX_RE = re.compile(r"Тарифный план на \d{2}\.\d{2}\.\d{4}")
_PERIOD_RE = re.compile(r"(\d{2}\.\d{2}\.\d{4})\s*[-–]\s*(\d{2}\.\d{2}\.\d{4})")
_CONTRACT_RE = re.compile(r"Договор[^№]*№\s*(\S+)", re.IGNORECASE)


@dataclass(frozen=True)
class StatementMeta:
    contract_number: str = ""
    period_start: str = ""
    period_end: str = ""

    @property
    def month(self) -> str:
        return month_label(self.period_end or self.period_start)


@dataclass(frozen=True)
class StatementState:
    meta: StatementMeta
    current_phone: str = ""
    current_tariff: str = ""
    current_total: float = 0.0
    current_vat: float = 0.0
    expect_totals: bool = False  # total marker seen without a figure on the same line
    rows: tuple[ImportRow, ...] = ()


def extract_all_numbers(line: str) -> list[float]:
    return [float(item.replace(",", ".")) for item in _AMOUNT_RE.findall(line)]


def extract_number(line: str) -> float:
    numbers = extract_all_numbers(line)
    return numbers[-1] if numbers else 0.0


def extract_phone(line: str) -> str:
    match = _PHONE_RE.search(line)
    return match.group(0) if match else ""


def extract_tariff(line: str) -> str:
    angle = _ANGLE_RE.search(line)
    if angle:
        return angle.group(1).strip()
    quoted = _GUILLEMET_RE.search(line)
    if quoted:
        return quoted.group(1).strip()
    return _TARIFF_PREFIX_RE.sub("", line, count=1).strip()


def scan_meta(lines: list[str]) -> StatementMeta:
    contract_number = ""
    period_start = ""
    period_end = ""
    for line in lines:
        period = _PERIOD_RE.search(line)
        if period:
            period_start, period_end = period.group(1), period.group(2)
        if not contract_number:
            contract = _CONTRACT_RE.search(line)
            if contract:
                contract_number = contract.group(1)
    return StatementMeta(
        contract_number=contract_number, period_start=period_start, period_end=period_end
    )


def flush(state: StatementState) -> StatementState:
    """Emit the subscriber row in progress, if it carries any charges."""
    if not state.current_phone:
        return state
    phone = normalize_phone(state.current_phone)
    if not phone:
        return state
    total = state.current_total
    vat = state.current_vat or round_currency(total * (VAT_RATE / (1 + VAT_RATE)))
    amount = round_currency(total - vat)
    if total <= 0 and vat <= 0 and amount <= 0:
        return state
    meta = state.meta
    row = ImportRow(
        row_index=len(state.rows) + 1,
        phone=f"7{phone}" if len(phone) == 10 else phone,
        contract_number=meta.contract_number,
        tariff_name=state.current_tariff,
        period_start=meta.period_start,
        period_end=meta.period_end,
        month=meta.month,
        amount=amount,
        vat=vat,
        total=total,
    )
    return replace(state, rows=state.rows + (row,))


def _is_total_line(line: str) -> bool:
    return TOTAL_MARKER_RE.search(line) is not None


def step(state: StatementState, line: str) -> StatementState:
    if SUBSCRIBER_MARKER in line:
        flushed = flush(state)
        return StatementState(meta=state.meta, rows=flushed.rows, current_phone=extract_phone(line))
    if line.startswith(TARIFF_MARKER):
        return replace(state, current_tariff=extract_tariff(line))
    if _is_total_line(line):
        numbers = extract_all_numbers(line)
        if numbers:
            return replace(state, current_total=numbers[-1], expect_totals=False)
        return replace(state, expect_totals=True)
    if state.expect_totals:
        numbers = extract_all_numbers(line)
        if numbers:
            state = replace(state, current_total=numbers[-1], expect_totals=False)
    if VAT_MARKER in line:
        state = replace(state, current_vat=extract_number(line))
    if NOT_CONSUMED_MARKER in line:
        state = replace(state, current_total=0.0, current_vat=0.0)
    return state


def parse_statement_lines(lines: list[str]) -> list[ImportRow]:
    """Fold normalized carrier lines into ImportRows."""
    meta = scan_meta(lines)
    if not meta.contract_number:
        # rows cannot be bound to a contract, nothing downstream can use them
        logger.warning("carrier statement has no contract number, %d lines ignored", len(lines))
        return []
    final = flush(reduce(step, lines, StatementState(meta=meta)))
    logger.debug(
        "carrier statement contract=%s period=%s-%s rows=%d",
        meta.contract_number,
        meta.period_start,
        meta.period_end,
        len(final.rows),
    )
    return list(final.rows)
