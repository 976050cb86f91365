from __future__ import annotations

import io
import logging
import re
from dataclasses import dataclass
from typing import Any

import pandas as pd

from ..models.config_models import DEFAULT_TABULAR_COLUMNS
from ..models.import_row import ImportRow
from ..services.normalization import (
    format_date,
    month_label,
    normalize_contract_number,
    normalize_phone,
    to_number,
)

"""Tabular (spreadsheet) decoder.

The first sheet of the workbook is read with its first row as header. Each
data row becomes a mapping of recognized column -> raw cell value, then is
normalized into an ImportRow. Unrecognized columns are ignored and missing
recognized columns read as empty cells.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "DecodeError",
    "SheetData",
    "read_first_sheet",
    "parse_tabular_rows",
]

_ZEROS_RE = re.compile(r"^0+$")


class DecodeError(Exception):
    """Raised when a billing file cannot be decoded at all."""


@dataclass
class SheetData:
    sheet_name: str
    columns: list[str]
    rows: list[dict[str, Any]]  # header -> raw cell (None for empty)


def read_first_sheet(data: bytes) -> SheetData:
    """Read the first sheet of an xlsx/xls workbook from raw bytes."""
    try:
        xls = pd.ExcelFile(io.BytesIO(data))
        if not xls.sheet_names:
            return SheetData(sheet_name="", columns=[], rows=[])
        name = xls.sheet_names[0]
        df = xls.parse(name, header=0, dtype=object)
    except Exception as e:
        raise DecodeError(f"cannot read workbook: {e}") from e

    columns = [str(c).strip() for c in df.columns]
    rows: list[dict[str, Any]] = []
    for _, raw in df.iterrows():
        if raw.isna().all():
            continue
        row_dict: dict[str, Any] = {}
        for col, val in zip(columns, raw.tolist(), strict=False):
            row_dict[col] = None if pd.isna(val) else val
        rows.append(row_dict)
    return SheetData(sheet_name=str(name), columns=columns, rows=rows)


def _build_row(raw: dict[str, Any], columns: dict[str, str], row_index: int) -> ImportRow | None:
    contract_number = normalize_contract_number(raw.get(columns["contract"]))
    if not contract_number:
        return None

    phone = normalize_phone(raw.get(columns["phone"]))
    tariff_cell = raw.get(columns["tariff"])
    tariff_name = "" if tariff_cell is None else str(tariff_cell).strip()
    period_start = format_date(raw.get(columns["period_start"]))
    period_end = format_date(raw.get(columns["period_end"]))
    amount = to_number(raw.get(columns["amount"]))
    vat = to_number(raw.get(columns["vat"]))
    total = to_number(raw.get(columns["total"]))
    tariff_fee = to_number(raw.get(columns["tariff_fee"]))
    resolved_total = total if total > 0 else amount + vat

    if resolved_total <= 0 and vat <= 0 and amount <= 0:
        return None

    return ImportRow(
        row_index=row_index,
        phone=phone,
        contract_number=contract_number,
        tariff_name=tariff_name,
        period_start=period_start,
        period_end=period_end,
        month=month_label(period_end or period_start),
        amount=amount,
        vat=vat,
        total=resolved_total,
        tariff_fee=tariff_fee,
        is_vat_only=phone == "" or bool(_ZEROS_RE.match(phone)),
    )


def parse_tabular_rows(data: bytes, columns: dict[str, str] | None = None) -> list[ImportRow]:
    """Decode a spreadsheet export into ImportRows.

    Parameters
    ----------
    data: raw workbook bytes
    columns: logical column -> header text overrides (defaults to the
        standard carrier export headers)
    """
    mapping = {**DEFAULT_TABULAR_COLUMNS, **(columns or {})}
    sheet = read_first_sheet(data)
    known = set(mapping.values())
    unknown = [c for c in sheet.columns if c not in known]
    if unknown:
        logger.debug("sheet=%s ignoring columns=%s", sheet.sheet_name, unknown)

    rows: list[ImportRow] = []
    for raw in sheet.rows:
        row = _build_row(raw, mapping, row_index=len(rows) + 1)
        if row is not None:
            rows.append(row)
    logger.debug(
        "sheet=%s raw_rows=%d accepted_rows=%d", sheet.sheet_name, len(sheet.rows), len(rows)
    )
    return rows
