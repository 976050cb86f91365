from __future__ import annotations

import logging
from enum import Enum

from ..carrier.lines import csv_lines
from ..carrier.pdf import pdf_lines
from ..carrier.statement import parse_statement_lines
from ..excel.reader import DecodeError, parse_tabular_rows
from ..models.import_row import ImportRow

"""Row parser entry point: raw file bytes -> ImportRow list.

Dialect is sniffed from the leading bytes unless the caller names it.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "Dialect",
    "DecodeError",
    "detect_dialect",
    "parse_file",
]

PDF_MAGIC = b"%PDF"
ZIP_MAGIC = b"PK\x03\x04"  # xlsx
OLE2_MAGIC = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"  # legacy xls


class Dialect(Enum):
    TABULAR = "tabular"
    CARRIER_CSV = "carrier_csv"
    CARRIER_PDF = "carrier_pdf"


def detect_dialect(data: bytes) -> Dialect:
    head = data.lstrip()[:8]
    if head.startswith(PDF_MAGIC):
        return Dialect.CARRIER_PDF
    if head.startswith(ZIP_MAGIC) or head.startswith(OLE2_MAGIC):
        return Dialect.TABULAR
    return Dialect.CARRIER_CSV


def parse_file(
    data: bytes,
    dialect: Dialect | None = None,
    tabular_columns: dict[str, str] | None = None,
) -> list[ImportRow]:
    """Decode one billing file.

    Raises DecodeError when the file cannot be decoded; malformed cells never
    raise. Rows without a contract number are never returned.
    """
    if not data:
        raise DecodeError("empty file")
    dialect = dialect or detect_dialect(data)
    if dialect is Dialect.TABULAR:
        rows = parse_tabular_rows(data, columns=tabular_columns)
    elif dialect is Dialect.CARRIER_PDF:
        rows = parse_statement_lines(pdf_lines(data))
    else:
        rows = parse_statement_lines(csv_lines(data))
    logger.debug("dialect=%s rows=%d", dialect.value, len(rows))
    return [row for row in rows if row.contract_number]
