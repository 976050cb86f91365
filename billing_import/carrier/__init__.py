"""Carrier-specific detail-bill dialects (flat CSV text and PDF text)."""

from .lines import csv_lines, decode_text, normalize_lines
from .pdf import pdf_lines
from .statement import parse_statement_lines

__all__ = [
    "csv_lines",
    "decode_text",
    "normalize_lines",
    "parse_statement_lines",
    "pdf_lines",
]
