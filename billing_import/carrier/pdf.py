from __future__ import annotations

import io
import logging
from collections import defaultdict
from typing import Any

import pdfplumber

from ..excel.reader import DecodeError
from .lines import normalize_lines

"""PDF text extraction for the carrier detail-bill dialect.

pdfplumber yields positioned words; words sharing a (rounded) vertical
position form one line, ordered left to right. Lines are emitted page by
page, top to bottom.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "group_words_into_lines",
    "pdf_lines",
]


def group_words_into_lines(words: list[dict[str, Any]]) -> list[str]:
    """Group positioned words ({'text', 'x0', 'top'}) into text lines."""
    by_y: dict[int, list[tuple[float, str]]] = defaultdict(list)
    for word in words:
        by_y[round(word["top"])].append((word["x0"], word["text"]))
    lines = []
    for y in sorted(by_y):
        bucket = sorted(by_y[y], key=lambda item: item[0])
        lines.append(" ".join(text for _, text in bucket))
    return lines


def pdf_lines(data: bytes) -> list[str]:
    raw_lines: list[str] = []
    try:
        with pdfplumber.open(io.BytesIO(data)) as pdf:
            for page in pdf.pages:
                words = page.extract_words(keep_blank_chars=False, use_text_flow=False)
                raw_lines.extend(group_words_into_lines(words))
            logger.debug("pdf pages=%d raw_lines=%d", len(pdf.pages), len(raw_lines))
    except Exception as e:
        raise DecodeError(f"cannot read pdf: {e}") from e
    return normalize_lines("\n".join(raw_lines))
