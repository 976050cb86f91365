from __future__ import annotations

import re

from ..excel.reader import DecodeError

"""Line sources for the carrier detail-bill dialects.

Carrier exports are commonly legacy-encoded, so bytes are decoded as cp1251
first and UTF-8 second. Both dialects (flat CSV text and PDF text) end up as
the same normalized line sequence.
"""

__all__ = [
    "ENCODINGS",
    "decode_text",
    "normalize_lines",
    "csv_lines",
]

ENCODINGS = ("cp1251", "utf-8")
UTF8_BOM = b"\xef\xbb\xbf"

_QUOTES_RE = re.compile(r'"')
_DELIMITERS_RE = re.compile(r";+")
_WHITESPACE_RE = re.compile(r"\s+")


def decode_text(data: bytes) -> str:
    if data.startswith(UTF8_BOM):
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(f"cannot decode text (utf-8 with BOM: {e.reason})") from e
    errors: list[str] = []
    for encoding in ENCODINGS:
        try:
            return data.decode(encoding)
        except UnicodeDecodeError as e:
            errors.append(f"{encoding}: {e.reason}")
    raise DecodeError(f"cannot decode text ({'; '.join(errors)})")


def normalize_line(line: str) -> str:
    line = _QUOTES_RE.sub("", line)
    line = _DELIMITERS_RE.sub(" ", line)
    return _WHITESPACE_RE.sub(" ", line).strip()


def normalize_lines(text: str) -> list[str]:
    """Split text into trimmed lines, dropping BOMs, quotes, delimiters and blanks."""
    text = text.replace("\ufeff", "")
    lines = (normalize_line(line) for line in re.split(r"\r?\n", text))
    return [line for line in lines if line]


def csv_lines(data: bytes) -> list[str]:
    return normalize_lines(decode_text(data))
