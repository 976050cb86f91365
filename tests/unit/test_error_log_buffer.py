from __future__ import annotations

import json
import re

from billing_import.logging.error_log import ErrorLogBuffer
from billing_import.models.error_record import ErrorRecord


def test_flush_writes_json_lines(tmp_path):
    buf = ErrorLogBuffer(tmp_path / "logs")
    buf.add(file="bill.pdf", stage="preview", error_type="DECODE_ERROR", message="cannot read pdf")
    buf.append(ErrorRecord.create("bill.xlsx", "apply", 3, "WRITE_BATCH_ERROR", "duplicate"))
    path = buf.flush()

    assert path is not None
    assert re.fullmatch(r"errors-\d{8}-\d{6}\.log", path.name)
    lines = path.read_text(encoding="utf-8").splitlines()
    first, second = (json.loads(line) for line in lines)
    assert set(first) == {"timestamp", "file", "stage", "row", "error_type", "message"}
    assert first["row"] == -1
    assert first["timestamp"].endswith("Z")
    assert second["row"] == 3
    assert len(buf) == 0


def test_flush_empty_buffer_creates_nothing(tmp_path):
    buf = ErrorLogBuffer(tmp_path / "logs")
    assert buf.flush() is None
    assert not (tmp_path / "logs").exists()


def test_error_record_keeps_cyrillic():
    line = ErrorRecord.create("счет.csv", "decode", -1, "DECODE_ERROR", "нет договора").to_json_line()
    assert "счет.csv" in line
    assert "нет договора" in line
