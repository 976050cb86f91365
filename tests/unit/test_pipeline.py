from __future__ import annotations

import json

import pytest

from billing_import.db.memory_store import InMemoryStore
from billing_import.db.store import WriteBatchError
from billing_import.excel.reader import DecodeError
from billing_import.logging.error_log import ErrorLogBuffer
from billing_import.models.apply_result import ApplyStatus
from billing_import.models.preview_result import ISSUE_MISSING_CONTRACT
from billing_import.models.resolutions import ContractResolution, CreateCompany, ExistingOperator
from billing_import.services.pipeline import BillingImportService


def _rows():
    return [
        {"Номер телефона": "79001234567", "Договор": "123", "Тарифный план": "Тестовый",
         "Дата окончания периода": "30.11.2025", "Итого по строке": 100, "Всего по строке": 100},
        {"Номер телефона": "79002223344", "Договор": "N-1", "Тарифный план": "Тестовый",
         "Дата окончания периода": "30.11.2025", "Итого по строке": 200, "Всего по строке": 200},
        {"Номер телефона": None, "Договор": "123",
         "Дата окончания периода": "30.11.2025", "НДС": 20, "Всего по строке": 20},
    ]


@pytest.fixture()
def service(seeded_store, make_workbook, tmp_path):
    seeded_store.add_file("bill-1", make_workbook(_rows()))
    return BillingImportService(seeded_store, seeded_store, error_log=ErrorLogBuffer(tmp_path / "logs"))


def test_preview_reports_missing_contract(service):
    result = service.preview("bill-1")
    assert result.file_id == "bill-1"
    assert result.totals.rows == 3
    assert result.totals.contracts_missing == 1
    assert result.missing_contracts[0].contract_number == "N-1"
    assert result.rows[1].issues == [ISSUE_MISSING_CONTRACT]
    # VAT-only row folded into the single base row of contract 123
    assert result.rows[0].vat == 20
    assert result.totals.total_total == 320
    json.dumps(result.to_dict(), ensure_ascii=False)


def test_preview_does_not_write(service, seeded_store):
    before = {t: dict(rows) for t, rows in seeded_store.tables.items()}
    service.preview("bill-1")
    assert seeded_store.tables == before


def test_apply_blocked_then_applied(service, seeded_store):
    blocked = service.apply("bill-1", [])
    assert blocked.ok is False
    assert blocked.status is ApplyStatus.MISSING_CONTRACTS
    assert len(seeded_store.tables["expenses"]) == 0

    resolution = ContractResolution("N-1", CreateCompany(name="ООО Новая"), ExistingOperator(id=2))
    result = service.apply("bill-1", [resolution], import_id="bill-1")
    assert result.ok is True
    assert result.status is ApplyStatus.APPLIED
    assert result.applied_summary.contracts_created == 1
    assert result.applied_summary.expenses_created == 3
    assert seeded_store.tables["billing_imports"]["bill-1"]["status"] == "applied"

    # the new contract is now known, so a preview no longer reports it
    assert service.preview("bill-1").totals.contracts_missing == 0


def test_decode_failure_is_logged_and_raised(seeded_store, tmp_path):
    seeded_store.add_file("bad", b"\x98\x98")
    errors = ErrorLogBuffer(tmp_path / "logs")
    service = BillingImportService(seeded_store, seeded_store, error_log=errors)
    with pytest.raises(DecodeError):
        service.preview("bad")
    path = errors.flush()
    record = json.loads(path.read_text(encoding="utf-8"))
    assert record["error_type"] == "DECODE_ERROR"
    assert record["stage"] == "preview"


def test_write_failure_propagates(service, seeded_store, monkeypatch):
    def failing(batch):
        raise WriteBatchError("connection lost")

    monkeypatch.setattr(seeded_store, "write_batch", failing)
    resolution = ContractResolution("N-1", CreateCompany(name="ООО Новая"), ExistingOperator(id=2))
    with pytest.raises(WriteBatchError):
        service.apply("bill-1", [resolution])
    assert len(service.error_log) == 1


def test_empty_file_is_a_decode_error(tmp_path):
    store = InMemoryStore({"empty": b""})
    service = BillingImportService(store, store, error_log=ErrorLogBuffer(tmp_path))
    with pytest.raises(DecodeError):
        service.preview("empty")
