# Shared pytest fixtures
from __future__ import annotations

import io
import tempfile
from pathlib import Path
from typing import Any

import pandas as pd
import pytest

from billing_import.db.memory_store import InMemoryStore
from billing_import.logging.init import reset_logging


@pytest.fixture(autouse=True)
def _fresh_logging():
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """database:
  host: localhost
  port: 5432
  user: billing
  password: secret
  database: billing
page_size: 500
logs_directory: ./logs
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


def workbook_bytes(rows: list[dict[str, Any]]) -> bytes:
    """Single-sheet xlsx with the union of row keys as header."""
    buf = io.BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        pd.DataFrame(rows).to_excel(writer, sheet_name="Sheet1", index=False)
    return buf.getvalue()


@pytest.fixture()
def make_workbook():
    return workbook_bytes


CARRIER_STATEMENT = """Детализация счета;;;
"Договор об оказании услуг связи № 77-0012345";;;
Период: 01.11.2025 - 30.11.2025;;;
Абонентский номер 9001234567;;;
Тарифный план на 01.11.2025 <Корпоративный безлимит>;;;
Итого начислено;;;1200,00
в том числе НДС;;;200,00
Абонентский номер 9007654321;;;
Тарифный план на 01.11.2025 «Базовый»;;;
Итого начислено;;;
;;;600,00
Абонентский номер 9009999999;;;
Тарифный план на 01.11.2025 Гостевой;;;
Итого начислено;;;0,00
Услуги связи не потреблялись;;;
"""


@pytest.fixture()
def carrier_csv_bytes() -> bytes:
    return CARRIER_STATEMENT.encode("cp1251")


@pytest.fixture()
def seeded_store() -> InMemoryStore:
    """Store with one company, one operator, contract 123, one SIM and one tariff."""
    store = InMemoryStore()
    company_id = store.insert("companies", {"name": "ООО Ромашка"})
    operator_id = store.insert("operators", {"name": "МТС"})
    store.insert(
        "contracts",
        {"number": "123", "company_id": company_id, "operator_id": operator_id},
    )
    store.insert("sim_cards", {"number": "79001234567"})
    store.insert("tariffs", {"operator_id": operator_id, "name": "Тестовый"})
    return store
