from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

"""Preview result models.

A preview is a best-effort, read-only report: per-row issue tags plus the
registries of master data the billing file references but the store lacks.
"""

__all__ = [
    "PreviewRow",
    "PreviewTotals",
    "MissingContract",
    "MissingSimCard",
    "MissingTariff",
    "PreviewResult",
]

# Issue tags attached to preview rows
ISSUE_VAT_MISMATCH = "vatMismatch"
ISSUE_MISSING_CONTRACT = "missingContract"
ISSUE_MISSING_SIM = "missingSim"
ISSUE_MISSING_TARIFF = "missingTariff"


@dataclass(frozen=True)
class PreviewRow:
    row_index: int
    phone: str
    contract_number: str
    tariff_name: str
    period_start: str
    period_end: str
    month: str
    amount: float
    vat: float
    total: float
    vat_mismatch: bool
    is_vat_only: bool
    issues: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class PreviewTotals:
    rows: int
    contracts_missing: int
    sim_cards_missing: int
    tariffs_missing: int
    vat_mismatches: int
    total_amount: float
    total_vat: float
    total_total: float


@dataclass(frozen=True)
class MissingContract:
    contract_number: str
    rows_count: int
    period_start: str  # taken from the first row seen for this number
    period_end: str


@dataclass(frozen=True)
class MissingSimCard:
    phone: str  # primary phone variant
    contract_number: str
    tariff_name: str


@dataclass(frozen=True)
class MissingTariff:
    operator_id: str
    operator_name: str
    contract_number: str
    tariff_name: str


@dataclass(frozen=True)
class PreviewResult:
    file_id: str
    rows: list[PreviewRow]
    totals: PreviewTotals
    missing_contracts: list[MissingContract]
    missing_sim_cards: list[MissingSimCard]
    missing_tariffs: list[MissingTariff]

    @property
    def vat_mismatches(self) -> int:
        return self.totals.vat_mismatches

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
