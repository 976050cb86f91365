from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from ..models.import_row import ImportRow, vat_group_key
from ..models.master_data import Contract, MasterDataSnapshot, Operator, SimCard, Tariff
from ..models.apply_result import CompanyConflict, CompanySuggestion
from ..models.preview_result import (
    ISSUE_MISSING_CONTRACT,
    ISSUE_MISSING_SIM,
    ISSUE_MISSING_TARIFF,
    ISSUE_VAT_MISMATCH,
    MissingContract,
    MissingSimCard,
    MissingTariff,
    PreviewRow,
    PreviewTotals,
)
from ..models.resolutions import ContractResolution, CreateCompany
from .normalization import phone_variants, round_currency, tariff_key

"""Reconciliation engine.

Cross-references parsed rows against the master data snapshot. Gaps are
reported as advisory data (missing contracts, SIM cards, tariffs); nothing
here raises on a gap.
"""

__all__ = [
    "NormalizedCompanyName",
    "NormalizedCompany",
    "MasterDataIndex",
    "ReconciliationReport",
    "normalize_company_name",
    "find_similar_companies",
    "collect_company_conflicts",
    "collect_missing_contracts",
    "build_tariff_fee_by_key",
    "build_sim_index",
    "reconcile",
]

_COMPANY_QUOTES_RE = re.compile(r"[\"'`]")
_WHITESPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class NormalizedCompanyName:
    raw: str
    normalized: str


@dataclass(frozen=True)
class NormalizedCompany:
    id: Any
    raw: str
    normalized: str


def normalize_company_name(value: str) -> NormalizedCompanyName:
    raw = value.strip()
    normalized = _COMPANY_QUOTES_RE.sub("", raw.lower())
    normalized = _WHITESPACE_RE.sub(" ", normalized).strip()
    return NormalizedCompanyName(raw=raw, normalized=normalized)


def find_similar_companies(
    target: NormalizedCompanyName, companies: Iterable[NormalizedCompany]
) -> list[NormalizedCompany]:
    """Existing companies equal to, containing, or contained in the target name."""
    if not target.normalized:
        return []
    matches = []
    for company in companies:
        if not company.normalized:
            continue
        if (
            company.normalized == target.normalized
            or target.normalized in company.normalized
            or company.normalized in target.normalized
        ):
            matches.append(company)
    return matches


def collect_company_conflicts(
    resolutions: Iterable[ContractResolution], companies: list[NormalizedCompany]
) -> list[CompanyConflict]:
    conflicts = []
    for resolution in resolutions:
        company = resolution.company
        if not isinstance(company, CreateCompany) or company.force_create:
            continue
        suggestions = find_similar_companies(normalize_company_name(company.name), companies)
        if not suggestions:
            continue
        conflicts.append(
            CompanyConflict(
                contract_number=resolution.contract_number,
                name=company.name,
                suggestions=[CompanySuggestion(id=s.id, name=s.raw) for s in suggestions],
            )
        )
    return conflicts


def collect_missing_contracts(
    rows: Iterable[ImportRow | Any],
    contract_numbers: set[str],
    resolved_contract_numbers: set[str],
) -> list[str]:
    """Contract numbers neither known to the store nor covered by a resolution.

    Deduplicated, in order of first appearance.
    """
    missing: dict[str, None] = {}
    for row in rows:
        number = row.contract_number
        if number not in contract_numbers and number not in resolved_contract_numbers:
            missing.setdefault(number, None)
    return list(missing)


def build_tariff_fee_by_key(
    rows: Iterable[ImportRow | Any], contract_by_number: dict[str, Any]
) -> dict[str, float]:
    """Highest monthly fee seen per operator+tariff key."""
    fees: dict[str, float] = {}
    for row in rows:
        if not row.tariff_name:
            continue
        contract = contract_by_number.get(row.contract_number)
        if contract is None:
            continue
        key = tariff_key(contract.operator_id, row.tariff_name)
        if row.tariff_fee > fees.get(key, 0):
            fees[key] = row.tariff_fee
    return fees


def build_sim_index(sim_cards: Iterable[SimCard]) -> dict[str, Any]:
    index: dict[str, Any] = {}
    for sim in sim_cards:
        for variant in phone_variants(sim.number):
            index[variant] = sim
    return index


@dataclass(frozen=True)
class MasterDataIndex:
    """Lookup maps built once per call from a snapshot."""
    contract_by_number: dict[str, Contract]
    operator_by_id: dict[Any, Operator]
    sim_by_phone: dict[str, Any]
    tariff_by_key: dict[str, Tariff]
    companies: list[NormalizedCompany]

    @classmethod
    def build(cls, snapshot: MasterDataSnapshot) -> MasterDataIndex:
        return cls(
            contract_by_number={c.number: c for c in snapshot.contracts},
            operator_by_id={o.id: o for o in snapshot.operators},
            sim_by_phone=build_sim_index(snapshot.sim_cards),
            tariff_by_key={tariff_key(t.operator_id, t.name): t for t in snapshot.tariffs},
            companies=[
                NormalizedCompany(id=c.id, **vars(normalize_company_name(c.name)))
                for c in snapshot.companies
            ],
        )


@dataclass(frozen=True)
class ReconciliationReport:
    rows: list[PreviewRow]
    totals: PreviewTotals
    missing_contracts: list[MissingContract]
    missing_sim_cards: list[MissingSimCard]
    missing_tariffs: list[MissingTariff]


def reconcile(
    rows: list[ImportRow],
    distributed_groups: set[str],
    vat_mismatches: int,
    index: MasterDataIndex,
) -> ReconciliationReport:
    missing_contracts: dict[str, MissingContract] = {}
    missing_sims: dict[str, MissingSimCard] = {}
    missing_tariffs: dict[str, MissingTariff] = {}
    total_amount = 0.0
    total_vat = 0.0
    total_total = 0.0
    preview_rows: list[PreviewRow] = []

    for row in rows:
        issues: list[str] = []
        # aggregate VAT lines already folded into base rows are not counted twice
        if not (row.is_vat_only and vat_group_key(row) in distributed_groups):
            total_amount += row.amount
            total_vat += row.vat
            total_total += row.total
        if row.vat_mismatch:
            issues.append(ISSUE_VAT_MISMATCH)

        contract = index.contract_by_number.get(row.contract_number)
        if contract is None:
            issues.append(ISSUE_MISSING_CONTRACT)
            seen = missing_contracts.get(row.contract_number)
            missing_contracts[row.contract_number] = MissingContract(
                contract_number=row.contract_number,
                rows_count=(seen.rows_count if seen else 0) + 1,
                period_start=seen.period_start if seen else row.period_start,
                period_end=seen.period_end if seen else row.period_end,
            )
        elif not row.is_vat_only:
            variants = phone_variants(row.phone)
            if variants and not any(v in index.sim_by_phone for v in variants):
                issues.append(ISSUE_MISSING_SIM)
                missing_sims.setdefault(
                    variants[0],
                    MissingSimCard(
                        phone=variants[0],
                        contract_number=row.contract_number,
                        tariff_name=row.tariff_name,
                    ),
                )
            if row.tariff_name:
                key = tariff_key(contract.operator_id, row.tariff_name)
                if key not in index.tariff_by_key:
                    issues.append(ISSUE_MISSING_TARIFF)
                    operator = index.operator_by_id.get(contract.operator_id)
                    missing_tariffs[key] = MissingTariff(
                        operator_id=str(contract.operator_id),
                        operator_name=operator.name if operator else "",
                        contract_number=row.contract_number,
                        tariff_name=row.tariff_name,
                    )

        preview_rows.append(
            PreviewRow(
                row_index=row.row_index,
                phone=row.phone,
                contract_number=row.contract_number,
                tariff_name=row.tariff_name,
                period_start=row.period_start,
                period_end=row.period_end,
                month=row.month,
                amount=row.amount,
                vat=row.vat,
                total=row.total,
                vat_mismatch=row.vat_mismatch,
                is_vat_only=row.is_vat_only,
                issues=issues,
            )
        )

    totals = PreviewTotals(
        rows=len(rows),
        contracts_missing=len(missing_contracts),
        sim_cards_missing=len(missing_sims),
        tariffs_missing=len(missing_tariffs),
        vat_mismatches=vat_mismatches,
        total_amount=round_currency(total_amount),
        total_vat=round_currency(total_vat),
        total_total=round_currency(total_total),
    )
    return ReconciliationReport(
        rows=preview_rows,
        totals=totals,
        missing_contracts=list(missing_contracts.values()),
        missing_sim_cards=list(missing_sims.values()),
        missing_tariffs=list(missing_tariffs.values()),
    )
