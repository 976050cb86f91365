from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from ..models.apply_result import AppliedSummary, ApplyResult, ApplyStatus
from ..models.import_row import ImportRow
from ..models.master_data import Contract, Tariff
from ..models.resolutions import (
    ApplyRequest,
    ContractResolution,
    CreateCompany,
    CreateOperator,
    ExistingCompany,
    ExistingOperator,
)
from ..models.write_batch import NewRecordRef, WriteBatch
from .normalization import phone_variants, tariff_key
from .reconciliation import (
    MasterDataIndex,
    build_tariff_fee_by_key,
    collect_company_conflicts,
    collect_missing_contracts,
    normalize_company_name,
)

"""Apply/commit engine.

Turns parsed rows plus the caller's resolutions into one WriteBatch. Stages
run in a fixed order:

    validate companies -> validate missing contracts -> companies -> operators
    -> contracts -> tariffs -> sim cards -> expenses -> finalize

The two validation stages have no side effects: a blocked apply returns an
ApplyResult and no batch at all. Every later stage only queues writes; the
store applies the queued batch atomically.

Existing natural keys (contract numbers, operator+tariff keys, SIM phone
variants) are never created twice, so a retried apply only adds expenses.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "VAT_EXPENSE_TYPE",
    "DEFAULT_EXPENSE_TYPE",
    "DEFAULT_OPERATOR_NAME",
    "ApplyError",
    "ApplyPlan",
    "plan_apply",
]

VAT_EXPENSE_TYPE = "НДС"
DEFAULT_EXPENSE_TYPE = "Начисления по счету"
DEFAULT_OPERATOR_NAME = "Оператор"


class ApplyError(Exception):
    """Raised when a resolution references an id that cannot be resolved."""


@dataclass(frozen=True)
class ApplyPlan:
    batch: WriteBatch
    summary: AppliedSummary


def _operator_name_key(name: str) -> str:
    return name.strip().lower()


def _id_key(value: Any) -> Any:
    # resolution files may quote store ids ("1" for 1)
    return value if isinstance(value, NewRecordRef) else str(value)


class _ApplyContext:
    """Mutable working maps for one apply call, seeded from the snapshot."""

    def __init__(self, index: MasterDataIndex) -> None:
        self.batch = WriteBatch()
        self.contract_by_number: dict[str, Contract] = dict(index.contract_by_number)
        self.tariff_by_key: dict[str, Any] = dict(index.tariff_by_key)
        self.sim_by_phone: dict[str, Any] = dict(index.sim_by_phone)
        self.operator_by_name = {
            _operator_name_key(o.name): o.id for o in index.operator_by_id.values()
        }
        self.operator_name_by_id: dict[Any, str] = {
            _id_key(o.id): o.name for o in index.operator_by_id.values()
        }
        self.created_companies: dict[str, Any] = {}
        self.created_operators: dict[str, Any] = {}

    def company_id(self, resolution: ContractResolution) -> Any:
        company = resolution.company
        if isinstance(company, ExistingCompany):
            return company.id
        key = normalize_company_name(company.name).normalized
        if key not in self.created_companies:
            raise ApplyError(f"company was not created: {company.name}")
        return self.created_companies[key]

    def operator_id(self, resolution: ContractResolution) -> Any:
        operator = resolution.operator
        if isinstance(operator, ExistingOperator):
            return operator.id
        key = _operator_name_key(operator.name)
        if key not in self.created_operators:
            raise ApplyError(f"operator was not created: {operator.name}")
        return self.created_operators[key]


def _create_companies(ctx: _ApplyContext, resolutions: list[ContractResolution]) -> None:
    for resolution in resolutions:
        company = resolution.company
        if not isinstance(company, CreateCompany):
            continue
        key = normalize_company_name(company.name).normalized
        if key in ctx.created_companies:
            continue
        ctx.created_companies[key] = ctx.batch.create(
            "companies",
            key,
            {
                "name": company.name.strip(),
                "inn": company.inn,
                "kpp": company.kpp,
                "comment": company.comment,
            },
        )


def _create_operators(ctx: _ApplyContext, resolutions: list[ContractResolution]) -> None:
    for resolution in resolutions:
        operator = resolution.operator
        if not isinstance(operator, CreateOperator):
            continue
        key = _operator_name_key(operator.name)
        if key in ctx.created_operators:
            continue
        existing = ctx.operator_by_name.get(key)
        if existing is not None:
            ctx.created_operators[key] = existing
            continue
        ref = ctx.batch.create(
            "operators",
            key,
            {
                "name": operator.name.strip(),
                "type": operator.type,
                "manager": operator.manager,
                "phone": operator.phone,
                "email": operator.email,
            },
        )
        ctx.created_operators[key] = ref
        ctx.operator_name_by_id[ref] = operator.name.strip()


def _create_contracts(ctx: _ApplyContext, resolutions: list[ContractResolution]) -> None:
    for resolution in resolutions:
        number = resolution.contract_number
        if number in ctx.contract_by_number:
            continue
        company_id = ctx.company_id(resolution)
        operator_id = ctx.operator_id(resolution)
        ref = ctx.batch.create(
            "contracts",
            number,
            {
                "number": number,
                "company_id": company_id,
                "operator_id": operator_id,
                "type": resolution.type,
                "status": resolution.status,
                "start_date": resolution.start_date,
                "end_date": resolution.end_date,
                "monthly_fee": resolution.monthly_fee,
                "sim_count": resolution.sim_count,
            },
        )
        ctx.contract_by_number[number] = Contract(
            id=ref, number=number, company_id=company_id, operator_id=operator_id
        )


def _create_tariffs(ctx: _ApplyContext, rows: list[ImportRow], request: ApplyRequest) -> None:
    fee_by_key = build_tariff_fee_by_key(rows, ctx.contract_by_number)
    overrides = {
        tariff_key(o.operator_id, o.tariff_name): o.monthly_fee
        for o in request.tariff_overrides or []
        if o.monthly_fee is not None
    }
    for row in rows:
        contract = ctx.contract_by_number.get(row.contract_number)
        if contract is None or not row.tariff_name:
            continue
        key = tariff_key(contract.operator_id, row.tariff_name)
        if key in ctx.tariff_by_key:
            continue
        monthly_fee = overrides.get(key, fee_by_key.get(key, 0.0))
        ref = ctx.batch.create(
            "tariffs",
            key,
            {
                "name": row.tariff_name,
                "operator_id": contract.operator_id,
                "monthly_fee": monthly_fee,
                "status": "active",
                "sim_count": 0,
            },
        )
        ctx.tariff_by_key[key] = Tariff(id=ref, operator_id=contract.operator_id, name=row.tariff_name)


def _create_sim_cards(ctx: _ApplyContext, rows: list[ImportRow], request: ApplyRequest) -> None:
    decisions: dict[str, str] = {}
    for item in request.sim_card_actions or []:
        for variant in phone_variants(item.phone):
            decisions[variant] = item.action

    for row in rows:
        contract = ctx.contract_by_number.get(row.contract_number)
        if contract is None or row.is_vat_only or not row.phone:
            continue
        variants = phone_variants(row.phone)
        if not variants or any(v in ctx.sim_by_phone for v in variants):
            continue
        if decisions.get(variants[0], "create") == "skip":
            continue
        tariff = (
            ctx.tariff_by_key.get(tariff_key(contract.operator_id, row.tariff_name))
            if row.tariff_name
            else None
        )
        ref = ctx.batch.create(
            "sim_cards",
            variants[0],
            {
                "number": row.phone,
                "company_id": contract.company_id,
                "operator_id": contract.operator_id,
                "tariff_id": tariff.id if tariff is not None else None,
                "status": "active",
                "type": row.tariff_name or None,
            },
        )
        # later rows of the same batch must see the new SIM as existing
        for variant in variants:
            ctx.sim_by_phone[variant] = ref


def _create_expenses(ctx: _ApplyContext, rows: list[ImportRow]) -> None:
    for row in rows:
        contract = ctx.contract_by_number.get(row.contract_number)
        if contract is None:
            continue
        if row.is_vat_only:
            expense_type = VAT_EXPENSE_TYPE
        else:
            expense_type = row.tariff_name or DEFAULT_EXPENSE_TYPE
        ctx.batch.create(
            "expenses",
            str(row.row_index),
            {
                "company_id": contract.company_id,
                "type": expense_type,
                "amount": row.amount,
                "month": row.month,
                "sim_number": row.phone or None,
                "contract": row.contract_number,
                "operator": ctx.operator_name_by_id.get(_id_key(contract.operator_id), DEFAULT_OPERATOR_NAME),
                "vat": row.vat,
                "total": row.total,
                "status": "confirmed",
                "has_document": True,
            },
        )


def plan_apply(
    rows: list[ImportRow],
    index: MasterDataIndex,
    request: ApplyRequest,
    import_id: Any = None,
) -> ApplyResult | ApplyPlan:
    """Validate the request and build the write batch.

    Returns an ApplyResult when the apply is blocked (nothing queued), else an
    ApplyPlan whose batch the caller hands to the store.
    """
    # resolutions for contracts the store already has are no-ops
    pending = [
        r for r in request.contract_resolutions if r.contract_number not in index.contract_by_number
    ]

    conflicts = collect_company_conflicts(pending, index.companies)
    if conflicts:
        logger.info("apply blocked: %d company name conflict(s)", len(conflicts))
        return ApplyResult(ok=False, status=ApplyStatus.NEEDS_CONFIRMATION, company_conflicts=conflicts)

    missing = collect_missing_contracts(
        rows,
        set(index.contract_by_number),
        {r.contract_number for r in request.contract_resolutions},
    )
    if missing:
        logger.info("apply blocked: unresolved contracts=%s", missing)
        return ApplyResult(ok=False, status=ApplyStatus.MISSING_CONTRACTS, missing_contracts=missing)

    ctx = _ApplyContext(index)
    _create_companies(ctx, pending)
    _create_operators(ctx, pending)
    _create_contracts(ctx, pending)
    _create_tariffs(ctx, rows, request)
    _create_sim_cards(ctx, rows, request)
    _create_expenses(ctx, rows)

    batch = ctx.batch
    summary = AppliedSummary(
        companies_created=batch.count("companies"),
        operators_created=batch.count("operators"),
        contracts_created=batch.count("contracts"),
        tariffs_created=batch.count("tariffs"),
        sim_cards_created=batch.count("sim_cards"),
        expenses_created=batch.count("expenses"),
    )
    if import_id is not None:
        batch.update(
            "billing_imports",
            import_id,
            {
                "status": "applied",
                "applied_at": datetime.now(UTC),
                "expenses_created": summary.expenses_created,
                "sim_cards_created": summary.sim_cards_created,
                "tariffs_created": summary.tariffs_created,
                "contracts_created": summary.contracts_created,
            },
        )
    logger.debug("apply plan creates=%d updates=%d", len(batch.creates), len(batch.updates))
    return ApplyPlan(batch=batch, summary=summary)
