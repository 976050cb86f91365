from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Union

"""User decisions supplied to the apply stage.

Company and operator choices are tagged unions: either a reference to an
existing record or a request to create a new one. Callers dispatch with
``isinstance`` so both branches are always handled.
"""

__all__ = [
    "ExistingCompany",
    "CreateCompany",
    "CompanyChoice",
    "ExistingOperator",
    "CreateOperator",
    "OperatorChoice",
    "ContractResolution",
    "SimCardAction",
    "TariffOverride",
    "ApplyRequest",
]


@dataclass(frozen=True)
class ExistingCompany:
    id: Any


@dataclass(frozen=True)
class CreateCompany:
    name: str
    inn: str | None = None
    kpp: str | None = None
    comment: str | None = None
    force_create: bool = False  # bypasses the similar-name check


CompanyChoice = Union[ExistingCompany, CreateCompany]


@dataclass(frozen=True)
class ExistingOperator:
    id: Any


@dataclass(frozen=True)
class CreateOperator:
    name: str
    type: str | None = None
    manager: str | None = None
    phone: str | None = None
    email: str | None = None


OperatorChoice = Union[ExistingOperator, CreateOperator]


@dataclass(frozen=True)
class ContractResolution:
    """How to create a contract that the billing file references but the store lacks."""
    contract_number: str
    company: CompanyChoice
    operator: OperatorChoice
    type: str = "Мобильная связь"
    status: Literal["active", "closing"] = "active"
    start_date: str = ""
    end_date: str = ""
    monthly_fee: float = 0.0
    sim_count: int = 0


@dataclass(frozen=True)
class SimCardAction:
    phone: str
    action: Literal["create", "skip"] = "create"


@dataclass(frozen=True)
class TariffOverride:
    operator_id: Any
    tariff_name: str
    monthly_fee: float | None = None


@dataclass(frozen=True)
class ApplyRequest:
    """Everything the caller resolved interactively for one apply call."""
    contract_resolutions: list[ContractResolution]
    sim_card_actions: list[SimCardAction] | None = None
    tariff_overrides: list[TariffOverride] | None = None
