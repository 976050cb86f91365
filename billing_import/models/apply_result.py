from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

"""Apply result models.

Blocking conditions (ambiguous company names, unresolved contracts) are
returned as data with a typed status, never raised.
"""

__all__ = [
    "ApplyStatus",
    "CompanySuggestion",
    "CompanyConflict",
    "AppliedSummary",
    "ApplyResult",
]


class ApplyStatus(Enum):
    """Outcome of one apply call.

    - NEEDS_CONFIRMATION: a proposed company resembles existing ones
    - MISSING_CONTRACTS: rows reference contracts with no resolution
    - APPLIED: the batch was written
    """
    NEEDS_CONFIRMATION = "needs_confirmation"
    MISSING_CONTRACTS = "missing_contracts"
    APPLIED = "applied"


@dataclass(frozen=True)
class CompanySuggestion:
    id: Any
    name: str


@dataclass(frozen=True)
class CompanyConflict:
    contract_number: str
    name: str  # proposed company name as supplied
    suggestions: list[CompanySuggestion]


@dataclass(frozen=True)
class AppliedSummary:
    companies_created: int = 0
    operators_created: int = 0
    contracts_created: int = 0
    tariffs_created: int = 0
    sim_cards_created: int = 0
    expenses_created: int = 0


@dataclass(frozen=True)
class ApplyResult:
    ok: bool
    status: ApplyStatus
    company_conflicts: list[CompanyConflict] = field(default_factory=list)
    missing_contracts: list[str] = field(default_factory=list)
    applied_summary: AppliedSummary | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data
