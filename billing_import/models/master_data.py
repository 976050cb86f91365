from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

"""Master data snapshot consumed by reconciliation and apply.

Records carry an opaque ``id`` plus the natural key used for matching. The
snapshot is fetched once per preview/apply call and treated as read-only.
"""

__all__ = [
    "Company",
    "Operator",
    "Contract",
    "Tariff",
    "SimCard",
    "MasterDataSnapshot",
]


@dataclass(frozen=True)
class Company:
    id: Any
    name: str


@dataclass(frozen=True)
class Operator:
    id: Any
    name: str


@dataclass(frozen=True)
class Contract:
    id: Any
    number: str  # natural key
    company_id: Any
    operator_id: Any


@dataclass(frozen=True)
class Tariff:
    id: Any
    operator_id: Any
    name: str  # matched case-insensitively per operator


@dataclass(frozen=True)
class SimCard:
    id: Any
    number: str  # matched across phone variants


@dataclass(frozen=True)
class MasterDataSnapshot:
    """Point-in-time view of the master data store."""
    contracts: list[Contract] = field(default_factory=list)
    operators: list[Operator] = field(default_factory=list)
    sim_cards: list[SimCard] = field(default_factory=list)
    tariffs: list[Tariff] = field(default_factory=list)
    companies: list[Company] = field(default_factory=list)
