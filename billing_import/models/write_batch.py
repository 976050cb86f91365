from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

"""Write batch produced by the apply engine.

Records created inside one batch cannot know each other's ids up front, so
they reference each other through ``NewRecordRef`` placeholders. The store
resolves placeholders to real primary keys in creation order (parent rows are
always queued before the children that reference them).
"""

__all__ = [
    "NewRecordRef",
    "PendingCreate",
    "PendingUpdate",
    "WriteBatch",
]


@dataclass(frozen=True)
class NewRecordRef:
    """Placeholder id for a record created earlier in the same batch."""
    table: str
    key: str  # natural key of the record within the batch

    def __str__(self) -> str:
        return f"new:{self.table}:{self.key}"


@dataclass(frozen=True)
class PendingCreate:
    table: str
    ref: NewRecordRef
    values: dict[str, Any]  # may contain NewRecordRef values


@dataclass(frozen=True)
class PendingUpdate:
    table: str
    id: Any
    values: dict[str, Any]


@dataclass
class WriteBatch:
    creates: list[PendingCreate] = field(default_factory=list)
    updates: list[PendingUpdate] = field(default_factory=list)

    def create(self, table: str, key: str, values: dict[str, Any]) -> NewRecordRef:
        ref = NewRecordRef(table=table, key=key)
        self.creates.append(PendingCreate(table=table, ref=ref, values=values))
        return ref

    def update(self, table: str, id: Any, values: dict[str, Any]) -> None:
        self.updates.append(PendingUpdate(table=table, id=id, values=values))

    def count(self, table: str) -> int:
        return sum(1 for c in self.creates if c.table == table)

    def __len__(self) -> int:
        return len(self.creates) + len(self.updates)
