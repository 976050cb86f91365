from __future__ import annotations

from dataclasses import dataclass, field, replace

from ..models.import_row import ImportRow, vat_group_key
from .normalization import VAT_RATE, VAT_TOLERANCE, round_currency

"""VAT distribution engine.

Carrier invoices often list subscriber-level net amounts plus one aggregate
VAT-only line per contract and month. Where such a line exists, its VAT is
spread over the group's base rows proportionally to their amounts; otherwise
each base row is only checked for total == amount + vat.

Mismatch counting differs between the two branches: a mismatched distributed
group counts every base row, the per-row check counts failing rows only.
"""

__all__ = [
    "VatDistributionResult",
    "apply_vat_distribution",
]


@dataclass
class _Group:
    vat_only_total: float = 0.0
    base_sum: float = 0.0
    base_indexes: list[int] = field(default_factory=list)


@dataclass(frozen=True)
class VatDistributionResult:
    rows: list[ImportRow]
    vat_mismatches: int
    distributed_groups: set[str]  # group keys whose VAT-only rows were folded into base rows


def _vat_only_value(row: ImportRow) -> float:
    if row.vat > 0:
        return row.vat
    if row.total > 0:
        return row.total
    if row.amount > 0:
        return row.amount
    return 0.0


def apply_vat_distribution(rows: list[ImportRow]) -> VatDistributionResult:
    adjusted = [replace(row, vat_mismatch=False) for row in rows]
    groups: dict[str, _Group] = {}
    for index, row in enumerate(adjusted):
        group = groups.setdefault(vat_group_key(row), _Group())
        if row.is_vat_only:
            group.vat_only_total += _vat_only_value(row)
        else:
            group.base_sum += row.amount
            group.base_indexes.append(index)

    vat_mismatches = 0
    distributed: set[str] = set()

    for key, group in groups.items():
        if group.vat_only_total > 0 and group.base_sum > 0 and group.base_indexes:
            distributed.add(key)
            allocated = 0.0
            last = len(group.base_indexes) - 1
            for position, index in enumerate(group.base_indexes):
                row = adjusted[index]
                if position == last:
                    # remainder keeps the group sum exact regardless of rounding
                    vat = round_currency(group.vat_only_total - allocated)
                else:
                    vat = round_currency(group.vat_only_total * row.amount / group.base_sum)
                allocated += vat
                adjusted[index] = replace(row, vat=vat, total=round_currency(row.amount + vat))

            expected_vat = round_currency(group.base_sum * VAT_RATE)
            if abs(group.vat_only_total - expected_vat) > VAT_TOLERANCE:
                for index in group.base_indexes:
                    adjusted[index] = replace(adjusted[index], vat_mismatch=True)
                    vat_mismatches += 1
            continue

        for index in group.base_indexes:
            row = adjusted[index]
            expected_total = round_currency(row.amount + row.vat)
            if row.total > 0 and abs(row.total - expected_total) > VAT_TOLERANCE:
                adjusted[index] = replace(row, vat_mismatch=True)
                vat_mismatches += 1

    return VatDistributionResult(
        rows=adjusted, vat_mismatches=vat_mismatches, distributed_groups=distributed
    )
