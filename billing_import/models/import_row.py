from __future__ import annotations

from dataclasses import dataclass

"""ImportRow model for the billing import pipeline.

ImportRow is the canonical unit every decoder produces: one row per
subscriber line item per billing period. Rows are transient and only live for
the duration of a single preview/apply call.
"""

__all__ = [
    "ImportRow",
    "vat_group_key",
]


@dataclass(frozen=True)
class ImportRow:
    """Single billing line item after decoding and normalization.

    Amounts are floats already rounded to cents where the source provided
    redundant figures. ``vat_mismatch`` is only meaningful after the VAT
    distribution pass.
    """
    row_index: int  # 1-based position among emitted rows
    phone: str  # digits only, empty for VAT-only summary rows
    contract_number: str
    tariff_name: str = ""
    period_start: str = ""  # dd.mm.yyyy or empty
    period_end: str = ""
    month: str = "текущий период"
    amount: float = 0.0  # net
    vat: float = 0.0
    total: float = 0.0  # amount + vat
    tariff_fee: float = 0.0  # recurring monthly fee, seeds new tariffs
    is_vat_only: bool = False
    vat_mismatch: bool = False


def vat_group_key(row: ImportRow) -> str:
    """Key used to group rows for VAT distribution (contract + month)."""
    return f"{row.contract_number}::{row.month}"
