from __future__ import annotations

from ..models.apply_result import ApplyResult
from ..models.preview_result import PreviewResult

"""SUMMARY line rendering for the CLI.

Formats:
    SUMMARY preview file=<id> rows=<n> contracts_missing=<n> sim_cards_missing=<n>
        tariffs_missing=<n> vat_mismatches=<n> amount=<x> vat=<x> total=<x>
    SUMMARY apply file=<id> status=<status> contracts=<n> tariffs=<n>
        sim_cards=<n> expenses=<n>

Money is printed with two decimals.
"""


def _money(value: float) -> str:
    return f"{value:.2f}"


def render_preview_summary_line(result: PreviewResult) -> str:
    """Render a SUMMARY line for one preview.

    Examples:
        >>> from billing_import.models.preview_result import PreviewTotals
        >>> totals = PreviewTotals(
        ...     rows=2, contracts_missing=1, sim_cards_missing=0, tariffs_missing=0,
        ...     vat_mismatches=0, total_amount=100.0, total_vat=20.0, total_total=120.0,
        ... )
        >>> render_preview_summary_line(PreviewResult("a.xlsx", [], totals, [], [], []))
        'SUMMARY preview file=a.xlsx rows=2 contracts_missing=1 sim_cards_missing=0 tariffs_missing=0 vat_mismatches=0 amount=100.00 vat=20.00 total=120.00'
    """
    t = result.totals
    return (
        f"SUMMARY preview file={result.file_id} "
        f"rows={t.rows} "
        f"contracts_missing={t.contracts_missing} "
        f"sim_cards_missing={t.sim_cards_missing} "
        f"tariffs_missing={t.tariffs_missing} "
        f"vat_mismatches={t.vat_mismatches} "
        f"amount={_money(t.total_amount)} "
        f"vat={_money(t.total_vat)} "
        f"total={_money(t.total_total)}"
    )


def render_apply_summary_line(file_id: str, result: ApplyResult) -> str:
    s = result.applied_summary
    line = f"SUMMARY apply file={file_id} status={result.status.value}"
    if s is None:
        if result.missing_contracts:
            line += f" missing_contracts={len(result.missing_contracts)}"
        if result.company_conflicts:
            line += f" company_conflicts={len(result.company_conflicts)}"
        return line
    return (
        f"{line} "
        f"contracts={s.contracts_created} "
        f"tariffs={s.tariffs_created} "
        f"sim_cards={s.sim_cards_created} "
        f"expenses={s.expenses_created}"
    )
