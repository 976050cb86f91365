from __future__ import annotations

import re

from billing_import.models.apply_result import AppliedSummary, ApplyResult, ApplyStatus
from billing_import.models.preview_result import PreviewResult, PreviewTotals
from billing_import.services.summary import render_apply_summary_line, render_preview_summary_line

PREVIEW_LINE_RE = re.compile(
    r"^SUMMARY preview file=\S+ rows=\d+ contracts_missing=\d+ sim_cards_missing=\d+ "
    r"tariffs_missing=\d+ vat_mismatches=\d+ amount=-?\d+\.\d{2} vat=-?\d+\.\d{2} total=-?\d+\.\d{2}$"
)


def test_preview_summary_line_format():
    totals = PreviewTotals(
        rows=3,
        contracts_missing=1,
        sim_cards_missing=2,
        tariffs_missing=0,
        vat_mismatches=1,
        total_amount=1234.5,
        total_vat=246.9,
        total_total=1481.4,
    )
    line = render_preview_summary_line(PreviewResult("bill.xlsx", [], totals, [], [], []))
    assert PREVIEW_LINE_RE.match(line)
    assert "amount=1234.50 vat=246.90 total=1481.40" in line


def test_apply_summary_line_applied():
    result = ApplyResult(
        ok=True,
        status=ApplyStatus.APPLIED,
        applied_summary=AppliedSummary(contracts_created=2, tariffs_created=1, sim_cards_created=3, expenses_created=7),
    )
    assert render_apply_summary_line("bill.xlsx", result) == (
        "SUMMARY apply file=bill.xlsx status=applied contracts=2 tariffs=1 sim_cards=3 expenses=7"
    )


def test_apply_summary_line_blocked():
    result = ApplyResult(ok=False, status=ApplyStatus.MISSING_CONTRACTS, missing_contracts=["A", "B"])
    assert render_apply_summary_line("f", result) == "SUMMARY apply file=f status=missing_contracts missing_contracts=2"
