from __future__ import annotations

import logging
from typing import Any, Protocol

from ..excel.reader import DecodeError
from ..logging.error_log import ErrorLogBuffer
from ..models.apply_result import ApplyResult, ApplyStatus
from ..models.config_models import ImportConfig
from ..models.import_row import ImportRow
from ..models.master_data import MasterDataSnapshot
from ..models.preview_result import PreviewResult
from ..models.resolutions import ApplyRequest, ContractResolution, SimCardAction, TariffOverride
from ..models.write_batch import WriteBatch
from .apply import ApplyPlan, plan_apply
from .reconciliation import MasterDataIndex, reconcile
from .row_parser import parse_file
from .vat_distribution import VatDistributionResult, apply_vat_distribution

"""Import pipeline: preview and apply entry points.

    preview: load file -> parse_file -> apply_vat_distribution
             -> query_master_data -> reconcile
    apply:   load file -> parse_file -> apply_vat_distribution
             -> query_master_data -> plan_apply -> write_batch

Each call builds its own MasterDataIndex from a fresh snapshot; nothing is
cached between calls. Decode and write failures are recorded in the error log
buffer and re-raised.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "FileLoader",
    "MasterDataStore",
    "BillingImportService",
]


class FileLoader(Protocol):
    def load_file(self, file_id: Any) -> bytes: ...


class MasterDataStore(Protocol):
    def query_master_data(self) -> MasterDataSnapshot: ...

    def write_batch(self, batch: WriteBatch) -> dict[str, int]: ...


class BillingImportService:
    def __init__(
        self,
        files: FileLoader,
        store: MasterDataStore,
        config: ImportConfig | None = None,
        error_log: ErrorLogBuffer | None = None,
    ) -> None:
        self.files = files
        self.store = store
        self.config = config or ImportConfig()
        self.error_log = error_log if error_log is not None else ErrorLogBuffer(self.config.logs_directory)

    def parse(self, file_id: Any, stage: str = "decode") -> VatDistributionResult:
        data = self.files.load_file(file_id)
        try:
            rows = parse_file(data, tabular_columns=self.config.tabular_columns)
        except DecodeError as e:
            self.error_log.add(file=str(file_id), stage=stage, error_type="DECODE_ERROR", message=str(e))
            logger.error("decode failed file=%s: %s", file_id, e)
            raise
        logger.debug("parsed file=%s rows=%d", file_id, len(rows))
        return apply_vat_distribution(rows)

    def _index(self) -> MasterDataIndex:
        return MasterDataIndex.build(self.store.query_master_data())

    def preview(self, file_id: Any) -> PreviewResult:
        """Read-only reconciliation report for one billing file."""
        distributed = self.parse(file_id, stage="preview")
        report = reconcile(
            distributed.rows,
            distributed.distributed_groups,
            distributed.vat_mismatches,
            self._index(),
        )
        return PreviewResult(
            file_id=str(file_id),
            rows=report.rows,
            totals=report.totals,
            missing_contracts=report.missing_contracts,
            missing_sim_cards=report.missing_sim_cards,
            missing_tariffs=report.missing_tariffs,
        )

    def apply(
        self,
        file_id: Any,
        contract_resolutions: list[ContractResolution],
        sim_card_actions: list[SimCardAction] | None = None,
        tariff_overrides: list[TariffOverride] | None = None,
        import_id: Any = None,
    ) -> ApplyResult:
        """Create missing master data and one expense per row.

        Blocked applies come back as an ApplyResult with ok=False and nothing
        written. ``import_id`` marks that billing_imports record as applied in
        the same batch.
        """
        rows: list[ImportRow] = self.parse(file_id, stage="apply").rows
        request = ApplyRequest(
            contract_resolutions=list(contract_resolutions),
            sim_card_actions=sim_card_actions,
            tariff_overrides=tariff_overrides,
        )
        planned = plan_apply(rows, self._index(), request, import_id=import_id)
        if not isinstance(planned, ApplyPlan):
            return planned

        try:
            counts = self.store.write_batch(planned.batch)
        except Exception as e:
            self.error_log.add(file=str(file_id), stage="apply", error_type="WRITE_BATCH_ERROR", message=str(e))
            logger.error("apply write failed file=%s: %s", file_id, e)
            raise
        logger.debug("apply written file=%s counts=%s", file_id, counts)
        return ApplyResult(ok=True, status=ApplyStatus.APPLIED, applied_summary=planned.summary)
