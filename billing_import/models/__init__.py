"""Domain models for the telecom billing import core.

Rows, master data snapshots, user resolutions, and the preview/apply results
exchanged with the platform collaborator.
"""

from .apply_result import AppliedSummary, ApplyResult, ApplyStatus, CompanyConflict, CompanySuggestion
from .config_models import DatabaseConfig, ImportConfig
from .import_row import ImportRow, vat_group_key
from .master_data import Company, Contract, MasterDataSnapshot, Operator, SimCard, Tariff
from .preview_result import (
    MissingContract,
    MissingSimCard,
    MissingTariff,
    PreviewResult,
    PreviewRow,
    PreviewTotals,
)
from .resolutions import (
    ApplyRequest,
    ContractResolution,
    CreateCompany,
    CreateOperator,
    ExistingCompany,
    ExistingOperator,
    SimCardAction,
    TariffOverride,
)
from .write_batch import NewRecordRef, PendingCreate, PendingUpdate, WriteBatch

__all__ = [
    # Configuration models
    "DatabaseConfig",
    "ImportConfig",
    # Rows
    "ImportRow",
    "vat_group_key",
    # Master data
    "Company",
    "Contract",
    "MasterDataSnapshot",
    "Operator",
    "SimCard",
    "Tariff",
    # Resolutions
    "ApplyRequest",
    "ContractResolution",
    "CreateCompany",
    "CreateOperator",
    "ExistingCompany",
    "ExistingOperator",
    "SimCardAction",
    "TariffOverride",
    # Results
    "AppliedSummary",
    "ApplyResult",
    "ApplyStatus",
    "CompanyConflict",
    "CompanySuggestion",
    "MissingContract",
    "MissingSimCard",
    "MissingTariff",
    "PreviewResult",
    "PreviewRow",
    "PreviewTotals",
    # Writes
    "NewRecordRef",
    "PendingCreate",
    "PendingUpdate",
    "WriteBatch",
]
