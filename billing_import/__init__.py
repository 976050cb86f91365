"""Telecom billing import: decode carrier billing files, reconcile them
against master data and apply the result as one write batch.
"""

from .services.pipeline import BillingImportService

__version__ = "0.1.0"

__all__ = [
    "BillingImportService",
    "__version__",
]
