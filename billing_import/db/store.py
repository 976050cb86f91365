from __future__ import annotations

from pathlib import Path

"""Collaborator contracts shared by the store implementations.

A file loader exposes ``load_file(file_id) -> bytes``. A master data store
exposes ``query_master_data() -> MasterDataSnapshot`` and
``write_batch(batch) -> dict[str, int]`` (created rows per table), applying
the whole batch or nothing.
"""

__all__ = [
    "StoreError",
    "ImportNotFoundError",
    "WriteBatchError",
    "DatabaseConnectError",
    "LocalFileLoader",
]


class StoreError(Exception):
    pass


class ImportNotFoundError(StoreError):
    """Raised when a billing file id is unknown to the loader."""


class WriteBatchError(StoreError):
    """Raised when a write batch could not be applied; nothing was kept."""


class DatabaseConnectError(StoreError):
    """Raised when no database connection could be opened."""


class LocalFileLoader:
    """Loads billing files from the local filesystem; file ids are paths."""

    def __init__(self, base_directory: Path | None = None) -> None:
        self.base_directory = base_directory

    def load_file(self, file_id: str) -> bytes:
        path = Path(file_id)
        if self.base_directory is not None and not path.is_absolute():
            path = self.base_directory / path
        if not path.is_file():
            raise ImportNotFoundError(f"file not found: {path}")
        return path.read_bytes()
