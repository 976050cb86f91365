from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for the JSON Lines error log.

Supports row=-1 as a sentinel for file-level errors (decode failures, write
batch failures) where no single import row is to blame.
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        file: billing file id or path being processed
        stage: pipeline stage (decode, preview, apply)
        row: 1-based import row index, -1 for file-level errors
        error_type: error classification in UPPER_SNAKE_CASE
        message: exception text or description
    """
    timestamp: str
    file: str
    stage: str
    row: int
    error_type: str
    message: str

    @staticmethod
    def create(file: str, stage: str, row: int, error_type: str, message: str) -> ErrorRecord:
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            file=file,
            stage=stage,
            row=row,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)
