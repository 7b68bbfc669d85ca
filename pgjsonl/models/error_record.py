from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for the JSON Lines error log.

One record per failed table (line=-1) or per offending input line. The key
set is fixed by pgjsonl/logging/error_log_schema.json; no extra keys.
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        file: JSONL file name being imported
        table: Target table name
        line: 1-based line number in the file, -1 when the error is table-level
        error_type: Error classification in UPPER_SNAKE_CASE format
        message: Database or decoder error message
    """
    timestamp: str
    file: str
    table: str
    line: int
    error_type: str
    message: str

    @staticmethod
    def create(file: str, table: str, line: int, error_type: str, message: str) -> ErrorRecord:
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            file=file,
            table=table,
            line=line,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)
