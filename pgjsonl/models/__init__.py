"""Domain models for the PostgreSQL <-> JSONL tool.

Configuration values, import targets, decoded rows and the per-table /
aggregate results returned by the import and export services.
"""

from .config_models import ConnectionParams, ExportRequest, ImportOptions, ImportRequest
from .decoded_row import DecodedRow, JsonKind, kind_of
from .processing_result import ExportReport, ExportResult, ImportReport, TableResult
from .table_target import ColumnSpec, TableTarget

__all__ = [
    # Configuration models
    "ConnectionParams",
    "ImportOptions",
    "ImportRequest",
    "ExportRequest",
    # Processing models
    "ColumnSpec",
    "DecodedRow",
    "JsonKind",
    "TableTarget",
    "kind_of",
    # Results
    "ExportReport",
    "ExportResult",
    "ImportReport",
    "TableResult",
]
