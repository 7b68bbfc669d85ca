from __future__ import annotations

from ..models.processing_result import ExportReport, ImportReport

"""Summary line rendering.

Import format:
SUMMARY tables={processed} success={ok} failed={failed} skipped={skipped}
rows={rows} elapsed_sec={elapsed} throughput_rps={throughput}

Export format:
SUMMARY tables={n} success={ok} failed={failed} rows={rows} elapsed_sec={elapsed}
"""


def _format_number(value: float) -> str:
    """Render 2.0 as '2', tiny values without scientific notation."""
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        return f"{value:.6f}".rstrip('0').rstrip('.')
    return f"{value:.3f}".rstrip('0').rstrip('.')


def render_summary_line(report: ImportReport) -> str:
    """Render the import SUMMARY line.

    Examples:
        >>> from datetime import datetime, timezone
        >>> from pgjsonl.models.processing_result import TableResult
        >>> t = datetime(2024, 1, 1, tzinfo=timezone.utc)
        >>> report = ImportReport(
        ...     results=[TableResult("users", 2, 2, True)],
        ...     start_time=t, end_time=t, elapsed_seconds=2.0,
        ... )
        >>> render_summary_line(report)
        'SUMMARY tables=1 success=1 failed=0 skipped=0 rows=2 elapsed_sec=2 throughput_rps=1'
    """
    return (
        f"SUMMARY tables={len(report.results)} "
        f"success={len(report.succeeded_results)} "
        f"failed={len(report.failed_results)} "
        f"skipped={len(report.skipped_tables)} "
        f"rows={report.total_rows_loaded} "
        f"elapsed_sec={_format_number(report.elapsed_seconds)} "
        f"throughput_rps={_format_number(report.throughput_rows_per_sec)}"
    )


def render_failure_lines(report: ImportReport) -> list[str]:
    """One line per failed table, usable to re-run just those files."""
    return [
        f"table={r.table} type={r.error_type} attempted={r.rows_attempted} error={r.error}"
        for r in report.failed_results
    ]


def render_export_summary_line(report: ExportReport) -> str:
    ok = len(report.results) - len(report.failed_results)
    return (
        f"SUMMARY tables={len(report.results)} "
        f"success={ok} "
        f"failed={len(report.failed_results)} "
        f"rows={report.total_rows_exported} "
        f"elapsed_sec={_format_number(report.elapsed_seconds)}"
    )
