from __future__ import annotations

from ..models.sync_models import SyncResult, SyncStats

"""SUMMARY line rendering for a sync run.

Format:
SUMMARY table={table} sheet={sheet} status={completed|failed} processed={n}
inserted={n} updated={n} errors={n} elapsed_sec={s} throughput_rps={r}
"""


def _fmt_number(value: float) -> str:
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        # 지수 표기 회피
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return f"{value:.2f}".rstrip("0").rstrip(".")


def render_summary_line(
    table: str,
    sheet: str,
    result: SyncResult,
    stats: SyncStats,
    elapsed_seconds: float,
) -> str:
    """Render the one-line run summary.

    Counts come from the result details when the server sent them, otherwise
    from the last progress event.

    >>> from sheet_sync.models import SyncResult, SyncStats
    >>> r = SyncResult(True, "ok", {"inserted": 7, "updated": 3, "errors": 0})
    >>> render_summary_line("reservations", "S_Reservation", r, SyncStats(10, 7, 3, 0), 2.0)
    'SUMMARY table=reservations sheet=S_Reservation status=completed processed=10 inserted=7 updated=3 errors=0 elapsed_sec=2 throughput_rps=5'
    """
    details = result.details or {}
    inserted = int(details.get("inserted", stats.inserted) or 0)
    updated = int(details.get("updated", stats.updated) or 0)
    errors = int(details.get("errors", stats.errors) or 0)
    processed = max(stats.processed, inserted + updated + errors)
    throughput = (inserted + updated) / elapsed_seconds if elapsed_seconds > 0 else 0.0
    status = "completed" if result.success else "failed"
    return (
        f"SUMMARY table={table} "
        f"sheet={sheet} "
        f"status={status} "
        f"processed={processed} "
        f"inserted={inserted} "
        f"updated={updated} "
        f"errors={errors} "
        f"elapsed_sec={_fmt_number(elapsed_seconds)} "
        f"throughput_rps={_fmt_number(throughput)}"
    )
