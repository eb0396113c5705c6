"""Prometheus metrics for buffer sync."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

ROWS_MARKED_SYNCED = Counter(
    "buffer_sync_rows_marked_total",
    "Buffer rows flipped from pending to synced",
    ["entity"],  # customers, invoice_rows, invoices, invoice_numbers, due_dates
)

MARK_SYNCED_REQUESTS = Counter(
    "buffer_sync_mark_requests_total",
    "Acknowledgement calls received",
    ["entity", "status"],  # status: success, rejected, error
)

REFRESH_RUNS = Counter(
    "buffer_sync_refresh_runs_total",
    "Buffer refreshes from Sage",
    ["status"],  # status: success, failed
)

REFRESH_DURATION = Histogram(
    "buffer_sync_refresh_seconds",
    "Time spent in the Sage buffer-population procedure",
)
