"""Sage buffer sync: pending-record export and acknowledgement tracking."""

from app.services.buffer_sync.customers import BufferCustomers, buffer_customers
from app.services.buffer_sync.invoices import (
    NORMALIZED,
    ROW_PER_DUE_DATE,
    InvoiceAggregator,
    NormalizedInvoiceAggregator,
    RowPerDueDateAggregator,
)
from app.services.buffer_sync.refresh import BufferRefresher
from app.services.buffer_sync.state import MarkSyncedResult, SyncStateTracker, sync_state
from app.services.buffer_sync.stats import compute_stats

__all__ = [
    "BufferCustomers",
    "buffer_customers",
    "NORMALIZED",
    "ROW_PER_DUE_DATE",
    "InvoiceAggregator",
    "NormalizedInvoiceAggregator",
    "RowPerDueDateAggregator",
    "BufferRefresher",
    "MarkSyncedResult",
    "SyncStateTracker",
    "sync_state",
    "compute_stats",
]
