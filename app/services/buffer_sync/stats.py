"""Sync statistics computed from the current buffer state.

Every figure is re-queried on each call; nothing is cached between requests.
Invoice counts are by distinct invoice number. An invoice counts as pending
while any of its installments is pending, and as synced once none is, so
``pending + synced == total`` holds for every family.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import distinct, func, or_, select
from sqlalchemy.orm import Session

from app.config import settings
from app.models.invoice import BufferDueDate, BufferInvoice, BufferInvoiceRow
from app.queries.buffer import CustomerQuery, DueDateQuery, InvoiceQuery, InvoiceRowQuery
from app.schemas.sync import SyncStats
from app.services.buffer_sync.common import read_or_raise
from app.services.buffer_sync.invoices import NORMALIZED


def _count_distinct_numbers(query, column) -> int:
    return query.with_entities(func.count(distinct(column))).scalar() or 0


def _sum(query, column) -> Decimal:
    return query.with_entities(func.coalesce(func.sum(column), 0)).scalar() or Decimal("0")


def _customer_stats(db: Session, stats: SyncStats) -> None:
    stats.total_customers = CustomerQuery(db).count()
    stats.customers_synced = CustomerQuery(db).synced_only().count()
    stats.customers_pending = CustomerQuery(db).pending_only().count()


def _row_invoice_stats(db: Session, stats: SyncStats) -> None:
    numbered = InvoiceRowQuery(db).numbered()
    stats.total_invoices = _count_distinct_numbers(numbered.query(), BufferInvoiceRow.invoice_number)
    stats.invoices_pending = _count_distinct_numbers(
        numbered.pending_only().query(), BufferInvoiceRow.invoice_number
    )
    stats.invoices_synced = stats.total_invoices - stats.invoices_pending

    stats.total_echeances = InvoiceRowQuery(db).count()
    stats.echeances_synced = InvoiceRowQuery(db).synced_only().count()
    stats.echeances_pending = InvoiceRowQuery(db).pending_only().count()
    stats.pending_amount = _sum(InvoiceRowQuery(db).pending_only().query(), BufferInvoiceRow.total_amount)


def _normalized_invoice_stats(db: Session, stats: SyncStats) -> None:
    numbered = InvoiceQuery(db).numbered()
    stats.total_invoices = _count_distinct_numbers(numbered.query(), BufferInvoice.invoice_number)

    pending_due_invoice_ids = select(BufferDueDate.invoice_id).where(BufferDueDate.pending_clause())
    pending_numbers = numbered.query().filter(
        or_(BufferInvoice.pending_clause(), BufferInvoice.id.in_(pending_due_invoice_ids))
    )
    stats.invoices_pending = _count_distinct_numbers(pending_numbers, BufferInvoice.invoice_number)
    stats.invoices_synced = stats.total_invoices - stats.invoices_pending

    stats.total_echeances = DueDateQuery(db).count()
    stats.echeances_synced = DueDateQuery(db).synced_only().count()
    stats.echeances_pending = DueDateQuery(db).pending_only().count()
    stats.pending_amount = _sum(DueDateQuery(db).pending_only().query(), BufferDueDate.amount)


def compute_stats(db: Session, invoice_schema: str | None = None) -> SyncStats:
    """Counts of total/synced/pending customers, invoices and installments.

    Args:
        db: Session used read-only
        invoice_schema: Buffer shape to count invoices from; defaults to INVOICE_SCHEMA
    """
    schema = invoice_schema or settings.invoice_schema

    def _compute() -> SyncStats:
        stats = SyncStats()
        _customer_stats(db, stats)
        if schema == NORMALIZED:
            _normalized_invoice_stats(db, stats)
        else:
            _row_invoice_stats(db, stats)
        return stats

    return read_or_raise("sync statistics", _compute)

