"""Invoice aggregation: pending installments grouped into transfer units.

Two buffer shapes are supported and exactly one is active, chosen by
``INVOICE_SCHEMA``:

* ``row_per_due_date``: ``anonymes_invoices`` carries one row per installment;
  rows sharing an invoice number (and customer, currency) make one invoice.
* ``normalized``: ``buffer_invoices`` headers own ``buffer_due_dates`` rows.

Both produce the same ``InvoiceTransferUnit`` payload.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import ClassVar

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.config import settings
from app.errors import ValidationError
from app.logging import get_logger
from app.models.invoice import BufferDueDate, BufferInvoice, BufferInvoiceRow
from app.models.sync_state import SyncEntity
from app.queries.buffer import DueDateQuery, InvoiceQuery, InvoiceRowQuery
from app.schemas.sync import DueDateEntry, InvoiceTransferUnit
from app.services.buffer_sync.common import read_or_raise, resolve_limit
from app.services.buffer_sync.state import MarkSyncedResult, clean_keys, sync_state

logger = get_logger(__name__)

ROW_PER_DUE_DATE = "row_per_due_date"
NORMALIZED = "normalized"


def _due_date_sort_key(due_date: date | None, key) -> tuple:
    return (due_date is None, due_date or date.min, key)


def _amount(value: Decimal | None) -> Decimal:
    return value if value is not None else Decimal("0")


class InvoiceAggregator:
    """Common surface of both buffer shapes."""

    schema: ClassVar[str]
    number_entity: ClassVar[SyncEntity]
    id_entity: ClassVar[SyncEntity | None] = None

    def list_pending(self, db: Session, limit: int | None = None) -> list[InvoiceTransferUnit]:
        limit = resolve_limit(limit, settings.default_invoice_limit)
        units = read_or_raise("invoices", lambda: self._list_pending(db, limit))
        logger.debug("Listed %d pending invoices (schema=%s, limit=%d)", len(units), self.schema, limit)
        return units

    def _list_pending(self, db: Session, limit: int) -> list[InvoiceTransferUnit]:
        raise NotImplementedError

    def mark_synced(
        self,
        db: Session,
        invoice_numbers: list | None = None,
        invoice_ids: list | None = None,
    ) -> MarkSyncedResult:
        """Acknowledge invoices by shared number, or by id where the shape has ids."""
        invoice_numbers = clean_keys(invoice_numbers)
        invoice_ids = clean_keys(invoice_ids)
        if invoice_numbers:
            return sync_state.mark_synced(db, self.number_entity, invoice_numbers)
        if invoice_ids:
            if self.id_entity is None:
                raise ValidationError(
                    "invoice_ids is not supported by the row-per-due-date schema; send invoice_numbers"
                )
            return sync_state.mark_synced(db, self.id_entity, invoice_ids)
        raise ValidationError("No invoice number provided")


class RowPerDueDateAggregator(InvoiceAggregator):
    schema = ROW_PER_DUE_DATE
    number_entity = SyncEntity.invoice_rows

    def _list_pending(self, db: Session, limit: int) -> list[InvoiceTransferUnit]:
        # The limit counts invoice numbers; all groups of a number are delivered together.
        first_created_at = func.min(BufferInvoiceRow.created_at).label("first_created_at")
        numbers = [
            row.invoice_number
            for row in (
                InvoiceRowQuery(db)
                .pending_only()
                .numbered()
                .query()
                .with_entities(BufferInvoiceRow.invoice_number, first_created_at)
                .group_by(BufferInvoiceRow.invoice_number)
                .order_by(first_created_at.asc(), BufferInvoiceRow.invoice_number.asc())
                .limit(limit)
                .all()
            )
        ]
        if not numbers:
            return []

        rank = {number: position for position, number in enumerate(numbers)}
        groups: dict[tuple, list[BufferInvoiceRow]] = {}
        for row in InvoiceRowQuery(db).pending_only().by_invoice_numbers(numbers).all():
            groups.setdefault((row.invoice_number, row.customer_sage_id, row.currency), []).append(row)

        def _group_order(item):
            (number, customer, currency), rows = item
            return (rank[number], min(r.created_at for r in rows), customer or "", currency or "")

        return [self._to_unit(key, rows) for key, rows in sorted(groups.items(), key=_group_order)]

    @staticmethod
    def _to_unit(key: tuple, rows: list[BufferInvoiceRow]) -> InvoiceTransferUnit:
        invoice_number, customer_sage_id, currency = key
        rows = sorted(rows, key=lambda r: _due_date_sort_key(r.invoice_date, r.sage_id))
        dates = [r.invoice_date for r in rows if r.invoice_date is not None]
        creators = [r.created_by for r in rows if r.created_by]
        return InvoiceTransferUnit(
            invoice_number=invoice_number,
            customer_sage_id=customer_sage_id,
            invoice_date=min(dates) if dates else None,
            currency=currency,
            total_amount=sum((_amount(r.total_amount) for r in rows), Decimal("0")),
            created_by=min(creators) if creators else None,
            due_dates=[
                DueDateEntry(
                    sage_id=r.sage_id,
                    reference=r.reference,
                    due_date=r.invoice_date,
                    amount=_amount(r.total_amount),
                    type=r.type,
                )
                for r in rows
            ],
        )


class NormalizedInvoiceAggregator(InvoiceAggregator):
    schema = NORMALIZED
    number_entity = SyncEntity.invoice_numbers
    id_entity = SyncEntity.invoices

    def _list_pending(self, db: Session, limit: int) -> list[InvoiceTransferUnit]:
        invoices = InvoiceQuery(db).numbered().with_pending_due_dates().oldest_first().limit(limit).all()
        if not invoices:
            return []

        due_by_invoice: dict[int, list[BufferDueDate]] = {invoice.id: [] for invoice in invoices}
        for due in DueDateQuery(db).pending_only().for_invoices(list(due_by_invoice)).all():
            due_by_invoice[due.invoice_id].append(due)

        units = []
        for invoice in invoices:
            pending = due_by_invoice[invoice.id]
            if not pending:
                continue
            units.append(self._to_unit(invoice, pending))
        return units

    @staticmethod
    def _to_unit(invoice: BufferInvoice, due_dates: list[BufferDueDate]) -> InvoiceTransferUnit:
        due_dates = sorted(due_dates, key=lambda d: _due_date_sort_key(d.due_date, d.id))
        total = invoice.total_amount
        if total is None:
            total = sum((_amount(d.amount) for d in due_dates), Decimal("0"))
        return InvoiceTransferUnit(
            invoice_number=invoice.invoice_number,
            customer_sage_id=invoice.customer_sage_id,
            invoice_date=invoice.invoice_date,
            currency=invoice.currency,
            total_amount=total,
            created_by=invoice.created_by,
            due_dates=[
                DueDateEntry(
                    sage_id=str(d.id),
                    reference=invoice.reference,
                    due_date=d.due_date,
                    amount=_amount(d.amount),
                    type=d.type,
                )
                for d in due_dates
            ],
        )

