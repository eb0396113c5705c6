"""Query builders for the Sage buffer tables."""

from __future__ import annotations

from typing import ClassVar

from sqlalchemy import exists, func

from app.models.customer import BufferCustomer
from app.models.invoice import BufferDueDate, BufferInvoice, BufferInvoiceRow
from app.queries.base import BaseQuery


def _has_number(column):
    return column.isnot(None) & (func.trim(column) != "")


class CustomerQuery(BaseQuery[BufferCustomer]):
    model_class = BufferCustomer
    key_field = "sage_id"
    ordering_fields: ClassVar[dict] = {"created_at": BufferCustomer.created_at}


class InvoiceRowQuery(BaseQuery[BufferInvoiceRow]):
    model_class = BufferInvoiceRow
    key_field = "sage_id"
    ordering_fields: ClassVar[dict] = {"created_at": BufferInvoiceRow.created_at}

    def numbered(self) -> InvoiceRowQuery:
        """Rows whose invoice_number is assigned (not NULL, not blank)."""
        clone = self._clone()
        clone._query = clone._query.filter(_has_number(BufferInvoiceRow.invoice_number))
        return clone

    def by_invoice_numbers(self, numbers: list[str]) -> InvoiceRowQuery:
        clone = self._clone()
        clone._query = clone._query.filter(BufferInvoiceRow.invoice_number.in_(numbers))
        return clone


class InvoiceQuery(BaseQuery[BufferInvoice]):
    model_class = BufferInvoice
    key_field = "id"
    ordering_fields: ClassVar[dict] = {"created_at": BufferInvoice.created_at}

    def numbered(self) -> InvoiceQuery:
        clone = self._clone()
        clone._query = clone._query.filter(_has_number(BufferInvoice.invoice_number))
        return clone

    def with_pending_due_dates(self) -> InvoiceQuery:
        """Invoices that still own at least one pending installment."""
        clone = self._clone()
        pending_exists = (
            exists()
            .where(BufferDueDate.invoice_id == BufferInvoice.id)
            .where(BufferDueDate.pending_clause())
        )
        clone._query = clone._query.filter(pending_exists)
        return clone


class DueDateQuery(BaseQuery[BufferDueDate]):
    model_class = BufferDueDate
    key_field = "id"
    ordering_fields: ClassVar[dict] = {"created_at": BufferDueDate.created_at}

    def for_invoices(self, invoice_ids: list[int]) -> DueDateQuery:
        clone = self._clone()
        clone._query = clone._query.filter(BufferDueDate.invoice_id.in_(invoice_ids))
        return clone
