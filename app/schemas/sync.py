from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ── Export payloads ──────────────────────────────────────────────


class CustomerRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    sage_id: str
    code: str | None = None
    company_name: str | None = None
    contact_name: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    payment_delay: int | None = None
    currency: str | None = None
    credit_limit: Decimal | None = None
    max_days_overdue: int | None = None
    risk_level: str | None = None
    notes: str | None = None
    is_active: bool | None = None


class DueDateEntry(BaseModel):
    sage_id: str
    reference: str | None = None
    due_date: str | None = Field(default=None, description="YYYY-MM-DD")
    amount: Decimal
    type: str | None = None

    @field_validator("due_date", mode="before")
    @classmethod
    def _format_due_date(cls, value):
        if isinstance(value, datetime):
            return value.date().isoformat()
        if isinstance(value, date):
            return value.isoformat()
        return value


class InvoiceTransferUnit(BaseModel):
    """An invoice with all of its still-pending installments."""

    invoice_number: str
    customer_sage_id: str | None = None
    invoice_date: date | None = None
    currency: str | None = None
    total_amount: Decimal
    created_by: str | None = None
    type: str = "invoice"
    due_dates: list[DueDateEntry] = Field(default_factory=list)


class SyncStats(BaseModel):
    total_customers: int = 0
    customers_synced: int = 0
    customers_pending: int = 0
    total_invoices: int = 0
    invoices_synced: int = 0
    invoices_pending: int = 0
    total_echeances: int = 0
    echeances_synced: int = 0
    echeances_pending: int = 0
    pending_amount: Decimal = Decimal("0")


# ── Acknowledgement requests ─────────────────────────────────────


class MarkCustomersSyncedRequest(BaseModel):
    customer_ids: list[str | int] = Field(default_factory=list)


class MarkInvoicesSyncedRequest(BaseModel):
    """Either ``invoice_numbers`` (shared external numbers) or ``invoice_ids``.

    ``invoice_ids`` only applies to the normalized invoice schema.
    """

    invoice_numbers: list[str | int] = Field(default_factory=list)
    invoice_ids: list[str | int] = Field(default_factory=list)


# ── Envelopes ────────────────────────────────────────────────────


class ListEnvelope(BaseModel):
    success: bool = True
    data: list
    count: int


class CustomerListEnvelope(ListEnvelope):
    data: list[CustomerRead]


class InvoiceListEnvelope(ListEnvelope):
    data: list[InvoiceTransferUnit]


class MarkSyncedEnvelope(BaseModel):
    success: bool = True
    message: str
    affected: int
    due_dates_affected: int | None = None


class StatsEnvelope(BaseModel):
    success: bool = True
    message: str | None = None
    stats: SyncStats


class PingEnvelope(BaseModel):
    success: bool = True
    message: str
    timestamp: datetime
