from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Date, DateTime, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.db import Base
from app.models.sync_state import SyncStateMixin, utcnow


class BufferInvoiceRow(SyncStateMixin, Base):
    """One installment of a Sage invoice (row-per-due-date shape).

    Rows sharing ``invoice_number`` (DO_Ref) form one invoice; ``sage_id`` is the
    installment's own piece number (DO_Piece) and ``invoice_date`` its due date.
    """

    __tablename__ = "anonymes_invoices"
    __table_args__ = (
        Index("ix_anonymes_invoices_number_customer", "invoice_number", "customer_sage_id"),
    )

    sage_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    reference: Mapped[str | None] = mapped_column(String(64))
    invoice_number: Mapped[str | None] = mapped_column(String(64), index=True)
    customer_sage_id: Mapped[str | None] = mapped_column(String(64))
    invoice_date: Mapped[date | None] = mapped_column(Date)
    currency: Mapped[str | None] = mapped_column(String(3))
    total_amount: Mapped[Decimal | None] = mapped_column(Numeric(18, 2))
    type: Mapped[str | None] = mapped_column(String(40))
    created_by: Mapped[str | None] = mapped_column(String(120))
    notes: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class BufferInvoice(SyncStateMixin, Base):
    """Invoice header of the normalized shape; installments live in BufferDueDate."""

    __tablename__ = "buffer_invoices"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    invoice_number: Mapped[str | None] = mapped_column(String(64), index=True)
    customer_sage_id: Mapped[str | None] = mapped_column(String(64))
    invoice_date: Mapped[date | None] = mapped_column(Date)
    currency: Mapped[str | None] = mapped_column(String(3))
    total_amount: Mapped[Decimal | None] = mapped_column(Numeric(18, 2))
    reference: Mapped[str | None] = mapped_column(String(64))
    created_by: Mapped[str | None] = mapped_column(String(120))
    notes: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class BufferDueDate(SyncStateMixin, Base):
    __tablename__ = "buffer_due_dates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    invoice_id: Mapped[int] = mapped_column(ForeignKey("buffer_invoices.id"), nullable=False, index=True)
    due_date: Mapped[date | None] = mapped_column(Date)
    amount: Mapped[Decimal | None] = mapped_column(Numeric(18, 2))
    type: Mapped[str | None] = mapped_column(String(40))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
