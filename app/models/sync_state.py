import enum
from datetime import UTC, datetime

from sqlalchemy import Boolean, DateTime, false, or_, true
from sqlalchemy.orm import Mapped, mapped_column


class SyncEntity(enum.Enum):
    customers = "customers"
    # anonymes_invoices rows, addressed by shared invoice_number
    invoice_rows = "invoice_rows"
    # buffer_invoices addressed by id, cascading to buffer_due_dates
    invoices = "invoices"
    # buffer_invoices addressed by invoice_number, cascading to buffer_due_dates
    invoice_numbers = "invoice_numbers"


class SyncStateMixin:
    """Sync flag shared by every buffer table.

    ``synced`` is 0 or NULL while a row is pending and 1 once the consumer has
    acknowledged it, at which point ``sync_date`` is set.
    """

    synced: Mapped[bool | None] = mapped_column(Boolean, default=False, index=True)
    sync_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    @classmethod
    def pending_clause(cls):
        return or_(cls.synced == false(), cls.synced.is_(None))

    @classmethod
    def synced_clause(cls):
        return cls.synced == true()


def utcnow() -> datetime:
    return datetime.now(UTC)
