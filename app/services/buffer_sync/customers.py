from __future__ import annotations

from sqlalchemy.orm import Session

from app.config import settings
from app.models.customer import BufferCustomer
from app.queries.buffer import CustomerQuery
from app.services.buffer_sync.common import read_or_raise, resolve_limit


class BufferCustomers:
    @staticmethod
    def list_pending(db: Session, limit: int | None = None) -> list[BufferCustomer]:
        """Oldest pending customers first; read only."""
        limit = resolve_limit(limit, settings.default_customer_limit)
        return read_or_raise(
            "customers",
            lambda: CustomerQuery(db).pending_only().oldest_first().limit(limit).all(),
        )


buffer_customers = BufferCustomers()
