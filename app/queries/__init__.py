"""Query builders for the buffer tables.

Usage:
    from app.queries import CustomerQuery

    customers = CustomerQuery(db).pending_only().oldest_first().limit(50).all()
"""

from app.queries.base import BaseQuery
from app.queries.buffer import CustomerQuery, DueDateQuery, InvoiceQuery, InvoiceRowQuery

__all__ = [
    "BaseQuery",
    "CustomerQuery",
    "DueDateQuery",
    "InvoiceQuery",
    "InvoiceRowQuery",
]
