from app.db import get_db
from app.services.buffer_sync.invoices import InvoiceAggregator
from app.services.buffer_sync.refresh import BufferRefresher

__all__ = ["get_db", "get_invoice_aggregator", "get_buffer_refresher"]


# -------------------------------------------------------------------------
# Container-based Dependencies
# -------------------------------------------------------------------------
# These provide services from the DI container for use in route handlers.
# They can be easily mocked in tests by overriding the container providers.


def get_invoice_aggregator() -> InvoiceAggregator:
    """Get the invoice aggregator for the configured buffer schema."""
    from app.container import container
    return container.invoice_aggregator()


def get_buffer_refresher() -> BufferRefresher:
    """Get the Sage buffer refresher from the container."""
    from app.container import container
    return container.buffer_refresher()
