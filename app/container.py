"""Dependency injection container.

Holds the collaborators the sync routes need besides the request session:
the invoice aggregator for the configured buffer shape and the Sage
refresher.

Usage:
    from app.container import container

    # In route dependencies (see app.api.deps)
    aggregator = container.invoice_aggregator()

    # In tests
    with container.buffer_refresher.override(BufferRefresher("SELECT 1")):
        response = client.post("/sync/refresh-from-sage")
"""

from __future__ import annotations

from dependency_injector import containers, providers  # type: ignore[import-not-found]

from app.config import settings
from app.services.buffer_sync.invoices import (
    NormalizedInvoiceAggregator,
    RowPerDueDateAggregator,
)
from app.services.buffer_sync.refresh import BufferRefresher


class Container(containers.DeclarativeContainer):
    """Application dependency injection container.

    Provides:
    - Configuration (invoice schema, refresh procedure)
    - The invoice aggregator selected by INVOICE_SCHEMA
    - The buffer refresher
    """

    config = providers.Configuration()

    # Exactly one buffer shape is served; the two are never merged.
    invoice_aggregator = providers.Selector(
        config.invoice_schema,
        row_per_due_date=providers.Singleton(RowPerDueDateAggregator),
        normalized=providers.Singleton(NormalizedInvoiceAggregator),
    )

    buffer_refresher = providers.Factory(
        BufferRefresher,
        procedure=config.refresh_procedure,
        invoice_schema=config.invoice_schema,
    )


def configure_container(container: Container) -> Container:
    container.config.from_dict(
        {
            "invoice_schema": settings.invoice_schema,
            "refresh_procedure": settings.refresh_procedure,
        }
    )
    return container


# Global container instance
container = configure_container(Container())

