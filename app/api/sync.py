from datetime import UTC, datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.api.deps import get_buffer_refresher, get_db, get_invoice_aggregator
from app.errors import StoreUnavailable
from app.models.sync_state import SyncEntity
from app.schemas.sync import (
    CustomerListEnvelope,
    CustomerRead,
    InvoiceListEnvelope,
    MarkCustomersSyncedRequest,
    MarkInvoicesSyncedRequest,
    MarkSyncedEnvelope,
    PingEnvelope,
    StatsEnvelope,
)
from app.services.buffer_sync import buffer_customers, compute_stats, sync_state
from app.services.buffer_sync.invoices import InvoiceAggregator
from app.services.buffer_sync.refresh import BufferRefresher

router = APIRouter(prefix="/sync", tags=["sync"])


@router.get("/ping", response_model=PingEnvelope)
def ping(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        raise StoreUnavailable("Database connection error", str(exc)) from exc
    return PingEnvelope(
        message="Local sync service operational",
        timestamp=datetime.now(UTC),
    )


@router.get("/stats", response_model=StatsEnvelope, response_model_exclude_none=True)
def get_stats(
    db: Session = Depends(get_db),
    aggregator: InvoiceAggregator = Depends(get_invoice_aggregator),
):
    return StatsEnvelope(stats=compute_stats(db, aggregator.schema))


@router.get("/customers", response_model=CustomerListEnvelope)
def list_customers(
    limit: int | None = Query(default=None, ge=1),
    db: Session = Depends(get_db),
):
    customers = buffer_customers.list_pending(db, limit)
    return CustomerListEnvelope(
        data=[CustomerRead.model_validate(customer) for customer in customers],
        count=len(customers),
    )


@router.get("/invoices", response_model=InvoiceListEnvelope)
def list_invoices(
    limit: int | None = Query(default=None, ge=1),
    db: Session = Depends(get_db),
    aggregator: InvoiceAggregator = Depends(get_invoice_aggregator),
):
    invoices = aggregator.list_pending(db, limit)
    return InvoiceListEnvelope(data=invoices, count=len(invoices))


@router.post("/customers/mark-synced", response_model=MarkSyncedEnvelope, response_model_exclude_none=True)
def mark_customers_synced(payload: MarkCustomersSyncedRequest, db: Session = Depends(get_db)):
    result = sync_state.mark_synced(db, SyncEntity.customers, payload.customer_ids)
    return MarkSyncedEnvelope(message="Customers marked as synced", affected=result.affected)


@router.post("/invoices/mark-synced", response_model=MarkSyncedEnvelope, response_model_exclude_none=True)
def mark_invoices_synced(
    payload: MarkInvoicesSyncedRequest,
    db: Session = Depends(get_db),
    aggregator: InvoiceAggregator = Depends(get_invoice_aggregator),
):
    result = aggregator.mark_synced(
        db,
        invoice_numbers=payload.invoice_numbers,
        invoice_ids=payload.invoice_ids,
    )
    return MarkSyncedEnvelope(
        message="Invoices marked as synced",
        affected=result.affected,
        due_dates_affected=result.due_dates_affected if result.entity is not SyncEntity.invoice_rows else None,
    )


@router.post("/refresh-from-sage", response_model=StatsEnvelope)
def refresh_from_sage(
    db: Session = Depends(get_db),
    refresher: BufferRefresher = Depends(get_buffer_refresher),
):
    stats = refresher.refresh(db)
    return StatsEnvelope(message="Buffer tables refreshed from Sage", stats=stats)
