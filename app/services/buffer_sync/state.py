"""Sync state transitions for the buffer tables.

A row is pending while ``synced`` is 0 or NULL. Acknowledging a row sets
``synced = 1`` and stamps ``sync_date``; a repeated or overlapping
acknowledgement re-stamps ``sync_date`` without counting the row again. Rows are never flipped back
by this service (the Sage refresh procedure owns re-population).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.errors import StoreUnavailable, ValidationError
from app.logging import get_logger
from app.models.customer import BufferCustomer
from app.models.invoice import BufferDueDate, BufferInvoice, BufferInvoiceRow
from app.models.sync_state import SyncEntity, utcnow
from app.services.buffer_sync.observability import MARK_SYNCED_REQUESTS, ROWS_MARKED_SYNCED
from app.telemetry import get_tracer

logger = get_logger(__name__)
tracer = get_tracer(__name__)

# Keeps each IN (...) under SQL Server's 2100 bound-parameter ceiling.
_IN_CHUNK_SIZE = 1000

_EMPTY_MESSAGES = {
    SyncEntity.customers: "No customer id provided",
    SyncEntity.invoice_rows: "No invoice number provided",
    SyncEntity.invoices: "No invoice id provided",
    SyncEntity.invoice_numbers: "No invoice number provided",
}


@dataclass
class MarkSyncedResult:
    """Outcome of one acknowledgement call."""

    entity: SyncEntity
    requested: int
    affected: int = 0
    due_dates_affected: int = 0

    @property
    def total_affected(self) -> int:
        return self.affected + self.due_dates_affected


def _chunks(values: list, size: int = _IN_CHUNK_SIZE):
    for start in range(0, len(values), size):
        yield values[start : start + size]


def clean_keys(ids) -> list[str]:
    """Keys as stripped strings, with None and blank entries dropped."""
    keys = []
    for value in ids or []:
        text = str(value).strip() if value is not None else ""
        if text:
            keys.append(text)
    return keys


def _stamp_synced(db: Session, model, key_column, keys: list, now: datetime) -> int:
    """Stamp rows whose key is in ``keys`` as synced at ``now``.

    Returns how many of them were still pending. Rows already synced keep their
    flag but take the newer ``sync_date``, so the last acknowledgement wins.
    """
    affected = 0
    for chunk in _chunks(keys):
        matching = db.query(model).filter(key_column.in_(chunk))
        affected += matching.filter(model.pending_clause()).update(
            {"synced": True, "sync_date": now}, synchronize_session=False
        )
        matching.filter(model.synced_clause()).update({"sync_date": now}, synchronize_session=False)
    return affected


def _invoice_ids(values: list[str]) -> list[int]:
    try:
        return [int(value) for value in values]
    except ValueError as exc:
        raise ValidationError("Invoice ids must be integers", str(exc)) from exc


class SyncStateTracker:
    @staticmethod
    def mark_synced(db: Session, entity: SyncEntity | str, ids: list) -> MarkSyncedResult:
        """Flip the given rows to synced in one transaction.

        Args:
            db: Session; committed on success, rolled back on failure
            entity: Which buffer table the ids address
            ids: Non-empty list of keys; duplicates and unknown keys are fine

        Returns:
            MarkSyncedResult with the number of rows that were still pending

        Raises:
            ValidationError: ids is empty after dropping blanks
            StoreUnavailable: the update failed; nothing was changed
        """
        entity = SyncEntity(entity)
        keys = clean_keys(ids)
        if not keys:
            MARK_SYNCED_REQUESTS.labels(entity=entity.value, status="rejected").inc()
            raise ValidationError(_EMPTY_MESSAGES[entity])

        result = MarkSyncedResult(entity=entity, requested=len(keys))
        now = utcnow()

        with tracer.start_as_current_span("buffer_sync.mark_synced") as span:
            span.set_attribute("sync.entity", entity.value)
            span.set_attribute("sync.requested", len(keys))
            try:
                if entity is SyncEntity.customers:
                    result.affected = _stamp_synced(db, BufferCustomer, BufferCustomer.sage_id, keys, now)
                elif entity is SyncEntity.invoice_rows:
                    result.affected = _stamp_synced(
                        db, BufferInvoiceRow, BufferInvoiceRow.invoice_number, keys, now
                    )
                elif entity is SyncEntity.invoices:
                    SyncStateTracker._mark_invoices(db, BufferInvoice.id, _invoice_ids(keys), now, result)
                else:
                    SyncStateTracker._mark_invoices(db, BufferInvoice.invoice_number, keys, now, result)
                db.commit()
            except SQLAlchemyError as exc:
                db.rollback()
                MARK_SYNCED_REQUESTS.labels(entity=entity.value, status="error").inc()
                logger.error("Failed to mark %s synced: %s", entity.value, exc)
                raise StoreUnavailable(f"Failed to mark {entity.value} as synced", str(exc)) from exc
            span.set_attribute("sync.affected", result.total_affected)

        MARK_SYNCED_REQUESTS.labels(entity=entity.value, status="success").inc()
        ROWS_MARKED_SYNCED.labels(entity=entity.value).inc(result.affected)
        if result.due_dates_affected:
            ROWS_MARKED_SYNCED.labels(entity="due_dates").inc(result.due_dates_affected)
        logger.info(
            "Marked %s synced",
            entity.value,
            extra={
                "entity": entity.value,
                "requested": result.requested,
                "affected": result.affected,
                "due_dates_affected": result.due_dates_affected,
            },
        )
        return result

    @staticmethod
    def _mark_invoices(db: Session, key_column, keys: list, now: datetime, result: MarkSyncedResult) -> None:
        """Normalized shape: invoice headers and every due-date they own.

        Runs inside the caller's transaction so headers and due-dates commit
        or roll back together.
        """
        invoice_ids: list[int] = []
        for chunk in _chunks(keys):
            invoice_ids.extend(row[0] for row in db.query(BufferInvoice.id).filter(key_column.in_(chunk)))
        if not invoice_ids:
            return
        result.affected = _stamp_synced(db, BufferInvoice, BufferInvoice.id, invoice_ids, now)
        result.due_dates_affected = _stamp_synced(db, BufferDueDate, BufferDueDate.invoice_id, invoice_ids, now)


sync_state = SyncStateTracker()
