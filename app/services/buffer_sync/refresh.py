"""Refresh the buffer tables from Sage, then report statistics."""

from __future__ import annotations

import time

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.errors import UpstreamRefreshFailure
from app.logging import get_logger
from app.schemas.sync import SyncStats
from app.services.buffer_sync.observability import REFRESH_DURATION, REFRESH_RUNS
from app.services.buffer_sync.stats import compute_stats
from app.telemetry import get_tracer

logger = get_logger(__name__)
tracer = get_tracer(__name__)


class BufferRefresher:
    """
    Runs the Sage buffer-population procedure as one blocking call.

    The procedure itself belongs to the ERP integration; this service only
    requires that it succeeds or fails as a whole. Its statement runs in the
    request session's transaction, which is rolled back on failure so the
    existing buffer rows stay as they were.
    """

    def __init__(self, procedure: str, invoice_schema: str | None = None):
        self.procedure = procedure
        self.invoice_schema = invoice_schema

    def refresh(self, db: Session) -> SyncStats:
        started = time.monotonic()
        with tracer.start_as_current_span("buffer_sync.refresh") as span:
            span.set_attribute("sync.procedure", self.procedure)
            try:
                db.execute(text(self.procedure))
                db.commit()
            except SQLAlchemyError as exc:
                db.rollback()
                REFRESH_RUNS.labels(status="failed").inc()
                logger.error("Buffer refresh from Sage failed: %s", exc)
                raise UpstreamRefreshFailure("Failed to refresh buffer tables from Sage", str(exc)) from exc
            finally:
                REFRESH_DURATION.observe(time.monotonic() - started)

        REFRESH_RUNS.labels(status="success").inc()
        logger.info(
            "Buffer refreshed from Sage",
            extra={"duration_seconds": round(time.monotonic() - started, 3)},
        )
        return compute_stats(db, self.invoice_schema)
