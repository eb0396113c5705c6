from __future__ import annotations

from collections.abc import Callable
from typing import TypeVar

from sqlalchemy.exc import SQLAlchemyError

from app.config import settings
from app.errors import StoreUnavailable, ValidationError
from app.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def resolve_limit(limit: int | None, default: int) -> int:
    """Apply the default when unset and cap at the configured maximum."""
    if limit is None:
        return default
    if limit < 1:
        raise ValidationError("limit must be a positive integer")
    return min(limit, settings.max_limit)


def read_or_raise(description: str, reader: Callable[[], T]) -> T:
    """Run a read against the buffer store, mapping driver errors to StoreUnavailable."""
    try:
        return reader()
    except SQLAlchemyError as exc:
        logger.error("Failed to read %s: %s", description, exc)
        raise StoreUnavailable(f"Failed to read {description}", str(exc)) from exc
