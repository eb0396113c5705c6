"""Base query builder class.

Provides the sync-state filters every buffer table shares.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, ClassVar, Generic, Self, TypeVar

from sqlalchemy import asc, desc
from sqlalchemy.orm import Query

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

T = TypeVar("T")


class BaseQuery(Generic[T]):
    """Base class for composable buffer query builders.

    Provides fluent interface for building SQLAlchemy queries with:
    - Sync-state filters (pending / synced)
    - Stable export ordering
    - Limits
    - Count operations

    Subclasses should:
    1. Set `model_class` to a SQLAlchemy model using SyncStateMixin
    2. Set `key_field` to the name of the column used as ordering tie-breaker
    3. Define `ordering_fields` mapping column names to model attributes
    """

    model_class: type[T]
    key_field: ClassVar[str | None] = None
    ordering_fields: ClassVar[dict[str, Any]] = {}

    def __init__(self, db: Session):
        self.db = db
        self._query: Query = db.query(self.model_class)

    def _clone(self) -> Self:
        """Create a copy of this query builder with current state."""
        new = self.__class__.__new__(self.__class__)
        new.db = self.db
        new._query = self._query
        return new

    # -------------------------------------------------------------------------
    # Sync-state filters
    # -------------------------------------------------------------------------

    def pending_only(self) -> Self:
        """Rows not yet acknowledged by the consumer (synced 0 or NULL)."""
        clone = self._clone()
        clone._query = clone._query.filter(self.model_class.pending_clause())
        return clone

    def synced_only(self) -> Self:
        clone = self._clone()
        clone._query = clone._query.filter(self.model_class.synced_clause())
        return clone

    # -------------------------------------------------------------------------
    # Ordering
    # -------------------------------------------------------------------------

    def order_by(self, field: str, direction: str = "asc") -> Self:
        """Apply ordering to the query.

        Args:
            field: Field name (must be in ordering_fields)
            direction: 'asc' or 'desc'
        """
        clone = self._clone()
        column = self.ordering_fields.get(field)
        if column is not None:
            if direction.lower() == "desc":
                clone._query = clone._query.order_by(desc(column))
            else:
                clone._query = clone._query.order_by(asc(column))
        return clone

    def oldest_first(self) -> Self:
        """Export order: creation time ascending, ties broken by key."""
        clone = self.order_by("created_at", "asc")
        if self.key_field is not None:
            clone._query = clone._query.order_by(asc(getattr(self.model_class, self.key_field)))
        return clone

    # -------------------------------------------------------------------------
    # Pagination
    # -------------------------------------------------------------------------

    def limit(self, limit: int) -> Self:
        clone = self._clone()
        if limit > 0:
            clone._query = clone._query.limit(limit)
        return clone

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    def all(self) -> list[T]:
        """Execute query and return all results."""
        return self._query.all()

    def count(self) -> int:
        """Return count of matching records."""
        return self._query.count()

    def query(self) -> Query:
        """Return the underlying SQLAlchemy Query object."""
        return self._query
