# Overview: Row store contract consumed by the lifecycle core.

"""
Row Store Client contract

The lifecycle core never touches models or sessions directly. It reads and
writes plain dict rows through this interface, the same capabilities a hosted
Postgres-with-realtime backend offers:

- select: composable eq / in / text-pattern OR / range pagination, multi-column ordering
- update / insert: return the written rows as re-read after commit
- subscribe: row-level INSERT / UPDATE / DELETE notifications per table + filter

Rows are dicts keyed by column name. Backends raise RowStoreError for every
failure (network, rejected write, unknown table/column).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence

EVENT_INSERT = "INSERT"
EVENT_UPDATE = "UPDATE"
EVENT_DELETE = "DELETE"
EVENT_TYPES = (EVENT_INSERT, EVENT_UPDATE, EVENT_DELETE)


class RowStoreError(Exception):
    """Backend read or write failed."""

    def __init__(self, message: str, table: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.table = table


@dataclass
class Filters:
    """
    Query filters, ANDed together.

    eq:        column -> value
    in_:       column -> allowed values
    ilike_any: (columns, term) -> case-insensitive substring match on ANY column
    range:     (start, end) inclusive row offsets, applied after ordering
    """
    eq: dict[str, Any] = field(default_factory=dict)
    in_: dict[str, Sequence[Any]] = field(default_factory=dict)
    ilike_any: Optional[tuple[Sequence[str], str]] = None
    range: Optional[tuple[int, int]] = None


@dataclass(frozen=True)
class OrderBy:
    column: str
    descending: bool = True


@dataclass
class SelectResult:
    rows: list[dict[str, Any]]
    # Exact match count ignoring range; None unless requested
    count: Optional[int] = None


@dataclass(frozen=True)
class ChangeEvent:
    event_type: str
    table: str
    row: dict[str, Any]


ChangeCallback = Callable[[ChangeEvent], None]


class Subscription:
    """Handle for one change-feed subscription."""

    def __init__(self, unsubscribe: Callable[[], None]) -> None:
        self._unsubscribe = unsubscribe
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self.active = False
            self._unsubscribe()


class RowStoreClient(ABC):
    @abstractmethod
    def select(
        self,
        table: str,
        columns: Sequence[str] | None = None,
        filters: Filters | None = None,
        order_by: Sequence[OrderBy] = (),
        count: bool = False,
    ) -> SelectResult:
        ...

    @abstractmethod
    def update(self, table: str, patch: dict[str, Any], eq: dict[str, Any]) -> list[dict[str, Any]]:
        ...

    @abstractmethod
    def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        ...

    @abstractmethod
    def subscribe(
        self,
        table: str,
        callback: ChangeCallback,
        *,
        eq: dict[str, Any] | None = None,
        in_: dict[str, Sequence[Any]] | None = None,
    ) -> Subscription:
        ...

    def select_one(self, table: str, eq: dict[str, Any], columns: Sequence[str] | None = None) -> dict[str, Any] | None:
        """maybeSingle(): first row matching eq, or None."""
        result = self.select(table, columns=columns, filters=Filters(eq=dict(eq), range=(0, 0)))
        return result.rows[0] if result.rows else None
