# Overview: Row store backed by the Flask-SQLAlchemy session and Core table metadata.

from __future__ import annotations

from typing import Any, Sequence

import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError

from .base import (
    EVENT_INSERT,
    EVENT_UPDATE,
    ChangeCallback,
    ChangeEvent,
    Filters,
    OrderBy,
    RowStoreClient,
    RowStoreError,
    SelectResult,
    Subscription,
)
from .changefeed import ChangeFeed


class SQLAlchemyRowStore(RowStoreClient):
    """
    RowStoreClient over db.metadata tables.

    Every write commits on its own and publishes to the change feed only after
    the commit succeeds. Updates are last-write-wins on the patched columns;
    there is no version check.
    """

    def __init__(self, db, feed: ChangeFeed) -> None:
        self._db = db
        self.feed = feed

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    def _table(self, name: str) -> sa.Table:
        table = self._db.metadata.tables.get(name)
        if table is None:
            raise RowStoreError(f"unknown table '{name}'", table=name)
        return table

    @staticmethod
    def _column(table: sa.Table, name: str):
        if name not in table.c:
            raise RowStoreError(f"unknown column '{name}' on '{table.name}'", table=table.name)
        return table.c[name]

    def _where(self, stmt, table: sa.Table, filters: Filters | None):
        if filters is None:
            return stmt
        for name, value in filters.eq.items():
            stmt = stmt.where(self._column(table, name) == value)
        for name, values in filters.in_.items():
            stmt = stmt.where(self._column(table, name).in_(list(values)))
        if filters.ilike_any is not None:
            names, term = filters.ilike_any
            term = (term or "").strip()
            if term and names:
                pattern = f"%{term}%"
                stmt = stmt.where(sa.or_(*[self._column(table, n).ilike(pattern) for n in names]))
        return stmt

    def _primary_key(self, table: sa.Table) -> sa.Column:
        return list(table.primary_key.columns)[0]

    def _fetch_by_keys(self, table: sa.Table, keys: Sequence[Any]) -> list[dict[str, Any]]:
        if not keys:
            return []
        pk = self._primary_key(table)
        result = self._db.session.execute(sa.select(table).where(pk.in_(list(keys))))
        return [dict(r._mapping) for r in result]

    # ------------------------------------------------------------------
    # RowStoreClient
    # ------------------------------------------------------------------

    def select(
        self,
        table: str,
        columns: Sequence[str] | None = None,
        filters: Filters | None = None,
        order_by: Sequence[OrderBy] = (),
        count: bool = False,
    ) -> SelectResult:
        t = self._table(table)
        try:
            cols = [self._column(t, c) for c in columns] if columns else [t]
            base = self._where(sa.select(*cols), t, filters)

            total = None
            if count:
                total = self._db.session.execute(
                    sa.select(sa.func.count()).select_from(base.subquery())
                ).scalar_one()

            stmt = base
            for ob in order_by:
                col = self._column(t, ob.column)
                stmt = stmt.order_by(col.desc() if ob.descending else col.asc())
            # Stable paging under equal sort keys
            stmt = stmt.order_by(self._primary_key(t).desc())

            if filters is not None and filters.range is not None:
                start, end = filters.range
                start = max(0, int(start))
                stmt = stmt.offset(start).limit(max(0, int(end) - start + 1))

            rows = [dict(r._mapping) for r in self._db.session.execute(stmt)]
            return SelectResult(rows=rows, count=total)
        except SQLAlchemyError as exc:
            self._db.session.rollback()
            raise RowStoreError(f"select on '{table}' failed: {exc}", table=table) from exc

    def update(self, table: str, patch: dict[str, Any], eq: dict[str, Any]) -> list[dict[str, Any]]:
        t = self._table(table)
        if not eq:
            raise RowStoreError("update requires at least one eq filter", table=table)
        for name in patch:
            self._column(t, name)

        pk = self._primary_key(t)
        try:
            key_stmt = self._where(sa.select(pk), t, Filters(eq=dict(eq)))
            keys = [r[0] for r in self._db.session.execute(key_stmt)]
            if keys:
                self._db.session.execute(sa.update(t).where(pk.in_(keys)).values(**patch))
            self._db.session.commit()
            rows = self._fetch_by_keys(t, keys)
        except SQLAlchemyError as exc:
            self._db.session.rollback()
            raise RowStoreError(f"update on '{table}' failed: {exc}", table=table) from exc

        for row in rows:
            self.feed.publish(ChangeEvent(EVENT_UPDATE, table, row))
        return rows

    def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        t = self._table(table)
        for name in row:
            self._column(t, name)

        try:
            result = self._db.session.execute(sa.insert(t).values(**row))
            keys = list(result.inserted_primary_key or ())
            self._db.session.commit()
            rows = self._fetch_by_keys(t, keys[:1])
        except SQLAlchemyError as exc:
            self._db.session.rollback()
            raise RowStoreError(f"insert into '{table}' failed: {exc}", table=table) from exc

        if not rows:
            raise RowStoreError(f"insert into '{table}' returned no row", table=table)
        self.feed.publish(ChangeEvent(EVENT_INSERT, table, rows[0]))
        return rows[0]

    def subscribe(
        self,
        table: str,
        callback: ChangeCallback,
        *,
        eq: dict[str, Any] | None = None,
        in_: dict[str, Sequence[Any]] | None = None,
    ) -> Subscription:
        self._table(table)
        return self.feed.subscribe(table, callback, eq=eq, in_=in_)
