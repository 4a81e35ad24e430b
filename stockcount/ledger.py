"""Storage for the per-item, per-day count ledger.

The counting engine only talks to :class:`LedgerStore`, so it runs the same
against SQLAlchemy in production and against :class:`InMemoryLedgerStore`
in tests.
"""
from __future__ import annotations

import itertools
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Optional

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError

from .db import CountEntry, utcnow

_DERIVED_COLUMNS = ("yesterday_count", "current_count", "restocks_received", "sold_calculated")


@dataclass
class CountRecord:
    item_name: str
    date: date
    yesterday_count: int
    current_count: int
    restocks_received: int = 0
    sold_calculated: int = 0
    id: Optional[int] = None
    created_at: Optional[datetime] = field(default=None, compare=False)

    @property
    def starting_count(self) -> int:
        return self.yesterday_count

    @property
    def key(self) -> tuple[str, date]:
        return self.item_name, self.date

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_name": self.item_name,
            "date": self.date.isoformat(),
            "yesterday_count": self.yesterday_count,
            "current_count": self.current_count,
            "restocks_received": self.restocks_received,
            "sold_calculated": self.sold_calculated,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class LedgerStore(ABC):
    """At most one record per (item_name, date)."""

    @abstractmethod
    def get(self, item_name: str, day: date) -> Optional[CountRecord]: ...

    @abstractmethod
    def upsert(self, record: CountRecord) -> CountRecord:
        """Insert or overwrite the record for its key; id and created_at survive an overwrite."""

    @abstractmethod
    def list_for_date(self, day: date) -> list[CountRecord]: ...

    @abstractmethod
    def page(self, offset: int, limit: int) -> list[CountRecord]:
        """Newest day first, then item_name, then latest insert."""

    @abstractmethod
    def count(self) -> int: ...

    @abstractmethod
    def between(self, start: Optional[date] = None, end: Optional[date] = None) -> list[CountRecord]:
        """Records with start <= date <= end; a missing bound is open."""

    @abstractmethod
    def delete(self, item_name: str, day: date) -> bool:
        """False when nothing was stored under the key."""


# ---------------------------
# In-memory
# ---------------------------

class InMemoryLedgerStore(LedgerStore):

    def __init__(self, records=()):
        self._rows: dict[tuple[str, date], CountRecord] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        for r in records:
            self.upsert(r)

    def get(self, item_name, day):
        with self._lock:
            row = self._rows.get((item_name, day))
            return replace(row) if row else None

    def upsert(self, record):
        with self._lock:
            existing = self._rows.get(record.key)
            if existing:
                stored = replace(record, id=existing.id, created_at=existing.created_at)
            else:
                stored = replace(record, id=next(self._ids), created_at=record.created_at or utcnow())
            self._rows[record.key] = stored
            return replace(stored)

    def list_for_date(self, day):
        with self._lock:
            rows = [replace(r) for r in self._rows.values() if r.date == day]
        return sorted(rows, key=lambda r: r.item_name)

    def page(self, offset, limit):
        with self._lock:
            rows = [replace(r) for r in self._rows.values()]
        rows.sort(key=lambda r: r.id, reverse=True)
        rows.sort(key=lambda r: r.item_name)
        rows.sort(key=lambda r: r.date, reverse=True)
        return rows[offset:offset + limit]

    def count(self):
        with self._lock:
            return len(self._rows)

    def between(self, start=None, end=None):
        with self._lock:
            rows = [
                replace(r) for r in self._rows.values()
                if (start is None or r.date >= start) and (end is None or r.date <= end)
            ]
        return sorted(rows, key=lambda r: (r.date, r.item_name, r.id))

    def delete(self, item_name, day):
        with self._lock:
            return self._rows.pop((item_name, day), None) is not None


# ---------------------------
# SQLAlchemy
# ---------------------------

def _to_record(row: CountEntry) -> CountRecord:
    return CountRecord(
        id=row.id,
        item_name=row.item_name,
        date=row.date,
        yesterday_count=row.yesterday_count,
        current_count=row.current_count,
        restocks_received=row.restocks_received,
        sold_calculated=row.sold_calculated,
        created_at=row.created_at,
    )


class SqlLedgerStore(LedgerStore):
    """Ledger on the ``inventory_counts`` table.

    SQLite and PostgreSQL get a native ``INSERT .. ON CONFLICT DO UPDATE`` so
    the unique (item_name, date) constraint serialises writes to one key;
    other dialects fall back to select-then-write inside one transaction.
    """

    def __init__(self, session_factory):
        self._session_factory = session_factory

    def _key_filter(self, query, item_name, day):
        return query.filter(CountEntry.item_name == item_name, CountEntry.date == day)

    def get(self, item_name, day):
        s = self._session_factory()
        try:
            row = self._key_filter(s.query(CountEntry), item_name, day).first()
            return _to_record(row) if row else None
        finally:
            s.close()

    def upsert(self, record):
        values = {col: getattr(record, col) for col in _DERIVED_COLUMNS}
        s = self._session_factory()
        try:
            dialect = s.get_bind().dialect.name
            if dialect in ("sqlite", "postgresql"):
                insert = sqlite_insert if dialect == "sqlite" else pg_insert
                stmt = insert(CountEntry).values(
                    item_name=record.item_name,
                    date=record.date,
                    created_at=record.created_at or utcnow(),
                    **values,
                )
                stmt = stmt.on_conflict_do_update(
                    index_elements=["item_name", "date"],
                    set_={col: stmt.excluded[col] for col in _DERIVED_COLUMNS},
                )
                s.execute(stmt)
            else:
                row = self._key_filter(s.query(CountEntry), record.item_name, record.date).first()
                if row:
                    for col, value in values.items():
                        setattr(row, col, value)
                else:
                    s.add(CountEntry(item_name=record.item_name, date=record.date, **values))
            s.commit()

            row = self._key_filter(s.query(CountEntry), record.item_name, record.date).one()
            return _to_record(row)
        except SQLAlchemyError:
            s.rollback()
            raise
        finally:
            s.close()

    def list_for_date(self, day):
        s = self._session_factory()
        try:
            rows = (
                s.query(CountEntry)
                .filter(CountEntry.date == day)
                .order_by(CountEntry.item_name.asc())
                .all()
            )
            return [_to_record(r) for r in rows]
        finally:
            s.close()

    def page(self, offset, limit):
        s = self._session_factory()
        try:
            rows = (
                s.query(CountEntry)
                .order_by(CountEntry.date.desc(), CountEntry.item_name.asc(), CountEntry.id.desc())
                .offset(offset)
                .limit(limit)
                .all()
            )
            return [_to_record(r) for r in rows]
        finally:
            s.close()

    def count(self):
        s = self._session_factory()
        try:
            return s.query(CountEntry).count()
        finally:
            s.close()

    def between(self, start=None, end=None):
        s = self._session_factory()
        try:
            query = s.query(CountEntry)
            if start is not None:
                query = query.filter(CountEntry.date >= start)
            if end is not None:
                query = query.filter(CountEntry.date <= end)
            rows = query.order_by(CountEntry.date.asc(), CountEntry.item_name.asc(), CountEntry.id.asc()).all()
            return [_to_record(r) for r in rows]
        finally:
            s.close()

    def delete(self, item_name, day):
        s = self._session_factory()
        try:
            deleted = self._key_filter(s.query(CountEntry), item_name, day).delete(synchronize_session=False)
            s.commit()
            return deleted > 0
        except SQLAlchemyError:
            s.rollback()
            raise
        finally:
            s.close()
