"""Ledger store contract, run against the in-memory and SQLAlchemy backends"""

from datetime import date

import pytest

from stockcount import db
from stockcount.ledger import CountRecord, InMemoryLedgerStore, SqlLedgerStore

D1 = date(2025, 2, 1)
D2 = date(2025, 2, 2)
D3 = date(2025, 2, 3)


@pytest.fixture(params=["memory", "sql"])
def ledger_store(request, tmp_path):
    if request.param == "memory":
        yield InMemoryLedgerStore()
        return
    engine, SessionLocal = db.make_session_factory(f"sqlite:///{tmp_path / 'ledger.db'}")
    db.Base.metadata.create_all(engine)
    yield SqlLedgerStore(SessionLocal)
    SessionLocal.remove()
    engine.dispose()


def _rec(item, day, current, start=None, restocks=0, sold=0):
    return CountRecord(
        item_name=item, date=day,
        yesterday_count=current if start is None else start,
        current_count=current, restocks_received=restocks, sold_calculated=sold,
    )


class TestLedgerStore:

    def test_get_missing(self, ledger_store):
        assert ledger_store.get("Milk", D1) is None

    def test_upsert_then_get(self, ledger_store):
        saved = ledger_store.upsert(_rec("Milk", D1, 40))
        assert saved.id is not None
        assert saved.created_at is not None

        got = ledger_store.get("Milk", D1)
        assert got.current_count == 40
        assert got.starting_count == 40

    def test_upsert_overwrites_same_key(self, ledger_store):
        first = ledger_store.upsert(_rec("Milk", D1, 40))
        second = ledger_store.upsert(_rec("Milk", D1, 33, start=40, restocks=2, sold=9))

        assert ledger_store.count() == 1
        assert second.id == first.id
        assert second.created_at == first.created_at
        assert (second.current_count, second.restocks_received, second.sold_calculated) == (33, 2, 9)

    def test_list_for_date_sorted_by_item(self, ledger_store):
        ledger_store.upsert(_rec("Tea", D1, 1))
        ledger_store.upsert(_rec("Bread", D1, 2))
        ledger_store.upsert(_rec("Milk", D2, 3))

        assert [r.item_name for r in ledger_store.list_for_date(D1)] == ["Bread", "Tea"]

    def test_page_order(self, ledger_store):
        ledger_store.upsert(_rec("Tea", D1, 1))
        ledger_store.upsert(_rec("Bread", D2, 2))
        ledger_store.upsert(_rec("Apple", D1, 3))
        ledger_store.upsert(_rec("Milk", D2, 4))

        keys = [(r.date, r.item_name) for r in ledger_store.page(0, 10)]
        assert keys == [(D2, "Bread"), (D2, "Milk"), (D1, "Apple"), (D1, "Tea")]
        assert [r.item_name for r in ledger_store.page(1, 2)] == ["Milk", "Apple"]
        assert ledger_store.count() == 4

    def test_between_bounds_inclusive(self, ledger_store):
        for day in (D1, D2, D3):
            ledger_store.upsert(_rec("Milk", day, 5))

        assert [r.date for r in ledger_store.between(D2, D3)] == [D2, D3]
        assert [r.date for r in ledger_store.between(start=D2)] == [D2, D3]
        assert [r.date for r in ledger_store.between(end=D1)] == [D1]
        assert len(ledger_store.between()) == 3

    def test_delete(self, ledger_store):
        ledger_store.upsert(_rec("Milk", D1, 5))
        assert ledger_store.delete("Milk", D1) is True
        assert ledger_store.get("Milk", D1) is None

    def test_delete_missing_reports_not_found(self, ledger_store):
        assert ledger_store.delete("Ghost Item", date(2099, 1, 1)) is False
