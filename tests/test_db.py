"""PostgresStore transaction handling against a fake psycopg2 pool."""

from __future__ import annotations

import pytest

import container_limits.db as db
from container_limits.admission import admit_items, remove_items
from container_limits.errors import CapacityViolation, ContainerNotFound, ItemNotFound
from container_limits.models import ContainedItem, Container, Item


class FakeCursor:
    def __init__(self, conn: "FakeConnection"):
        self.conn = conn
        self._one = None
        self._all: list = []
        self.rowcount = 0

    def __enter__(self) -> "FakeCursor":
        return self

    def __exit__(self, *exc) -> None:
        return None

    def execute(self, sql: str, params: tuple = ()) -> None:
        self.conn.executed.append((sql, params))
        tables = self.conn.tables
        if "FROM containers WHERE id" in sql:
            self._one = tables["containers"].get(params[0])
        elif "FROM container_items ci JOIN" in sql:
            self._all = tables["contents"].get(params[0], [])
        elif "FROM items WHERE id" in sql:
            self._one = tables["items"].get(params[0])
        elif sql.startswith("DELETE"):
            existing = {r[1] for r in tables["contents"].get(params[0], [])}
            self.rowcount = len(existing & set(params[1]))
        elif sql == "SELECT 1":
            self._one = (1,)
        elif sql.startswith("INSERT INTO containers"):
            self._one = (params[0] not in tables["containers"],)

    def fetchone(self):
        return self._one

    def fetchall(self):
        return self._all


class FakeConnection:
    def __init__(self, tables: dict):
        self.tables = tables
        self.executed: list[tuple[str, tuple]] = []
        self.commits = 0
        self.rollbacks = 0

    def cursor(self) -> FakeCursor:
        return FakeCursor(self)

    def commit(self) -> None:
        self.commits += 1

    def rollback(self) -> None:
        self.rollbacks += 1


@pytest.fixture
def conn() -> FakeConnection:
    return FakeConnection({
        "containers": {"carry-on": ("carry-on", "bag", 20.0, 10.0, 2.0)},
        "contents": {
            "carry-on": [
                (1, "boots", 1.5, "KILOGRAM", 3.0, "LITER"),
                (10, "book", 0.4, "KILOGRAM", 1.5, "LITER"),
            ],
        },
        "items": {
            "shirt": ("shirt", 0.2, "KILOGRAM", 1.0, "LITER"),
            "boots": ("boots", 1.5, "KILOGRAM", 3.0, "LITER"),
        },
    })


@pytest.fixture
def pg_store(conn: FakeConnection, monkeypatch) -> db.PostgresStore:
    class FakePool:
        def __init__(self, minconn: int, maxconn: int, dsn: str):
            self.returned = 0

        def getconn(self) -> FakeConnection:
            return conn

        def putconn(self, c: FakeConnection) -> None:
            self.returned += 1

        def closeall(self) -> None:
            pass

    monkeypatch.setattr(db, "SimpleConnectionPool", FakePool)
    return db.PostgresStore("postgresql://test")


def test_get_container_reads_contents(pg_store: db.PostgresStore, conn: FakeConnection) -> None:
    container = pg_store.get_container("carry-on")

    assert container.tare_weight == 2.0
    assert [c.item.id for c in container.contents] == ["boots", "book"]
    assert conn.rollbacks == 1


def test_missing_rows_raise_not_found(pg_store: db.PostgresStore) -> None:
    with pytest.raises(ContainerNotFound):
        pg_store.get_container("missing")
    with pytest.raises(ItemNotFound):
        pg_store.get_item("umbrella")


def test_admission_locks_the_row_and_commits(pg_store: db.PostgresStore, conn: FakeConnection) -> None:
    admit_items(pg_store, "carry-on", [("shirt", 2)])

    statements = [sql for sql, _ in conn.executed]
    assert statements[0].endswith("FOR UPDATE")
    inserts = [(sql, params) for sql, params in conn.executed if sql.startswith("INSERT")]
    assert len(inserts) == 1
    assert inserts[0][1] == ("carry-on", "shirt", 2)
    assert conn.commits == 1


def test_rejected_admission_rolls_back(pg_store: db.PostgresStore, conn: FakeConnection) -> None:
    with pytest.raises(CapacityViolation):
        admit_items(pg_store, "carry-on", [("boots", 1)])

    assert conn.commits == 0
    assert conn.rollbacks == 1
    assert not any(sql.startswith("INSERT") for sql, _ in conn.executed)


def test_remove_items_reports_deleted_rows(pg_store: db.PostgresStore, conn: FakeConnection) -> None:
    removed, _ = remove_items(pg_store, "carry-on", ["boots", "not-packed"])

    assert removed == 1
    assert conn.commits == 1


def test_ping(pg_store: db.PostgresStore) -> None:
    assert pg_store.ping()


def test_put_container_upserts_limits_only(pg_store: db.PostgresStore, conn: FakeConnection) -> None:
    existing = Container(
        id="carry-on",
        max_capacity=30,
        max_weight=12,
        contents=(ContainedItem(quantity=1, item=Item(id="shirt", weight=0.2, volume=1)),),
    )
    pg_store.put_container(existing)

    statements = [sql for sql, _ in conn.executed]
    assert statements[0].startswith("INSERT INTO containers")
    assert "ON CONFLICT (id) DO UPDATE" in statements[0]
    assert not any("container_items" in sql for sql in statements)
    assert conn.commits == 1


def test_put_container_stores_initial_contents(pg_store: db.PostgresStore, conn: FakeConnection) -> None:
    tote = Container(
        id="tote",
        max_capacity=15,
        max_weight=8,
        contents=(ContainedItem(quantity=2, item=Item(id="shirt", weight=0.2, volume=1)),),
    )
    pg_store.put_container(tote)

    statements = [sql for sql, _ in conn.executed]
    assert statements[1].startswith("INSERT INTO items")
    assert conn.executed[2][1] == ("tote", "shirt", 2)


def test_put_item_writes_unit_names(pg_store: db.PostgresStore, conn: FakeConnection) -> None:
    pg_store.put_item(Item(id="socks", weight=100, weight_unit="GRAM", volume=0.3))

    assert conn.executed[0][1] == ("socks", 100.0, "GRAM", 0.3, "LITER")
    assert conn.commits == 1
