"""PostgreSQL-backed container store; admissions are serialized with SELECT ... FOR UPDATE."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from enum import Enum
from typing import Any, Callable, Iterator, Sequence

import psycopg2
from psycopg2.pool import SimpleConnectionPool

from container_limits.errors import ContainerNotFound, ItemNotFound
from container_limits.models import ContainedItem, Container, Item

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS containers (
    id TEXT PRIMARY KEY,
    kind TEXT NOT NULL DEFAULT 'bag',
    max_capacity DOUBLE PRECISION NOT NULL,
    max_weight DOUBLE PRECISION NOT NULL,
    tare_weight DOUBLE PRECISION NOT NULL DEFAULT 0
);
CREATE TABLE IF NOT EXISTS items (
    id TEXT PRIMARY KEY,
    weight DOUBLE PRECISION NOT NULL,
    weight_unit TEXT NOT NULL DEFAULT 'KILOGRAM',
    volume DOUBLE PRECISION NOT NULL,
    volume_unit TEXT NOT NULL DEFAULT 'LITER'
);
CREATE TABLE IF NOT EXISTS container_items (
    container_id TEXT NOT NULL REFERENCES containers(id) ON DELETE CASCADE,
    item_id TEXT NOT NULL REFERENCES items(id) ON DELETE CASCADE,
    quantity INTEGER NOT NULL CHECK (quantity > 0),
    PRIMARY KEY (container_id, item_id)
);
"""

_CONTAINER_COLUMNS = "id, kind, max_capacity, max_weight, tare_weight"
_ITEM_COLUMNS = "id, weight, weight_unit, volume, volume_unit"


def _item_from_row(row: Sequence[Any]) -> Item:
    return Item(id=row[0], weight=row[1], weight_unit=row[2], volume=row[3], volume_unit=row[4])


def _fetch_item(cur: Any, item_id: str) -> Item:
    cur.execute(f"SELECT {_ITEM_COLUMNS} FROM items WHERE id = %s", (item_id,))
    row = cur.fetchone()
    if row is None:
        raise ItemNotFound(item_id)
    return _item_from_row(row)


def _upsert_item(cur: Any, item: Item) -> None:
    cur.execute(
        f"INSERT INTO items ({_ITEM_COLUMNS}) VALUES (%s, %s, %s, %s, %s) "
        "ON CONFLICT (id) DO UPDATE SET weight = EXCLUDED.weight, weight_unit = EXCLUDED.weight_unit, "
        "volume = EXCLUDED.volume, volume_unit = EXCLUDED.volume_unit",
        (item.id, item.weight, _unit_value(item.weight_unit), item.volume, _unit_value(item.volume_unit)),
    )


def _unit_value(unit: Any) -> str:
    return unit.value if isinstance(unit, Enum) else str(unit)


def _fetch_container(cur: Any, container_id: str, for_update: bool = False) -> Container:
    lock = " FOR UPDATE" if for_update else ""
    cur.execute(f"SELECT {_CONTAINER_COLUMNS} FROM containers WHERE id = %s{lock}", (container_id,))
    row = cur.fetchone()
    if row is None:
        raise ContainerNotFound(container_id)

    cur.execute(
        f"SELECT ci.quantity, i.id, i.weight, i.weight_unit, i.volume, i.volume_unit "
        f"FROM container_items ci JOIN items i ON i.id = ci.item_id "
        f"WHERE ci.container_id = %s ORDER BY i.id",
        (container_id,),
    )
    contents = tuple(
        ContainedItem(quantity=r[0], item=_item_from_row(r[1:])) for r in cur.fetchall()
    )
    return Container(
        id=row[0],
        kind=row[1],
        max_capacity=row[2],
        max_weight=row[3],
        tare_weight=row[4],
        contents=contents,
    )


class _PostgresSession:
    def __init__(self, cur: Any, container_id: str):
        self._cur = cur
        self._container_id = container_id

    def load_container(self) -> Container:
        return _fetch_container(self._cur, self._container_id)

    def load_item(self, item_id: str) -> Item:
        return _fetch_item(self._cur, item_id)

    def add_items(self, batch: Sequence[ContainedItem]) -> None:
        for line in batch:
            self._cur.execute(
                "INSERT INTO container_items (container_id, item_id, quantity) VALUES (%s, %s, %s) "
                "ON CONFLICT (container_id, item_id) "
                "DO UPDATE SET quantity = container_items.quantity + EXCLUDED.quantity",
                (self._container_id, line.item.id, line.quantity),
            )

    def remove_items(self, item_ids: Sequence[str]) -> int:
        self._cur.execute(
            "DELETE FROM container_items WHERE container_id = %s AND item_id = ANY(%s)",
            (self._container_id, list(item_ids)),
        )
        return self._cur.rowcount


class PostgresStore:
    """
    Container store on a psycopg2 connection pool.

    transaction() locks the container row before yielding, so the admission
    check and the insert run against the same committed totals.
    """

    def __init__(self, dsn: str, minconn: int = 1, maxconn: int = 10):
        self._pool = SimpleConnectionPool(minconn=minconn, maxconn=maxconn, dsn=dsn)

    def get_conn(self) -> Any:
        return self._pool.getconn()

    def put_conn(self, conn: Any) -> None:
        if conn is not None:
            self._pool.putconn(conn)

    def close(self) -> None:
        self._pool.closeall()

    def create_schema(self) -> None:
        conn = self.get_conn()
        try:
            with conn.cursor() as cur:
                cur.execute(SCHEMA_SQL)
            conn.commit()
        finally:
            self.put_conn(conn)

    def ping(self) -> bool:
        conn = self.get_conn()
        try:
            with conn.cursor() as cur:
                cur.execute("SELECT 1")
                return cur.fetchone() is not None
        finally:
            conn.rollback()
            self.put_conn(conn)

    def get_container(self, container_id: str) -> Container:
        conn = self.get_conn()
        try:
            with conn.cursor() as cur:
                return _fetch_container(cur, container_id)
        finally:
            conn.rollback()
            self.put_conn(conn)

    def get_item(self, item_id: str) -> Item:
        conn = self.get_conn()
        try:
            with conn.cursor() as cur:
                return _fetch_item(cur, item_id)
        finally:
            conn.rollback()
            self.put_conn(conn)

    def put_item(self, item: Item) -> None:
        if item.id is None:
            raise ValueError("stored items need an id")
        self._write(lambda cur: _upsert_item(cur, item), f"item {item.id}")

    def put_container(self, container: Container) -> None:
        """Create a container, or update the limits of an existing one. Stored contents are kept."""

        def write(cur: Any) -> None:
            cur.execute(
                f"INSERT INTO containers ({_CONTAINER_COLUMNS}) VALUES (%s, %s, %s, %s, %s) "
                "ON CONFLICT (id) DO UPDATE SET kind = EXCLUDED.kind, max_capacity = EXCLUDED.max_capacity, "
                "max_weight = EXCLUDED.max_weight, tare_weight = EXCLUDED.tare_weight "
                "RETURNING (xmax = 0)",
                (container.id, container.kind.value, container.max_capacity,
                 container.max_weight, container.tare_weight),
            )
            created = cur.fetchone()[0]
            if created and container.contents:
                for line in container.contents:
                    _upsert_item(cur, line.item)
                _PostgresSession(cur, container.id).add_items(container.contents)

        self._write(write, f"container {container.id}")

    def _write(self, work: Callable[[Any], None], what: str) -> None:
        conn = self.get_conn()
        try:
            with conn.cursor() as cur:
                work(cur)
            conn.commit()
        except psycopg2.Error as e:
            conn.rollback()
            logger.error(f"Saving {what} failed: {e}", exc_info=True)
            raise
        finally:
            self.put_conn(conn)

    @contextmanager
    def transaction(self, container_id: str) -> Iterator[_PostgresSession]:
        conn = self.get_conn()
        try:
            with conn.cursor() as cur:
                _fetch_container(cur, container_id, for_update=True)
                yield _PostgresSession(cur, container_id)
            conn.commit()
        except psycopg2.Error as e:
            conn.rollback()
            logger.error(f"Transaction on container {container_id} failed: {e}", exc_info=True)
            raise
        except Exception:
            conn.rollback()
            raise
        finally:
            self.put_conn(conn)
