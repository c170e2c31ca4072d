"""Persistence collaborators for the admission write path."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import ContextManager, Iterator, Protocol, Sequence

from container_limits.errors import ContainerNotFound, ItemNotFound
from container_limits.models import ContainedItem, Container, Item


class ContainerSession(Protocol):
    """Work done while a container is locked for writing."""

    def load_container(self) -> Container: ...

    def load_item(self, item_id: str) -> Item: ...

    def add_items(self, batch: Sequence[ContainedItem]) -> None: ...

    def remove_items(self, item_ids: Sequence[str]) -> int: ...


class ContainerStore(Protocol):
    """
    Storage for containers and items.

    `transaction(container_id)` must serialize writers of the same container
    and commit only when the block exits without an exception.
    """

    def get_container(self, container_id: str) -> Container: ...

    def get_item(self, item_id: str) -> Item: ...

    def put_container(self, container: Container) -> None: ...

    def put_item(self, item: Item) -> None: ...

    def transaction(self, container_id: str) -> ContextManager[ContainerSession]: ...


def merge_contents(
    contents: Sequence[ContainedItem],
    batch: Sequence[ContainedItem],
) -> tuple[ContainedItem, ...]:
    """Add batch lines to contents; a line for an item already present raises its quantity."""
    merged = list(contents)
    index = {c.item.id: i for i, c in enumerate(merged) if c.item.id is not None}
    for line in batch:
        pos = index.get(line.item.id) if line.item.id is not None else None
        if pos is None:
            if line.item.id is not None:
                index[line.item.id] = len(merged)
            merged.append(line)
        else:
            existing = merged[pos]
            merged[pos] = ContainedItem(quantity=existing.quantity + line.quantity, item=existing.item)
    return tuple(merged)


class _MemorySession:
    def __init__(self, store: "InMemoryStore", container: Container):
        self._store = store
        self.container = container

    def load_container(self) -> Container:
        return self.container

    def load_item(self, item_id: str) -> Item:
        return self._store.get_item(item_id)

    def add_items(self, batch: Sequence[ContainedItem]) -> None:
        self.container = self.container.model_copy(
            update={"contents": merge_contents(self.container.contents, batch)}
        )

    def remove_items(self, item_ids: Sequence[str]) -> int:
        drop = set(item_ids)
        kept = tuple(c for c in self.container.contents if c.item.id not in drop)
        removed = len(self.container.contents) - len(kept)
        self.container = self.container.model_copy(update={"contents": kept})
        return removed


class InMemoryStore:
    """Dict-backed store with one lock per container. Changes are staged and committed on success."""

    def __init__(self, containers: Sequence[Container] = (), items: Sequence[Item] = ()):
        self._containers: dict[str, Container] = {c.id: c for c in containers}
        self._items: dict[str, Item] = {i.id: i for i in items if i.id is not None}
        self._locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def put_container(self, container: Container) -> None:
        """Create a container, or update the limits of an existing one. Stored contents are kept."""
        with self._registry_lock:
            if container.id not in self._containers:
                self._containers[container.id] = container
                return
        with self._lock_for(container.id):
            current = self._containers[container.id]
            self._containers[container.id] = container.model_copy(update={"contents": current.contents})

    def put_item(self, item: Item) -> None:
        if item.id is None:
            raise ValueError("stored items need an id")
        self._items[item.id] = item

    def get_container(self, container_id: str) -> Container:
        try:
            return self._containers[container_id]
        except KeyError:
            raise ContainerNotFound(container_id) from None

    def get_item(self, item_id: str) -> Item:
        try:
            return self._items[item_id]
        except KeyError:
            raise ItemNotFound(item_id) from None

    def _lock_for(self, container_id: str) -> threading.Lock:
        # only stored containers get a lock
        with self._registry_lock:
            if container_id not in self._containers:
                raise ContainerNotFound(container_id)
            return self._locks.setdefault(container_id, threading.Lock())

    @contextmanager
    def transaction(self, container_id: str) -> Iterator[_MemorySession]:
        with self._lock_for(container_id):
            session = _MemorySession(self, self.get_container(container_id))
            yield session
            self._containers[container_id] = session.container
