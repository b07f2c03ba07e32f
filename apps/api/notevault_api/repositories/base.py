from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Generic, Mapping, Protocol, TypeVar

from notevault_api.domain.exceptions import NotevaultError, NotFound, Unauthorized
from notevault_api.domain.ports import OWNER_COLUMN, Row, TableStore


class _Owned(Protocol):
    id: str
    owner_id: str


E = TypeVar("E", bound=_Owned)


class OwnedRepository(Generic[E]):
    """
    Owner-scoped cache over one remote table.

    The snapshot is a plain list kept in server order after `list` and patched
    locally after each successful mutation. Mutations on the same id run under
    one lock. After `close()` any call still in flight returns its result but
    leaves the snapshot untouched.
    """

    table: str = ""
    entity_name: str = ""

    def __init__(self, owner_id: str, store: TableStore) -> None:
        if not owner_id:
            raise Unauthorized("missing_session")
        self.owner_id = owner_id
        self._store = store
        self._items: list[E] = []
        # id -> (lock, callers holding or waiting on it)
        self._locks: dict[str, tuple[asyncio.Lock, int]] = {}
        self._generation = 0
        self._closed = False
        self.loading = True
        self.last_error: NotevaultError | None = None
        self.logger = logging.getLogger(f"notevault.{self.table}")

    def _decode(self, row: Row) -> E:
        raise NotImplementedError

    @property
    def snapshot(self) -> tuple[E, ...]:
        return tuple(self._items)

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        self._closed = True
        self._generation += 1
        self._locks.clear()

    def _check_owner(self, owner: str | None) -> None:
        if self._closed:
            raise Unauthorized("session_closed")
        if not owner:
            raise Unauthorized("missing_session")
        if owner != self.owner_id:
            raise Unauthorized("owner_mismatch")

    def _live(self, generation: int) -> bool:
        return not self._closed and generation == self._generation

    def _filters(self, **extra: Any) -> dict[str, Any]:
        return {OWNER_COLUMN: self.owner_id, **extra}

    @asynccontextmanager
    async def _serialized(self, entity_id: str) -> AsyncIterator[None]:
        lock, users = self._locks.get(entity_id, (None, 0))
        if lock is None:
            lock = asyncio.Lock()
        self._locks[entity_id] = (lock, users + 1)
        try:
            async with lock:
                yield
        finally:
            entry = self._locks.get(entity_id)
            if entry is not None and entry[0] is lock:
                if entry[1] <= 1:
                    del self._locks[entity_id]
                else:
                    self._locks[entity_id] = (lock, entry[1] - 1)

    def _decode_owned(self, rows: list[Row]) -> list[E]:
        items: list[E] = []
        for row in rows:
            item = self._decode(row)
            if item.owner_id != self.owner_id:
                self.logger.warning("foreign_row_ignored", extra={"id": item.id, "owner": self.owner_id})
                continue
            items.append(item)
        return items

    def _decode_one(self, row: Row) -> E:
        item = self._decode(row)
        if item.owner_id != self.owner_id:
            raise Unauthorized("owner_mismatch")
        return item

    async def list(self, owner: str) -> list[E]:
        self._check_owner(owner)
        generation = self._generation
        try:
            rows = await self._store.select(
                self.table,
                filters=self._filters(),
                order_by="created_at",
                descending=True,
            )
            items = self._decode_owned(rows)
        except NotevaultError as e:
            self.logger.warning(f"{self.table}_list_failed", extra={"owner": self.owner_id, "reason": str(e)})
            if self._live(generation):
                self.last_error = e
                self.loading = False
            raise

        if self._live(generation):
            self._items = items
            self.last_error = None
            self.loading = False
        else:
            self.logger.info(f"{self.table}_list_discarded", extra={"owner": self.owner_id})
        self.logger.info(f"{self.table}_list", extra={"owner": self.owner_id, "count": len(items)})
        return list(items)

    async def _insert(self, row: Row) -> E:
        generation = self._generation
        stored = await self._store.insert(self.table, row)
        item = self._decode_one(stored)
        if self._live(generation):
            self._items.insert(0, item)
        self.logger.info(f"{self.table}_create", extra={"id": item.id, "owner": self.owner_id})
        return item

    async def _update_locked(self, entity_id: str, values: Mapping[str, Any]) -> E:
        generation = self._generation
        rows = await self._store.update(self.table, values, filters=self._filters(id=entity_id))
        if not rows:
            raise NotFound(self.entity_name, entity_id)
        item = self._decode_one(rows[0])
        if self._live(generation):
            self._items = [item if cur.id == entity_id else cur for cur in self._items]
        self.logger.info(
            f"{self.table}_update",
            extra={"id": entity_id, "owner": self.owner_id, "fields": sorted(values)},
        )
        return item

    async def _update(self, entity_id: str, values: Mapping[str, Any]) -> E:
        async with self._serialized(entity_id):
            return await self._update_locked(entity_id, values)

    async def delete(self, owner: str, entity_id: str) -> None:
        self._check_owner(owner)
        async with self._serialized(entity_id):
            generation = self._generation
            rows = await self._store.delete(self.table, filters=self._filters(id=entity_id))
            if not rows:
                raise NotFound(self.entity_name, entity_id)
            if self._live(generation):
                self._items = [cur for cur in self._items if cur.id != entity_id]
        self.logger.info(f"{self.table}_delete", extra={"id": entity_id, "owner": self.owner_id})
