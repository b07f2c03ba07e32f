from __future__ import annotations

import asyncio
import copy
import uuid
from datetime import datetime, timedelta
from typing import Any, Callable, Mapping

from notevault_api.domain.ports import Row, require_owner_filter
from notevault_api.util import rfc3339, utc_now


class InMemoryTableStore:
    """
    In-process stand-in for the hosted tables. Assigns ids and timestamps the
    way the server does and returns plain JSON-shaped rows.
    """

    def __init__(self, *, clock: Callable[[], datetime] | None = None) -> None:
        self._tables: dict[str, dict[str, Row]] = {}
        self._clock = clock or utc_now
        self._last_ts: datetime | None = None

    def _now(self) -> str:
        ts = self._clock()
        # Keep server timestamps strictly increasing so creation order is total.
        if self._last_ts is not None and ts <= self._last_ts:
            ts = self._last_ts + timedelta(microseconds=1)
        self._last_ts = ts
        return rfc3339(ts)

    def _table(self, table: str) -> dict[str, Row]:
        return self._tables.setdefault(table, {})

    @staticmethod
    def _matches(row: Row, filters: Mapping[str, Any]) -> bool:
        return all(row.get(k) == v for k, v in filters.items())

    async def select(
        self,
        table: str,
        *,
        filters: Mapping[str, Any],
        order_by: str | None = None,
        descending: bool = True,
    ) -> list[Row]:
        require_owner_filter(filters)
        await asyncio.sleep(0)
        rows = [copy.deepcopy(r) for r in self._table(table).values() if self._matches(r, filters)]
        if order_by:
            rows.sort(key=lambda r: r.get(order_by) or "", reverse=descending)
        return rows

    async def insert(self, table: str, row: Mapping[str, Any]) -> Row:
        require_owner_filter(row)
        await asyncio.sleep(0)
        now = self._now()
        stored: Row = dict(row)
        stored["id"] = str(uuid.uuid4())
        stored["created_at"] = now
        stored["updated_at"] = now
        self._table(table)[stored["id"]] = stored
        return copy.deepcopy(stored)

    async def update(self, table: str, values: Mapping[str, Any], *, filters: Mapping[str, Any]) -> list[Row]:
        require_owner_filter(filters)
        await asyncio.sleep(0)
        out: list[Row] = []
        for row in self._table(table).values():
            if not self._matches(row, filters):
                continue
            row.update(values)
            row["updated_at"] = self._now()
            out.append(copy.deepcopy(row))
        return out

    async def delete(self, table: str, *, filters: Mapping[str, Any]) -> list[Row]:
        require_owner_filter(filters)
        await asyncio.sleep(0)
        rows = self._table(table)
        doomed = [rid for rid, r in rows.items() if self._matches(r, filters)]
        return [rows.pop(rid) for rid in doomed]

    async def aclose(self) -> None:
        return None
