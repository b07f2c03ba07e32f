from __future__ import annotations

from typing import Any, Mapping, Protocol, runtime_checkable

from notevault_api.domain.entities import AuthSession, Identity
from notevault_api.domain.exceptions import Unauthorized


OWNER_COLUMN = "user_id"

Row = dict[str, Any]


@runtime_checkable
class TableStore(Protocol):
    """
    Table-style remote store. Every select/update/delete must carry an
    equality filter on the owner column; inserts must carry the owner column.
    """

    async def select(
        self,
        table: str,
        *,
        filters: Mapping[str, Any],
        order_by: str | None = None,
        descending: bool = True,
    ) -> list[Row]:
        ...

    async def insert(self, table: str, row: Mapping[str, Any]) -> Row:
        ...

    async def update(self, table: str, values: Mapping[str, Any], *, filters: Mapping[str, Any]) -> list[Row]:
        ...

    async def delete(self, table: str, *, filters: Mapping[str, Any]) -> list[Row]:
        ...

    async def aclose(self) -> None:
        ...


@runtime_checkable
class IdentityProvider(Protocol):
    async def sign_up(self, email: str, password: str) -> AuthSession:
        ...

    async def sign_in(self, email: str, password: str) -> AuthSession:
        ...

    async def current_user(self, access_token: str) -> Identity:
        ...

    async def sign_out(self, access_token: str) -> None:
        ...


def require_owner_filter(filters: Mapping[str, Any]) -> None:
    value = filters.get(OWNER_COLUMN)
    if value is None or value == "":
        raise Unauthorized("owner_filter_required")
