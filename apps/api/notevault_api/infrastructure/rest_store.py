from __future__ import annotations

import logging
from typing import Any, Mapping

import httpx

from notevault_api.domain.exceptions import StoreUnavailable, Unauthorized
from notevault_api.domain.ports import Row, require_owner_filter


logger = logging.getLogger("notevault.store")


def _join_base(base_url: str, path: str) -> str:
    return base_url.rstrip("/") + "/" + path.lstrip("/")


def _eq(value: Any) -> str:
    if isinstance(value, bool):
        return "eq." + ("true" if value else "false")
    return f"eq.{value}"


class RestTableStore:
    """
    PostgREST adapter for the hosted tables. One instance per signed-in user:
    the user's access token rides on every request so row-level security
    applies server-side as well.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        access_token: str,
        *,
        timeout_s: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=_join_base(base_url, "/rest/v1/"),
            timeout=timeout_s,
            transport=transport,
            headers={
                "apikey": api_key,
                "Authorization": f"Bearer {access_token}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
        )

    async def _request(
        self,
        method: str,
        table: str,
        *,
        params: dict[str, str] | None = None,
        json: Any = None,
        returning: bool = False,
    ) -> list[Row]:
        headers = {"Prefer": "return=representation"} if returning else {}
        try:
            resp = await self._client.request(method, table, params=params, json=json, headers=headers)
        except httpx.HTTPError as e:
            logger.warning("store_request_failed", extra={"table": table, "method": method})
            raise StoreUnavailable("store_request_failed", retryable=method == "GET") from e

        if resp.status_code in (401, 403):
            raise Unauthorized(f"store_http_{resp.status_code}")
        if resp.status_code >= 400:
            logger.warning(
                "store_http_error",
                extra={"table": table, "method": method, "status": resp.status_code},
            )
            raise StoreUnavailable(f"store_http_{resp.status_code}", retryable=method == "GET")
        if not resp.content:
            return []

        try:
            data = resp.json()
        except ValueError as e:
            raise StoreUnavailable("store_bad_response") from e
        if isinstance(data, dict):
            data = [data]
        if not isinstance(data, list) or not all(isinstance(r, dict) for r in data):
            raise StoreUnavailable("store_bad_response")
        return data

    @staticmethod
    def _filter_params(filters: Mapping[str, Any]) -> dict[str, str]:
        return {k: _eq(v) for k, v in filters.items()}

    async def select(
        self,
        table: str,
        *,
        filters: Mapping[str, Any],
        order_by: str | None = None,
        descending: bool = True,
    ) -> list[Row]:
        require_owner_filter(filters)
        params = {"select": "*", **self._filter_params(filters)}
        if order_by:
            params["order"] = f"{order_by}.{'desc' if descending else 'asc'}"
        return await self._request("GET", table, params=params)

    async def insert(self, table: str, row: Mapping[str, Any]) -> Row:
        require_owner_filter(row)
        rows = await self._request("POST", table, json=dict(row), returning=True)
        if len(rows) != 1:
            raise StoreUnavailable("store_bad_response")
        return rows[0]

    async def update(self, table: str, values: Mapping[str, Any], *, filters: Mapping[str, Any]) -> list[Row]:
        require_owner_filter(filters)
        return await self._request(
            "PATCH", table, params=self._filter_params(filters), json=dict(values), returning=True
        )

    async def delete(self, table: str, *, filters: Mapping[str, Any]) -> list[Row]:
        require_owner_filter(filters)
        return await self._request("DELETE", table, params=self._filter_params(filters), returning=True)

    async def aclose(self) -> None:
        await self._client.aclose()
