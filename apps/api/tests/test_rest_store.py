from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from notevault_api.domain.exceptions import StoreUnavailable, Unauthorized
from notevault_api.infrastructure.rest_store import RestTableStore


ROW = {
    "id": "n1",
    "title": "Hello",
    "priority": "low",
    "completed": False,
    "created_at": "2025-01-01T00:00:00+00:00",
    "updated_at": "2025-01-01T00:00:00+00:00",
    "user_id": "owner-a",
}


def _store(handler) -> RestTableStore:
    return RestTableStore(
        "https://example.supabase.co/",
        "anon-key",
        "user-token",
        transport=httpx.MockTransport(handler),
    )


def test_select_sends_owner_filter_order_and_auth_headers() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[ROW])

    async def scenario():
        store = _store(handler)
        try:
            return await store.select("notes", filters={"user_id": "owner-a"}, order_by="created_at")
        finally:
            await store.aclose()

    rows = asyncio.run(scenario())
    assert rows == [ROW]
    req = seen[0]
    assert req.method == "GET"
    assert req.url.path == "/rest/v1/notes"
    assert req.url.params["user_id"] == "eq.owner-a"
    assert req.url.params["order"] == "created_at.desc"
    assert req.url.params["select"] == "*"
    assert req.headers["apikey"] == "anon-key"
    assert req.headers["authorization"] == "Bearer user-token"


def test_insert_update_delete_ask_for_representation() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.method == "DELETE":
            return httpx.Response(200, json=[])
        return httpx.Response(201 if request.method == "POST" else 200, json=[ROW])

    async def scenario():
        store = _store(handler)
        try:
            inserted = await store.insert("notes", {"title": "Hello", "user_id": "owner-a"})
            updated = await store.update("notes", {"completed": True}, filters={"user_id": "owner-a", "id": "n1"})
            deleted = await store.delete("notes", filters={"user_id": "owner-a", "id": "n1"})
            return inserted, updated, deleted
        finally:
            await store.aclose()

    inserted, updated, deleted = asyncio.run(scenario())
    assert inserted == ROW
    assert updated == [ROW]
    assert deleted == []
    assert [r.method for r in seen] == ["POST", "PATCH", "DELETE"]
    for req in seen:
        assert req.headers["prefer"] == "return=representation"
    assert json.loads(seen[0].content) == {"title": "Hello", "user_id": "owner-a"}
    assert seen[1].url.params["id"] == "eq.n1"
    assert seen[1].url.params["user_id"] == "eq.owner-a"
    assert json.loads(seen[1].content) == {"completed": True}


def test_owner_filter_is_mandatory() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("request should never be sent")

    async def scenario():
        store = _store(handler)
        try:
            with pytest.raises(Unauthorized):
                await store.select("notes", filters={})
            with pytest.raises(Unauthorized):
                await store.update("notes", {"title": "x"}, filters={"id": "n1"})
            with pytest.raises(Unauthorized):
                await store.delete("notes", filters={"id": "n1", "user_id": ""})
            with pytest.raises(Unauthorized):
                await store.insert("notes", {"title": "x"})
        finally:
            await store.aclose()

    asyncio.run(scenario())


@pytest.mark.parametrize(
    ("status", "exc", "retryable"),
    [
        (401, Unauthorized, None),
        (403, Unauthorized, None),
        (500, StoreUnavailable, True),
        (503, StoreUnavailable, True),
    ],
)
def test_http_errors_are_mapped(status: int, exc: type, retryable) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, json={"message": "nope"})

    async def scenario():
        store = _store(handler)
        try:
            await store.select("notes", filters={"user_id": "owner-a"})
        finally:
            await store.aclose()

    with pytest.raises(exc) as info:
        asyncio.run(scenario())
    if retryable is not None:
        assert info.value.retryable is retryable


def test_failed_mutation_is_not_marked_retryable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("boom", request=request)

    async def scenario():
        store = _store(handler)
        try:
            await store.insert("notes", {"title": "x", "user_id": "owner-a"})
        finally:
            await store.aclose()

    with pytest.raises(StoreUnavailable) as info:
        asyncio.run(scenario())
    assert info.value.retryable is False
    assert info.value.reason == "store_request_failed"


def test_non_json_body_is_store_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"<html>gateway</html>")

    async def scenario():
        store = _store(handler)
        try:
            await store.select("notes", filters={"user_id": "owner-a"})
        finally:
            await store.aclose()

    with pytest.raises(StoreUnavailable):
        asyncio.run(scenario())
