from typing import AsyncIterator

from fastapi import HTTPException, Request

from notevault_api.config import Settings
from notevault_api.domain.exceptions import StoreUnavailable, Unauthorized
from notevault_api.infrastructure.identity import GoTrueIdentityProvider, StubIdentityProvider
from notevault_api.infrastructure.memory_store import InMemoryTableStore
from notevault_api.infrastructure.rest_store import RestTableStore
from notevault_api.session import SessionRegistry, UserSession


def build_registry(settings: Settings) -> SessionRegistry:
    if settings.store_backend == "supabase":
        identity = GoTrueIdentityProvider(
            settings.supabase_url,
            settings.supabase_anon_key,
            timeout_s=settings.store_timeout_s,
        )

        def store_factory(access_token: str) -> RestTableStore:
            return RestTableStore(
                settings.supabase_url,
                settings.supabase_anon_key,
                access_token,
                timeout_s=settings.store_timeout_s,
            )

        return SessionRegistry(
            identity,
            store_factory,
            recent_limit=settings.recent_notes_limit,
            max_sessions=settings.max_sessions,
        )

    store = InMemoryTableStore()
    return SessionRegistry(
        StubIdentityProvider(),
        lambda _token: store,
        recent_limit=settings.recent_notes_limit,
        max_sessions=settings.max_sessions,
    )


def get_sessions(request: Request) -> SessionRegistry:
    return request.app.state.sessions


def bearer_token(request: Request) -> str | None:
    auth = request.headers.get("authorization") or ""
    scheme, _, token = auth.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def get_session(request: Request) -> AsyncIterator[UserSession]:
    token = bearer_token(request)
    if not token:
        raise HTTPException(status_code=401, detail="missing_session")
    sessions = get_sessions(request)
    try:
        session = await sessions.resolve(token)
    except Unauthorized as e:
        raise HTTPException(status_code=401, detail=e.reason) from e
    except StoreUnavailable as e:
        raise HTTPException(status_code=503, detail={"reason": e.reason, "retryable": True}) from e
    try:
        yield session
    except HTTPException as e:
        # The backend rejected the token mid-request; drop the cached session.
        if e.status_code == 401:
            await sessions.evict(token)
        raise
