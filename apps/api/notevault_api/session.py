from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from notevault_api.dashboard import DEFAULT_RECENT_LIMIT, DashboardProvider
from notevault_api.domain.entities import AuthSession, Identity
from notevault_api.domain.exceptions import Unauthorized
from notevault_api.domain.ports import IdentityProvider, TableStore
from notevault_api.repositories.notes import NotesRepository
from notevault_api.repositories.passwords import PasswordsRepository
from notevault_api.util import utc_now


logger = logging.getLogger("notevault.session")

StoreFactory = Callable[[str], TableStore]

DEFAULT_MAX_SESSIONS = 256


@dataclass
class UserSession:
    access_token: str
    user: Identity
    store: TableStore
    notes: NotesRepository
    passwords: PasswordsRepository
    dashboard: DashboardProvider
    expires_at: datetime | None = None

    @property
    def owner_id(self) -> str:
        return self.user.id

    def expired(self, now: datetime) -> bool:
        return self.expires_at is not None and now >= self.expires_at

    async def close(self) -> None:
        self.notes.close()
        self.passwords.close()
        await self.store.aclose()


class SessionRegistry:
    """
    Maps access tokens to live sessions. A token seen for the first time is
    checked against the identity provider and a session is rebuilt for it.

    The map holds at most `max_sessions` entries; the least recently used one
    is closed to make room. Expired sessions are closed on lookup.
    """

    def __init__(
        self,
        identity: IdentityProvider,
        store_factory: StoreFactory,
        *,
        recent_limit: int = DEFAULT_RECENT_LIMIT,
        max_sessions: int = DEFAULT_MAX_SESSIONS,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if max_sessions < 1:
            raise ValueError("max_sessions must be at least 1")
        self.identity = identity
        self._store_factory = store_factory
        self._recent_limit = recent_limit
        self._max_sessions = max_sessions
        self._clock = clock or utc_now
        self._sessions: OrderedDict[str, UserSession] = OrderedDict()
        self._restore_lock = asyncio.Lock()

    async def _open(self, auth: AuthSession) -> UserSession:
        store = self._store_factory(auth.access_token)
        notes = NotesRepository(auth.user.id, store)
        passwords = PasswordsRepository(auth.user.id, store)
        session = UserSession(
            access_token=auth.access_token,
            user=auth.user,
            store=store,
            notes=notes,
            passwords=passwords,
            dashboard=DashboardProvider(notes, passwords, recent_limit=self._recent_limit),
            expires_at=auth.expires_at,
        )
        previous = self._sessions.pop(auth.access_token, None)
        self._sessions[auth.access_token] = session
        logger.info("session_open", extra={"owner": auth.user.id})
        if previous is not None:
            await self._close(previous, "replaced")
        while len(self._sessions) > self._max_sessions:
            _, oldest = self._sessions.popitem(last=False)
            await self._close(oldest, "capacity")
        return session

    @staticmethod
    async def _close(session: UserSession, why: str) -> None:
        await session.close()
        logger.info("session_close", extra={"owner": session.owner_id, "why": why})

    def get(self, access_token: str) -> UserSession | None:
        return self._sessions.get(access_token)

    async def sign_up(self, email: str, password: str) -> UserSession:
        return await self._open(await self.identity.sign_up(email, password))

    async def sign_in(self, email: str, password: str) -> UserSession:
        return await self._open(await self.identity.sign_in(email, password))

    async def _cached(self, access_token: str) -> UserSession | None:
        session = self._sessions.get(access_token)
        if session is None:
            return None
        if session.expired(self._clock()):
            await self.evict(access_token, "expired")
            raise Unauthorized("session_expired")
        self._sessions.move_to_end(access_token)
        return session

    async def resolve(self, access_token: str | None) -> UserSession:
        if not access_token:
            raise Unauthorized("missing_session")
        session = await self._cached(access_token)
        if session is not None:
            return session
        async with self._restore_lock:
            session = await self._cached(access_token)
            if session is not None:
                return session
            user = await self.identity.current_user(access_token)
            logger.info("session_restore", extra={"owner": user.id})
            return await self._open(AuthSession(access_token=access_token, user=user))

    async def evict(self, access_token: str, why: str = "rejected") -> None:
        """Drops and closes the session for a token the backend no longer accepts."""
        session = self._sessions.pop(access_token, None)
        if session is not None:
            await self._close(session, why)

    async def sign_out(self, access_token: str) -> None:
        session = self._sessions.pop(access_token, None)
        try:
            await self.identity.sign_out(access_token)
        finally:
            if session is not None:
                await self._close(session, "sign_out")

    async def close_all(self) -> None:
        sessions = list(self._sessions.values())
        self._sessions.clear()
        for session in sessions:
            await session.close()

    def __len__(self) -> int:
        return len(self._sessions)
