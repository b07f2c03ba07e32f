from __future__ import annotations

import logging
import re
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import httpx

from notevault_api.domain.entities import AuthSession, Identity
from notevault_api.domain.exceptions import StoreUnavailable, Unauthorized, ValidationError
from notevault_api.util import parse_timestamp, utc_now


logger = logging.getLogger("notevault.identity")

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PASSWORD_LENGTH = 6

DEFAULT_USERS: tuple[tuple[str, str], ...] = (
    ("user@example.com", "password123"),
    ("admin@test.com", "admin123"),
)


def validate_credentials(email: str, password: str) -> str:
    email = (email or "").strip()
    if not email:
        raise ValidationError("email", "Email is required")
    if not _EMAIL_RE.match(email):
        raise ValidationError("email", "Please enter a valid email address")
    if not password:
        raise ValidationError("password", "Password is required")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError("password", f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    return email


class StubIdentityProvider:
    """
    Registered-users stand-in for the hosted auth service. Users live in
    process memory; tokens are opaque random strings.
    """

    def __init__(
        self,
        users: tuple[tuple[str, str], ...] = DEFAULT_USERS,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._clock = clock or utc_now
        self._users: dict[str, tuple[Identity, str]] = {}
        self._tokens: dict[str, str] = {}
        for email, password in users:
            self._register(email, password)

    def _register(self, email: str, password: str) -> Identity:
        key = email.lower()
        ident = Identity(id=f"user-{secrets.token_hex(8)}", email=email, created_at=self._clock())
        self._users[key] = (ident, password)
        return ident

    def _issue(self, ident: Identity) -> AuthSession:
        token = secrets.token_urlsafe(24)
        self._tokens[token] = ident.email.lower()
        return AuthSession(access_token=token, user=ident)

    async def sign_up(self, email: str, password: str) -> AuthSession:
        email = validate_credentials(email, password)
        if email.lower() in self._users:
            raise ValidationError("email", "An account with this email already exists")
        ident = self._register(email, password)
        logger.info("identity_sign_up", extra={"owner": ident.id})
        return self._issue(ident)

    async def sign_in(self, email: str, password: str) -> AuthSession:
        email = validate_credentials(email, password)
        entry = self._users.get(email.lower())
        if entry is None or not secrets.compare_digest(entry[1], password):
            raise Unauthorized("invalid_credentials")
        return self._issue(entry[0])

    async def current_user(self, access_token: str) -> Identity:
        key = self._tokens.get(access_token or "")
        if key is None or key not in self._users:
            raise Unauthorized("invalid_session")
        return self._users[key][0]

    async def sign_out(self, access_token: str) -> None:
        self._tokens.pop(access_token, None)

    async def aclose(self) -> None:
        return None


def _identity_from_user(data: Any) -> Identity:
    if not isinstance(data, dict) or not data.get("id"):
        raise StoreUnavailable("identity_bad_response")
    created_raw = data.get("created_at")
    created_at = None
    if isinstance(created_raw, str) and created_raw:
        try:
            created_at = parse_timestamp(created_raw)
        except ValueError:
            created_at = None
    return Identity(id=str(data["id"]), email=str(data.get("email") or ""), created_at=created_at)


def _expiry_from(data: dict) -> datetime | None:
    # GoTrue sends both; `expires_at` is epoch seconds.
    expires_at = data.get("expires_at")
    if isinstance(expires_at, (int, float)) and not isinstance(expires_at, bool):
        return datetime.fromtimestamp(expires_at, tz=timezone.utc)
    expires_in = data.get("expires_in")
    if isinstance(expires_in, (int, float)) and not isinstance(expires_in, bool):
        return utc_now() + timedelta(seconds=expires_in)
    return None


class GoTrueIdentityProvider:
    """Supabase auth (GoTrue) over HTTP."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout_s: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/") + "/auth/v1/",
            timeout=timeout_s,
            transport=transport,
            headers={"apikey": api_key, "Content-Type": "application/json"},
        )

    async def _post(self, path: str, *, json: Any = None, params: dict | None = None, token: str | None = None) -> httpx.Response:
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        try:
            return await self._client.post(path, json=json, params=params, headers=headers)
        except httpx.HTTPError as e:
            raise StoreUnavailable("identity_request_failed", retryable=True) from e

    @staticmethod
    def _session_from(resp: httpx.Response) -> AuthSession:
        try:
            data = resp.json()
        except ValueError as e:
            raise StoreUnavailable("identity_bad_response") from e
        if not isinstance(data, dict):
            raise StoreUnavailable("identity_bad_response")
        token = data.get("access_token")
        if not token:
            # Sign-up with email confirmation enabled returns a bare user.
            raise Unauthorized("email_confirmation_required")
        return AuthSession(
            access_token=str(token),
            user=_identity_from_user(data.get("user")),
            refresh_token=data.get("refresh_token"),
            expires_at=_expiry_from(data),
        )

    async def sign_up(self, email: str, password: str) -> AuthSession:
        email = validate_credentials(email, password)
        resp = await self._post("signup", json={"email": email, "password": password})
        if resp.status_code in (400, 422):
            raise ValidationError("email", "Sign up was rejected")
        if resp.status_code >= 400:
            raise StoreUnavailable(f"identity_http_{resp.status_code}")
        return self._session_from(resp)

    async def sign_in(self, email: str, password: str) -> AuthSession:
        email = validate_credentials(email, password)
        resp = await self._post("token", params={"grant_type": "password"}, json={"email": email, "password": password})
        if resp.status_code in (400, 401):
            raise Unauthorized("invalid_credentials")
        if resp.status_code >= 400:
            raise StoreUnavailable(f"identity_http_{resp.status_code}")
        return self._session_from(resp)

    async def current_user(self, access_token: str) -> Identity:
        if not access_token:
            raise Unauthorized("invalid_session")
        try:
            resp = await self._client.get("user", headers={"Authorization": f"Bearer {access_token}"})
        except httpx.HTTPError as e:
            raise StoreUnavailable("identity_request_failed", retryable=True) from e
        if resp.status_code in (401, 403):
            raise Unauthorized("invalid_session")
        if resp.status_code >= 400:
            raise StoreUnavailable(f"identity_http_{resp.status_code}")
        try:
            return _identity_from_user(resp.json())
        except ValueError as e:
            raise StoreUnavailable("identity_bad_response") from e

    async def sign_out(self, access_token: str) -> None:
        resp = await self._post("logout", token=access_token)
        if resp.status_code >= 400 and resp.status_code not in (401, 403):
            logger.warning("identity_sign_out_failed", extra={"status": resp.status_code})

    async def aclose(self) -> None:
        await self._client.aclose()
