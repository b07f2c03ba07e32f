from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal


StoreBackend = Literal["memory", "supabase"]


@dataclass(frozen=True)
class Settings:
    store_backend: StoreBackend
    supabase_url: str | None
    supabase_anon_key: str | None
    store_timeout_s: float
    recent_notes_limit: int
    max_sessions: int
    api_debug_log: bool


def load_settings() -> Settings:
    store_backend = os.environ.get("STORE_BACKEND", "memory").strip().lower()
    if store_backend not in ("memory", "supabase"):
        raise ValueError(f"unknown STORE_BACKEND: {store_backend}")
    supabase_url = os.environ.get("SUPABASE_URL")
    supabase_anon_key = os.environ.get("SUPABASE_ANON_KEY")
    if store_backend == "supabase" and not (supabase_url and supabase_anon_key):
        raise ValueError("STORE_BACKEND=supabase requires SUPABASE_URL and SUPABASE_ANON_KEY")
    store_timeout_s = float(os.environ.get("STORE_TIMEOUT_S", "10"))
    recent_notes_limit = int(os.environ.get("RECENT_NOTES_LIMIT", "3"))
    max_sessions = int(os.environ.get("MAX_SESSIONS", "256"))
    if max_sessions < 1:
        raise ValueError("MAX_SESSIONS must be at least 1")
    api_debug_log = os.environ.get("API_DEBUG_LOG", "false").lower() == "true"
    return Settings(
        store_backend=store_backend,  # type: ignore[arg-type]
        supabase_url=supabase_url,
        supabase_anon_key=supabase_anon_key,
        store_timeout_s=store_timeout_s,
        recent_notes_limit=recent_notes_limit,
        max_sessions=max_sessions,
        api_debug_log=api_debug_log,
    )
