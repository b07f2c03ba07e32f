from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Iterable

from notevault_api.domain.entities import AggregateStats, Note, PasswordEntry
from notevault_api.domain.exceptions import NotevaultError, StoreUnavailable
from notevault_api.domain.filtering import recent_notes
from notevault_api.repositories.notes import NotesRepository
from notevault_api.repositories.passwords import PasswordsRepository


logger = logging.getLogger("notevault.dashboard")

DEFAULT_RECENT_LIMIT = 3


def compute_stats(notes: Iterable[Note], passwords: Iterable[PasswordEntry]) -> AggregateStats:
    total = 0
    completed = 0
    for note in notes:
        total += 1
        if note.completed:
            completed += 1
    return AggregateStats(
        total_notes=total,
        completed_notes=completed,
        pending_notes=total - completed,
        saved_passwords=sum(1 for _ in passwords),
    )


@dataclass(frozen=True)
class DashboardView:
    stats: AggregateStats
    recent_notes: list[Note]
    last_error: NotevaultError | None = None


class DashboardProvider:
    """
    Read-only projection over one owner's notes and passwords repositories.
    Nothing is cached here; every call derives from the current snapshots.
    """

    def __init__(
        self,
        notes: NotesRepository,
        passwords: PasswordsRepository,
        *,
        recent_limit: int = DEFAULT_RECENT_LIMIT,
    ) -> None:
        self.notes = notes
        self.passwords = passwords
        self.recent_limit = recent_limit
        self.last_error: NotevaultError | None = None

    def stats(self) -> AggregateStats:
        return compute_stats(self.notes.snapshot, self.passwords.snapshot)

    def recent_notes(self, limit: int | None = None) -> list[Note]:
        return recent_notes(self.notes.snapshot, self.recent_limit if limit is None else limit)

    def view(self) -> DashboardView:
        return DashboardView(stats=self.stats(), recent_notes=self.recent_notes(), last_error=self.last_error)

    async def refresh(self, owner: str) -> DashboardView:
        results = await asyncio.gather(
            self.notes.list(owner),
            self.passwords.list(owner),
            return_exceptions=True,
        )
        failures = [r for r in results if isinstance(r, BaseException)]
        if failures:
            first = failures[0]
            if isinstance(first, StoreUnavailable):
                # Both lists are idempotent reads, so the caller may simply retry.
                err = StoreUnavailable(first.reason, retryable=True)
                self.last_error = err
                logger.warning("dashboard_refresh_failed", extra={"owner": self.notes.owner_id, "reason": first.reason})
                raise err from first
            if isinstance(first, NotevaultError):
                self.last_error = first
            raise first

        self.last_error = None
        view = self.view()
        logger.info(
            "dashboard_refresh",
            extra={
                "owner": self.notes.owner_id,
                "total": view.stats.total_notes,
                "passwords": view.stats.saved_passwords,
            },
        )
        return view
