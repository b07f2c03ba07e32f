from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from notevault_api.dashboard import DashboardProvider, compute_stats
from notevault_api.domain.entities import NoteDraft, PasswordDraft
from notevault_api.domain.exceptions import StoreUnavailable
from notevault_api.infrastructure.memory_store import InMemoryTableStore
from notevault_api.repositories.notes import NotesRepository
from notevault_api.repositories.passwords import PasswordsRepository


OWNER = "owner-a"


def ticking_clock(start: datetime = datetime(2025, 1, 1, tzinfo=timezone.utc)):
    state = {"n": 0}

    def clock() -> datetime:
        state["n"] += 1
        return start + timedelta(minutes=state["n"])

    return clock


class PasswordOutageStore(InMemoryTableStore):
    def __init__(self) -> None:
        super().__init__()
        self.down = False

    async def select(self, table, *, filters, order_by=None, descending=True):
        if self.down and table == "passwords":
            raise StoreUnavailable("store_request_failed", retryable=True)
        return await super().select(table, filters=filters, order_by=order_by, descending=descending)


def _provider(store: InMemoryTableStore) -> DashboardProvider:
    return DashboardProvider(NotesRepository(OWNER, store), PasswordsRepository(OWNER, store))


def test_empty_snapshots_report_zero_completion_rate() -> None:
    stats = compute_stats([], [])
    assert stats.total_notes == 0
    assert stats.pending_notes == 0
    assert stats.completion_rate == 0.0
    assert stats.completion_percent == 0


def test_stats_follow_repository_snapshots() -> None:
    async def scenario():
        dash = _provider(InMemoryTableStore())
        seen = []
        a = await dash.notes.create(OWNER, NoteDraft(title="a"))
        await dash.notes.create(OWNER, NoteDraft(title="b"))
        await dash.notes.create(OWNER, NoteDraft(title="c"))
        await dash.passwords.create(OWNER, PasswordDraft(site_name="s", username="u", secret="p"))
        seen.append(dash.stats())
        await dash.notes.toggle_complete(OWNER, a.id)
        seen.append(dash.stats())
        await dash.notes.delete(OWNER, a.id)
        seen.append(dash.stats())
        return seen

    seen = asyncio.run(scenario())
    assert [(s.total_notes, s.completed_notes, s.saved_passwords) for s in seen] == [(3, 0, 1), (3, 1, 1), (2, 0, 1)]
    for s in seen:
        assert s.pending_notes == s.total_notes - s.completed_notes
        assert 0.0 <= s.completion_rate <= 1.0
    assert seen[1].completion_rate == pytest.approx(1 / 3)
    assert seen[1].completion_percent == 33


def test_recent_notes_projection_after_refresh() -> None:
    async def scenario():
        store = InMemoryTableStore(clock=ticking_clock())
        writer = NotesRepository(OWNER, store)
        created = [await writer.create(OWNER, NoteDraft(title=f"note {i}")) for i in range(4)]
        dash = _provider(store)
        view = await dash.refresh(OWNER)
        return created, view

    created, view = asyncio.run(scenario())
    assert [n.id for n in view.recent_notes] == [created[3].id, created[2].id, created[1].id]
    assert view.stats.total_notes == 4
    assert view.last_error is None


def test_refresh_failure_is_retryable_and_keeps_stale_view() -> None:
    async def scenario():
        store = PasswordOutageStore()
        dash = _provider(store)
        await dash.notes.create(OWNER, NoteDraft(title="kept"))
        await dash.passwords.create(OWNER, PasswordDraft(site_name="s", username="u", secret="p"))
        await dash.refresh(OWNER)

        store.down = True
        with pytest.raises(StoreUnavailable) as exc:
            await dash.refresh(OWNER)
        stale = dash.view()

        store.down = False
        fresh = await dash.refresh(OWNER)
        return exc.value, stale, fresh

    err, stale, fresh = asyncio.run(scenario())
    assert err.retryable is True
    assert stale.stats.total_notes == 1
    assert stale.stats.saved_passwords == 1
    assert isinstance(stale.last_error, StoreUnavailable)
    assert fresh.last_error is None
