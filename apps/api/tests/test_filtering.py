from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from notevault_api.domain.entities import Note, NoteDraft, Priority
from notevault_api.domain.exceptions import ValidationError
from notevault_api.domain.filtering import filter_notes, recent_notes
from notevault_api.infrastructure.memory_store import InMemoryTableStore
from notevault_api.repositories.notes import NotesRepository


T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)


def _note(note_id: str, *, minutes: int = 0, title: str | None = None, description: str = "", priority=Priority.MEDIUM) -> Note:
    ts = T0 + timedelta(minutes=minutes)
    return Note(
        id=note_id,
        title=title or note_id,
        description=description,
        priority=priority,
        due_date=None,
        completed=False,
        created_at=ts,
        updated_at=ts,
        owner_id="owner-a",
    )


class NoRemoteStore(InMemoryTableStore):
    def __init__(self) -> None:
        super().__init__()
        self.selects = 0

    async def select(self, table, *, filters, order_by=None, descending=True):
        self.selects += 1
        return await super().select(table, filters=filters, order_by=order_by, descending=descending)


def test_search_and_priority_scenario() -> None:
    async def scenario():
        store = NoRemoteStore()
        repo = NotesRepository("owner-a", store)
        await repo.create("owner-a", NoteDraft(title="Buy milk", priority="low"))
        await repo.create("owner-a", NoteDraft(title="Ship release", priority="high"))
        return repo, store

    repo, store = asyncio.run(scenario())
    assert [n.title for n in repo.filter("ship")] == ["Ship release"]
    assert [n.title for n in repo.filter(priority="low")] == ["Buy milk"]
    assert [n.title for n in repo.filter(priority="all")] == ["Ship release", "Buy milk"]
    assert store.selects == 0


def test_search_covers_description_case_insensitively() -> None:
    notes = [_note("a", title="Groceries", description="Oat MILK"), _note("b", title="Taxes")]
    assert [n.id for n in filter_notes(notes, "milk")] == ["a"]
    assert [n.id for n in filter_notes(notes, "TAX")] == ["b"]


def test_search_text_is_matched_verbatim() -> None:
    notes = [_note("a", title="Buy milk"), _note("b", title="Taxes")]
    assert filter_notes(notes, "milk ") == []
    assert [n.id for n in filter_notes(notes, " ")] == ["a"]
    assert [n.id for n in filter_notes(notes, "buy m")] == ["a"]


def test_filter_is_pure() -> None:
    notes = [_note("a", priority=Priority.HIGH), _note("b"), _note("c", priority=Priority.HIGH)]
    snapshot = list(notes)
    first = filter_notes(notes, "", "high")
    second = filter_notes(notes, "", "high")
    assert first == second
    assert [n.id for n in first] == ["a", "c"]
    assert notes == snapshot


def test_unknown_priority_filter_is_rejected() -> None:
    with pytest.raises(ValidationError):
        filter_notes([_note("a")], priority="urgent")


def test_recent_notes_returns_three_newest_descending() -> None:
    notes = [_note("n1", minutes=1), _note("n3", minutes=3), _note("n2", minutes=2), _note("n4", minutes=4)]
    assert [n.id for n in recent_notes(notes, 3)] == ["n4", "n3", "n2"]


def test_recent_notes_ties_keep_snapshot_order() -> None:
    notes = [_note("x", minutes=5), _note("y", minutes=5), _note("z", minutes=1)]
    assert [n.id for n in recent_notes(notes, 3)] == ["x", "y", "z"]
    assert recent_notes(notes, 0) == []
