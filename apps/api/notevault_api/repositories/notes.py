from __future__ import annotations

from typing import Any, Mapping

from notevault_api.domain.entities import Note, NoteDraft, Priority
from notevault_api.domain.exceptions import NotFound
from notevault_api.domain.filtering import filter_notes
from notevault_api.domain.mapping import note_draft_to_row, note_from_row, note_patch_to_values
from notevault_api.domain.ports import Row
from notevault_api.repositories.base import OwnedRepository


class NotesRepository(OwnedRepository[Note]):
    table = "notes"
    entity_name = "note"

    def _decode(self, row: Row) -> Note:
        return note_from_row(row)

    async def create(self, owner: str, draft: NoteDraft) -> Note:
        self._check_owner(owner)
        row = note_draft_to_row(self.owner_id, draft)
        return await self._insert(row)

    async def update(self, owner: str, note_id: str, patch: Mapping[str, Any]) -> Note:
        self._check_owner(owner)
        values = note_patch_to_values(patch)
        return await self._update(note_id, values)

    async def toggle_complete(self, owner: str, note_id: str) -> Note:
        """
        Flips `completed` based on a fresh read of the remote row, not the
        snapshot. Serialised with other mutations on the same id; concurrent
        writers in other clients are last-writer-wins.
        """
        self._check_owner(owner)
        async with self._serialized(note_id):
            rows = await self._store.select(self.table, filters=self._filters(id=note_id))
            current = self._decode_owned(rows)
            if not current:
                raise NotFound(self.entity_name, note_id)
            return await self._update_locked(note_id, {"completed": not current[0].completed})

    def filter(self, search: str | None = None, priority: Priority | str | None = None) -> list[Note]:
        return filter_notes(self._items, search, priority)
