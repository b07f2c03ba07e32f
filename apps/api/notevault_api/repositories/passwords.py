from __future__ import annotations

from typing import Any, Mapping

from notevault_api.domain.entities import PasswordDraft, PasswordEntry
from notevault_api.domain.filtering import filter_passwords
from notevault_api.domain.mapping import password_draft_to_row, password_from_row, password_patch_to_values
from notevault_api.domain.ports import Row
from notevault_api.repositories.base import OwnedRepository


# Offered to clients as a pick list; any other text is accepted too.
SUGGESTED_CATEGORIES: tuple[str, ...] = ("Email", "Development", "Entertainment", "Social", "Banking", "Other")


class PasswordsRepository(OwnedRepository[PasswordEntry]):
    table = "passwords"
    entity_name = "password"

    def _decode(self, row: Row) -> PasswordEntry:
        return password_from_row(row)

    async def create(self, owner: str, draft: PasswordDraft) -> PasswordEntry:
        self._check_owner(owner)
        row = password_draft_to_row(self.owner_id, draft)
        return await self._insert(row)

    async def update(self, owner: str, entry_id: str, patch: Mapping[str, Any]) -> PasswordEntry:
        self._check_owner(owner)
        values = password_patch_to_values(patch)
        return await self._update(entry_id, values)

    def filter(self, search: str | None = None) -> list[PasswordEntry]:
        return filter_passwords(self._items, search)
