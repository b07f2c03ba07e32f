from __future__ import annotations

from typing import Iterable

from notevault_api.domain.entities import Note, PasswordEntry, Priority
from notevault_api.domain.mapping import validate_priority


def filter_notes(
    notes: Iterable[Note],
    search: str | None = None,
    priority: Priority | str | None = None,
) -> list[Note]:
    """
    Case-insensitive substring match on title or description, optionally
    narrowed to one priority. `None`, `""` and `"all"` disable the priority filter.
    """
    needle = (search or "").lower()
    wanted: Priority | None = None
    if priority is not None and priority != "" and priority != "all":
        wanted = validate_priority(priority)

    out: list[Note] = []
    for note in notes:
        if needle and needle not in note.title.lower() and needle not in note.description.lower():
            continue
        if wanted is not None and note.priority is not wanted:
            continue
        out.append(note)
    return out


def filter_passwords(entries: Iterable[PasswordEntry], search: str | None = None) -> list[PasswordEntry]:
    needle = (search or "").lower()
    if not needle:
        return list(entries)
    out: list[PasswordEntry] = []
    for entry in entries:
        hay = [entry.site_name.lower(), entry.username.lower()]
        if entry.category:
            hay.append(entry.category.lower())
        if any(needle in h for h in hay):
            out.append(entry)
    return out


def recent_notes(notes: Iterable[Note], limit: int = 3) -> list[Note]:
    # sorted() is stable: equal timestamps keep their snapshot order.
    if limit <= 0:
        return []
    return sorted(notes, key=lambda n: n.created_at, reverse=True)[:limit]
