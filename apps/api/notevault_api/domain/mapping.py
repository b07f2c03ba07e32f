from __future__ import annotations

import logging
from datetime import date
from typing import Any, Mapping

from notevault_api.domain.entities import Note, NoteDraft, PasswordDraft, PasswordEntry, Priority
from notevault_api.domain.exceptions import StoreUnavailable, ValidationError
from notevault_api.domain.ports import OWNER_COLUMN, Row
from notevault_api.util import parse_date, parse_timestamp


logger = logging.getLogger("notevault.mapping")

IMMUTABLE_FIELDS = frozenset({"id", "owner_id", OWNER_COLUMN, "created_at", "updated_at"})
NOTE_PATCH_FIELDS = frozenset({"title", "description", "priority", "due_date", "completed"})
PASSWORD_PATCH_FIELDS = frozenset({"site_name", "username", "secret", "category"})

# The hosted schema names the column `encrypted_password`, but values are stored verbatim.
SECRET_COLUMN = "encrypted_password"


def coerce_priority(raw: Any) -> Priority:
    """Lenient decode used on rows coming back from the store."""
    if isinstance(raw, Priority):
        return raw
    if isinstance(raw, str):
        try:
            return Priority(raw.strip().lower())
        except ValueError:
            pass
    return Priority.MEDIUM


def validate_priority(raw: Any) -> Priority:
    if raw is None:
        return Priority.MEDIUM
    if isinstance(raw, Priority):
        return raw
    if isinstance(raw, str):
        try:
            return Priority(raw.strip().lower())
        except ValueError:
            pass
    raise ValidationError("priority", "must be one of high, medium, low")


def _required_text(field: str, raw: Any) -> str:
    if not isinstance(raw, str) or not raw.strip():
        raise ValidationError(field, "is required")
    return raw.strip()


def _optional_due_date(raw: Any) -> str | None:
    if raw is None or raw == "":
        return None
    try:
        return parse_date(raw).isoformat()
    except (TypeError, ValueError) as e:
        raise ValidationError("due_date", "must be an ISO date (YYYY-MM-DD)") from e


def _optional_category(raw: Any) -> str | None:
    if raw is None:
        return None
    if not isinstance(raw, str):
        raise ValidationError("category", "must be text")
    return raw.strip() or None


def _check_patch_keys(patch: Mapping[str, Any], allowed: frozenset[str]) -> None:
    if not patch:
        raise ValidationError("patch", "no fields to update")
    for key in patch:
        if key in IMMUTABLE_FIELDS:
            raise ValidationError(key, "is immutable")
        if key not in allowed:
            raise ValidationError(key, "unknown field")


def note_draft_to_row(owner: str, draft: NoteDraft) -> Row:
    description = draft.description or ""
    if not isinstance(description, str):
        raise ValidationError("description", "must be text")
    return {
        "title": _required_text("title", draft.title),
        "description": description,
        "priority": validate_priority(draft.priority).value,
        "due_date": _optional_due_date(draft.due_date),
        "completed": False,
        OWNER_COLUMN: owner,
    }


def note_patch_to_values(patch: Mapping[str, Any]) -> Row:
    _check_patch_keys(patch, NOTE_PATCH_FIELDS)
    values: Row = {}
    for key, raw in patch.items():
        if key == "title":
            values["title"] = _required_text("title", raw)
        elif key == "description":
            if raw is not None and not isinstance(raw, str):
                raise ValidationError("description", "must be text")
            values["description"] = raw or ""
        elif key == "priority":
            if raw is None:
                raise ValidationError("priority", "must be one of high, medium, low")
            values["priority"] = validate_priority(raw).value
        elif key == "due_date":
            values["due_date"] = _optional_due_date(raw)
        elif key == "completed":
            if not isinstance(raw, bool):
                raise ValidationError("completed", "must be a boolean")
            values["completed"] = raw
    return values


def password_draft_to_row(owner: str, draft: PasswordDraft) -> Row:
    return {
        "site_name": _required_text("site_name", draft.site_name),
        "username": _required_text("username", draft.username),
        SECRET_COLUMN: _required_secret(draft.secret),
        "category": _optional_category(draft.category),
        OWNER_COLUMN: owner,
    }


def _required_secret(raw: Any) -> str:
    # Leading/trailing whitespace is significant in a secret.
    if not isinstance(raw, str) or not raw.strip():
        raise ValidationError("secret", "is required")
    return raw


def password_patch_to_values(patch: Mapping[str, Any]) -> Row:
    _check_patch_keys(patch, PASSWORD_PATCH_FIELDS)
    values: Row = {}
    for key, raw in patch.items():
        if key == "secret":
            values[SECRET_COLUMN] = _required_secret(raw)
        elif key == "category":
            values["category"] = _optional_category(raw)
        else:
            values[key] = _required_text(key, raw)
    return values


def _row_text(row: Row, key: str) -> str:
    value = row.get(key)
    if not isinstance(value, str) or not value:
        raise StoreUnavailable("malformed_row")
    return value


def _row_id(row: Row) -> str:
    value = row.get("id")
    if value is None or value == "":
        raise StoreUnavailable("malformed_row")
    return str(value)


def _row_owner(row: Row) -> str:
    value = row.get(OWNER_COLUMN)
    if value is None or value == "":
        raise StoreUnavailable("malformed_row")
    return str(value)


def _row_timestamps(row: Row):
    try:
        created_at = parse_timestamp(_row_text(row, "created_at"))
        updated_raw = row.get("updated_at")
        updated_at = parse_timestamp(updated_raw) if isinstance(updated_raw, str) and updated_raw else created_at
    except ValueError as e:
        raise StoreUnavailable("malformed_row") from e
    return created_at, updated_at


def note_from_row(row: Row) -> Note:
    created_at, updated_at = _row_timestamps(row)
    due_raw = row.get("due_date")
    due_date: date | None = None
    if due_raw:
        try:
            due_date = parse_date(due_raw)
        except (TypeError, ValueError):
            logger.warning("note_bad_due_date", extra={"id": row.get("id")})
    description = row.get("description")
    return Note(
        id=_row_id(row),
        title=_row_text(row, "title"),
        description=description if isinstance(description, str) else "",
        priority=coerce_priority(row.get("priority")),
        due_date=due_date,
        completed=row.get("completed") is True,
        created_at=created_at,
        updated_at=updated_at,
        owner_id=_row_owner(row),
    )


def password_from_row(row: Row) -> PasswordEntry:
    created_at, updated_at = _row_timestamps(row)
    category = row.get("category")
    return PasswordEntry(
        id=_row_id(row),
        site_name=_row_text(row, "site_name"),
        username=_row_text(row, "username"),
        secret=_row_text(row, SECRET_COLUMN),
        category=(category.strip() or None) if isinstance(category, str) else None,
        created_at=created_at,
        updated_at=updated_at,
        owner_id=_row_owner(row),
    )
