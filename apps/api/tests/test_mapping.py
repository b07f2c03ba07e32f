from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from notevault_api.domain.entities import Priority
from notevault_api.domain.exceptions import StoreUnavailable
from notevault_api.domain.mapping import note_from_row, password_from_row
from notevault_api.util import parse_timestamp


def _row(**overrides) -> dict:
    row = {
        "id": "n1",
        "title": "Hello",
        "description": None,
        "priority": "HIGH ",
        "due_date": "2025-02-03",
        "completed": None,
        "created_at": "2025-01-01T10:00:00.12345+00:00",
        "updated_at": "2025-01-02T10:00:00Z",
        "user_id": "owner-a",
    }
    row.update(overrides)
    return row


def test_note_row_is_normalised() -> None:
    note = note_from_row(_row())
    assert note.description == ""
    assert note.priority is Priority.HIGH
    assert note.due_date == date(2025, 2, 3)
    assert note.completed is False
    assert note.created_at == datetime(2025, 1, 1, 10, 0, 0, 123450, tzinfo=timezone.utc)
    assert note.owner_id == "owner-a"


def test_unknown_priority_falls_back_to_medium() -> None:
    assert note_from_row(_row(priority="urgent")).priority is Priority.MEDIUM
    assert note_from_row(_row(priority=None)).priority is Priority.MEDIUM


def test_missing_updated_at_uses_created_at() -> None:
    note = note_from_row(_row(updated_at=None))
    assert note.updated_at == note.created_at


@pytest.mark.parametrize("key", ["id", "title", "user_id", "created_at"])
def test_rows_missing_required_columns_are_rejected(key: str) -> None:
    with pytest.raises(StoreUnavailable):
        note_from_row(_row(**{key: None}))


def test_password_row_maps_secret_column() -> None:
    entry = password_from_row(
        {
            "id": 7,
            "site_name": "GitHub",
            "username": "octo",
            "encrypted_password": "s3cret",
            "category": "  ",
            "created_at": "2025-01-01 10:00:00+00",
            "user_id": "owner-a",
        }
    )
    assert entry.id == "7"
    assert entry.secret == "s3cret"
    assert entry.category is None
    assert "s3cret" not in repr(entry)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("2025-01-01T00:00:00Z", datetime(2025, 1, 1, tzinfo=timezone.utc)),
        ("2025-01-01T00:00:00.1+00:00", datetime(2025, 1, 1, 0, 0, 0, 100000, tzinfo=timezone.utc)),
        ("2025-01-01T00:00:00.123456789Z", datetime(2025, 1, 1, 0, 0, 0, 123456, tzinfo=timezone.utc)),
        ("2025-01-01T00:00:00", datetime(2025, 1, 1, tzinfo=timezone.utc)),
    ],
)
def test_parse_timestamp(raw: str, expected: datetime) -> None:
    assert parse_timestamp(raw) == expected


@pytest.mark.parametrize("raw", ["false", "true", 1, "yes"])
def test_completed_accepts_only_real_booleans(raw) -> None:
    assert note_from_row(_row(completed=raw)).completed is False
    assert note_from_row(_row(completed=True)).completed is True
