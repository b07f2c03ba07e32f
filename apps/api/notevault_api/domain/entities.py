from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class Note:
    id: str
    title: str
    description: str
    priority: Priority
    due_date: date | None
    completed: bool
    created_at: datetime
    updated_at: datetime
    owner_id: str


@dataclass(frozen=True)
class PasswordEntry:
    id: str
    site_name: str
    username: str
    secret: str = field(repr=False)
    category: str | None
    created_at: datetime
    updated_at: datetime
    owner_id: str


@dataclass(frozen=True)
class NoteDraft:
    title: str
    description: str = ""
    priority: Priority | str | None = None
    due_date: date | str | None = None


@dataclass(frozen=True)
class PasswordDraft:
    site_name: str
    username: str
    secret: str = field(repr=False)
    category: str | None = None


@dataclass(frozen=True)
class AggregateStats:
    total_notes: int
    completed_notes: int
    pending_notes: int
    saved_passwords: int

    @property
    def completion_rate(self) -> float:
        if self.total_notes <= 0:
            return 0.0
        return self.completed_notes / self.total_notes

    @property
    def completion_percent(self) -> int:
        return round(self.completion_rate * 100)


@dataclass(frozen=True)
class Identity:
    id: str
    email: str
    created_at: datetime | None = None


@dataclass(frozen=True)
class AuthSession:
    access_token: str
    user: Identity
    refresh_token: str | None = field(default=None, repr=False)
    expires_at: datetime | None = None
