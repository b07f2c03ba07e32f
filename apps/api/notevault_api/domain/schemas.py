from __future__ import annotations

from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from notevault_api.dashboard import DashboardView
from notevault_api.domain.entities import Identity, Note, PasswordEntry


PriorityIn = Literal["high", "medium", "low"]


class CredentialsIn(BaseModel):
    email: str
    password: str


class UserOut(BaseModel):
    id: str
    email: str
    created_at: Optional[datetime] = None

    @classmethod
    def from_identity(cls, ident: Identity) -> "UserOut":
        return cls(id=ident.id, email=ident.email, created_at=ident.created_at)


class SessionOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserOut


class ProfileOut(BaseModel):
    id: str
    email: str
    member_since: Optional[datetime] = None
    saved_passwords: int = 0
    total_notes: int = 0


class NoteOut(BaseModel):
    id: str
    title: str
    description: str = ""
    priority: PriorityIn
    due_date: Optional[date] = None
    completed: bool
    created_at: datetime
    updated_at: datetime
    user_id: str

    @classmethod
    def from_entity(cls, note: Note) -> "NoteOut":
        return cls(
            id=note.id,
            title=note.title,
            description=note.description,
            priority=note.priority.value,
            due_date=note.due_date,
            completed=note.completed,
            created_at=note.created_at,
            updated_at=note.updated_at,
            user_id=note.owner_id,
        )


class NoteCreateIn(BaseModel):
    title: str
    description: str = ""
    # Kept as free text so bad values surface as the domain's field error.
    priority: Optional[str] = None
    due_date: Optional[str] = None


class NoteUpdateIn(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[str] = None
    due_date: Optional[str] = None
    completed: Optional[bool] = None


class PasswordOut(BaseModel):
    id: str
    site_name: str
    username: str
    password: str
    category: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    user_id: str

    @classmethod
    def from_entity(cls, entry: PasswordEntry) -> "PasswordOut":
        return cls(
            id=entry.id,
            site_name=entry.site_name,
            username=entry.username,
            password=entry.secret,
            category=entry.category,
            created_at=entry.created_at,
            updated_at=entry.updated_at,
            user_id=entry.owner_id,
        )


class PasswordCreateIn(BaseModel):
    site_name: str
    username: str
    password: str
    category: Optional[str] = None


class PasswordUpdateIn(BaseModel):
    site_name: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    category: Optional[str] = None


class StatsOut(BaseModel):
    total_notes: int
    completed_notes: int
    pending_notes: int
    saved_passwords: int
    completion_rate: float
    completion_percent: int


class DashboardOut(BaseModel):
    stats: StatsOut
    recent_notes: list[NoteOut] = Field(default_factory=list)
    error: Optional[str] = None

    @classmethod
    def from_view(cls, view: DashboardView) -> "DashboardOut":
        s = view.stats
        return cls(
            stats=StatsOut(
                total_notes=s.total_notes,
                completed_notes=s.completed_notes,
                pending_notes=s.pending_notes,
                saved_passwords=s.saved_passwords,
                completion_rate=s.completion_rate,
                completion_percent=s.completion_percent,
            ),
            recent_notes=[NoteOut.from_entity(n) for n in view.recent_notes],
            error=str(view.last_error) if view.last_error else None,
        )
