import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request

from notevault_api.dependencies import bearer_token, get_session, get_sessions
from notevault_api.domain.entities import NoteDraft, PasswordDraft
from notevault_api.domain.exceptions import NotevaultError, NotFound, StoreUnavailable, Unauthorized, ValidationError
from notevault_api.domain.schemas import (
    CredentialsIn,
    DashboardOut,
    NoteCreateIn,
    NoteOut,
    NoteUpdateIn,
    PasswordCreateIn,
    PasswordOut,
    PasswordUpdateIn,
    ProfileOut,
    SessionOut,
    UserOut,
)
from notevault_api.repositories.passwords import SUGGESTED_CATEGORIES
from notevault_api.session import SessionRegistry, UserSession

router = APIRouter()
logger = logging.getLogger("notevault.api")


def _http_error(e: NotevaultError) -> HTTPException:
    if isinstance(e, ValidationError):
        return HTTPException(status_code=422, detail={"field": e.field, "message": e.message})
    if isinstance(e, NotFound):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, Unauthorized):
        return HTTPException(status_code=401, detail=e.reason)
    if isinstance(e, StoreUnavailable):
        return HTTPException(status_code=503, detail={"reason": e.reason, "retryable": e.retryable})
    return HTTPException(status_code=500, detail=e.code)


def _error_text(e: Optional[NotevaultError]) -> Optional[str]:
    # Last failed refresh; the items that accompany it are the stale snapshot.
    return str(e) if e else None


def _session_out(session: UserSession) -> SessionOut:
    return SessionOut(access_token=session.access_token, user=UserOut.from_identity(session.user))


@router.get("/health")
def health():
    return {"ok": True}


@router.post("/auth/sign-up", response_model=SessionOut)
async def sign_up(payload: CredentialsIn, request: Request, sessions: SessionRegistry = Depends(get_sessions)):
    try:
        session = await sessions.sign_up(payload.email, payload.password)
    except NotevaultError as e:
        raise _http_error(e) from e
    logger.info("auth_sign_up", extra={"rid": getattr(request.state, "request_id", ""), "owner": session.owner_id})
    return _session_out(session)


@router.post("/auth/sign-in", response_model=SessionOut)
async def sign_in(payload: CredentialsIn, request: Request, sessions: SessionRegistry = Depends(get_sessions)):
    try:
        session = await sessions.sign_in(payload.email, payload.password)
    except NotevaultError as e:
        raise _http_error(e) from e
    logger.info("auth_sign_in", extra={"rid": getattr(request.state, "request_id", ""), "owner": session.owner_id})
    return _session_out(session)


@router.post("/auth/sign-out")
async def sign_out(request: Request, sessions: SessionRegistry = Depends(get_sessions)):
    token = bearer_token(request)
    if not token:
        raise HTTPException(status_code=401, detail="missing_session")
    try:
        await sessions.sign_out(token)
    except NotevaultError as e:
        raise _http_error(e) from e
    return {"ok": True}


@router.get("/auth/session", response_model=UserOut)
async def current_session(session: UserSession = Depends(get_session)):
    return UserOut.from_identity(session.user)


@router.get("/profile", response_model=ProfileOut)
async def profile(session: UserSession = Depends(get_session)):
    stats = session.dashboard.stats()
    return ProfileOut(
        id=session.user.id,
        email=session.user.email,
        member_since=session.user.created_at,
        saved_passwords=stats.saved_passwords,
        total_notes=stats.total_notes,
    )


@router.get("/notes")
async def list_notes(
    q: Optional[str] = None,
    priority: Optional[str] = None,
    refresh: Optional[bool] = None,
    session: UserSession = Depends(get_session),
):
    repo = session.notes
    try:
        if refresh or (refresh is None and repo.loading):
            await repo.list(session.owner_id)
        items = repo.filter(q, priority)
    except NotevaultError as e:
        raise _http_error(e) from e
    return {
        "items": [NoteOut.from_entity(n).model_dump(mode="json") for n in items],
        "error": _error_text(repo.last_error),
    }


@router.post("/notes", response_model=NoteOut)
async def create_note(payload: NoteCreateIn, session: UserSession = Depends(get_session)):
    draft = NoteDraft(
        title=payload.title,
        description=payload.description,
        priority=payload.priority,
        due_date=payload.due_date,
    )
    try:
        note = await session.notes.create(session.owner_id, draft)
    except NotevaultError as e:
        raise _http_error(e) from e
    return NoteOut.from_entity(note)


@router.patch("/notes/{note_id}", response_model=NoteOut)
async def update_note(note_id: str, payload: NoteUpdateIn, session: UserSession = Depends(get_session)):
    try:
        note = await session.notes.update(session.owner_id, note_id, payload.model_dump(exclude_unset=True))
    except NotevaultError as e:
        raise _http_error(e) from e
    return NoteOut.from_entity(note)


@router.post("/notes/{note_id}/toggle", response_model=NoteOut)
async def toggle_note(note_id: str, session: UserSession = Depends(get_session)):
    try:
        note = await session.notes.toggle_complete(session.owner_id, note_id)
    except NotevaultError as e:
        raise _http_error(e) from e
    return NoteOut.from_entity(note)


@router.delete("/notes/{note_id}")
async def delete_note(note_id: str, session: UserSession = Depends(get_session)):
    try:
        await session.notes.delete(session.owner_id, note_id)
    except NotevaultError as e:
        raise _http_error(e) from e
    return {"ok": True}


@router.get("/passwords/categories")
def password_categories():
    return {"items": list(SUGGESTED_CATEGORIES)}


@router.get("/passwords")
async def list_passwords(
    q: Optional[str] = None,
    refresh: Optional[bool] = None,
    session: UserSession = Depends(get_session),
):
    repo = session.passwords
    try:
        if refresh or (refresh is None and repo.loading):
            await repo.list(session.owner_id)
    except NotevaultError as e:
        raise _http_error(e) from e
    return {
        "items": [PasswordOut.from_entity(p).model_dump(mode="json") for p in repo.filter(q)],
        "error": _error_text(repo.last_error),
    }


@router.post("/passwords", response_model=PasswordOut)
async def create_password(payload: PasswordCreateIn, session: UserSession = Depends(get_session)):
    draft = PasswordDraft(
        site_name=payload.site_name,
        username=payload.username,
        secret=payload.password,
        category=payload.category,
    )
    try:
        entry = await session.passwords.create(session.owner_id, draft)
    except NotevaultError as e:
        raise _http_error(e) from e
    return PasswordOut.from_entity(entry)


@router.patch("/passwords/{entry_id}", response_model=PasswordOut)
async def update_password(entry_id: str, payload: PasswordUpdateIn, session: UserSession = Depends(get_session)):
    patch = payload.model_dump(exclude_unset=True)
    if "password" in patch:
        patch["secret"] = patch.pop("password")
    try:
        entry = await session.passwords.update(session.owner_id, entry_id, patch)
    except NotevaultError as e:
        raise _http_error(e) from e
    return PasswordOut.from_entity(entry)


@router.delete("/passwords/{entry_id}")
async def delete_password(entry_id: str, session: UserSession = Depends(get_session)):
    try:
        await session.passwords.delete(session.owner_id, entry_id)
    except NotevaultError as e:
        raise _http_error(e) from e
    return {"ok": True}


@router.get("/dashboard", response_model=DashboardOut)
async def dashboard(session: UserSession = Depends(get_session)):
    provider = session.dashboard
    if session.notes.loading or session.passwords.loading:
        try:
            await provider.refresh(session.owner_id)
        except NotevaultError as e:
            raise _http_error(e) from e
    return DashboardOut.from_view(provider.view())


@router.post("/dashboard/refresh", response_model=DashboardOut)
async def refresh_dashboard(session: UserSession = Depends(get_session)):
    try:
        view = await session.dashboard.refresh(session.owner_id)
    except NotevaultError as e:
        raise _http_error(e) from e
    return DashboardOut.from_view(view)
