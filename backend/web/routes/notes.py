"""Study note routes, including the grade/subject/chapter metadata lookups."""
from __future__ import annotations

from fastapi import APIRouter, Request
from pydantic import BaseModel

from school.services import NotesService

from .. import wiring
from .common import current_actor, deleted, json_private

notes_router = APIRouter(tags=["Notes"])  # explicit paths below


class NotePayload(BaseModel):
    title: str | None = None
    file_url: str | None = None
    grade: str | None = None
    subject: str | None = None
    chapter: str | None = None


def _service() -> NotesService:
    return NotesService(wiring.get_repo())


@notes_router.get("/api/notes")
async def list_notes(
    request: Request,
    grade: str | None = None,
    subject: str | None = None,
    chapter: str | None = None,
):
    actor = current_actor(request)
    return json_private(_service().list(actor, grade=grade, subject=subject, chapter=chapter))


@notes_router.get("/api/notes/meta/grades")
async def note_grades(request: Request):
    return json_private(_service().grades(current_actor(request)))


@notes_router.get("/api/notes/meta/subjects")
async def note_subjects(request: Request, grade: str | None = None):
    return json_private(_service().subjects(current_actor(request), grade=grade))


@notes_router.get("/api/notes/meta/chapters")
async def note_chapters(request: Request, grade: str | None = None, subject: str | None = None):
    return json_private(_service().chapters(current_actor(request), grade=grade, subject=subject))


@notes_router.get("/api/notes/{note_id}")
async def get_note(request: Request, note_id: str):
    return json_private(_service().get(current_actor(request), note_id))


@notes_router.post("/api/notes")
async def create_note(request: Request, payload: NotePayload):
    created = _service().create(current_actor(request), payload.model_dump(exclude_unset=True))
    return json_private(created, status_code=201)


@notes_router.put("/api/notes/{note_id}")
async def update_note(request: Request, note_id: str, payload: NotePayload):
    """Update a note. Teachers may only change notes they uploaded (403 otherwise)."""
    updated = _service().update(current_actor(request), note_id, payload.model_dump(exclude_unset=True))
    return json_private(updated)


@notes_router.delete("/api/notes/{note_id}")
async def delete_note(request: Request, note_id: str):
    _service().delete(current_actor(request), note_id)
    return deleted("Note deleted successfully")
