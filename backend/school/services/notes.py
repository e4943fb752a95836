"""Study notes: readable by every role, written by teachers (own notes) and admins."""
from __future__ import annotations

from typing import Any, Iterable, List, Mapping, Optional

from identity_access.domain import Actor

from ..filters import RowFilter
from ..policy import Operation, ResourceKind
from ..validation import optional_text, require_text
from .base import ResourceService

_TEXT_FIELDS = {
    "title": 200,
    "grade": 32,
    "subject": 100,
}
_OPTIONAL_FIELDS = {
    "file_url": 2048,
    "chapter": 100,
}


def _distinct(rows: Iterable[Mapping[str, Any]], field: str) -> List[str]:
    return sorted({str(r[field]) for r in rows if r.get(field) not in (None, "")})


class NotesService(ResourceService):
    kind = ResourceKind.NOTE
    table = "notes"

    def _project(self, rows: List[dict]) -> List[dict]:
        return self.attach_people(rows, source="uploaded_by", target="uploader")

    def list(
        self,
        actor: Actor,
        *,
        grade: Optional[str] = None,
        subject: Optional[str] = None,
        chapter: Optional[str] = None,
    ) -> List[dict]:
        client = RowFilter().where_if("grade", grade).where_if("subject", subject).where_if("chapter", chapter)
        rows = self.scoped_query(actor, client, order_by=[("created_at", True)])
        return self._project(rows)

    def get(self, actor: Actor, note_id: str) -> dict:
        note = self.fetch(note_id)
        self.authorize(actor, Operation.READ, note)
        return self._project([note])[0]

    def create(self, actor: Actor, payload: Mapping[str, Any]) -> dict:
        fields: dict = {name: require_text(payload, name, max_length=n) for name, n in _TEXT_FIELDS.items()}
        for name, n in _OPTIONAL_FIELDS.items():
            fields[name] = optional_text(payload, name, max_length=n)
        self.authorize(actor, Operation.CREATE)
        fields["uploaded_by"] = actor.profile_id
        return self._project([self.repo.insert(self.table, fields)])[0]

    def update(self, actor: Actor, note_id: str, payload: Mapping[str, Any]) -> dict:
        changes: dict = {}
        for name, n in _TEXT_FIELDS.items():
            if name in payload:
                changes[name] = require_text(payload, name, max_length=n)
        for name, n in _OPTIONAL_FIELDS.items():
            if name in payload:
                changes[name] = optional_text(payload, name, max_length=n)
        target = self.fetch(note_id)
        self.authorize(actor, Operation.UPDATE, target)
        updated = self.repo.update(self.table, target["id"], changes) if changes else target
        return self._project([updated if updated is not None else self.fetch(note_id)])[0]

    def delete(self, actor: Actor, note_id: str) -> None:
        target = self.fetch(note_id)
        self.authorize(actor, Operation.DELETE, target)
        self.repo.delete(self.table, target["id"])

    # --- Metadata ------------------------------------------------------------------

    def grades(self, actor: Actor) -> List[str]:
        return _distinct(self.scoped_query(actor), "grade")

    def subjects(self, actor: Actor, *, grade: Optional[str] = None) -> List[str]:
        return _distinct(self.scoped_query(actor, RowFilter().where_if("grade", grade)), "subject")

    def chapters(self, actor: Actor, *, grade: Optional[str] = None, subject: Optional[str] = None) -> List[str]:
        client = RowFilter().where_if("grade", grade).where_if("subject", subject)
        return _distinct(self.scoped_query(actor, client), "chapter")


__all__ = ["NotesService"]
