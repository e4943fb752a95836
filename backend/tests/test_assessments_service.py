"""Tests service: mark recording, embedded mark scoping and student history."""
from __future__ import annotations

import pytest

from school.errors import Forbidden, NotFound, ValidationFailed
from school.services import AssessmentsService


@pytest.fixture
def service(seeded) -> AssessmentsService:
    return AssessmentsService(seeded.repo)


@pytest.fixture
def math_test(seeded, service) -> dict:
    return service.create(seeded.actor("teacher"), {"subject": "Math", "test_date": "2024-03-10", "grade": "5"})


def _marks(*rows):
    return [{"student_id": sid, "score": score, "max_score": 10} for sid, score in rows]


def test_create_sets_creator(seeded, math_test):
    assert math_test["created_by"] == "u-teacher"
    assert math_test["creator"] == {"name": "Teacher", "email": "teacher@school.test"}


def test_create_requires_subject_date_grade(seeded, service):
    with pytest.raises(ValidationFailed) as exc:
        service.create(seeded.actor("teacher"), {"subject": "Math", "grade": "5"})
    assert exc.value.code == "missing_test_date"


def test_record_marks_upserts_by_test_and_student(seeded, service, math_test):
    teacher = seeded.actor("teacher")
    service.record_marks(teacher, math_test["id"], _marks(("s-alice", 7), ("s-bob", 4)))
    service.record_marks(teacher, math_test["id"], _marks(("s-alice", 9)))
    scores = {m["student_id"]: m["score"] for m in seeded.repo.query("test_marks")}
    assert scores == {"s-alice": 9, "s-bob": 4}


def test_record_marks_rejects_zero_max_score_without_writing(seeded, service, math_test):
    marks = _marks(("s-alice", 7)) + [{"student_id": "s-bob", "score": 0, "max_score": 0}]
    with pytest.raises(ValidationFailed) as exc:
        service.record_marks(seeded.actor("teacher"), math_test["id"], marks)
    assert exc.value.code == "invalid_max_score"
    assert seeded.repo.query("test_marks") == []


def test_record_marks_for_unknown_test(seeded, service):
    with pytest.raises(NotFound) as exc:
        service.record_marks(seeded.actor("teacher"), "t-missing", _marks(("s-alice", 7)))
    assert exc.value.code == "test_not_found"


def test_parent_cannot_record_marks(seeded, service, math_test):
    with pytest.raises(Forbidden):
        service.record_marks(seeded.actor("parent"), math_test["id"], _marks(("s-alice", 10)))


def test_embedded_marks_are_scoped_to_the_viewer(seeded, service, math_test):
    service.record_marks(seeded.actor("teacher"), math_test["id"], _marks(("s-alice", 7), ("s-bob", 4)))
    parent_view = service.get(seeded.actor("parent"), math_test["id"])
    assert [m["student_id"] for m in parent_view["test_marks"]] == ["s-alice"]
    teacher_view = service.list(seeded.actor("teacher"))
    assert len(teacher_view[0]["test_marks"]) == 2
    student_marks = service.list_marks(seeded.actor("student"), math_test["id"])
    assert [m["student"]["name"] for m in student_marks] == ["Alice"]


def test_other_teacher_cannot_delete_test(seeded, service, math_test):
    with pytest.raises(Forbidden) as exc:
        service.delete(seeded.actor("teacher2"), math_test["id"])
    assert exc.value.code == "not_owner"
    assert seeded.repo.get("tests", math_test["id"]) is not None


def test_delete_removes_marks(seeded, service, math_test):
    teacher = seeded.actor("teacher")
    service.record_marks(teacher, math_test["id"], _marks(("s-alice", 7)))
    service.delete(teacher, math_test["id"])
    assert seeded.repo.query("test_marks") == []


def test_student_history_newest_test_first(seeded, service, math_test):
    teacher = seeded.actor("teacher")
    older = service.create(teacher, {"subject": "Science", "test_date": "2024-02-01", "grade": "5"})
    service.record_marks(teacher, older["id"], _marks(("s-alice", 5)))
    service.record_marks(teacher, math_test["id"], _marks(("s-alice", 8)))
    history = service.student_history(seeded.actor("parent"), "s-alice")
    assert [h["test"]["subject"] for h in history] == ["Math", "Science"]


def test_student_history_of_another_family_is_forbidden(seeded, service):
    with pytest.raises(Forbidden) as exc:
        service.student_history(seeded.actor("parent"), "s-bob")
    assert exc.value.code == "not_parent_of_student"
    with pytest.raises(NotFound):
        service.student_history(seeded.actor("parent"), "s-ghost")
