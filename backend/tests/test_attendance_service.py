"""
Attendance service: idempotent marking, all-or-nothing bulk marks, summary,
role scoping and the absence notification hook.
"""
from __future__ import annotations

import logging

import pytest

from school.errors import Forbidden, NotFound, ValidationFailed
from school.notifier import LoggingNotifier, recipient_ref
from school.services import AttendanceService


@pytest.fixture
def service(seeded, notifier) -> AttendanceService:
    return AttendanceService(seeded.repo, notifier=notifier)


def _mark(service, actor, student_id, day, status):
    return service.mark(actor, {"student_id": student_id, "date": day, "status": status})


def test_marking_twice_keeps_one_record_with_latest_status(seeded, service):
    teacher = seeded.actor("teacher")
    _mark(service, teacher, "s-alice", "2024-03-01", "present")
    record = _mark(service, teacher, "s-alice", "2024-03-01", "absent")
    rows = seeded.repo.query("attendance")
    assert len(rows) == 1
    assert rows[0]["status"] == "absent"
    assert record["student"] == {"id": "s-alice", "name": "Alice", "grade": "5"}


def test_invalid_status_is_rejected_before_authorization(seeded, service):
    with pytest.raises(ValidationFailed) as exc:
        _mark(service, seeded.actor("parent"), "s-alice", "2024-03-01", "late")
    assert exc.value.code == "invalid_status"


def test_parent_cannot_mark(seeded, service):
    with pytest.raises(Forbidden):
        _mark(service, seeded.actor("parent"), "s-alice", "2024-03-01", "present")
    assert seeded.repo.query("attendance") == []


def test_marking_unknown_student_is_not_found(seeded, service):
    with pytest.raises(NotFound) as exc:
        _mark(service, seeded.actor("teacher"), "s-ghost", "2024-03-01", "present")
    assert exc.value.code == "student_not_found"


def test_bulk_mark_rejects_whole_batch_on_one_invalid_record(seeded, service):
    records = [
        {"student_id": "s-alice", "date": "2024-03-01", "status": "present"},
        {"student_id": "s-bob", "date": "2024-03-01", "status": "sick"},
    ]
    with pytest.raises(ValidationFailed):
        service.bulk_mark(seeded.actor("teacher"), records)
    assert seeded.repo.query("attendance") == []


def test_bulk_mark_upserts_and_last_duplicate_wins(seeded, service):
    records = [
        {"student_id": "s-alice", "date": "2024-03-01", "status": "present"},
        {"student_id": "s-bob", "date": "2024-03-01", "status": "present"},
        {"student_id": "s-alice", "date": "2024-03-01", "status": "absent"},
    ]
    out = service.bulk_mark(seeded.actor("teacher"), records)
    assert len(out) == 2
    by_student = {r["student_id"]: r["status"] for r in seeded.repo.query("attendance")}
    assert by_student == {"s-alice": "absent", "s-bob": "present"}


def test_bulk_mark_requires_records(seeded, service):
    with pytest.raises(ValidationFailed) as exc:
        service.bulk_mark(seeded.actor("teacher"), [])
    assert exc.value.code == "missing_attendance_records"


def test_absence_notifies_parent(seeded, service, notifier):
    teacher = seeded.actor("teacher")
    _mark(service, teacher, "s-alice", "2024-03-01", "absent")
    _mark(service, teacher, "s-bob", "2024-03-01", "present")
    _mark(service, teacher, "s-carol", "2024-03-01", "absent")  # no parent on file
    assert [n["recipient"] for n in notifier.sent] == ["parent@example.com"]
    assert notifier.sent[0]["kind"] == "attendance_absent"
    assert "2024-03-01" in notifier.sent[0]["message"]


def test_summary_counts_per_student(seeded, service):
    teacher = seeded.actor("teacher")
    _mark(service, teacher, "s-alice", "2024-03-01", "present")
    _mark(service, teacher, "s-alice", "2024-03-02", "absent")
    _mark(service, teacher, "s-bob", "2024-03-01", "present")
    summary = service.summary(teacher, start_date="2024-03-01", end_date="2024-03-02")
    by_student = {row["student"]["id"]: row for row in summary}
    assert by_student["s-alice"]["present"] == 1
    assert by_student["s-alice"]["absent"] == 1
    assert by_student["s-alice"]["total"] == 2
    assert by_student["s-bob"]["total"] == 1


def test_summary_honors_range_and_grade(seeded, service):
    teacher = seeded.actor("teacher")
    _mark(service, teacher, "s-alice", "2024-02-28", "present")
    _mark(service, teacher, "s-carol", "2024-03-01", "present")
    summary = service.summary(teacher, start_date="2024-03-01", end_date="2024-03-31", grade="5")
    assert summary == []


def test_summary_requires_ordered_dates(seeded, service):
    teacher = seeded.actor("teacher")
    with pytest.raises(ValidationFailed) as exc:
        service.summary(teacher, start_date="2024-03-02", end_date="2024-03-01")
    assert exc.value.code == "invalid_date_range"
    with pytest.raises(ValidationFailed) as missing:
        service.summary(teacher, start_date=None, end_date="2024-03-01")
    assert missing.value.code == "missing_start_date"


def test_parent_list_is_scoped_to_children(seeded, service):
    teacher = seeded.actor("teacher")
    for sid in ("s-alice", "s-bob"):
        _mark(service, teacher, sid, "2024-03-01", "present")
    parent = seeded.actor("parent")
    assert [r["student_id"] for r in service.list(parent)] == ["s-alice"]
    # A client filter for someone else's child cannot widen the view.
    assert service.list(parent, student_id="s-bob") == []


def test_student_list_and_summary_cover_only_own_record(seeded, service):
    teacher = seeded.actor("teacher")
    _mark(service, teacher, "s-alice", "2024-03-01", "present")
    _mark(service, teacher, "s-bob", "2024-03-01", "absent")
    _mark(service, teacher, "s-bob", "2024-03-02", "present")
    student = seeded.actor("student")
    assert [r["student_id"] for r in service.list(student)] == ["s-alice"]
    summary = service.summary(student, start_date="2024-03-01", end_date="2024-03-31")
    assert [row["student"]["id"] for row in summary] == ["s-alice"]
    assert summary[0]["total"] == 1


def test_parent_without_children_gets_empty_list(seeded, service):
    _mark(service, seeded.actor("teacher"), "s-alice", "2024-03-01", "present")
    assert service.list(seeded.actor("lonely_parent")) == []


def test_list_orders_by_date_desc_and_filters_by_grade(seeded, service):
    teacher = seeded.actor("teacher")
    _mark(service, teacher, "s-alice", "2024-03-01", "present")
    _mark(service, teacher, "s-alice", "2024-03-03", "present")
    _mark(service, teacher, "s-carol", "2024-03-02", "present")
    rows = service.list(teacher, grade="5")
    assert [r["date"] for r in rows] == ["2024-03-03", "2024-03-01"]
    assert rows[0]["student"]["parent_email"] == "parent@example.com"


def test_update_and_delete_by_teacher(seeded, service):
    teacher = seeded.actor("teacher")
    record = _mark(service, teacher, "s-alice", "2024-03-01", "present")
    updated = service.update(teacher, record["id"], {"status": "absent"})
    assert updated["status"] == "absent"
    service.delete(teacher, record["id"])
    assert seeded.repo.query("attendance") == []


def test_update_unknown_record_is_not_found(seeded, service):
    with pytest.raises(NotFound) as exc:
        service.update(seeded.actor("teacher"), "a-missing", {"status": "absent"})
    assert exc.value.code == "attendance_not_found"


def test_logging_notifier_keeps_contact_details_out_of_logs(seeded, caplog):
    caplog.set_level(logging.INFO, logger="schoolhub.notifier")
    service = AttendanceService(seeded.repo, notifier=LoggingNotifier())
    _mark(service, seeded.actor("teacher"), "s-alice", "2024-03-01", "absent")
    assert "attendance_absent" in caplog.text
    assert recipient_ref("parent@example.com") in caplog.text
    assert "parent@example.com" not in caplog.text
    assert "Alice" not in caplog.text
