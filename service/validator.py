"""
Constraint validator for a single proposed meeting.

The checks run in a fixed order and stop at the first failure, so callers
always get the same reason for the same request:

1. load capacity
2. specialization
3. available days
4. preferred time window
5. room overlap
6. section overlap
7. teacher overlap
8. exact duplicate (same section, subject and day-set)

Every check is a pure function over the proposed meeting and the meetings
already committed for the period.
"""
import logging
from typing import Iterable, List, Set

from models.entities import Meeting, MeetingSlot, Subject, Teacher, Weekday, format_days, sorted_days
from service.errors import ValidationError
from service.time_utils import overlaps

logger = logging.getLogger(__name__)


def _fmt_units(value: float) -> str:
    return f"{value:g}"


def check_load(teacher: Teacher, subject: Subject) -> None:
    projected = teacher.current_load + subject.units
    if projected > teacher.max_load:
        raise ValidationError(
            f"Assigning {subject.code} to {teacher.label} exceeds allowed load "
            f"({_fmt_units(projected)}/{_fmt_units(teacher.max_load)} units).",
            entity_ids={"teacher_id": teacher.teacher_id, "subject_id": subject.subject_id},
        )


def check_specialization(teacher: Teacher, subject: Subject) -> None:
    if not teacher.is_specialized_in(subject.specialization):
        raise ValidationError(
            f"{teacher.label} is not specialized in {subject.specialization} required by {subject.code}.",
            entity_ids={"teacher_id": teacher.teacher_id, "subject_id": subject.subject_id},
        )


def check_available_days(slot: MeetingSlot, teacher: Teacher) -> None:
    for day in sorted_days(slot.days):
        if day not in teacher.avail_days:
            raise ValidationError(
                f"{teacher.label} is not available on {day.full_name}.",
                entity_ids={"teacher_id": teacher.teacher_id},
            )


def check_preferred_window(slot: MeetingSlot, teacher: Teacher) -> None:
    window_start, window_end = teacher.window
    if slot.start_minutes < window_start or slot.end_minutes > window_end:
        raise ValidationError(
            f"Schedule {slot.start_time}-{slot.end_time} for {teacher.label} "
            f"must be within preferred time window {teacher.pref_time}.",
            entity_ids={"teacher_id": teacher.teacher_id},
        )


def _clashes(meeting: Meeting, committed: Iterable[Meeting], same_resource) -> List[Meeting]:
    """Committed meetings of the same period that share a day and overlap in time."""
    found = []
    for other in committed:
        if meeting.meeting_id and other.meeting_id == meeting.meeting_id:
            continue
        if other.academic_period_id != meeting.academic_period_id or not same_resource(other):
            continue
        if not (meeting.days & other.days):
            continue
        if overlaps(meeting.start_minutes, meeting.end_minutes, other.start_minutes, other.end_minutes):
            found.append(other)
    return found


def _shared_days(meeting: Meeting, clashes: List[Meeting]) -> str:
    days: Set[Weekday] = set()
    for other in clashes:
        days |= meeting.days & other.days
    return format_days(days)


def _clash_ids(clashes: List[Meeting]) -> str:
    return ",".join(m.meeting_id for m in clashes)


def check_room_overlap(meeting: Meeting, committed: Iterable[Meeting]) -> None:
    clashes = _clashes(meeting, committed, lambda m: m.room_id == meeting.room_id)
    if clashes:
        raise ValidationError(
            f"Room {meeting.room_id} already booked on {_shared_days(meeting, clashes)} "
            f"between {meeting.start_time} and {meeting.end_time}.",
            entity_ids={"room_id": meeting.room_id, "meeting_ids": _clash_ids(clashes)},
        )


def check_section_overlap(meeting: Meeting, committed: Iterable[Meeting]) -> None:
    clashes = _clashes(meeting, committed, lambda m: m.section_id == meeting.section_id)
    if clashes:
        raise ValidationError(
            f"Section {meeting.section_id} already has another subject on {_shared_days(meeting, clashes)} "
            f"between {meeting.start_time} and {meeting.end_time}.",
            entity_ids={"section_id": meeting.section_id, "meeting_ids": _clash_ids(clashes)},
        )


def check_teacher_overlap(meeting: Meeting, teacher: Teacher, committed: Iterable[Meeting]) -> None:
    clashes = _clashes(meeting, committed, lambda m: m.teacher_id == meeting.teacher_id)
    if clashes:
        raise ValidationError(
            f"{teacher.label} already has another class on {_shared_days(meeting, clashes)} "
            f"between {meeting.start_time} and {meeting.end_time}.",
            entity_ids={"teacher_id": meeting.teacher_id, "meeting_ids": _clash_ids(clashes)},
        )


def check_duplicate(meeting: Meeting, subject: Subject, committed: Iterable[Meeting]) -> None:
    for other in committed:
        if meeting.meeting_id and other.meeting_id == meeting.meeting_id:
            continue
        if (
            other.academic_period_id == meeting.academic_period_id
            and other.section_id == meeting.section_id
            and other.subject_id == meeting.subject_id
            and other.days == meeting.days
        ):
            raise ValidationError(
                f"Section {meeting.section_id} has the same subject already on same day "
                f"({subject.code} on {meeting.day_label}).",
                entity_ids={
                    "section_id": meeting.section_id,
                    "subject_id": meeting.subject_id,
                    "meeting_ids": other.meeting_id,
                },
            )


def validate_meeting(meeting: Meeting, teacher: Teacher, subject: Subject, committed: Iterable[Meeting]) -> None:
    """Raise ValidationError with the first violated constraint, or return None."""
    committed = list(committed)
    try:
        check_load(teacher, subject)
        check_specialization(teacher, subject)
        check_available_days(meeting, teacher)
        check_preferred_window(meeting, teacher)
        check_room_overlap(meeting, committed)
        check_section_overlap(meeting, committed)
        check_teacher_overlap(meeting, teacher, committed)
        check_duplicate(meeting, subject, committed)
    except ValidationError as e:
        logger.info(f"Rejected {subject.code} for {teacher.label}: {e.message}")
        raise
