"""
Teacher availability lookup for a day-set and time range in the active period.
"""
from typing import List, Optional

from models.entities import Meeting, MeetingSlot, Teacher, parse_days
from service.errors import FormatError, InvalidRangeError, ValidationError
from service.store import TimetableStore
from service.time_utils import to_minutes
from service.validator import (
    check_available_days,
    check_load,
    check_preferred_window,
    check_specialization,
    check_teacher_overlap,
)


def find_available_teachers(
    store: TimetableStore,
    days,
    start_time: str,
    end_time: str,
    subject_id: Optional[str] = None,
) -> List[Teacher]:
    """
    Teachers who could take a class on ``days`` from ``start_time`` to ``end_time``.

    A teacher qualifies when the slot is inside their available days and
    preferred window and they have no overlapping class in the active period.
    With ``subject_id``, they must also be specialized for the subject and have
    enough load left for its units.
    """
    period = store.active_period()
    day_set = parse_days(days)
    if not day_set:
        raise FormatError("At least one day is required.")
    if to_minutes(end_time) <= to_minutes(start_time):
        raise InvalidRangeError(f"End time ({end_time}) must be after start time ({start_time}).")

    slot = MeetingSlot(days=day_set, start_time=start_time, end_time=end_time)
    subject = store.get_subject(subject_id) if subject_id else None
    committed = store.meetings_for(period.period_id)

    available = []
    for teacher in sorted(store.teachers.values(), key=lambda t: t.teacher_id):
        candidate = Meeting(
            subject_id=subject_id or "",
            teacher_id=teacher.teacher_id,
            section_id="",
            room_id="",
            days=slot.days,
            start_time=slot.start_time,
            end_time=slot.end_time,
            academic_period_id=period.period_id,
        )
        try:
            if subject is not None:
                check_load(teacher, subject)
                check_specialization(teacher, subject)
            check_available_days(slot, teacher)
            check_preferred_window(slot, teacher)
            check_teacher_overlap(candidate, teacher, committed)
        except ValidationError:
            continue
        available.append(teacher)
    return available
