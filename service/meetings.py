"""
Manual meeting operations: validated insert, validated reassign and removal.

Each operation holds the room, teacher and section locks of the affected
period while it validates and writes, and keeps teacher loads in step with
the committed rows.
"""
import logging
from typing import List, Optional, Tuple

from models.entities import Meeting, Teacher
from models.schemas import MeetingRequest
from service.store import ResourceKey, TimetableStore
from service.validator import validate_meeting

logger = logging.getLogger(__name__)


def _lock_keys(*meetings: Meeting) -> List[ResourceKey]:
    keys = []
    for m in meetings:
        keys.append(("room", m.room_id, m.academic_period_id))
        keys.append(("teacher", m.teacher_id, m.academic_period_id))
        keys.append(("section", m.section_id, m.academic_period_id))
    return keys


class MeetingService:
    def __init__(self, store: TimetableStore):
        self.store = store

    def _build(self, request: MeetingRequest, period_id: str, units: float, meeting_id: str = "") -> Meeting:
        return Meeting(
            meeting_id=meeting_id,
            subject_id=request.subject_id,
            teacher_id=request.teacher_id,
            section_id=request.section_id,
            room_id=request.room_id,
            days=request.days,
            start_time=request.start_time,
            end_time=request.end_time,
            academic_period_id=period_id,
            load_delta=units,
        )

    def create(self, request: MeetingRequest) -> Tuple[Meeting, Teacher]:
        """Validate a proposed meeting against the active period and commit it."""
        period = self.store.active_period()
        subject = self.store.get_subject(request.subject_id)
        section = self.store.get_section(request.section_id)
        room = self.store.get_room(request.room_id)
        self.store.get_teacher(request.teacher_id)

        meeting = self._build(request, period.period_id, subject.units)

        with self.store.resource_lock(*_lock_keys(meeting)):
            teacher = self.store.get_teacher(request.teacher_id)
            validate_meeting(meeting, teacher, subject, self.store.meetings_for(period.period_id))
            self.store.add_meeting(meeting)
            teacher = self.store.adjust_teacher_load(teacher.teacher_id, subject.units)

        self.store.log_activity(
            f"Assigned {subject.code} to {teacher.label} for section {section.label} "
            f"in {room.label} ({meeting.day_label} {meeting.start_time}-{meeting.end_time})",
            actor_id=request.actor_id,
        )
        logger.info(f"Created meeting {meeting.meeting_id}; {teacher.label} load is now {teacher.current_load:g}")
        return meeting, teacher

    def reassign(self, meeting_id: str, request: MeetingRequest) -> Tuple[Meeting, Teacher]:
        """Re-validate and replace an existing meeting, moving its load delta."""
        subject = self.store.get_subject(request.subject_id)
        self.store.get_section(request.section_id)
        self.store.get_room(request.room_id)
        self.store.get_teacher(request.teacher_id)

        while True:
            old = self.store.get_meeting(meeting_id)
            candidate = self._build(request, old.academic_period_id, subject.units, meeting_id=old.meeting_id)

            with self.store.resource_lock(*_lock_keys(old, candidate)):
                if self.store.get_meeting(meeting_id) is not old:
                    # Changed while waiting; lock its current resources instead
                    continue
                teacher = self.store.get_teacher(request.teacher_id)
                effective = teacher
                if teacher.teacher_id == old.teacher_id:
                    effective = teacher.model_copy(
                        update={"current_load": max(0.0, teacher.current_load - old.load_delta)}
                    )
                validate_meeting(candidate, effective, subject, self.store.meetings_for(old.academic_period_id))
                self.store.replace_meeting(candidate)
                self.store.adjust_teacher_load(old.teacher_id, -old.load_delta)
                teacher = self.store.adjust_teacher_load(teacher.teacher_id, candidate.load_delta)
                break

        self.store.log_activity(
            f"Reassigned meeting {meeting_id}: {subject.code} to {teacher.label} "
            f"({candidate.day_label} {candidate.start_time}-{candidate.end_time})",
            actor_id=request.actor_id,
        )
        return candidate, teacher

    def remove(self, meeting_id: str, actor_id: Optional[str] = None) -> Tuple[Meeting, Teacher]:
        """Delete a meeting and give its units back to the teacher (floored at 0)."""
        while True:
            meeting = self.store.get_meeting(meeting_id)

            with self.store.resource_lock(*_lock_keys(meeting)):
                if self.store.get_meeting(meeting_id) is not meeting:
                    continue
                self.store.delete_meeting(meeting_id)
                teacher = self.store.adjust_teacher_load(meeting.teacher_id, -meeting.load_delta)
                break

        self.store.log_activity(
            f"Removed meeting {meeting_id} ({meeting.subject_id}, section {meeting.section_id}) from {teacher.label}",
            actor_id=actor_id,
        )
        return meeting, teacher
