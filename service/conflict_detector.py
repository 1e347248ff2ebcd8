"""
Read-only conflict scan of a committed timetable.
"""
import logging
from collections import Counter, defaultdict
from typing import Dict, FrozenSet, List, Optional, Tuple, get_args

from models.entities import Meeting, Room, Section, Subject, Teacher, format_days
from models.schemas import ConflictRecord, ConflictReport, ConflictType
from service.store import TimetableStore
from service.time_utils import overlaps

logger = logging.getLogger(__name__)


class ConflictDetector:
    def __init__(
        self,
        meetings: List[Meeting],
        subjects: List[Subject],
        teachers: Dict[str, Teacher],
        rooms: Dict[str, Room],
        sections: Dict[str, Section],
        period_id: Optional[str] = None,
    ):
        """
        Args:
            meetings: Meetings in scope
            subjects: Catalog subjects in scope, checked for missing meetings
            teachers, rooms, sections: Lookups used for readable messages
            period_id: Scanned period, or None for every period
        """
        # Stable sort keeps commit order within a period
        self.meetings = sorted(meetings, key=lambda m: m.academic_period_id)
        self.subjects = sorted(subjects, key=lambda s: s.subject_id)
        self.teachers = teachers
        self.rooms = rooms
        self.sections = sections
        self.period_id = period_id

    @classmethod
    def for_store(cls, store: TimetableStore, all_periods: bool = False) -> "ConflictDetector":
        if all_periods:
            return cls(
                store.meetings_for(None),
                list(store.subjects.values()),
                store.teachers,
                store.rooms,
                store.sections,
            )

        period = store.active_period()
        return cls(
            store.meetings_for(period.period_id),
            store.subjects_for(period),
            store.teachers,
            store.rooms,
            store.sections,
            period_id=period.period_id,
        )

    def detect_conflicts(self) -> ConflictReport:
        conflicts: List[ConflictRecord] = []

        # Pairwise scan, only within a period
        by_period: Dict[str, List[Meeting]] = defaultdict(list)
        for meeting in self.meetings:
            by_period[meeting.academic_period_id].append(meeting)

        for period_meetings in by_period.values():
            n = len(period_meetings)
            for i in range(n):
                m1 = period_meetings[i]
                for j in range(i + 1, n):
                    m2 = period_meetings[j]
                    shared = m1.days & m2.days
                    if not shared:
                        continue
                    if not overlaps(m1.start_minutes, m1.end_minutes, m2.start_minutes, m2.end_minutes):
                        continue
                    conflicts.extend(self._pair_conflicts(m1, m2, shared))

        conflicts.extend(self._duplicates())
        conflicts.extend(self._unassigned())

        counts = Counter(c.conflict_type for c in conflicts)
        report = ConflictReport(
            scope="all" if self.period_id is None else "period",
            period_id=self.period_id,
            conflicts=conflicts,
            counts={conflict_type: counts.get(conflict_type, 0) for conflict_type in get_args(ConflictType)},
        )
        logger.info(
            f"Conflict scan ({report.scope}) over {len(self.meetings)} meetings found {len(conflicts)} conflicts"
        )
        return report

    def _pair_conflicts(self, m1: Meeting, m2: Meeting, shared: FrozenSet) -> List[ConflictRecord]:
        found = []
        when = f"{format_days(shared)} {m1.start_time}-{m1.end_time} / {m2.start_time}-{m2.end_time}"
        courses = f"{self._subject_code(m1.subject_id)} and {self._subject_code(m2.subject_id)}"

        if m1.room_id == m2.room_id:
            found.append(ConflictRecord(
                conflict_id=f"room-{m1.meeting_id}-{m2.meeting_id}",
                conflict_type="room_conflict",
                severity="high",
                message=f"Room overlap in {self._room_name(m1.room_id)}: {courses} on {when}",
                meeting_ids=[m1.meeting_id, m2.meeting_id],
                room_id=m1.room_id,
            ))
        if m1.teacher_id == m2.teacher_id:
            found.append(ConflictRecord(
                conflict_id=f"teacher-{m1.meeting_id}-{m2.meeting_id}",
                conflict_type="teacher_conflict",
                severity="high",
                message=f"Teacher overlap for {self._teacher_name(m1.teacher_id)}: {courses} on {when}",
                meeting_ids=[m1.meeting_id, m2.meeting_id],
                teacher_id=m1.teacher_id,
            ))
        if m1.section_id == m2.section_id and (m1.subject_id != m2.subject_id or m1.days != m2.days):
            found.append(ConflictRecord(
                conflict_id=f"section-{m1.meeting_id}-{m2.meeting_id}",
                conflict_type="section_conflict",
                severity="high",
                message=f"Section overlap for {self._section_name(m1.section_id)}: {courses} on {when}",
                meeting_ids=[m1.meeting_id, m2.meeting_id],
                section_id=m1.section_id,
            ))
        return found

    def _duplicates(self) -> List[ConflictRecord]:
        """Later meetings repeating a (section, subject, days) key already seen."""
        found = []
        first_seen: Dict[Tuple[str, str, str, FrozenSet], Meeting] = {}
        for meeting in self.meetings:
            key = (meeting.academic_period_id, meeting.section_id, meeting.subject_id, meeting.days)
            original = first_seen.setdefault(key, meeting)
            if original is meeting:
                continue
            found.append(ConflictRecord(
                conflict_id=f"dup-{meeting.meeting_id}",
                conflict_type="duplicate_section_subject_day",
                severity="medium",
                message=(
                    f"{self._subject_code(meeting.subject_id)} is scheduled again for section "
                    f"{self._section_name(meeting.section_id)} on {format_days(meeting.days)}"
                ),
                meeting_ids=[original.meeting_id, meeting.meeting_id],
                section_id=meeting.section_id,
                subject_id=meeting.subject_id,
            ))
        return found

    def _unassigned(self) -> List[ConflictRecord]:
        scheduled = {m.subject_id for m in self.meetings}
        return [
            ConflictRecord(
                conflict_id=f"unassigned-{subject.subject_id}",
                conflict_type="unassigned_subject",
                severity="medium",
                message=f"{subject.code} ({subject.name}) has no scheduled meetings",
                subject_id=subject.subject_id,
            )
            for subject in self.subjects
            if subject.subject_id not in scheduled
        ]

    def _subject_code(self, subject_id: str) -> str:
        subject = next((s for s in self.subjects if s.subject_id == subject_id), None)
        return subject.code if subject else subject_id

    def _room_name(self, room_id: str) -> str:
        room = self.rooms.get(room_id)
        return room.label if room else room_id

    def _teacher_name(self, teacher_id: str) -> str:
        teacher = self.teachers.get(teacher_id)
        return teacher.label if teacher else teacher_id

    def _section_name(self, section_id: str) -> str:
        section = self.sections.get(section_id)
        return section.label if section else section_id
