"""
In-memory Timetable store.

Holds the catalog supplied by the external collaborators (periods, teachers,
rooms, subjects, sections) and the committed meetings, and hands out
per-resource locks so a validate-then-write sequence is not interleaved with
another write on the same room, teacher or section. An auto-schedule run
holds the whole store and waits out, then blocks, those writes.
"""
import itertools
import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from models.entities import (
    AcademicPeriod,
    ActivityRecord,
    Meeting,
    Room,
    Section,
    Subject,
    Teacher,
)
from models.schemas import CatalogSnapshot
from service.errors import NotFoundError, PersistenceError, PreconditionError

logger = logging.getLogger(__name__)

ResourceKey = Tuple[str, str, str]  # (resource_type, resource_id, period_id)


class TimetableStore:
    """Thread-safe store for one deployment's timetable data."""

    def __init__(self):
        self._lock = threading.RLock()
        self._resource_locks: Dict[ResourceKey, threading.Lock] = {}
        self._meeting_ids = itertools.count(1)

        self._gate = threading.Condition()
        self._running = False
        self._runs_waiting = 0
        self._active_writes = 0

        self.periods: Dict[str, AcademicPeriod] = {}
        self.active_period_id: Optional[str] = None
        self.teachers: Dict[str, Teacher] = {}
        self.rooms: Dict[str, Room] = {}
        self.subjects: Dict[str, Subject] = {}
        self.sections: Dict[str, Section] = {}
        self.meetings: Dict[str, Meeting] = {}
        self.activity: List[ActivityRecord] = []

    # ===========================
    # Catalog
    # ===========================

    def load_snapshot(self, snapshot: CatalogSnapshot) -> None:
        """Replace the whole catalog and timetable with a snapshot.

        Nothing is replaced unless every snapshot meeting is accepted.
        """
        active_id = snapshot.active_period_id
        if active_id is None:
            current = [p for p in snapshot.periods if p.is_current]
            active_id = current[0].period_id if current else None

        if active_id is not None and active_id not in {p.period_id for p in snapshot.periods}:
            raise NotFoundError("Period", active_id)

        periods = {p.period_id: p for p in snapshot.periods}
        teachers = {t.teacher_id: t for t in snapshot.teachers}
        rooms = {r.room_id: r for r in snapshot.rooms}
        subjects = {s.subject_id: s for s in snapshot.subjects}
        sections = {s.section_id: s for s in snapshot.sections}

        meetings: Dict[str, Meeting] = {}
        for meeting in snapshot.meetings:
            self._check_references(meeting, teachers, subjects, sections, rooms)
            if not meeting.meeting_id:
                meeting.meeting_id = self._next_meeting_id(meetings)
            if meeting.meeting_id in meetings:
                raise PersistenceError(
                    f"Meeting {meeting.meeting_id} already exists.",
                    entity_ids={"meeting_id": meeting.meeting_id},
                )
            # Loaded meetings are already counted in current_load
            if "load_delta" not in meeting.model_fields_set:
                meeting.load_delta = subjects[meeting.subject_id].units
            meetings[meeting.meeting_id] = meeting

        with self._lock:
            self.periods = periods
            self.active_period_id = active_id
            self.teachers = teachers
            self.rooms = rooms
            self.subjects = subjects
            self.sections = sections
            self.meetings = meetings
            self._resource_locks = {}

        logger.info(
            f"Loaded catalog: {len(self.teachers)} teachers, {len(self.rooms)} rooms, "
            f"{len(self.subjects)} subjects, {len(self.sections)} sections, {len(self.meetings)} meetings"
        )

    def active_period(self) -> AcademicPeriod:
        with self._lock:
            if self.active_period_id is None:
                raise PreconditionError("No active academic period is set.")
            return self.periods[self.active_period_id]

    def _get(self, table: Dict, resource_type: str, resource_id: str):
        with self._lock:
            item = table.get(resource_id)
        if item is None:
            raise NotFoundError(resource_type, resource_id)
        return item

    def get_teacher(self, teacher_id: str) -> Teacher:
        return self._get(self.teachers, "Teacher", teacher_id)

    def get_subject(self, subject_id: str) -> Subject:
        return self._get(self.subjects, "Subject", subject_id)

    def get_section(self, section_id: str) -> Section:
        return self._get(self.sections, "Section", section_id)

    def get_room(self, room_id: str) -> Room:
        return self._get(self.rooms, "Room", room_id)

    def get_meeting(self, meeting_id: str) -> Meeting:
        return self._get(self.meetings, "Meeting", meeting_id)

    def subjects_for(self, period: AcademicPeriod) -> List[Subject]:
        with self._lock:
            return [s for s in self.subjects.values() if s.in_period(period)]

    def sections_for(self, period: AcademicPeriod) -> List[Section]:
        with self._lock:
            return [s for s in self.sections.values() if s.in_period(period)]

    def meetings_for(self, period_id: Optional[str] = None) -> List[Meeting]:
        """Meetings of one period, or of every period when period_id is None."""
        with self._lock:
            return [
                m for m in self.meetings.values()
                if period_id is None or m.academic_period_id == period_id
            ]

    # ===========================
    # Writes
    # ===========================

    def _next_meeting_id(self, meetings: Dict[str, Meeting]) -> str:
        while True:
            meeting_id = str(next(self._meeting_ids))
            if meeting_id not in meetings:
                return meeting_id

    @staticmethod
    def _check_references(meeting: Meeting, teachers: Dict, subjects: Dict, sections: Dict, rooms: Dict) -> None:
        for table, resource_type, resource_id in (
            (teachers, "teacher", meeting.teacher_id),
            (subjects, "subject", meeting.subject_id),
            (sections, "section", meeting.section_id),
            (rooms, "room", meeting.room_id),
        ):
            if resource_id not in table:
                raise PersistenceError(
                    f"Meeting references unknown {resource_type} {resource_id}.",
                    entity_ids={f"{resource_type}_id": resource_id},
                )

    def add_meeting(self, meeting: Meeting) -> Meeting:
        with self._lock:
            if not meeting.meeting_id:
                meeting.meeting_id = self._next_meeting_id(self.meetings)
            if meeting.meeting_id in self.meetings:
                raise PersistenceError(
                    f"Meeting {meeting.meeting_id} already exists.",
                    entity_ids={"meeting_id": meeting.meeting_id},
                )
            self._check_references(meeting, self.teachers, self.subjects, self.sections, self.rooms)
            self.meetings[meeting.meeting_id] = meeting
            return meeting

    def replace_meeting(self, meeting: Meeting) -> Meeting:
        with self._lock:
            if meeting.meeting_id not in self.meetings:
                raise NotFoundError("Meeting", meeting.meeting_id)
            self.meetings[meeting.meeting_id] = meeting
            return meeting

    def delete_meeting(self, meeting_id: str) -> Meeting:
        with self._lock:
            meeting = self.meetings.pop(meeting_id, None)
        if meeting is None:
            raise NotFoundError("Meeting", meeting_id)
        return meeting

    def delete_meetings(self, meetings: Iterable[Meeting]) -> int:
        count = 0
        with self._lock:
            for meeting in meetings:
                if self.meetings.pop(meeting.meeting_id, None) is not None:
                    count += 1
        return count

    def set_teacher_load(self, teacher_id: str, load: float) -> Teacher:
        with self._lock:
            teacher = self.get_teacher(teacher_id)
            teacher.current_load = max(0.0, load)
            return teacher

    def adjust_teacher_load(self, teacher_id: str, delta: float) -> Teacher:
        with self._lock:
            teacher = self.get_teacher(teacher_id)
            return self.set_teacher_load(teacher_id, teacher.current_load + delta)

    def log_activity(self, text: str, actor_id: Optional[str] = None) -> ActivityRecord:
        record = ActivityRecord(text=text, actor_id=actor_id)
        with self._lock:
            self.activity.append(record)
        logger.debug(f"Activity: {text}")
        return record

    # ===========================
    # Locking
    # ===========================

    @contextmanager
    def exclusive_run(self) -> Iterator[None]:
        """Hold the whole store for an auto-schedule run.

        Waits for in-flight resource-locked writes to finish, and keeps new
        ones out until the run is done. Only one run proceeds at a time.
        """
        with self._gate:
            self._runs_waiting += 1
            while self._running or self._active_writes:
                self._gate.wait()
            self._runs_waiting -= 1
            self._running = True
        try:
            yield
        finally:
            with self._gate:
                self._running = False
                self._gate.notify_all()

    @contextmanager
    def resource_lock(self, *keys: ResourceKey) -> Iterator[None]:
        """Hold the locks for every (resource_type, resource_id, period_id) key."""
        with self._gate:
            while self._running or self._runs_waiting:
                self._gate.wait()
            self._active_writes += 1
        try:
            with self._lock:
                locks = [
                    self._resource_locks.setdefault(key, threading.Lock())
                    for key in sorted(set(keys))
                ]
            for lock in locks:
                lock.acquire()
            try:
                yield
            finally:
                for lock in reversed(locks):
                    lock.release()
        finally:
            with self._gate:
                self._active_writes -= 1
                self._gate.notify_all()


_store = TimetableStore()


def get_store() -> TimetableStore:
    """FastAPI dependency returning the process-wide store."""
    return _store
