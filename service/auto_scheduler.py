"""
Bulk auto-scheduler for one academic period.

Clears the period's meetings for the affected teachers, then walks every
section/subject pairing, picks the first qualified teacher with load to spare
and places the subject's lecture and lab blocks into free (day, time, room)
slots. Pairings that cannot be placed are reported, not raised.
"""

import logging
import random
from collections import defaultdict
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Set, Tuple

from config import Settings
from models.entities import Meeting, Room, RoomType, Section, Subject, Teacher, Weekday, sorted_days
from models.schemas import (
    AutoScheduleResponse,
    ErrorMessage,
    Messages,
    PersistenceIssue,
    UnassignedPairing,
)
from service.block_planner import Block, plan_blocks
from service.booking import BookingIndex, Placement
from service.errors import PersistenceError, PlacementFailure, PreconditionError
from service.ortools_placer import CpSatPlacer
from service.store import TimetableStore
from service.time_utils import to_hhmm

logger = logging.getLogger(__name__)

STRATEGIES = ("greedy", "cp_sat")


class AutoScheduler:
    """
    First-fit auto-scheduler.

    Supports the ``greedy`` strategy (one random start per day and block, as
    many draws as ``placement_attempts``) and the ``cp_sat`` strategy (all
    blocks of a pairing placed jointly by the CP-SAT placer).
    """

    def __init__(
        self,
        store: TimetableStore,
        strategy: str = "greedy",
        placement_attempts: int = 1,
        atomic: bool = True,
        seed: Optional[int] = None,
        max_block_hours: int = 3,
        placer: Optional[CpSatPlacer] = None,
    ):
        """
        Initialize the scheduler.

        Args:
            store: Timetable store to read the catalog from and write meetings to
            strategy: "greedy" or "cp_sat"
            placement_attempts: Random start draws per day for a block (greedy)
            atomic: If True, a pairing's blocks are released when a later block fails
            seed: Seed for block planning and start draws
            max_block_hours: Longest contiguous block the planner emits
            placer: CP-SAT placer used by the cp_sat strategy
        """
        if strategy not in STRATEGIES:
            raise ValueError(f"Unknown placement strategy '{strategy}'. Use one of: {', '.join(STRATEGIES)}")

        self.store = store
        self.strategy = strategy
        self.placement_attempts = max(1, placement_attempts)
        self.atomic = atomic
        self.rng = random.Random(seed)
        self.max_block_hours = max_block_hours
        self.placer = placer or (CpSatPlacer() if strategy == "cp_sat" else None)

        # Run state
        self.index = BookingIndex()
        self.loads: Dict[str, float] = {}
        self.teacher_memo: Dict[Tuple[str, str], Teacher] = {}
        self.placed: List[Tuple[Teacher, Subject, Section, List[Placement]]] = []
        self.unassigned: List[UnassignedPairing] = []

    @classmethod
    def from_settings(
        cls,
        store: TimetableStore,
        settings: Settings,
        strategy: Optional[str] = None,
        seed: Optional[int] = None,
    ) -> "AutoScheduler":
        strategy = strategy or settings.placement_strategy
        placer = None
        if strategy == "cp_sat":
            placer = CpSatPlacer(
                time_limit_seconds=settings.solver_timeout_seconds,
                random_seed=settings.solver_random_seed,
                num_workers=settings.solver_num_workers,
                start_step_minutes=settings.solver_start_step_minutes,
            )
        return cls(
            store,
            strategy=strategy,
            placement_attempts=settings.placement_attempts,
            atomic=settings.atomic_subject_placement,
            seed=seed if seed is not None else settings.scheduler_random_seed,
            max_block_hours=settings.max_block_hours,
            placer=placer,
        )

    def run(self, teacher_ids: Optional[Iterable[str]] = None, actor_id: Optional[str] = None) -> AutoScheduleResponse:
        """
        Main entry point: regenerate the active period's timetable.

        Args:
            teacher_ids: Only regenerate these teachers' meetings; everyone else's
                meetings stay in place as obstacles
            actor_id: Recorded in the activity log

        Returns:
            AutoScheduleResponse with placements, unassigned pairings and loads
        """
        start_time = datetime.now()
        self.teacher_memo = {}
        self.placed = []
        self.unassigned = []

        with self.store.exclusive_run():
            # Step 1: Load and check inputs (no mutation before this passes)
            period = self.store.active_period()
            subjects, sections, rooms, teachers = self._load_inputs(period)
            affected = self._resolve_affected(teachers, teacher_ids)

            # Step 2: Clear the affected teachers' meetings and loads
            candidates = self._reset(period.period_id, affected)

            # Step 3: Seed bookings with the meetings that stay
            remaining = self.store.meetings_for(period.period_id)
            self.index = BookingIndex.from_meetings(remaining)
            covered = {(m.section_id, m.subject_id) for m in remaining}

            rooms_by_type: Dict[RoomType, List[Room]] = defaultdict(list)
            for room in sorted(rooms, key=lambda r: r.room_id):
                rooms_by_type[room.type].append(room)

            # Step 4: Walk buckets, sections and subjects in stable order
            for bucket, bucket_sections, bucket_subjects in self._buckets(period, subjects, sections):
                logger.debug(f"Scheduling bucket {bucket}: {len(bucket_sections)} sections, {len(bucket_subjects)} subjects")
                for section in bucket_sections:
                    for subject in bucket_subjects:
                        if (section.section_id, subject.subject_id) in covered:
                            continue
                        self._schedule_pairing(section, subject, candidates, rooms_by_type)

            # Step 5: Persist merged rows and write back loads
            schedule, persistence_errors, final_loads = self._persist(period.period_id)
            for teacher_id, load in final_loads.items():
                self.store.set_teacher_load(teacher_id, load)

            created = sum(len(v) for v in schedule.values())
            self.store.log_activity(
                f"Auto-scheduled period {period.period_id}: {created} meetings created, "
                f"{len(self.unassigned)} pairings unassigned",
                actor_id=actor_id,
            )

        run_time = (datetime.now() - start_time).total_seconds()
        logger.info(
            f"Auto-schedule of period {period.period_id} ({self.strategy}) finished in {run_time:.2f}s: "
            f"{created} meetings, {len(self.unassigned)} unassigned, {len(persistence_errors)} write failures"
        )

        load_map = {t.teacher_id: final_loads.get(t.teacher_id, 0.0) for t in candidates}
        return self._create_response(period.period_id, schedule, persistence_errors, load_map, run_time)

    # ===========================
    # Inputs
    # ===========================

    def _load_inputs(self, period) -> Tuple[List[Subject], List[Section], List[Room], List[Teacher]]:
        subjects = self.store.subjects_for(period)
        sections = self.store.sections_for(period)
        rooms = list(self.store.rooms.values())
        teachers = list(self.store.teachers.values())

        missing = [
            name for name, items in (
                ("subjects", subjects), ("sections", sections), ("rooms", rooms), ("teachers", teachers)
            ) if not items
        ]
        if missing:
            raise PreconditionError(
                f"Cannot auto-schedule period {period.period_id}: no {', '.join(missing)} found.",
                entity_ids={"period_id": period.period_id},
            )
        return subjects, sections, rooms, teachers

    def _resolve_affected(self, teachers: List[Teacher], teacher_ids: Optional[Iterable[str]]) -> List[Teacher]:
        if teacher_ids is None:
            return teachers
        return [self.store.get_teacher(teacher_id) for teacher_id in dict.fromkeys(teacher_ids)]

    def _reset(self, period_id: str, affected: List[Teacher]) -> List[Teacher]:
        affected_ids = {t.teacher_id for t in affected}
        stale = [m for m in self.store.meetings_for(period_id) if m.teacher_id in affected_ids]
        removed = self.store.delete_meetings(stale)
        for teacher in affected:
            self.store.set_teacher_load(teacher.teacher_id, 0)

        logger.info(f"Cleared {removed} meetings of {len(affected_ids)} teachers in period {period_id}")
        self.loads = {teacher_id: 0.0 for teacher_id in affected_ids}
        return sorted(affected, key=lambda t: t.teacher_id)

    def _buckets(self, period, subjects: List[Subject], sections: List[Section]):
        subjects_by_bucket: Dict[Tuple[str, str], List[Subject]] = defaultdict(list)
        sections_by_bucket: Dict[Tuple[str, str], List[Section]] = defaultdict(list)
        for subject in subjects:
            subjects_by_bucket[subject.bucket_in(period)].append(subject)
        for section in sections:
            sections_by_bucket[section.bucket_in(period)].append(section)

        for bucket in sorted(sections_by_bucket):
            if bucket not in subjects_by_bucket:
                continue
            yield (
                bucket,
                sorted(sections_by_bucket[bucket], key=lambda s: s.section_id),
                sorted(subjects_by_bucket[bucket], key=lambda s: s.subject_id),
            )

    # ===========================
    # Pairings
    # ===========================

    def _schedule_pairing(
        self,
        section: Section,
        subject: Subject,
        candidates: List[Teacher],
        rooms_by_type: Dict[RoomType, List[Room]],
    ):
        teacher, reason = self._select_teacher(section, subject, candidates)
        if teacher is None:
            self._unassign(subject, section, None, reason)
            return

        blocks = plan_blocks(subject.lec_hours, subject.lab_hours, self.rng, self.max_block_hours)
        if not blocks:
            self._unassign(subject, section, teacher.teacher_id, f"{subject.code} has no lecture or lab hours to schedule.")
            return

        if self.strategy == "cp_sat":
            placements, reason = self._place_cp_sat(blocks, teacher, section, subject, rooms_by_type)
        else:
            placements, reason = self._place_greedy(blocks, teacher, section, subject, rooms_by_type)

        if placements:
            self.loads[teacher.teacher_id] += subject.units
            self.placed.append((teacher, subject, section, placements))
        if reason:
            self._unassign(subject, section, teacher.teacher_id, reason)

    def _select_teacher(
        self, section: Section, subject: Subject, candidates: List[Teacher]
    ) -> Tuple[Optional[Teacher], Optional[str]]:
        """First candidate that is specialized and still has room for the subject's units."""
        memo_key = (section.section_id, subject.code)
        specialized = [t for t in candidates if t.is_specialized_in(subject.specialization)]
        if memo_key in self.teacher_memo:
            specialized = [self.teacher_memo[memo_key]]

        if not specialized:
            return None, f"No teacher is specialized in {subject.specialization or 'an unspecified field'} for {subject.code}."

        for teacher in specialized:
            if self.loads[teacher.teacher_id] + subject.units <= teacher.max_load:
                self.teacher_memo[memo_key] = teacher
                return teacher, None

        return None, (
            f"Every teacher specialized in {subject.specialization} would exceed their maximum load "
            f"with {subject.code} ({subject.units:g} units)."
        )

    def _unassign(self, subject: Subject, section: Section, teacher_id: Optional[str], reason: str):
        logger.info(f"Unassigned {subject.code} for section {section.label}: {reason}")
        self.unassigned.append(UnassignedPairing(
            subject_id=subject.subject_id,
            subject_code=subject.code,
            section_id=section.section_id,
            teacher_id=teacher_id,
            reason=reason,
        ))

    # ===========================
    # Placement
    # ===========================

    def _place_greedy(
        self,
        blocks: List[Block],
        teacher: Teacher,
        section: Section,
        subject: Subject,
        rooms_by_type: Dict[RoomType, List[Room]],
    ) -> Tuple[List[Placement], Optional[str]]:
        used_days: Set[Weekday] = set()
        placed: List[Placement] = []

        for block in blocks:
            try:
                placement = self._place_block(block, teacher, section, subject, rooms_by_type, used_days)
            except PlacementFailure as failure:
                if self.atomic:
                    for p in placed:
                        self.index.release(p.room_id, teacher.teacher_id, section.section_id, p.day, p.start, p.end)
                    placed = []
                return placed, failure.message

            self.index.book(placement.room_id, teacher.teacher_id, section.section_id, placement.day, placement.start, placement.end)
            used_days.add(placement.day)
            placed.append(placement)

        return placed, None

    def _place_block(
        self,
        block: Block,
        teacher: Teacher,
        section: Section,
        subject: Subject,
        rooms_by_type: Dict[RoomType, List[Room]],
        used_days: Set[Weekday],
    ) -> Placement:
        window_start, window_end = teacher.window
        if block.minutes <= window_end - window_start:
            for day in sorted_days(teacher.avail_days):
                if day in used_days:
                    continue
                for _ in range(self.placement_attempts):
                    start = self.rng.randint(window_start, window_end - block.minutes)
                    for room in rooms_by_type.get(block.kind, []):
                        if self.index.can_place(room.room_id, teacher.teacher_id, section.section_id, day, start, start + block.minutes):
                            return Placement(block, day, start, room.room_id)

        raise self._placement_failure(block, teacher, section, subject, rooms_by_type)

    def _place_cp_sat(
        self,
        blocks: List[Block],
        teacher: Teacher,
        section: Section,
        subject: Subject,
        rooms_by_type: Dict[RoomType, List[Room]],
    ) -> Tuple[List[Placement], Optional[str]]:
        placements = self.placer.place(blocks, teacher, section.section_id, rooms_by_type, self.index, set())
        if placements is None:
            block = max(blocks, key=lambda b: b.hours)
            return [], self._placement_failure(block, teacher, section, subject, rooms_by_type).message

        for p in placements:
            self.index.book(p.room_id, teacher.teacher_id, section.section_id, p.day, p.start, p.end)
        return placements, None

    def _placement_failure(
        self,
        block: Block,
        teacher: Teacher,
        section: Section,
        subject: Subject,
        rooms_by_type: Dict[RoomType, List[Room]],
    ) -> PlacementFailure:
        entity_ids = {
            "subject_id": subject.subject_id,
            "section_id": section.section_id,
            "teacher_id": teacher.teacher_id,
        }
        window_start, window_end = teacher.window
        if not rooms_by_type.get(block.kind):
            message = f"No {block.kind.value} rooms are available for {subject.code}."
        elif block.minutes > window_end - window_start:
            message = (
                f"A {block.hours}h block of {subject.code} does not fit {teacher.label}'s "
                f"preferred time window {teacher.pref_time}."
            )
        else:
            message = (
                f"Could not place a {block.hours}h {block.kind.value} block of {subject.code} for section "
                f"{section.label} with {teacher.label}: no free room, day and time."
            )
        return PlacementFailure(message, entity_ids=entity_ids)

    # ===========================
    # Persistence
    # ===========================

    def _persist(self, period_id: str) -> Tuple[Dict[str, List[Meeting]], List[PersistenceIssue], Dict[str, float]]:
        """Insert one row per (teacher, subject, section, room, start, end) with merged days."""
        rows: Dict[Tuple[str, str, str, str, int, int], Set[Weekday]] = {}
        units: Dict[Tuple[str, str], float] = {}
        for teacher, subject, section, placements in self.placed:
            units[(section.section_id, subject.subject_id)] = subject.units
            for p in placements:
                key = (teacher.teacher_id, subject.subject_id, section.section_id, p.room_id, p.start, p.end)
                rows.setdefault(key, set()).add(p.day)

        schedule: Dict[str, List[Meeting]] = defaultdict(list)
        persistence_errors: List[PersistenceIssue] = []
        final_loads: Dict[str, float] = {}
        charged: Set[Tuple[str, str]] = set()

        for (teacher_id, subject_id, section_id, room_id, start, end), days in rows.items():
            pair = (section_id, subject_id)
            delta = units[pair] if pair not in charged else 0.0
            meeting = Meeting(
                subject_id=subject_id,
                teacher_id=teacher_id,
                section_id=section_id,
                room_id=room_id,
                days=days,
                start_time=to_hhmm(start),
                end_time=to_hhmm(end),
                academic_period_id=period_id,
                load_delta=delta,
            )
            try:
                self.store.add_meeting(meeting)
            except PersistenceError as e:
                logger.error(f"Failed to insert meeting for {subject_id}/{section_id}: {e.message}", exc_info=True)
                persistence_errors.append(PersistenceIssue(
                    subject_id=subject_id, section_id=section_id, teacher_id=teacher_id, reason=e.message
                ))
                continue

            charged.add(pair)
            schedule[teacher_id].append(meeting)
            final_loads[teacher_id] = final_loads.get(teacher_id, 0.0) + delta

        return dict(schedule), persistence_errors, final_loads

    def _create_response(
        self,
        period_id: str,
        schedule: Dict[str, List[Meeting]],
        persistence_errors: List[PersistenceIssue],
        load_map: Dict[str, float],
        run_time: float,
    ) -> AutoScheduleResponse:
        error_messages = [
            ErrorMessage(title="Unassigned Subject", message=f"{u.subject_code} (Section {u.section_id}): {u.reason}")
            for u in self.unassigned
        ]
        error_messages += [
            ErrorMessage(title="Persistence Error", message=f"{p.subject_id} (Section {p.section_id}): {p.reason}")
            for p in persistence_errors
        ]

        return AutoScheduleResponse(
            period_id=period_id,
            schedule=schedule,
            unassigned=self.unassigned,
            load_map=load_map,
            persistence_errors=persistence_errors,
            messages=Messages(error_message=error_messages),
            status="PARTIAL" if self.unassigned or persistence_errors else "COMPLETE",
            run_time_seconds=run_time,
        )
