"""
OR-Tools CP-SAT block placer.

Places all blocks of one section/subject pairing at once: every candidate
(day, start, room) triple that is free for the room, the teacher and the
section becomes a boolean variable, each block takes exactly one candidate,
and no two blocks of the pairing share a day. Used when the auto-scheduler
runs with the ``cp_sat`` placement strategy instead of one random draw per
block.
"""

from ortools.sat.python import cp_model
from typing import Dict, List, Optional, Sequence, Set, Tuple
import logging

from models.entities import Room, RoomType, Teacher, Weekday, sorted_days
from service.block_planner import Block
from service.booking import BookingIndex, Placement
from service.time_utils import MINUTES_PER_DAY

logger = logging.getLogger(__name__)

Candidate = Tuple[cp_model.IntVar, Weekday, int, str]  # (var, day, start, room_id)


class CpSatPlacer:
    """
    Constraint-based placement of one pairing's blocks using the CP-SAT solver.

    Prefers earlier days and earlier start times so results are stable for a
    given booking state.
    """

    def __init__(
        self,
        time_limit_seconds: int = 10,
        random_seed: int = 42,
        num_workers: int = 1,
        start_step_minutes: int = 30,
    ):
        """
        Initialize the placer.

        Args:
            time_limit_seconds: Maximum time allowed for each pairing
            random_seed: Solver seed, fixed for deterministic behavior
            num_workers: Number of solver search workers
            start_step_minutes: Grid between candidate start times
        """
        self.time_limit_seconds = time_limit_seconds
        self.random_seed = random_seed
        self.num_workers = num_workers
        self.start_step_minutes = max(1, start_step_minutes)

    def place(
        self,
        blocks: Sequence[Block],
        teacher: Teacher,
        section_id: str,
        rooms_by_type: Dict[RoomType, List[Room]],
        index: BookingIndex,
        used_days: Set[Weekday],
    ) -> Optional[List[Placement]]:
        """
        Find placements for every block, or None when no joint placement exists.

        The booking index is only read; booking the result is the caller's job.
        """
        if not blocks:
            return []

        model = cp_model.CpModel()
        solver = cp_model.CpSolver()
        solver.parameters.random_seed = self.random_seed
        solver.parameters.num_workers = self.num_workers
        solver.parameters.max_time_in_seconds = self.time_limit_seconds

        days = [d for d in sorted_days(teacher.avail_days) if d not in used_days]

        # Step 1: Create decision variables
        variables = self._create_variables(model, blocks, teacher, section_id, rooms_by_type, index, days)
        if variables is None:
            return None

        # Step 2: Add hard constraints
        self._add_hard_constraints(model, variables, days)

        # Step 3: Objective - earliest day, then earliest start
        model.Minimize(sum(
            var * (day.order * MINUTES_PER_DAY + start)
            for candidates in variables.values()
            for var, day, start, _ in candidates
        ))

        status = solver.Solve(model)

        # Step 4: Extract solution
        if status not in (cp_model.OPTIMAL, cp_model.FEASIBLE):
            logger.info(
                f"CP-SAT found no placement for section {section_id} with {teacher.label} "
                f"(status {solver.StatusName(status)})"
            )
            return None

        placements = []
        for block_idx, candidates in variables.items():
            for var, day, start, room_id in candidates:
                if solver.Value(var) == 1:
                    placements.append(Placement(blocks[block_idx], day, start, room_id))
                    break
        return placements

    def _create_variables(
        self,
        model: cp_model.CpModel,
        blocks: Sequence[Block],
        teacher: Teacher,
        section_id: str,
        rooms_by_type: Dict[RoomType, List[Room]],
        index: BookingIndex,
        days: List[Weekday],
    ) -> Optional[Dict[int, List[Candidate]]]:
        """One boolean per feasible (block, day, start, room); None if a block has none."""
        window_start, window_end = teacher.window
        variables: Dict[int, List[Candidate]] = {}

        for block_idx, block in enumerate(blocks):
            candidates = []
            duration = block.minutes

            if duration <= window_end - window_start:
                for day in days:
                    for start in range(window_start, window_end - duration + 1, self.start_step_minutes):
                        for room in rooms_by_type.get(block.kind, []):
                            if index.can_place(room.room_id, teacher.teacher_id, section_id, day, start, start + duration):
                                var = model.NewBoolVar(
                                    f"block_{block_idx}_day_{day.value}_start_{start}_room_{room.room_id}"
                                )
                                candidates.append((var, day, start, room.room_id))

            if not candidates:
                logger.debug(f"No free candidate for a {block.hours}h {block.kind.value} block of section {section_id}")
                return None
            variables[block_idx] = candidates

        return variables

    def _add_hard_constraints(self, model: cp_model.CpModel, variables: Dict[int, List[Candidate]], days: List[Weekday]):
        # 1. Each block placed exactly once
        for candidates in variables.values():
            model.Add(sum(var for var, _, _, _ in candidates) == 1)

        # 2. At most one block of the pairing per day
        for day in days:
            day_assignments = [
                var
                for candidates in variables.values()
                for var, candidate_day, _, _ in candidates
                if candidate_day == day
            ]
            if day_assignments:
                model.Add(sum(day_assignments) <= 1)
