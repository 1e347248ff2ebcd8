from pydantic import BaseModel, Field
from typing import List, Dict, Optional, Literal

from models.entities import (
    AcademicPeriod,
    Meeting,
    MeetingSlot,
    Room,
    Section,
    Subject,
    Teacher,
)


# ===========================
# Catalog Models
# ===========================

class CatalogSnapshot(BaseModel):
    """Entities supplied by the external collaborators (rooms, roster, curriculum)."""
    periods: List[AcademicPeriod]
    active_period_id: Optional[str] = None  # falls back to the period flagged is_current
    teachers: List[Teacher] = []
    rooms: List[Room] = []
    subjects: List[Subject] = []
    sections: List[Section] = []
    meetings: List[Meeting] = []


class CatalogSummary(BaseModel):
    active_period_id: str
    teachers: int
    rooms: int
    subjects: int
    sections: int
    meetings: int


# ===========================
# Meeting Models
# ===========================

class MeetingRequest(MeetingSlot):
    """Manual insert or reassign of a single meeting"""
    subject_id: str
    teacher_id: str
    section_id: str
    room_id: str
    actor_id: Optional[str] = None


class MeetingResult(BaseModel):
    title: str
    message: str
    meeting: Optional[Meeting] = None
    teacher_load: Optional[float] = None


class AvailableTeacher(BaseModel):
    teacher_id: str
    name: str
    current_load: float
    max_load: float
    remaining_load: float


# ===========================
# Auto-Schedule Models
# ===========================

class AutoScheduleRequest(BaseModel):
    """Regenerate the active period, optionally for a subset of teachers"""
    teacher_ids: Optional[List[str]] = None
    strategy: Optional[Literal["greedy", "cp_sat"]] = None
    seed: Optional[int] = None
    actor_id: Optional[str] = None


class UnassignedPairing(BaseModel):
    subject_id: str
    subject_code: str
    section_id: str
    teacher_id: Optional[str] = None
    reason: str


class PersistenceIssue(BaseModel):
    """A generated meeting the store refused to insert"""
    subject_id: str
    section_id: str
    teacher_id: str
    reason: str


class ErrorMessage(BaseModel):
    """Error or warning message"""
    title: str
    message: str


class Messages(BaseModel):
    """Collection of error/warning messages"""
    error_message: List[ErrorMessage] = []


class AutoScheduleResponse(BaseModel):
    period_id: str
    schedule: Dict[str, List[Meeting]]  # teacher_id -> meetings
    unassigned: List[UnassignedPairing] = []
    load_map: Dict[str, float] = {}
    persistence_errors: List[PersistenceIssue] = []
    messages: Messages = Messages()

    status: Optional[str] = None  # "COMPLETE", "PARTIAL"
    run_time_seconds: Optional[float] = None


# ===========================
# Conflict Models
# ===========================

ConflictType = Literal[
    "room_conflict",
    "teacher_conflict",
    "section_conflict",
    "duplicate_section_subject_day",
    "unassigned_subject",
]


class ConflictRecord(BaseModel):
    conflict_id: str
    conflict_type: ConflictType
    severity: Literal["high", "medium"]
    message: str
    meeting_ids: List[str] = []
    room_id: Optional[str] = None
    teacher_id: Optional[str] = None
    section_id: Optional[str] = None
    subject_id: Optional[str] = None


class ConflictReport(BaseModel):
    scope: Literal["period", "all"]
    period_id: Optional[str] = None
    conflicts: List[ConflictRecord] = []
    counts: Dict[str, int] = Field(default_factory=dict)
