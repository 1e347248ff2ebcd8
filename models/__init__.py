"""
Domain entities and Pydantic schemas for the timetable engine API.
"""
from .entities import (
    Weekday,
    AcademicPeriod,
    Teacher,
    Subject,
    Section,
    Room,
    RoomType,
    Meeting,
    MeetingSlot,
    ActivityRecord,
    parse_days,
    format_days,
)
from .schemas import (
    CatalogSnapshot,
    CatalogSummary,
    MeetingRequest,
    MeetingResult,
    AvailableTeacher,
    AutoScheduleRequest,
    AutoScheduleResponse,
    UnassignedPairing,
    PersistenceIssue,
    ErrorMessage,
    Messages,
    ConflictRecord,
    ConflictReport,
)

__all__ = [
    "Weekday",
    "AcademicPeriod",
    "Teacher",
    "Subject",
    "Section",
    "Room",
    "RoomType",
    "Meeting",
    "MeetingSlot",
    "ActivityRecord",
    "parse_days",
    "format_days",
    "CatalogSnapshot",
    "CatalogSummary",
    "MeetingRequest",
    "MeetingResult",
    "AvailableTeacher",
    "AutoScheduleRequest",
    "AutoScheduleResponse",
    "UnassignedPairing",
    "PersistenceIssue",
    "ErrorMessage",
    "Messages",
    "ConflictRecord",
    "ConflictReport",
]
