"""
Domain entities shared by the validator, the auto-scheduler and the conflict
detector.
"""
import re
from datetime import datetime, timezone
from enum import Enum
from typing import FrozenSet, Iterable, List, Optional, Tuple, Union

from pydantic import BaseModel, Field, computed_field, field_serializer, field_validator, model_validator

from config import settings
from service.errors import FormatError, InvalidRangeError
from service.time_utils import duration_hhmm, parse_time_range, to_hhmm, to_minutes


# ===========================
# Weekdays
# ===========================

class Weekday(str, Enum):
    MONDAY = "M"
    TUESDAY = "T"
    WEDNESDAY = "W"
    THURSDAY = "Th"
    FRIDAY = "F"
    SATURDAY = "S"
    SUNDAY = "Su"

    @property
    def full_name(self) -> str:
        return self.name.capitalize()

    @property
    def order(self) -> int:
        return _WEEK_ORDER.index(self)


_WEEK_ORDER = list(Weekday)

_DAY_ALIASES = {}
for _day in Weekday:
    _DAY_ALIASES[_day.name.lower()] = _day
    _DAY_ALIASES[_day.name[:3].lower()] = _day
_DAY_ALIASES["thur"] = _DAY_ALIASES["thurs"] = Weekday.THURSDAY
_DAY_ALIASES["tues"] = Weekday.TUESDAY

_TWO_LETTER_CODES = {"TH": Weekday.THURSDAY, "SU": Weekday.SUNDAY}
_ONE_LETTER_CODES = {
    "M": Weekday.MONDAY,
    "T": Weekday.TUESDAY,
    "W": Weekday.WEDNESDAY,
    "F": Weekday.FRIDAY,
    "S": Weekday.SATURDAY,
}


def _parse_day_token(token: str) -> List[Weekday]:
    alias = _DAY_ALIASES.get(token.lower())
    if alias is not None:
        return [alias]

    # Concatenated codes such as "MWF" or "TTh"; "TH" is read before "T".
    days = []
    code = token.upper()
    i = 0
    while i < len(code):
        pair = code[i:i + 2]
        if pair in _TWO_LETTER_CODES:
            days.append(_TWO_LETTER_CODES[pair])
            i += 2
        elif code[i] in _ONE_LETTER_CODES:
            days.append(_ONE_LETTER_CODES[code[i]])
            i += 1
        else:
            raise FormatError(f"Invalid day '{token}'. Use day codes M, T, W, Th, F, S, Su or full day names.")
    return days


def parse_days(value: Union[None, str, Weekday, Iterable]) -> FrozenSet[Weekday]:
    """Parse a day-set from a code string, a day name or a list of either."""
    if value is None:
        return frozenset()
    if isinstance(value, Weekday):
        return frozenset([value])
    if isinstance(value, str):
        tokens = [t for t in re.split(r"[\s,/;]+", value) if t]
    else:
        tokens = list(value)

    days = set()
    for token in tokens:
        if isinstance(token, Weekday):
            days.add(token)
        elif isinstance(token, str):
            days.update(_parse_day_token(token.strip()))
        else:
            raise FormatError(f"Invalid day {token!r}.")
    return frozenset(days)


def format_days(days: Iterable[Weekday]) -> str:
    """Canonical Monday-to-Sunday code string, e.g. ``MWF`` or ``TTh``."""
    return "".join(d.value for d in sorted(days, key=lambda d: d.order))


def sorted_days(days: Iterable[Weekday]) -> List[Weekday]:
    return sorted(days, key=lambda d: d.order)


# ===========================
# Catalog entities
# ===========================

DEFAULT_PREF_TIME = "07:00-21:00"


class AcademicPeriod(BaseModel):
    period_id: str
    semester: str
    school_year: str
    is_current: bool = False


class PeriodScoped(BaseModel):
    """Entity scoped to an academic period by id or by semester + school year."""
    semester: Optional[str] = None
    school_year: Optional[str] = None
    academic_period_id: Optional[str] = None

    def in_period(self, period: AcademicPeriod) -> bool:
        if self.academic_period_id is not None:
            return self.academic_period_id == period.period_id
        return self.semester == period.semester and self.school_year == period.school_year

    def bucket_in(self, period: AcademicPeriod) -> Tuple[str, str]:
        """(school_year, semester), taking missing parts from the period."""
        return (self.school_year or period.school_year, self.semester or period.semester)


class Teacher(BaseModel):
    teacher_id: str
    name: str = ""
    position: str = ""
    specializations: List[str] = []
    avail_days: FrozenSet[Weekday] = frozenset()
    pref_time: str = DEFAULT_PREF_TIME  # "HH:MM-HH:MM"
    current_load: float = 0
    min_load: float = 0
    max_load: Optional[float] = None

    @field_validator("specializations", mode="before")
    @classmethod
    def _split_specializations(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            v = v.split(",")
        return [s.strip().strip('"').strip() for s in v if s and s.strip().strip('"').strip()]

    @field_validator("avail_days", mode="before")
    @classmethod
    def _parse_avail_days(cls, v):
        return parse_days(v)

    @field_validator("pref_time", mode="before")
    @classmethod
    def _check_pref_time(cls, v):
        if v is None or (isinstance(v, str) and not v.strip()):
            return DEFAULT_PREF_TIME
        start, end = parse_time_range(v)
        return f"{to_hhmm(start)}-{to_hhmm(end)}"

    @model_validator(mode="after")
    def _default_max_load(self):
        if self.max_load is None:
            self.max_load = self.min_load + settings.max_excess_load
        return self

    @field_serializer("avail_days")
    def _serialize_days(self, days: FrozenSet[Weekday]) -> str:
        return format_days(days)

    @property
    def label(self) -> str:
        return self.name or self.teacher_id

    @property
    def window(self) -> Tuple[int, int]:
        return parse_time_range(self.pref_time)

    def is_specialized_in(self, specialization: str) -> bool:
        return (specialization or "").strip() in set(self.specializations)


class Subject(PeriodScoped):
    subject_id: str
    subject_code: str = ""
    name: str = ""
    specialization: str = ""
    units: float = 0
    lec_hours: int = Field(default=0, ge=0)
    lab_hours: int = Field(default=0, ge=0)

    @property
    def code(self) -> str:
        return self.subject_code or self.subject_id

    @property
    def total_hours(self) -> int:
        return self.lec_hours + self.lab_hours


class Section(PeriodScoped):
    section_id: str
    name: str = ""
    enrollment_count: int = 0

    @property
    def label(self) -> str:
        return self.name or self.section_id


class RoomType(str, Enum):
    LECTURE = "Lec"
    LAB = "Lab"


class Room(BaseModel):
    room_id: str
    name: str = ""
    type: RoomType = RoomType.LECTURE

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, v):
        if isinstance(v, str):
            lowered = v.strip().lower()
            if lowered in ("lec", "lecture", "theory"):
                return RoomType.LECTURE
            if lowered in ("lab", "laboratory", "practical"):
                return RoomType.LAB
        return v

    @property
    def label(self) -> str:
        return self.name or self.room_id


# ===========================
# Timetable entities
# ===========================

class MeetingSlot(BaseModel):
    """Day-set plus a half-open HH:MM time range."""
    days: FrozenSet[Weekday]
    start_time: str
    end_time: str

    @field_validator("days", mode="before")
    @classmethod
    def _parse_meeting_days(cls, v):
        days = parse_days(v)
        if not days:
            raise FormatError("A meeting needs at least one day.")
        return days

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def _normalize_time(cls, v):
        return to_hhmm(to_minutes(v))

    @model_validator(mode="after")
    def _check_range(self):
        if self.end_minutes <= self.start_minutes:
            raise InvalidRangeError(
                f"End time ({self.end_time}) must be after start time ({self.start_time})."
            )
        return self

    @field_serializer("days")
    def _serialize_days(self, days: FrozenSet[Weekday]) -> str:
        return format_days(days)

    @computed_field
    @property
    def duration(self) -> str:
        return duration_hhmm(self.start_minutes, self.end_minutes)

    @property
    def start_minutes(self) -> int:
        return to_minutes(self.start_time)

    @property
    def end_minutes(self) -> int:
        return to_minutes(self.end_time)

    @property
    def day_label(self) -> str:
        return format_days(self.days)


class Meeting(MeetingSlot):
    """One scheduled class: a subject taught to a section in a room on a day-set."""
    meeting_id: str = ""
    subject_id: str
    teacher_id: str
    section_id: str
    room_id: str
    academic_period_id: str
    load_delta: float = 0


class ActivityRecord(BaseModel):
    text: str
    actor_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
