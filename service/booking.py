"""
Per-run booking index: room, teacher and section bookings keyed by id then
weekday. One instance belongs to one scheduling run.
"""
from collections import defaultdict
from dataclasses import dataclass
from typing import DefaultDict, Dict, Iterable, List, Tuple

from models.entities import Meeting, Weekday
from service.block_planner import Block
from service.time_utils import overlaps

Interval = Tuple[int, int]
BookingMap = DefaultDict[str, DefaultDict[Weekday, List[Interval]]]


@dataclass(frozen=True)
class Placement:
    """One block placed on a day, at a start minute, in a room."""
    block: Block
    day: Weekday
    start: int
    room_id: str

    @property
    def end(self) -> int:
        return self.start + self.block.minutes


def _new_map() -> BookingMap:
    return defaultdict(lambda: defaultdict(list))


class BookingIndex:
    def __init__(self):
        self.maps: Dict[str, BookingMap] = {
            "room": _new_map(),
            "teacher": _new_map(),
            "section": _new_map(),
        }

    @classmethod
    def from_meetings(cls, meetings: Iterable[Meeting]) -> "BookingIndex":
        index = cls()
        for m in meetings:
            for day in m.days:
                index.book(m.room_id, m.teacher_id, m.section_id, day, m.start_minutes, m.end_minutes)
        return index

    def is_free(self, kind: str, key: str, day: Weekday, start: int, end: int) -> bool:
        bookings = self.maps[kind].get(key)
        if not bookings:
            return True
        return not any(overlaps(start, end, s, e) for s, e in bookings.get(day, ()))

    def can_place(self, room_id: str, teacher_id: str, section_id: str, day: Weekday, start: int, end: int) -> bool:
        return (
            self.is_free("room", room_id, day, start, end)
            and self.is_free("teacher", teacher_id, day, start, end)
            and self.is_free("section", section_id, day, start, end)
        )

    def book(self, room_id: str, teacher_id: str, section_id: str, day: Weekday, start: int, end: int) -> None:
        for kind, key in (("room", room_id), ("teacher", teacher_id), ("section", section_id)):
            self.maps[kind][key][day].append((start, end))

    def release(self, room_id: str, teacher_id: str, section_id: str, day: Weekday, start: int, end: int) -> None:
        for kind, key in (("room", room_id), ("teacher", teacher_id), ("section", section_id)):
            self.maps[kind][key][day].remove((start, end))
