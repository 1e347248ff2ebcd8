from typing import List, Optional

from fastapi import APIRouter, Depends

from models.schemas import AvailableTeacher, CatalogSnapshot, CatalogSummary
from service.availability import find_available_teachers
from service.store import TimetableStore, get_store

router = APIRouter()


@router.put("/catalog", response_model=CatalogSummary)
async def load_catalog(snapshot: CatalogSnapshot, store: TimetableStore = Depends(get_store)):
    """
    Replace the catalog and timetable with a snapshot.

    The active period is ``active_period_id`` when given, otherwise the period
    flagged ``is_current``.
    """
    store.load_snapshot(snapshot)
    return CatalogSummary(
        active_period_id=store.active_period().period_id,
        teachers=len(store.teachers),
        rooms=len(store.rooms),
        subjects=len(store.subjects),
        sections=len(store.sections),
        meetings=len(store.meetings),
    )


@router.get("/teachers/availability", response_model=List[AvailableTeacher])
async def teacher_availability(
    days: str,
    start_time: str,
    end_time: str,
    subject_id: Optional[str] = None,
    store: TimetableStore = Depends(get_store),
):
    """Teachers free on ``days`` between ``start_time`` and ``end_time``."""
    teachers = find_available_teachers(store, days, start_time, end_time, subject_id=subject_id)
    return [
        AvailableTeacher(
            teacher_id=t.teacher_id,
            name=t.label,
            current_load=t.current_load,
            max_load=t.max_load,
            remaining_load=max(0.0, t.max_load - t.current_load),
        )
        for t in teachers
    ]
