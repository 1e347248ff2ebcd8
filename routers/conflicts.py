from typing import Optional

from fastapi import APIRouter, Depends

from config import settings
from models.schemas import ConflictReport
from service.conflict_detector import ConflictDetector
from service.store import TimetableStore, get_store

router = APIRouter()


@router.get("/conflicts", response_model=ConflictReport)
async def get_conflicts(all_periods: Optional[bool] = None, store: TimetableStore = Depends(get_store)):
    """
    Scan the committed timetable for double bookings, duplicates and
    subjects with no meetings. Defaults to the active period.
    """
    if all_periods is None:
        all_periods = settings.conflict_scan_all_periods
    return ConflictDetector.for_store(store, all_periods=all_periods).detect_conflicts()
