from typing import Optional

from fastapi import APIRouter, Depends

from config import settings
from models.schemas import AutoScheduleRequest, AutoScheduleResponse
from service.auto_scheduler import AutoScheduler
from service.store import TimetableStore, get_store

# Create a router instance
router = APIRouter()


@router.post("/schedule/auto", response_model=AutoScheduleResponse)
async def auto_schedule(
    request: Optional[AutoScheduleRequest] = None,
    store: TimetableStore = Depends(get_store),
):
    """
    Regenerate the active period's timetable.

    Clears the affected teachers' meetings (all teachers, or ``teacher_ids``)
    and places every section/subject pairing again. Pairings that cannot be
    placed are listed under ``unassigned``; the run itself does not fail.
    """
    request = request or AutoScheduleRequest()
    scheduler = AutoScheduler.from_settings(store, settings, strategy=request.strategy, seed=request.seed)
    return scheduler.run(teacher_ids=request.teacher_ids, actor_id=request.actor_id)
