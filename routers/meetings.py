from typing import List, Optional

from fastapi import APIRouter, Depends, status

from models.entities import Meeting
from models.schemas import MeetingRequest, MeetingResult
from service.meetings import MeetingService
from service.store import TimetableStore, get_store

router = APIRouter()


def get_meeting_service(store: TimetableStore = Depends(get_store)) -> MeetingService:
    return MeetingService(store)


@router.get("/meetings", response_model=List[Meeting])
async def list_meetings(all_periods: bool = False, store: TimetableStore = Depends(get_store)):
    """Meetings of the active period, or of every period with ``all_periods=true``."""
    if all_periods:
        return store.meetings_for(None)
    return store.meetings_for(store.active_period().period_id)


@router.post("/meetings", response_model=MeetingResult, status_code=status.HTTP_201_CREATED)
async def create_meeting(request: MeetingRequest, service: MeetingService = Depends(get_meeting_service)):
    """
    Validate and commit a single meeting.

    Rejections come back as 409 with the message of the first failed check.
    """
    meeting, teacher = service.create(request)
    return MeetingResult(
        title="Success",
        message=f"Subject assigned to {teacher.label} successfully.",
        meeting=meeting,
        teacher_load=teacher.current_load,
    )


@router.put("/meetings/{meeting_id}", response_model=MeetingResult)
async def reassign_meeting(
    meeting_id: str,
    request: MeetingRequest,
    service: MeetingService = Depends(get_meeting_service),
):
    """Move an existing meeting to a new teacher, room, section or time."""
    meeting, teacher = service.reassign(meeting_id, request)
    return MeetingResult(
        title="Success",
        message=f"Meeting {meeting_id} reassigned to {teacher.label}.",
        meeting=meeting,
        teacher_load=teacher.current_load,
    )


@router.delete("/meetings/{meeting_id}", response_model=MeetingResult)
async def remove_meeting(
    meeting_id: str,
    actor_id: Optional[str] = None,
    service: MeetingService = Depends(get_meeting_service),
):
    meeting, teacher = service.remove(meeting_id, actor_id=actor_id)
    return MeetingResult(
        title="Success",
        message=f"Meeting {meeting_id} removed.",
        meeting=meeting,
        teacher_load=teacher.current_load,
    )
