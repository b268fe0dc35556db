from fastapi import APIRouter, Depends, HTTPException
from schemas.meetings import MeetingResponse
from backend import redis_backend
from routers.identity import get_current_user_id
import uuid
from logging_config import get_logger

logger = get_logger(__name__)

meetings_router = APIRouter(prefix="/api/meeting", tags=["meetings"])


@meetings_router.post("", status_code=201, response_model=MeetingResponse)
async def create_meeting(user_id: str = Depends(get_current_user_id)):
    """Mint the meeting id a caller sends along with "direct-call"."""
    meeting_id = str(uuid.uuid4())
    try:
        meeting = redis_backend.create_meeting(meeting_id, host=user_id)
    except Exception as e:
        logger.error(f"Error creating meeting for {user_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to create meeting")
    logger.info(f"Meeting {meeting_id} created by {user_id}")
    return MeetingResponse(**meeting)


@meetings_router.get("/{meeting_id}", response_model=MeetingResponse)
async def get_meeting(meeting_id: str, user_id: str = Depends(get_current_user_id)):
    """Verify a meeting before opening its call window; the requester becomes a participant."""
    meeting = redis_backend.get_meeting(meeting_id)
    if not meeting or not meeting.get("isActive"):
        logger.warning(f"Meeting {meeting_id} not found or ended (requested by {user_id})")
        raise HTTPException(status_code=404, detail="Meeting not found or ended")

    if user_id not in meeting["participants"]:
        redis_backend.add_participant(meeting_id, user_id)
        meeting["participants"] = sorted(set(meeting["participants"]) | {user_id})
    return MeetingResponse(**meeting)


@meetings_router.post("/{meeting_id}/end", response_model=MeetingResponse)
async def end_meeting(meeting_id: str, user_id: str = Depends(get_current_user_id)):
    meeting = redis_backend.get_meeting(meeting_id)
    if not meeting:
        raise HTTPException(status_code=404, detail="Meeting not found")
    if meeting.get("host") != user_id:
        logger.warning(f"End meeting failed: {user_id} is not the host of meeting {meeting_id}")
        raise HTTPException(status_code=403, detail="Only the host can end the meeting")

    redis_backend.end_meeting(meeting_id)
    logger.info(f"Meeting {meeting_id} ended by {user_id}")
    return MeetingResponse(**redis_backend.get_meeting(meeting_id))
