from pydantic import BaseModel
from typing import Optional


class MeetingResponse(BaseModel):
    meetingId: str
    host: str
    participants: list[str]
    isActive: bool
    startTime: str
    endTime: Optional[str] = None
