from pydantic import BaseModel, Field


class ChatMembersRequest(BaseModel):
    users: list[str] = Field(min_length=1)

class ChatMembersResponse(BaseModel):
    chatId: str
    users: list[str]
