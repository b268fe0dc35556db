from fastapi import APIRouter, Depends, HTTPException
from schemas.chats import ChatMembersRequest, ChatMembersResponse
from backend import redis_backend
from routers.identity import get_current_user_id
from logging_config import get_logger

logger = get_logger(__name__)

chats_router = APIRouter(prefix="/api/chat", tags=["chats"])


@chats_router.put("/{chat_id}/users", response_model=ChatMembersResponse)
async def set_chat_users(chat_id: str, body: ChatMembersRequest, user_id: str = Depends(get_current_user_id)):
    """Record who belongs to a chat so messages sent without a member list can still fan out."""
    if user_id not in body.users:
        raise HTTPException(status_code=403, detail="You must be a member of the chat")
    users = sorted(set(body.users))
    redis_backend.set_chat_members(chat_id, users)
    logger.info(f"Chat {chat_id} membership updated by {user_id}: {len(users)} users")
    return ChatMembersResponse(chatId=chat_id, users=users)


@chats_router.get("/{chat_id}/users", response_model=ChatMembersResponse)
async def get_chat_users(chat_id: str, user_id: str = Depends(get_current_user_id)):
    users = redis_backend.get_chat_members(chat_id)
    if not users:
        raise HTTPException(status_code=404, detail="Chat not found")
    if user_id not in users:
        raise HTTPException(status_code=403, detail="You are not a member of this chat")
    return ChatMembersResponse(chatId=chat_id, users=sorted(users))
