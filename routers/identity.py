from typing import Optional

from fastapi import Header, HTTPException

from constants import USER_ID_HEADER


async def get_current_user_id(x_user_id: Optional[str] = Header(None, alias=USER_ID_HEADER)) -> str:
    """Identity of the caller, as established by the auth layer in front of this service."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Not authorized, no user id")
    return x_user_id.strip()
