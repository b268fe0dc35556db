"""Inbound and outbound event envelopes for the relay WebSocket.

Every frame on the wire is a JSON object ``{"event": <name>, "data": <payload>}``.
Payloads are validated here, at the boundary, so the relay components only
ever see typed objects.
"""
import json
from enum import Enum
from typing import Any, List, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, PrivateAttr, ValidationError


class Event(str, Enum):
    """Event names exchanged with clients."""

    SETUP = "setup"
    CONNECTED = "connected"
    JOIN_CHAT = "join chat"
    LEAVE_CHAT = "leave chat"
    TYPING = "typing"
    STOP_TYPING = "stop typing"
    NEW_MESSAGE = "new message"
    MESSAGE_RECEIVED = "message received"
    DIRECT_CALL = "direct-call"
    INCOMING_CALL = "incoming-call"
    CALL_ERROR = "call-error"
    ACCEPT_CALL = "accept-call"
    CALL_ACCEPTED = "call-accepted"
    REJECT_CALL = "reject-call"
    CALL_REJECTED = "call-rejected"
    JOIN_MEETING = "join meeting"
    LEAVE_MEETING = "leave meeting"
    USER_JOINED = "user-joined"
    CALL_USER = "call-user"
    ANSWER_CALL = "answer-call"
    CALL_ACCEPTED_SIGNAL = "call-accepted-signal"


class MalformedEvent(ValueError):
    """Raised when an inbound frame cannot be turned into a relay operation."""


class Envelope(BaseModel):
    event: str
    data: Any = None


class Setup(BaseModel):
    # web clients send their whole user object, so `_id` is accepted too
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(min_length=1, validation_alias=AliasChoices("userId", "_id", "user_id"))


class UserRef(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str = Field(alias="_id", min_length=1)
    name: Optional[str] = None


class ChatRef(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="_id", min_length=1)
    users: Optional[List[Union[UserRef, str]]] = None


class NewMessage(BaseModel):
    """A message already persisted by the message API.

    Only the fields routing needs are validated; recipients get the payload
    exactly as the sender submitted it.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = Field(default=None, alias="_id")
    sender: UserRef
    chat: ChatRef
    _raw: Optional[dict] = PrivateAttr(default=None)

    @classmethod
    def from_payload(cls, data: Any) -> "NewMessage":
        message = cls.model_validate(data)
        message._raw = data
        return message

    def member_ids(self) -> Optional[List[str]]:
        if self.chat.users is None:
            return None
        return [user if isinstance(user, str) else user.id for user in self.chat.users]

    def to_payload(self) -> dict:
        if self._raw is not None:
            return self._raw
        return self.model_dump(by_alias=True, exclude_unset=True)


class DirectCall(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    target_user_id: str = Field(alias="targetUserId", min_length=1)
    from_user: UserRef = Field(alias="fromUser")
    meeting_id: str = Field(alias="meetingId", min_length=1)


class AcceptCall(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    to_user_id: str = Field(alias="toUserId", min_length=1)
    meeting_id: str = Field(alias="meetingId", min_length=1)


class RejectCall(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    to_user_id: str = Field(alias="toUserId", min_length=1)


class CallUser(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_to_call: str = Field(alias="userToCall", min_length=1)
    signal_data: Any = Field(alias="signalData")
    from_: Optional[str] = Field(default=None, alias="from")
    name: Optional[str] = None


class AnswerCall(BaseModel):
    to: str = Field(min_length=1)
    signal: Any


def parse_envelope(text: str) -> Envelope:
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedEvent(f"frame is not valid JSON: {e}") from e
    try:
        return Envelope.model_validate(raw)
    except ValidationError as e:
        raise MalformedEvent(f"frame is not an event envelope: {e.error_count()} error(s)") from e


def parse_room_id(data: Any) -> str:
    if isinstance(data, str) and data:
        return data
    raise MalformedEvent(f"expected a room id string, got {type(data).__name__}")


def encode_event(event: Union[Event, str], data: Any = None) -> str:
    name = event.value if isinstance(event, Event) else event
    return json.dumps({"event": name, "data": data})
