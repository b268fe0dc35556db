from typing import Any, Awaitable, Callable, Dict, Optional

from pydantic import ValidationError

from logging_config import get_logger
from relay.calls import CallBroker
from relay.events import (
    AcceptCall,
    AnswerCall,
    CallUser,
    DirectCall,
    Event,
    MalformedEvent,
    NewMessage,
    RejectCall,
    Setup,
    parse_envelope,
    parse_room_id,
)
from relay.fanout import MembershipResolver, MessageRouter
from relay.presence import PresenceBroadcaster
from relay.registry import ConnectionRegistry, Transport
from relay.rooms import RoomTracker

logger = get_logger(__name__)

Handler = Callable[[str, Any], Awaitable[None]]


class RelayHub:
    """Single owner of the relay state; turns inbound frames into component calls."""

    def __init__(self, membership_resolver: Optional[MembershipResolver] = None):
        self.rooms = RoomTracker()
        self.registry = ConnectionRegistry(self.rooms)
        self.presence = PresenceBroadcaster(self.registry)
        self.messages = MessageRouter(self.registry, membership_resolver)
        self.calls = CallBroker(self.registry, self.presence)
        self._handlers: Dict[str, Handler] = {
            Event.SETUP.value: self._on_setup,
            Event.JOIN_CHAT.value: self._on_join_chat,
            Event.LEAVE_CHAT.value: self._on_leave_chat,
            Event.TYPING.value: self._on_typing,
            Event.STOP_TYPING.value: self._on_stop_typing,
            Event.NEW_MESSAGE.value: self._on_new_message,
            Event.DIRECT_CALL.value: self._on_direct_call,
            Event.ACCEPT_CALL.value: self._on_accept_call,
            Event.REJECT_CALL.value: self._on_reject_call,
            Event.JOIN_MEETING.value: self._on_join_meeting,
            Event.LEAVE_MEETING.value: self._on_leave_meeting,
            Event.CALL_USER.value: self._on_call_user,
            Event.ANSWER_CALL.value: self._on_answer_call,
        }

    def connect(self, transport: Transport, connection_id: Optional[str] = None) -> str:
        return self.registry.on_connect(transport, connection_id)

    def disconnect(self, connection_id: str) -> bool:
        connection = self.registry.on_disconnect(connection_id)
        if connection is None:
            return False
        if connection.user_id is not None and not self.registry.is_online(connection.user_id):
            self.calls.forget(connection.user_id)
        return True

    async def handle_text(self, connection_id: str, text: str) -> None:
        try:
            envelope = parse_envelope(text)
        except MalformedEvent as e:
            logger.warning(f"Dropped frame from connection {connection_id}: {e}")
            return
        await self.dispatch(connection_id, envelope.event, envelope.data)

    async def dispatch(self, connection_id: str, event: str, data: Any = None) -> None:
        handler = self._handlers.get(event)
        if handler is None:
            logger.warning(f"Dropped unknown event '{event}' from connection {connection_id}")
            return
        logger.debug(f"Event '{event}' from connection {connection_id}")
        try:
            await handler(connection_id, data)
        except ValidationError as e:
            logger.warning(f"Dropped malformed '{event}' from connection {connection_id}: {e.error_count()} validation error(s)")
        except MalformedEvent as e:
            logger.warning(f"Dropped malformed '{event}' from connection {connection_id}: {e}")
        except Exception as e:
            logger.error(f"Error handling '{event}' from connection {connection_id}: {e}", exc_info=True)

    def stats(self) -> dict:
        return {
            "connections": self.registry.connection_count(),
            "users": self.registry.identity_count(),
            "rooms": self.rooms.room_count(),
            "ringing_calls": len(self.calls.pending_calls()),
        }

    async def _on_setup(self, connection_id: str, data: Any) -> None:
        setup = Setup.model_validate(data)
        if self.registry.on_setup(connection_id, setup.user_id):
            await self.registry.emit([connection_id], Event.CONNECTED)

    async def _on_join_chat(self, connection_id: str, data: Any) -> None:
        room_id = parse_room_id(data)
        if self.rooms.join(connection_id, room_id):
            logger.info(f"Connection {connection_id} joined chat {room_id}")

    async def _on_leave_chat(self, connection_id: str, data: Any) -> None:
        self.rooms.leave(connection_id, parse_room_id(data))

    async def _on_typing(self, connection_id: str, data: Any) -> None:
        await self.presence.notify_typing(parse_room_id(data), connection_id)

    async def _on_stop_typing(self, connection_id: str, data: Any) -> None:
        await self.presence.notify_stop_typing(parse_room_id(data), connection_id)

    async def _on_new_message(self, connection_id: str, data: Any) -> None:
        await self.messages.deliver(NewMessage.from_payload(data))

    async def _on_direct_call(self, connection_id: str, data: Any) -> None:
        await self.calls.initiate(connection_id, DirectCall.model_validate(data))

    async def _on_accept_call(self, connection_id: str, data: Any) -> None:
        await self.calls.accept(connection_id, AcceptCall.model_validate(data))

    async def _on_reject_call(self, connection_id: str, data: Any) -> None:
        await self.calls.reject(connection_id, RejectCall.model_validate(data))

    async def _on_join_meeting(self, connection_id: str, data: Any) -> None:
        await self.calls.join_meeting(connection_id, parse_room_id(data))

    async def _on_leave_meeting(self, connection_id: str, data: Any) -> None:
        self.calls.leave_meeting(connection_id, parse_room_id(data))

    async def _on_call_user(self, connection_id: str, data: Any) -> None:
        await self.calls.relay_offer(connection_id, CallUser.model_validate(data))

    async def _on_answer_call(self, connection_id: str, data: Any) -> None:
        await self.calls.relay_answer(connection_id, AnswerCall.model_validate(data))
