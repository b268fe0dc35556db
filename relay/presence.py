from typing import Any, Optional, Union

from logging_config import get_logger
from relay.events import Event
from relay.registry import ConnectionRegistry

logger = get_logger(__name__)


class PresenceBroadcaster:
    """Room-wide signals that are sent to every member except the originator.

    Typing state is not tracked here: clients debounce keystrokes and send
    "stop typing" themselves, so a lost event only costs a stale indicator.
    """

    def __init__(self, registry: ConnectionRegistry):
        self._registry = registry

    async def notify_typing(self, room_id: str, exclude_connection: Optional[str]) -> int:
        return await self.broadcast(room_id, Event.TYPING, room_id, exclude_connection)

    async def notify_stop_typing(self, room_id: str, exclude_connection: Optional[str]) -> int:
        return await self.broadcast(room_id, Event.STOP_TYPING, room_id, exclude_connection)

    async def broadcast(self, room_id: str, event: Union[Event, str], data: Any, exclude_connection: Optional[str] = None) -> int:
        members = self._registry.rooms.members_of(room_id)
        members.discard(exclude_connection)
        if not members:
            logger.debug(f"No other members in room {room_id} for {event}")
            return 0
        return await self._registry.emit(members, event, data)
