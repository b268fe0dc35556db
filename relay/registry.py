import asyncio
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Protocol, Set, Union

from logging_config import get_logger
from relay.events import Event, encode_event
from relay.rooms import RoomTracker

logger = get_logger(__name__)


class Transport(Protocol):
    """The outbound half of a live socket (a starlette ``WebSocket`` in production)."""

    async def send_text(self, data: str) -> None: ...


@dataclass
class Connection:
    connection_id: str
    transport: Transport
    user_id: Optional[str] = None

    async def send(self, event: Union[Event, str], data: Any = None) -> None:
        await self.transport.send_text(encode_event(event, data))


class ConnectionRegistry:
    """Maps user identities to their live connections.

    Every mutation is a plain synchronous method, so on a single event loop
    a lookup either runs entirely before or entirely after a disconnect.
    Sends snapshot their targets first and never touch the maps afterwards.
    """

    def __init__(self, rooms: RoomTracker):
        self.rooms = rooms
        # Format: {connection_id: Connection}
        self._connections: Dict[str, Connection] = {}
        # Format: {user_id: {connection_id, ...}}
        self._identities: Dict[str, Set[str]] = {}

    def on_connect(self, transport: Transport, connection_id: Optional[str] = None) -> str:
        connection_id = connection_id or str(uuid.uuid4())
        self._connections[connection_id] = Connection(connection_id=connection_id, transport=transport)
        logger.info(f"Connection {connection_id} opened (live connections: {len(self._connections)})")
        return connection_id

    def on_setup(self, connection_id: str, user_id: str) -> bool:
        connection = self._connections.get(connection_id)
        if connection is None:
            logger.warning(f"Setup for unknown connection {connection_id} ignored")
            return False
        if connection.user_id == user_id:
            return True
        if connection.user_id is not None:
            self._unmap(connection.user_id, connection_id)
            logger.info(f"Connection {connection_id} switched identity from {connection.user_id} to {user_id}")
        connection.user_id = user_id
        self._identities.setdefault(user_id, set()).add(connection_id)
        logger.info(f"Connection {connection_id} set up as user {user_id}")
        return True

    def resolve(self, user_id: str) -> Set[str]:
        return set(self._identities.get(user_id, ()))

    def get(self, connection_id: str) -> Optional[Connection]:
        return self._connections.get(connection_id)

    def identity_of(self, connection_id: str) -> Optional[str]:
        connection = self._connections.get(connection_id)
        return connection.user_id if connection else None

    def rooms_of(self, connection_id: str) -> Set[str]:
        return self.rooms.rooms_of(connection_id)

    def is_online(self, user_id: str) -> bool:
        return bool(self._identities.get(user_id))

    def on_disconnect(self, connection_id: str) -> Optional[Connection]:
        """Purge a connection from the identity map and every room.

        Returns the removed connection, or None if it was already gone.
        """
        connection = self._connections.pop(connection_id, None)
        if connection is None:
            return None
        if connection.user_id is not None:
            self._unmap(connection.user_id, connection_id)
        rooms = self.rooms.leave_all(connection_id)
        logger.info(f"Connection {connection_id} closed (user: {connection.user_id}, rooms left: {len(rooms)})")
        return connection

    def _unmap(self, user_id: str, connection_id: str) -> None:
        connection_ids = self._identities.get(user_id)
        if connection_ids is None:
            return
        connection_ids.discard(connection_id)
        if not connection_ids:
            del self._identities[user_id]

    async def emit(self, connection_ids: Iterable[str], event: Union[Event, str], data: Any = None) -> int:
        """Push one event to each listed connection. Returns how many sends succeeded.

        Each send is independent: a dead socket is logged and skipped.
        """
        targets = [self._connections[cid] for cid in connection_ids if cid in self._connections]
        if not targets:
            return 0
        results = await asyncio.gather(*(target.send(event, data) for target in targets), return_exceptions=True)
        delivered = 0
        for target, result in zip(targets, results):
            if isinstance(result, Exception):
                logger.warning(f"Error sending {event} to connection {target.connection_id}: {result}")
            else:
                delivered += 1
        logger.debug(f"Sent {event} to {delivered}/{len(targets)} connection(s)")
        return delivered

    def connection_count(self) -> int:
        return len(self._connections)

    def identity_count(self) -> int:
        return len(self._identities)
