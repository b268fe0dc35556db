from typing import Dict, Set

from logging_config import get_logger

logger = get_logger(__name__)


class RoomTracker:
    """Connection-scoped room membership.

    Rooms are created by the first join and dropped as soon as their last
    member leaves. Both directions are indexed so a disconnecting connection
    can be removed from all of its rooms without scanning every room.
    """

    def __init__(self):
        # Format: {room_id: {connection_id, ...}}
        self._rooms: Dict[str, Set[str]] = {}
        # Format: {connection_id: {room_id, ...}}
        self._memberships: Dict[str, Set[str]] = {}

    def join(self, connection_id: str, room_id: str) -> bool:
        """Add a connection to a room. Returns False if it was already a member."""
        members = self._rooms.setdefault(room_id, set())
        if connection_id in members:
            return False
        members.add(connection_id)
        self._memberships.setdefault(connection_id, set()).add(room_id)
        logger.debug(f"Connection {connection_id} joined room {room_id} (members: {len(members)})")
        return True

    def leave(self, connection_id: str, room_id: str) -> bool:
        members = self._rooms.get(room_id)
        if not members or connection_id not in members:
            return False
        members.discard(connection_id)
        if not members:
            del self._rooms[room_id]
            logger.debug(f"Room {room_id} is empty, dropping it")
        joined = self._memberships.get(connection_id)
        if joined is not None:
            joined.discard(room_id)
            if not joined:
                del self._memberships[connection_id]
        return True

    def leave_all(self, connection_id: str) -> Set[str]:
        """Remove a connection from every room it joined and return those rooms."""
        joined = self._memberships.pop(connection_id, set())
        for room_id in joined:
            members = self._rooms.get(room_id)
            if members is None:
                continue
            members.discard(connection_id)
            if not members:
                del self._rooms[room_id]
        if joined:
            logger.debug(f"Connection {connection_id} left {len(joined)} room(s)")
        return joined

    def members_of(self, room_id: str) -> Set[str]:
        return set(self._rooms.get(room_id, ()))

    def rooms_of(self, connection_id: str) -> Set[str]:
        return set(self._memberships.get(connection_id, ()))

    def room_count(self) -> int:
        return len(self._rooms)
