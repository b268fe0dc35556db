from typing import Iterable, Optional, Protocol, Set

from logging_config import get_logger
from relay.events import Event, MalformedEvent, NewMessage
from relay.registry import ConnectionRegistry

logger = get_logger(__name__)


class MembershipResolver(Protocol):
    def get_chat_members(self, chat_id: str) -> Iterable[str]: ...


class MessageRouter:
    """Live fan-out of persisted chat messages to their recipients' connections."""

    def __init__(self, registry: ConnectionRegistry, membership_resolver: Optional[MembershipResolver] = None):
        self._registry = registry
        self._membership_resolver = membership_resolver

    def recipients_for(self, message: NewMessage) -> Set[str]:
        """Resolve the recipient identities of a message, never including its sender.

        An empty member list falls back to stored membership and, failing that,
        fans out to nobody. Only a message with no member list at all and no
        stored membership is malformed.
        """
        members = message.member_ids()
        if not members and self._membership_resolver is not None:
            stored = list(self._membership_resolver.get_chat_members(message.chat.id) or ())
            logger.debug(f"Resolved {len(stored)} member(s) of chat {message.chat.id} from storage")
            if stored:
                members = stored
        if members is None:
            raise MalformedEvent(f"chat.users not defined for chat {message.chat.id}")
        recipients = set(members)
        recipients.discard(message.sender.id)
        return recipients

    async def deliver(self, message: NewMessage) -> int:
        recipients = self.recipients_for(message)
        connection_ids: Set[str] = set()
        for user_id in recipients:
            live = self._registry.resolve(user_id)
            if not live:
                logger.debug(f"User {user_id} has no live connection, skipping push")
            connection_ids.update(live)
        if not connection_ids:
            return 0
        delivered = await self._registry.emit(connection_ids, Event.MESSAGE_RECEIVED, message.to_payload())
        logger.debug(f"Message in chat {message.chat.id} pushed to {delivered} connection(s) of {len(recipients)} recipient(s)")
        return delivered
