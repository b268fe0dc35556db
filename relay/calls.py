"""Call setup between two identities and the signaling relay that follows it.

A call attempt goes ``INITIATED -> RINGING -> ACCEPTED | REJECTED`` or,
when the callee has no live connection, ``INITIATED -> UNREACHABLE``.
Ringing sessions wait in a table keyed by meeting id until the callee
answers. Accept/reject are routed to the caller by identity, as the client
sends them; the table is only consulted to close out the matching attempt.

Once both sides open the meeting, they join the room named after the
meeting id and exchange offer/answer payloads through ``relay_offer`` and
``relay_answer``. Those payloads are forwarded untouched.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Set

from logging_config import get_logger
from relay.events import AcceptCall, AnswerCall, CallUser, DirectCall, Event, RejectCall
from relay.presence import PresenceBroadcaster
from relay.registry import ConnectionRegistry

logger = get_logger(__name__)

UNREACHABLE_MESSAGE = "User is offline"


class CallState(str, Enum):
    INITIATED = "initiated"
    RINGING = "ringing"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    UNREACHABLE = "unreachable"


@dataclass
class CallSession:
    caller_id: str
    callee_id: str
    meeting_id: str
    caller_name: Optional[str] = None
    state: CallState = CallState.INITIATED


class CallBroker:
    def __init__(self, registry: ConnectionRegistry, broadcaster: PresenceBroadcaster):
        self._registry = registry
        self._broadcaster = broadcaster
        # Format: {meeting_id: CallSession} for attempts still ringing
        self._pending: Dict[str, CallSession] = {}

    async def initiate(self, connection_id: str, request: DirectCall) -> CallSession:
        caller_id = self._registry.identity_of(connection_id) or request.from_user.id
        session = CallSession(
            caller_id=caller_id,
            callee_id=request.target_user_id,
            meeting_id=request.meeting_id,
            caller_name=request.from_user.name,
        )
        targets = self._registry.resolve(request.target_user_id)
        if not targets:
            session.state = CallState.UNREACHABLE
            logger.info(f"Call {request.meeting_id} from {caller_id} to {request.target_user_id} failed: callee unreachable")
            await self._registry.emit([connection_id], Event.CALL_ERROR, {
                "message": UNREACHABLE_MESSAGE,
                "targetUserId": request.target_user_id,
                "meetingId": request.meeting_id,
            })
            return session

        session.state = CallState.RINGING
        self._pending[request.meeting_id] = session
        logger.info(f"Call {request.meeting_id} from {caller_id} ringing {request.target_user_id} on {len(targets)} connection(s)")
        await self._registry.emit(targets, Event.INCOMING_CALL, {
            "fromUser": request.from_user.model_dump(by_alias=True, exclude_unset=True),
            "meetingId": request.meeting_id,
        })
        return session

    async def accept(self, connection_id: str, request: AcceptCall) -> Optional[CallSession]:
        callee_id = self._registry.identity_of(connection_id)
        session = self._close(request.to_user_id, callee_id, CallState.ACCEPTED, meeting_id=request.meeting_id)
        delivered = await self._registry.emit(
            self._registry.resolve(request.to_user_id), Event.CALL_ACCEPTED, {"meetingId": request.meeting_id}
        )
        if not delivered:
            logger.info(f"Call {request.meeting_id} accepted but caller {request.to_user_id} is no longer connected")
        return session

    async def reject(self, connection_id: str, request: RejectCall) -> Optional[CallSession]:
        callee_id = self._registry.identity_of(connection_id)
        session = self._close(request.to_user_id, callee_id, CallState.REJECTED)
        delivered = await self._registry.emit(self._registry.resolve(request.to_user_id), Event.CALL_REJECTED)
        if not delivered:
            logger.info(f"Call from {request.to_user_id} rejected but caller is no longer connected")
        return session

    async def join_meeting(self, connection_id: str, meeting_id: str) -> int:
        """Join the meeting room and announce the new peer to whoever is already there."""
        if not self._registry.rooms.join(connection_id, meeting_id):
            return 0
        logger.info(f"Connection {connection_id} joined meeting {meeting_id}")
        return await self._broadcaster.broadcast(meeting_id, Event.USER_JOINED, connection_id, connection_id)

    def leave_meeting(self, connection_id: str, meeting_id: str) -> bool:
        return self._registry.rooms.leave(connection_id, meeting_id)

    async def relay_offer(self, connection_id: str, request: CallUser) -> int:
        return await self._registry.emit(self._targets(request.user_to_call), Event.CALL_USER, {
            "signal": request.signal_data,
            "from": request.from_ or connection_id,
            "name": request.name,
        })

    async def relay_answer(self, connection_id: str, request: AnswerCall) -> int:
        delivered = await self._registry.emit(self._targets(request.to), Event.CALL_ACCEPTED_SIGNAL, request.signal)
        logger.debug(f"Answer from {connection_id} relayed to {delivered} connection(s)")
        return delivered

    def forget(self, user_id: str) -> int:
        """Drop ringing attempts that involve an identity which went fully offline."""
        stale = [meeting_id for meeting_id, session in self._pending.items() if user_id in (session.caller_id, session.callee_id)]
        for meeting_id in stale:
            del self._pending[meeting_id]
        if stale:
            logger.debug(f"Discarded {len(stale)} ringing call(s) involving {user_id}")
        return len(stale)

    def pending(self, meeting_id: str) -> Optional[CallSession]:
        return self._pending.get(meeting_id)

    def pending_calls(self) -> List[CallSession]:
        return list(self._pending.values())

    def _targets(self, target: str) -> Set[str]:
        # signaling addresses a peer by connection id; fall back to an identity
        if self._registry.get(target) is not None:
            return {target}
        return self._registry.resolve(target)

    def _close(self, caller_id: str, callee_id: Optional[str], state: CallState, meeting_id: Optional[str] = None) -> Optional[CallSession]:
        session = None
        if meeting_id is not None:
            candidate = self._pending.get(meeting_id)
            if candidate is not None and candidate.caller_id == caller_id:
                session = candidate
        else:
            for candidate in self._pending.values():
                if candidate.caller_id == caller_id and callee_id in (None, candidate.callee_id):
                    session = candidate
                    break
        if session is None:
            logger.warning(f"No ringing call from {caller_id} matches this {state.value} response, forwarding anyway")
            return None
        session.state = state
        del self._pending[session.meeting_id]
        logger.info(f"Call {session.meeting_id} from {session.caller_id} {state.value} by {session.callee_id}")
        return session
