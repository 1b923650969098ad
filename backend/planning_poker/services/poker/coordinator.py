"""Room state coordinator.

Owns every room table and the connection index. Each public operation runs
to completion under one lock and returns a ``Reply`` describing what the
transport must deliver; nothing here talks to Socket.IO directly.
"""
import functools
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from planning_poker.exceptions import UsernameTaken
from planning_poker.models import ConnectionBinding, Participant, Role, Room, TimerState
from . import timers
from .connections import ConnectionIndex
from .voting import average_vote, most_voted

logger = logging.getLogger(__name__)


@dataclass
class Outbound:
    event: str
    data: Any = None
    room: Optional[str] = None  # None means the originating connection


@dataclass
class Reply:
    messages: List[Outbound] = field(default_factory=list)
    attach: Optional[str] = None
    detach: List[str] = field(default_factory=list)

    def broadcast(self, room_id: str, event: str, data: Any = None) -> None:
        self.messages.append(Outbound(event, data, room_id))

    def unicast(self, event: str, data: Any = None) -> None:
        self.messages.append(Outbound(event, data))

    def events(self) -> List[str]:
        return [m.event for m in self.messages]


def _locked(method):
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            return method(self, *args, **kwargs)
    return wrapper


class RoomCoordinator:
    def __init__(self, clock: Callable[[], int] = timers.now_ms):
        self._lock = threading.RLock()
        self._clock = clock
        self._rooms: Dict[str, Room] = {}
        self._timers: Dict[str, TimerState] = {}
        self._stories: Dict[str, List[str]] = {}
        self._connections = ConnectionIndex()

    def apply(self, operation: Callable[..., Reply], deliver: Callable[[Reply], None],
              *args, **kwargs) -> Reply:
        """Run ``operation`` and hand its reply to ``deliver`` under the same lock.

        Messages for a room therefore reach the transport in the order the
        state changes happened.
        """
        with self._lock:
            reply = operation(*args, **kwargs)
            deliver(reply)
            return reply

    # ---- read helpers ----

    @_locked
    def exists(self, room_id: str) -> bool:
        return room_id in self._rooms or room_id in self._timers or room_id in self._stories

    @_locked
    def binding(self, sid: str) -> Optional[ConnectionBinding]:
        return self._connections.get(sid)

    @_locked
    def snapshot(self, room_id: str) -> Optional[dict]:
        if not self.exists(room_id):
            return None
        room = self._rooms.get(room_id) or Room()
        timer = self._timers.get(room_id) or TimerState()
        return {
            'roomId': room_id,
            'participants': room.members(),
            'revealed': room.revealed,
            'votes': room.votes(),
            'timer': timer.to_dict(self._clock()),
            'stories': list(self._stories.get(room_id, [])),
        }

    def _timer_payload(self, room_id: str) -> dict:
        return self._timers[room_id].to_dict(self._clock())

    def _broadcast_members(self, reply: Reply, room_id: str, room: Room) -> None:
        reply.broadcast(room_id, 'roomUpdate', room.members())
        reply.broadcast(room_id, 'votesUpdate', room.votes())

    # ---- connection lifecycle ----

    @_locked
    def room_exists(self, room_id: str) -> Reply:
        reply = Reply()
        reply.unicast('checkIfRoomExistsResponse', {'exists': self.exists(room_id)})
        return reply

    @_locked
    def join(self, sid: str, room_id: str, username: str, role: Role = Role.PLAYER,
             is_admin: bool = False, time: Optional[int] = None,
             stories: Optional[List[str]] = None) -> Reply:
        reply = Reply()
        current = self._connections.get(sid)
        if current is not None and current.member != (room_id, username):
            self._release(current, reply, detach=True)

        evicted = self._connections.bind(sid, room_id, username)
        if evicted is not None:
            logger.info(f"[takeover] room={room_id} user={username} evicted_sid={evicted} sid={sid}")

        room = self._rooms.setdefault(room_id, Room())
        role = Role.parse(role)
        room.participants[username] = Participant(role=role, is_admin=bool(is_admin))

        timer = self._timers.get(room_id)
        if timer is None:
            self._timers[room_id] = TimerState(duration=time or 0)
        elif time is not None:
            timer.duration = time
        if room_id not in self._stories:
            self._stories[room_id] = list(stories or [])

        reply.attach = room_id
        reply.broadcast(room_id, 'roomUpdate', room.members())
        reply.unicast('roomState', {'revealed': room.revealed, 'votes': room.votes()})
        reply.unicast('userStoriesUpdate', list(self._stories[room_id]))
        reply.unicast('timerState', self._timer_payload(room_id))
        logger.info(f"[join] room={room_id} user={username} role={role.value} admin={is_admin} sid={sid}")
        return reply

    def _release(self, binding: ConnectionBinding, reply: Reply, detach: bool) -> None:
        self._connections.unbind(binding.sid)
        room = self._rooms.get(binding.room_id)
        if room is not None:
            room.participants.pop(binding.username, None)
            self._broadcast_members(reply, binding.room_id, room)
        if detach:
            reply.detach.append(binding.room_id)
        logger.info(f"[leave] room={binding.room_id} user={binding.username} sid={binding.sid}")

    @_locked
    def leave(self, sid: str) -> Reply:
        reply = Reply()
        binding = self._connections.get(sid)
        if binding is not None:
            self._release(binding, reply, detach=True)
        return reply

    @_locked
    def disconnect(self, sid: str) -> Reply:
        reply = Reply()
        binding = self._connections.get(sid)
        if binding is not None:
            self._release(binding, reply, detach=False)
        return reply

    # ---- voting ----

    @_locked
    def vote(self, room_id: str, username: str, card: str) -> Reply:
        reply = Reply()
        room = self._rooms.get(room_id)
        participant = room.participants.get(username) if room else None
        if participant is None:
            logger.debug(f"[vote-skip] room={room_id} user={username} unknown")
            return reply
        participant.vote = card
        reply.broadcast(room_id, 'votesUpdate', room.votes())
        reply.broadcast(room_id, 'userVoted', username)
        return reply

    @_locked
    def reveal(self, room_id: str) -> Reply:
        reply = Reply()
        room = self._rooms.get(room_id)
        if room is None:
            return reply
        room.revealed = True
        player_votes = room.player_votes()
        result = {
            'votes': room.votes(),
            'average': average_vote(player_votes),
            'mostVoted': most_voted(player_votes),
        }
        reply.broadcast(room_id, 'revealVotes', result)
        logger.info(f"[reveal] room={room_id} average={result['average']} most_voted={result['mostVoted']!r}")
        return reply

    @_locked
    def reset(self, room_id: str) -> Reply:
        reply = Reply()
        room = self._rooms.get(room_id)
        if room is None:
            return reply
        for participant in room.participants.values():
            participant.vote = ''
        room.revealed = False
        reply.broadcast(room_id, 'resetVotes')
        return reply

    # ---- role and identity ----

    @_locked
    def change_role(self, room_id: str, username: str) -> Reply:
        reply = Reply()
        room = self._rooms.get(room_id)
        participant = room.participants.get(username) if room else None
        if participant is None:
            return reply
        participant.role = participant.role.toggled()
        participant.vote = ''
        self._broadcast_members(reply, room_id, room)
        logger.info(f"[role] room={room_id} user={username} role={participant.role.value}")
        return reply

    @_locked
    def change_username(self, sid: str, room_id: str, old_username: str, new_username: str) -> Reply:
        reply = Reply()
        room = self._rooms.get(room_id)
        binding = self._connections.get(sid)
        if (
            room is None
            or old_username not in room.participants
            or binding is None
            or binding.member != (room_id, old_username)
            or new_username == old_username
        ):
            return reply
        if new_username in room.participants:
            err = UsernameTaken(room_id, new_username)
            logger.warning(f"[rename-reject] room={room_id} old={old_username} new={new_username}")
            reply.unicast('error', err.to_dict())
            return reply
        room.rename(old_username, new_username)
        self._connections.rename(sid, new_username)
        self._broadcast_members(reply, room_id, room)
        logger.info(f"[rename] room={room_id} old={old_username} new={new_username} sid={sid}")
        return reply

    # ---- stories ----

    @_locked
    def replace_stories(self, room_id: str, stories: List[str]) -> Reply:
        reply = Reply()
        self._stories[room_id] = list(stories)
        reply.broadcast(room_id, 'userStoriesUpdate', list(stories))
        return reply

    # ---- timer ----

    @_locked
    def start_timer(self, room_id: str, duration: Optional[int] = None) -> Reply:
        reply = Reply()
        timer = self._timers.setdefault(room_id, TimerState())
        timers.start(timer, self._clock(), duration)
        reply.broadcast(room_id, 'timerState', self._timer_payload(room_id))
        logger.info(f"[timer-start] room={room_id} duration={timer.duration}s")
        return reply

    @_locked
    def pause_timer(self, room_id: str) -> Reply:
        reply = Reply()
        timer = self._timers.get(room_id)
        if timer is None:
            return reply
        timers.pause(timer, self._clock())
        reply.broadcast(room_id, 'timerState', self._timer_payload(room_id))
        logger.info(f"[timer-pause] room={room_id} remaining={timer.duration}s")
        return reply

    @_locked
    def reset_timer(self, room_id: str, duration: Optional[int] = None) -> Reply:
        reply = Reply()
        timer = self._timers.get(room_id)
        if timer is None:
            self._timers[room_id] = TimerState(duration=duration or 0)
        else:
            timers.reset(timer, duration)
        reply.broadcast(room_id, 'timerState', self._timer_payload(room_id))
        return reply
