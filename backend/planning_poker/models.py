"""In-memory value types for rooms, participants, timers and bindings.

Nothing here is persisted; a process restart drops every room.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


class Role(str, Enum):
    PLAYER = 'player'
    SPECTATOR = 'spectator'

    @classmethod
    def parse(cls, value) -> 'Role':
        """Map a client-supplied role to a Role, defaulting to player."""
        if isinstance(value, Role):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        return cls.PLAYER

    def toggled(self) -> 'Role':
        return Role.SPECTATOR if self is Role.PLAYER else Role.PLAYER


@dataclass
class Participant:
    role: Role = Role.PLAYER
    is_admin: bool = False
    vote: str = ''

    def to_dict(self, username: str) -> dict:
        return {
            'username': username,
            'role': self.role.value,
            'admin': self.is_admin,
        }


@dataclass
class Room:
    participants: Dict[str, Participant] = field(default_factory=dict)
    revealed: bool = False

    def votes(self) -> Dict[str, str]:
        return {name: p.vote for name, p in self.participants.items()}

    def player_votes(self) -> List[str]:
        return [p.vote for p in self.participants.values() if p.role is Role.PLAYER]

    def members(self) -> List[dict]:
        return [p.to_dict(name) for name, p in self.participants.items()]

    def rename(self, old: str, new: str) -> None:
        # Rebuild so the renamed entry keeps its position in the roster
        self.participants = {
            (new if name == old else name): p for name, p in self.participants.items()
        }


@dataclass
class TimerState:
    duration: int = 0  # seconds remaining as of the last state change
    running: bool = False
    started_at: Optional[int] = None  # epoch ms of the last start

    def to_dict(self, server_time: int) -> dict:
        return {
            'duration': self.duration,
            'running': self.running,
            'startedAt': self.started_at,
            'serverTime': server_time,
        }


@dataclass(frozen=True)
class ConnectionBinding:
    sid: str
    room_id: str
    username: str

    @property
    def member(self):
        return (self.room_id, self.username)
