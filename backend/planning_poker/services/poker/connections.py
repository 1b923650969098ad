from typing import Dict, Optional, Tuple

from planning_poker.models import ConnectionBinding


class ConnectionIndex:
    """Bidirectional sid <-> (room_id, username) association.

    Both directions are updated together so that a connection holds at most
    one binding and a (room_id, username) pair is claimed by at most one
    connection.
    """

    def __init__(self):
        self._by_sid: Dict[str, ConnectionBinding] = {}
        self._by_member: Dict[Tuple[str, str], str] = {}

    def __len__(self):
        return len(self._by_sid)

    def get(self, sid: str) -> Optional[ConnectionBinding]:
        return self._by_sid.get(sid)

    def owner_of(self, room_id: str, username: str) -> Optional[str]:
        return self._by_member.get((room_id, username))

    def bind(self, sid: str, room_id: str, username: str) -> Optional[str]:
        """Bind ``sid`` to the member, returning the evicted sid if any."""
        self.unbind(sid)
        evicted = self._by_member.get((room_id, username))
        if evicted is not None:
            self._by_sid.pop(evicted, None)
        binding = ConnectionBinding(sid, room_id, username)
        self._by_sid[sid] = binding
        self._by_member[binding.member] = sid
        return evicted

    def unbind(self, sid: str) -> Optional[ConnectionBinding]:
        binding = self._by_sid.pop(sid, None)
        if binding is not None and self._by_member.get(binding.member) == sid:
            del self._by_member[binding.member]
        return binding

    def rename(self, sid: str, new_username: str) -> Optional[ConnectionBinding]:
        binding = self._by_sid.get(sid)
        if binding is None:
            return None
        if self._by_member.get(binding.member) == sid:
            del self._by_member[binding.member]
        renamed = ConnectionBinding(sid, binding.room_id, new_username)
        self._by_sid[sid] = renamed
        self._by_member[renamed.member] = sid
        return renamed
