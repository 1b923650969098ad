"""Errors reported back to the client as a unicast ``error`` event."""


class PokerError(Exception):
    """Base class; ``code`` is the machine-readable value sent to clients."""
    code = 'error'

    def __init__(self, message):
        self.message = message
        super().__init__(message)

    def to_dict(self):
        return {'code': self.code, 'message': self.message}


class InvalidPayload(PokerError):
    """Inbound event payload is malformed or missing a required field."""
    code = 'invalidPayload'


class UsernameTaken(PokerError):
    """Rename target is already a participant of the room."""
    code = 'usernameTaken'

    def __init__(self, room_id, username):
        self.room_id = room_id
        self.username = username
        super().__init__(f"Username {username} is already taken in room {room_id}")
