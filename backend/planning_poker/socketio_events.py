from flask_socketio import join_room, leave_room, emit
from flask import current_app, request
from planning_poker import get_coordinator
from planning_poker.exceptions import InvalidPayload, PokerError
from planning_poker.models import Role
from planning_poker.services.poker import Reply, RoomCoordinator
from typing import Any, Dict, List, Optional
import functools
import math


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore

def _coordinator() -> RoomCoordinator:
    return get_coordinator(current_app)

def _deliver(reply: Reply) -> None:
    """Apply room membership directives, then emit every outbound message."""
    for room in reply.detach:
        leave_room(room)
    if reply.attach:
        join_room(reply.attach)
    for msg in reply.messages:
        args = () if msg.data is None else (msg.data,)
        if msg.room is None:
            emit(msg.event, *args)
        else:
            emit(msg.event, *args, to=msg.room)

def _dispatch(operation: str, *args, **kwargs) -> Reply:
    # Delivery stays inside the coordinator lock so a room's broadcasts keep state order
    coordinator = _coordinator()
    return coordinator.apply(getattr(coordinator, operation), _deliver, *args, **kwargs)

def _reports_errors(handler):
    @functools.wraps(handler)
    def wrapper(*args):
        try:
            return handler(*args)
        except PokerError as exc:
            current_app.logger.warning(f"[{handler.__name__}] sid={_get_sid()} rejected: {exc.message}")
            emit('error', exc.to_dict())
    return wrapper

# ---- payload parsing ----

def _payload(data) -> Dict[str, Any]:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidPayload('payload must be an object')
    return data

def _required_str(data: Dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value:
        raise InvalidPayload(f'{key} is required')
    return value

def _room_id(data) -> str:
    # reset/reveal/pauseTimer/checkIfRoomExists may send the bare room id
    if isinstance(data, str) and data:
        return data
    return _required_str(_payload(data), 'roomId')

def _card(data: Dict[str, Any]) -> str:
    value = data.get('card')
    if isinstance(value, bool) or value is None:
        raise InvalidPayload('card is required')
    if isinstance(value, (int, float)):
        return str(value)
    if not isinstance(value, str):
        raise InvalidPayload('card must be a string')
    return value

def _seconds(data: Dict[str, Any], key: str) -> Optional[int]:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool):
        raise InvalidPayload(f'{key} must be a number of seconds')
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        raise InvalidPayload(f'{key} must be a number of seconds')
    if not math.isfinite(seconds):
        raise InvalidPayload(f'{key} must be a number of seconds')
    return max(0, int(seconds))

def _stories(data: Dict[str, Any], key: str, required: bool = True) -> Optional[List[str]]:
    value = data.get(key)
    if value is None and not required:
        return None
    if not isinstance(value, list):
        raise InvalidPayload(f'{key} must be a list')
    return [str(item) for item in value]

# ---- handlers ----

def handle_connect(auth=None):
    current_app.logger.debug(f"[connect] sid={_get_sid()}")

def handle_disconnect(reason=None):
    _dispatch('disconnect', _get_sid())
    current_app.logger.debug(f"[disconnect] sid={_get_sid()} reason={reason}")

@_reports_errors
def handle_check_if_room_exists(data=None):
    _dispatch('room_exists', _room_id(data))

@_reports_errors
def handle_join_room(data=None):
    data = _payload(data)
    _dispatch(
        'join',
        _get_sid(),
        _required_str(data, 'roomId'),
        _required_str(data, 'username'),
        role=Role.parse(data.get('role')),
        is_admin=bool(data.get('admin')),
        time=_seconds(data, 'time'),
        stories=_stories(data, 'stories', required=False),
    )

@_reports_errors
def handle_leave_room(data=None):
    _dispatch('leave', _get_sid())

@_reports_errors
def handle_vote(data=None):
    data = _payload(data)
    _dispatch('vote', _required_str(data, 'roomId'), _required_str(data, 'username'), _card(data))

@_reports_errors
def handle_reset(data=None):
    _dispatch('reset', _room_id(data))

@_reports_errors
def handle_reveal(data=None):
    _dispatch('reveal', _room_id(data))

@_reports_errors
def handle_change_user_role(data=None):
    data = _payload(data)
    _dispatch('change_role', _required_str(data, 'roomId'), _required_str(data, 'username'))

@_reports_errors
def handle_change_username(data=None):
    data = _payload(data)
    _dispatch(
        'change_username',
        _get_sid(),
        _required_str(data, 'roomId'),
        _required_str(data, 'oldUsername'),
        _required_str(data, 'newUsername'),
    )

@_reports_errors
def handle_add_user_stories(data=None):
    data = _payload(data)
    _dispatch('replace_stories', _required_str(data, 'roomId'), _stories(data, 'userStories'))

@_reports_errors
def handle_start_timer(data=None):
    data = _payload(data)
    _dispatch('start_timer', _required_str(data, 'roomId'), _seconds(data, 'duration'))

@_reports_errors
def handle_pause_timer(data=None):
    _dispatch('pause_timer', _room_id(data))

@_reports_errors
def handle_reset_timer(data=None):
    data = _payload(data)
    _dispatch('reset_timer', _required_str(data, 'roomId'), _seconds(data, 'duration'))


EVENT_HANDLERS = {
    'connect': handle_connect,
    'disconnect': handle_disconnect,
    'checkIfRoomExists': handle_check_if_room_exists,
    'joinRoom': handle_join_room,
    'leaveRoom': handle_leave_room,
    'vote': handle_vote,
    'reset': handle_reset,
    'reveal': handle_reveal,
    'changeUserRole': handle_change_user_role,
    'changeUsername': handle_change_username,
    'addUserStories': handle_add_user_stories,
    'startTimer': handle_start_timer,
    'pauseTimer': handle_pause_timer,
    'resetTimer': handle_reset_timer,
}


def register_socketio_handlers(namespace: str = '/') -> None:
    """Register every planning poker event on the given namespace."""
    from planning_poker import socketio
    for event, handler in EVENT_HANDLERS.items():
        socketio.on_event(event, handler, namespace=namespace)
