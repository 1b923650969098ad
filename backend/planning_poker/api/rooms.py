from flask import Blueprint, current_app, jsonify
from planning_poker import get_coordinator

rooms = Blueprint('rooms', __name__)


@rooms.route('/<string:room_id>/exists', methods=['GET'])
def room_exists(room_id):
    """
    HTTP mirror of the checkIfRoomExists socket event.
    """
    return jsonify({'exists': get_coordinator(current_app).exists(room_id)}), 200


@rooms.route('/<string:room_id>', methods=['GET'])
def get_room_state(room_id):
    """
    Returns the current in-memory state of a room.
    """
    state = get_coordinator(current_app).snapshot(room_id)
    if state is None:
        return jsonify({'error': 'Room not found'}), 404
    return jsonify(state), 200
