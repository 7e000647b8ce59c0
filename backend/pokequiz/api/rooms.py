from flask import Blueprint, current_app, jsonify

rooms = Blueprint('rooms', __name__)


def _registry():
    return current_app.extensions['pokequiz.registry']


@rooms.route('/<string:code>', methods=['GET'])
def get_room_state(code):
    """
    Returns a read-only snapshot of a room for late-joining screens.
    """
    room = _registry().get_room(code)
    if not room:
        return jsonify({'error': 'Room not found'}), 404
    return jsonify(room.to_dict()), 200


@rooms.route('/<string:code>/leaderboard', methods=['GET'])
def get_leaderboard(code):
    """
    Returns the ranked players; still served while a finished room is held.
    """
    registry = _registry()
    room = registry.get_room(code)
    if not room:
        return jsonify({'error': 'Room not found'}), 404
    return jsonify({'code': room.code, 'status': room.status, 'players': registry.leaderboard(code)}), 200
