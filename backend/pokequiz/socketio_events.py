from flask import current_app, request
from flask_socketio import emit, join_room

from pokequiz import socketio
from pokequiz.errors import GameRejection, RoomNotFound
from pokequiz.services.games.orchestrator import NAMESPACE, RoundOrchestrator, room_channel


def _get_sid() -> str:
    # request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _orchestrator() -> RoundOrchestrator:
    return current_app.extensions['pokequiz.orchestrator']


def _payload(data) -> dict:
    return data if isinstance(data, dict) else {}


def _code(data) -> str:
    code = _payload(data).get('code')
    return str(code).strip() if code is not None else ''


def handle_connect():
    emit('connected', {'message': f'Connected to {NAMESPACE}'})


def handle_disconnect(reason=None):
    _orchestrator().handle_disconnect(_get_sid())


def handle_create_room(data=None):
    orchestrator = _orchestrator()
    try:
        room = orchestrator.registry.create_room(_get_sid())
    except GameRejection as exc:
        emit('error', exc.to_dict())
        return
    join_room(room_channel(room.code))
    current_app.logger.info(f"[room-created] room={room.code}")
    emit('room-created', {'code': room.code})


def handle_join_room(data):
    code = _code(data)
    if not code:
        emit('join-rejected', RoomNotFound().to_dict())
        return
    orchestrator = _orchestrator()
    try:
        player = orchestrator.registry.join_room(
            code,
            _get_sid(),
            _payload(data).get('displayName'),
            _payload(data).get('avatar'),
        )
    except GameRejection as exc:
        emit('join-rejected', exc.to_dict())
        return
    join_room(room_channel(code))
    current_app.logger.info(f"[player-joined] room={code} player={player.display_name}")
    emit('join-accepted', {'player': player.to_dict(), 'roomCode': code})
    orchestrator.broadcast_lobby(code)


def handle_start_game(data):
    code = _code(data)
    orchestrator = _orchestrator()
    room = orchestrator.registry.get_room(code)
    if not room:
        return
    if room.host_sid != _get_sid():
        emit('error', {'message': 'Only the host can start the game'})
        return
    try:
        orchestrator.start_game(code, _payload(data).get('settings'))
    except GameRejection as exc:
        current_app.logger.info(f"[start-rejected] room={code} reason={exc.reason}")
        emit('start-rejected', exc.to_dict())


def handle_submit_answer(data):
    _orchestrator().submit_answer(_code(data), _get_sid(), _payload(data).get('answer'))


def handle_request_leaderboard(data):
    emit('leaderboard', {'players': _orchestrator().registry.leaderboard(_code(data))})


def handle_advance_question(data):
    _orchestrator().host_advance(_code(data), _get_sid())


def handle_ping(data):
    emit('pong', data or {})


HANDLERS = {
    'connect': handle_connect,
    'disconnect': handle_disconnect,
    'create-room': handle_create_room,
    'join-room': handle_join_room,
    'start-game': handle_start_game,
    'submit-answer': handle_submit_answer,
    'request-leaderboard': handle_request_leaderboard,
    'advance-question': handle_advance_question,
    'ping': handle_ping,
}


def register_socketio_handlers() -> None:
    """Register Socket.IO event handlers on namespace '/ws'."""
    for event, handler in HANDLERS.items():
        socketio.on_event(event, handler, namespace=NAMESPACE)
