import pytest

from pokequiz import socketio


def _received(test_client):
    return test_client.get_received('/ws')


def _args(packets, name):
    return [pkt['args'][0] for pkt in packets if pkt['name'] == name]


@pytest.fixture()
def host(flask_app):
    test_client = socketio.test_client(flask_app, namespace='/ws')
    yield test_client
    if test_client.is_connected('/ws'):
        test_client.disconnect(namespace='/ws')


@pytest.fixture()
def room_code(host):
    _received(host)  # flush connect
    host.emit('create-room', {}, namespace='/ws')
    created = _args(_received(host), 'room-created')
    assert len(created) == 1
    return created[0]['code']


def _join(sio_client, code, name='Ash'):
    _received(sio_client)
    sio_client.emit('join-room', {'code': code, 'displayName': name, 'avatar': {'id': 'red'}}, namespace='/ws')
    return _received(sio_client)


def test_socket_connect_and_ping(sio_client):
    # Ensure we are connected to /ws
    if not sio_client.is_connected('/ws'):
        sio_client.connect(namespace='/ws')
    assert sio_client.is_connected('/ws')

    received = _received(sio_client)
    assert any(pkt['name'] == 'connected' for pkt in received)

    sio_client.emit('ping', {'n': 1}, namespace='/ws')
    assert _args(_received(sio_client), 'pong') == [{'n': 1}]


def test_create_and_join_room(host, room_code, sio_client, registry):
    assert len(room_code) == 4

    packets = _join(sio_client, room_code)
    accepted = _args(packets, 'join-accepted')
    assert accepted[0]['roomCode'] == room_code
    assert accepted[0]['player']['displayName'] == 'Ash'
    assert accepted[0]['player']['avatar'] == {'id': 'red'}
    assert _args(packets, 'lobby-update')[0]['players'][0]['displayName'] == 'Ash'

    host_updates = _args(_received(host), 'lobby-update')
    assert [p['displayName'] for p in host_updates[-1]['players']] == ['Ash']
    assert len(registry.get_room(room_code).players) == 1


def test_join_rejections_go_to_requester(flask_app, host, room_code, sio_client):
    packets = _join(sio_client, '0000')
    assert _args(packets, 'join-rejected')[0]['reason'] == 'room_not_found'

    _join(sio_client, room_code, 'Ash')
    other = socketio.test_client(flask_app, namespace='/ws')
    packets = _join(other, room_code, 'ash')
    assert _args(packets, 'join-rejected')[0]['reason'] == 'name_taken'
    other.disconnect(namespace='/ws')


def test_only_host_can_start(host, room_code, sio_client):
    _join(sio_client, room_code)
    sio_client.emit('start-game', {'code': room_code, 'settings': {'count': 2}}, namespace='/ws')
    assert _args(_received(sio_client), 'error')[0]['message'] == 'Only the host can start the game'


def test_survival_start_rejected_with_one_player(host, room_code, sio_client):
    _join(sio_client, room_code)
    _received(host)
    host.emit('start-game', {'code': room_code, 'settings': {'mode': 'SURVIVAL'}}, namespace='/ws')
    rejected = _args(_received(host), 'start-rejected')
    assert rejected[0]['reason'] == 'not_enough_players'


def test_round_flow_over_socket(host, room_code, sio_client, registry, scheduler):
    _join(sio_client, room_code)
    _received(host)

    host.emit('start-game', {'code': room_code, 'settings': {'mode': 'CLASSIC', 'count': 2}}, namespace='/ws')
    player_packets = _received(sio_client)
    assert _args(player_packets, 'game-started') == [{'totalQuestions': 2, 'mode': 'CLASSIC'}]
    question = _args(player_packets, 'question')[0]
    assert question['questionNumber'] == 1
    _received(host)

    answer = question['question']['options'].index(registry.get_room(room_code).current_question.answer)
    sio_client.emit('submit-answer', {'code': room_code, 'answer': answer}, namespace='/ws')
    player_packets = _received(sio_client)
    assert _args(player_packets, 'answer-accepted')[0]['isCorrect'] is True
    results = _args(player_packets, 'round-results')
    assert results[0]['fastest']['displayName'] == 'Ash'

    host_packets = _received(host)
    assert _args(host_packets, 'player-answered')[0]['displayName'] == 'Ash'
    assert len(_args(host_packets, 'round-results')) == 1

    scheduler.advance(6)
    board = _args(_received(host), 'leaderboard')[0]['players']
    assert board[0]['displayName'] == 'Ash' and board[0]['rank'] == 1

    host.emit('advance-question', {'code': room_code}, namespace='/ws')
    assert _args(_received(sio_client), 'question')[0]['questionNumber'] == 2


def test_request_leaderboard_replies_to_requester(host, room_code, sio_client):
    _join(sio_client, room_code)
    _received(host)
    sio_client.emit('request-leaderboard', {'code': room_code}, namespace='/ws')
    assert _args(_received(sio_client), 'leaderboard')[0]['players'][0]['rank'] == 1
    assert _args(_received(host), 'leaderboard') == []


def test_host_disconnect_closes_room(host, room_code, sio_client, registry):
    _join(sio_client, room_code)
    host.disconnect(namespace='/ws')

    closed = _args(_received(sio_client), 'room-closed')
    assert closed == [{'code': room_code, 'reason': 'host_left'}]
    assert registry.get_room(room_code) is None


def test_player_disconnect_updates_lobby(flask_app, host, room_code, registry):
    player = socketio.test_client(flask_app, namespace='/ws')
    _join(player, room_code, 'Misty')
    _received(host)
    player.disconnect(namespace='/ws')

    host_packets = _received(host)
    assert _args(host_packets, 'player-left')[0]['displayName'] == 'Misty'
    assert _args(host_packets, 'lobby-update')[-1]['players'] == []
    assert registry.get_room(room_code).players == {}


def test_malformed_payloads_are_rejected(host, room_code, sio_client):
    _received(sio_client)
    sio_client.emit('join-room', {'code': room_code, 'displayName': 123}, namespace='/ws')
    assert _args(_received(sio_client), 'join-rejected')[0]['reason'] == 'invalid_name'

    sio_client.emit('join-room', 'not-an-object', namespace='/ws')
    assert _args(_received(sio_client), 'join-rejected')[0]['reason'] == 'room_not_found'

    _join(sio_client, room_code)
    _received(host)
    host.emit('start-game', {'code': room_code, 'settings': ['CLASSIC']}, namespace='/ws')
    assert _args(_received(host), 'start-rejected')[0]['reason'] == 'invalid_settings'
