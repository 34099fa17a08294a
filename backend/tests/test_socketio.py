from quizclash import socketio
from quizclash.store import ScoreStore


def _events(client, name):
    return [pkt['args'] for pkt in client.get_received() if pkt['name'] == name]


def test_connect_sends_confirmation(sio_client):
    assert sio_client.is_connected()
    received = sio_client.get_received()
    assert any(pkt['name'] == 'confirmation' and pkt['args'] == ['connected!'] for pkt in received)


def test_quiz_round_end_to_end(flask_app, sio_client, make_sio_client):
    sio_client.get_received()  # flush confirmation
    sio_client.emit('join', {'name': 'Alice', 'hero': 'Mage', 'room': 'R1'})
    roster = _events(sio_client, 'get-player')[-1][0]
    assert len(roster) == 1
    assert {k: roster[0][k] for k in ('room', 'player', 'hero', 'score', 'finished')} == {
        'room': 'R1', 'player': 'Alice', 'hero': 'Mage', 'score': 0, 'finished': False,
    }

    # A spectator watching the leaderboard sees every broadcast for the room
    watcher = make_sio_client()
    watcher.emit('leaderboard', 'R1')
    watcher.get_received()

    sio_client.emit('set-score', {'room': 'R1', 'name': 'Alice', 'score': 5})
    sio_client.emit('set-score', {'room': 'R1', 'name': 'Alice', 'score': 3})
    scores = [args[0]['score'] for args in _events(watcher, 'score')]
    assert scores == [5, 8]
    assert ScoreStore().query({'room': 'R1', 'player': 'Alice'})[0]['score'] == 8

    sio_client.get_received()
    sio_client.emit('finish', {'room': 'R1', 'name': 'Alice'})
    board = _events(sio_client, 'player-finish')[-1][0]
    assert [(p['player'], p['score'], p['finished']) for p in board] == [('Alice', 8, True)]
    assert _events(watcher, 'player-finish')[-1][0] == board


def test_reconnect_resumes_stored_score(flask_app, sio_client, make_sio_client):
    sio_client.emit('join', {'name': 'Alice', 'hero': 'Mage', 'room': 'R1'})
    sio_client.emit('set-score', {'room': 'R1', 'name': 'Alice', 'score': 12})
    sio_client.disconnect()

    other = make_sio_client()
    other.emit('join', {'name': 'Alice', 'hero': 'Mage', 'room': 'R1'})
    roster = _events(other, 'get-player')[-1][0]
    assert [(p['player'], p['score']) for p in roster] == [('Alice', 12)]
    # Only the new connection is a member; the old one was dropped on disconnect
    assert len(flask_app.extensions['quiz_rooms'].registry.members_of('R1')) == 1


def test_broadcasts_stay_inside_the_room(sio_client, make_sio_client):
    outsider = make_sio_client()
    outsider.emit('get-player', {'room': 'R2'})
    outsider.get_received()

    sio_client.emit('join', {'name': 'Alice', 'hero': 'Mage', 'room': 'R1'})
    sio_client.emit('start', 'R1')
    assert any(pkt['name'] == 'start' and pkt['args'] == [] for pkt in sio_client.get_received())
    assert outsider.get_received() == []


def test_get_player_accepts_bare_room_key(sio_client, make_sio_client):
    player = make_sio_client()
    player.emit('join', {'name': 'Bob', 'hero': 'Rogue', 'room': 'R1'})
    sio_client.get_received()
    sio_client.emit('get-player', 'R1')
    roster = _events(sio_client, 'get-player')[-1][0]
    assert [p['player'] for p in roster] == ['Bob']


def test_malformed_payloads_are_answered_with_error(sio_client, rooms):
    sio_client.get_received()
    sio_client.emit('join', {'name': 'Alice'})
    sio_client.emit('set-score', 'R1')
    sio_client.emit('start', {'room': ''})
    errors = _events(sio_client, 'error')
    assert [e[0]['event'] for e in errors] == ['join', 'set-score', 'start']
    assert rooms.registry.rooms() == []


def test_score_for_unknown_player_reports_error(sio_client):
    sio_client.emit('get-player', 'R1')
    sio_client.get_received()
    sio_client.emit('set-score', {'room': 'R1', 'name': 'Ghost', 'score': 1})
    received = sio_client.get_received()
    assert not any(pkt['name'] == 'score' for pkt in received)
    assert any(pkt['name'] == 'error' and pkt['args'][0]['event'] == 'set-score' for pkt in received)


def test_leave_removes_player(sio_client, make_sio_client):
    bob = make_sio_client()
    bob.emit('join', {'name': 'Bob', 'hero': 'Rogue', 'room': 'R1'})
    sio_client.emit('join', {'name': 'Alice', 'hero': 'Mage', 'room': 'R1'})
    sio_client.get_received()
    bob.emit('leave', {'room': 'R1', 'name': 'Bob'})
    roster = _events(sio_client, 'get-player')[-1][0]
    assert [p['player'] for p in roster] == ['Alice']
    assert ScoreStore().query({'room': 'R1', 'player': 'Bob'}) == []


def test_disconnect_keeps_record_but_drops_membership(flask_app, sio_client, rooms):
    sio_client.emit('join', {'name': 'Alice', 'hero': 'Mage', 'room': 'R1'})
    assert len(rooms.registry.members_of('R1')) == 1
    sio_client.disconnect()
    assert rooms.registry.members_of('R1') == set()
    assert len(ScoreStore().query({'room': 'R1'})) == 1


def test_event_ping(sio_client):
    sio_client.get_received()
    sio_client.emit('event', {'hello': 'there'})
    assert _events(sio_client, 'event') == [['pong']]


def test_events_of_a_connection_are_handled_in_arrival_order(flask_app):
    # Inline handling: a second set-score cannot overtake the first
    assert socketio.server.async_handlers is False
