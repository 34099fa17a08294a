from flask import current_app, request
from flask_socketio import emit
from quizclash import socketio
from typing import Any, Optional

NAMESPACE = '/'


def emit_to_session(event: str, payload: Any, sid: str) -> None:
    """Send one outbound event to one session (used by the dispatcher)."""
    if payload is None:
        socketio.emit(event, to=sid, namespace=NAMESPACE)
    else:
        socketio.emit(event, payload, to=sid, namespace=NAMESPACE)


def _dispatcher():
    return current_app.extensions['quiz_rooms'].dispatcher


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _key(value: Any) -> Optional[str]:
    """Normalize a room or player key; None when missing or malformed."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        value = str(value)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _room_of(data: Any) -> Optional[str]:
    # Older clients send the bare room key instead of {room: ...}
    if isinstance(data, dict):
        return _key(data.get('room'))
    return _key(data)


def _reject(event: str, message: str) -> None:
    current_app.logger.info(f"[{event}] rejected sid={_get_sid()}: {message}")
    emit('error', {'event': event, 'message': message})


def handle_connect():
    emit('confirmation', 'connected!')


def handle_disconnect(*args):
    _dispatcher().session_closed(_get_sid())


def handle_join(data=None):
    data = data if isinstance(data, dict) else {}
    room, name = _key(data.get('room')), _key(data.get('name'))
    if not room or not name:
        _reject('join', 'room and name are required')
        return
    _dispatcher().join(_get_sid(), name, data.get('hero'), room)


def handle_get_player(data=None):
    room = _room_of(data)
    if not room:
        _reject('get-player', 'room is required')
        return
    _dispatcher().request_players(_get_sid(), room)


def handle_start(data=None):
    room = _room_of(data)
    if not room:
        _reject('start', 'room is required')
        return
    _dispatcher().start(_get_sid(), room)


def handle_leaderboard(data=None):
    room = _room_of(data)
    if not room:
        _reject('leaderboard', 'room is required')
        return
    _dispatcher().watch_leaderboard(_get_sid(), room)


def handle_set_score(data=None):
    data = data if isinstance(data, dict) else {}
    room, name = _key(data.get('room')), _key(data.get('name'))
    if not room or not name:
        _reject('set-score', 'room and name are required')
        return
    # `score` is the delta to add, not the new total
    _dispatcher().increment_score(_get_sid(), room, name, data.get('score'))


def handle_finish(data=None):
    data = data if isinstance(data, dict) else {}
    room, name = _key(data.get('room')), _key(data.get('name'))
    if not room or not name:
        _reject('finish', 'room and name are required')
        return
    _dispatcher().finish(_get_sid(), room, name)


def handle_leave(data=None):
    data = data if isinstance(data, dict) else {}
    room, name = _key(data.get('room')), _key(data.get('name'))
    if not room or not name:
        _reject('leave', 'room and name are required')
        return
    _dispatcher().leave(_get_sid(), room, name)


def handle_ping(data=None):
    current_app.logger.debug(f"[event] sid={_get_sid()} data={data!r}")
    emit('event', 'pong')


def register_socketio_handlers() -> None:
    """Register Socket.IO event handlers on the default namespace."""
    socketio.on_event('connect', handle_connect, namespace=NAMESPACE)
    socketio.on_event('disconnect', handle_disconnect, namespace=NAMESPACE)
    socketio.on_event('join', handle_join, namespace=NAMESPACE)
    socketio.on_event('get-player', handle_get_player, namespace=NAMESPACE)
    socketio.on_event('start', handle_start, namespace=NAMESPACE)
    socketio.on_event('leaderboard', handle_leaderboard, namespace=NAMESPACE)
    socketio.on_event('set-score', handle_set_score, namespace=NAMESPACE)
    socketio.on_event('finish', handle_finish, namespace=NAMESPACE)
    socketio.on_event('leave', handle_leave, namespace=NAMESPACE)
    socketio.on_event('event', handle_ping, namespace=NAMESPACE)
