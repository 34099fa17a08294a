"""Turns inbound room events into one mutation plus one broadcast.

Every handler first changes state (registry and/or ledger), then reads the
room back and sends the result to whoever is in the room *at that moment*.
Ledger and store failures stop at this boundary: they are logged, reported
to the sender with an ``error`` event, and the room still gets the best view
that could be read, so one bad event does not freeze everybody else.
"""
import functools
import logging
import threading
import time
from typing import Any, Callable, Dict, Optional

from quizclash.store import StoreError
from quizclash.services.rooms.leaderboard import build_leaderboard
from quizclash.services.rooms.ledger import LedgerError

logger = logging.getLogger(__name__)

# emit(event, payload, sid); payload None means an event without data
Emitter = Callable[[str, Any, str], None]

_HANDLED = (LedgerError, StoreError)


def _tracked(event: str):
    """Count the call as in flight; refuse it once shutdown has begun."""
    def decorator(fn):
        @functools.wraps(fn)
        def wrapper(self, sid, *args, **kwargs):
            with self._inflight_cond:
                if self._closing:
                    accepted = False
                else:
                    accepted = True
                    self._inflight += 1
            if not accepted:
                self._reply_error(sid, event, 'server is shutting down')
                return None
            try:
                return fn(self, sid, *args, **kwargs)
            finally:
                with self._inflight_cond:
                    self._inflight -= 1
                    self._inflight_cond.notify_all()
        return wrapper
    return decorator


class RoomDispatcher:
    def __init__(self, registry, ledger, emit: Emitter):
        self.registry = registry
        self.ledger = ledger
        self.emit = emit
        self._inflight = 0
        self._closing = False
        self._inflight_cond = threading.Condition()

    @_tracked('join')
    def join(self, sid: str, name: str, hero: Any, room: str) -> None:
        self.registry.join(room, sid)
        try:
            self.ledger.ensure_player(room, name, hero)
        except _HANDLED as e:
            self._fail(sid, 'join', e, room=room, player=name)
        logger.info("[join] room=%s player=%s sid=%s", room, name, sid)
        self._broadcast_roster(sid, 'join', room)

    @_tracked('get-player')
    def request_players(self, sid: str, room: str) -> None:
        self.registry.join(room, sid)
        self._broadcast_roster(sid, 'get-player', room)

    @_tracked('start')
    def start(self, sid: str, room: str) -> None:
        self.registry.join(room, sid)
        logger.info("[start] room=%s sid=%s", room, sid)
        self._broadcast(room, 'start', None)

    @_tracked('leaderboard')
    def watch_leaderboard(self, sid: str, room: str) -> None:
        self.registry.join(room, sid)

    @_tracked('set-score')
    def increment_score(self, sid: str, room: str, name: str, delta: int) -> None:
        try:
            record = self.ledger.increment_score(room, name, delta)
        except _HANDLED as e:
            self._fail(sid, 'set-score', e, room=room, player=name)
            record = self._current_record(room, name)
        if record is not None:
            self._broadcast(room, 'score', record)

    @_tracked('finish')
    def finish(self, sid: str, room: str, name: str) -> None:
        try:
            self.ledger.mark_finished(room, name)
        except _HANDLED as e:
            self._fail(sid, 'finish', e, room=room, player=name)
        else:
            logger.info("[finish] room=%s player=%s", room, name)
        try:
            players = self.ledger.snapshot(room)
        except _HANDLED as e:
            self._fail(sid, 'finish', e, room=room)
            return
        self._broadcast(room, 'player-finish', build_leaderboard(players))

    @_tracked('leave')
    def leave(self, sid: str, room: str, name: str) -> None:
        try:
            if not self.ledger.remove_player(room, name):
                logger.info("[leave] room=%s player=%s had no record", room, name)
        except _HANDLED as e:
            self._fail(sid, 'leave', e, room=room, player=name)
        self.registry.leave(room, sid)
        logger.info("[leave] room=%s player=%s sid=%s", room, name, sid)
        self._broadcast_roster(sid, 'leave', room)

    def session_closed(self, sid: str) -> None:
        rooms = self.registry.on_session_closed(sid)
        if rooms:
            logger.info("[disconnect] sid=%s rooms=%s", sid, ','.join(rooms))

    def shutdown(self, timeout: Optional[float] = None) -> bool:
        """Stop accepting events and wait for in-flight ones to finish.

        Returns False if events were still running when ``timeout`` expired.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._inflight_cond:
            self._closing = True
            while self._inflight:
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    logger.warning("[shutdown] %d event(s) still in flight", self._inflight)
                    return False
                self._inflight_cond.wait(remaining)
        logger.info("[shutdown] dispatcher drained")
        return True

    @property
    def in_flight(self) -> int:
        with self._inflight_cond:
            return self._inflight

    def _broadcast_roster(self, sid: str, event: str, room: str) -> None:
        try:
            players = self.ledger.snapshot(room)
        except _HANDLED as e:
            self._fail(sid, event, e, room=room)
            return
        self._broadcast(room, 'get-player', players)

    def _current_record(self, room: str, name: str) -> Optional[Dict[str, Any]]:
        try:
            for record in self.ledger.snapshot(room):
                if record.get('player') == name:
                    return record
        except _HANDLED as e:
            logger.warning("[set-score] could not re-read room=%s player=%s: %s", room, name, e)
        return None

    def _broadcast(self, room: str, event: str, payload: Any) -> None:
        for member in sorted(self.registry.members_of(room)):
            self.emit(event, payload, member)

    def _fail(self, sid: str, event: str, exc: Exception, **context) -> None:
        details = ' '.join(f"{k}={v}" for k, v in context.items())
        logger.warning("[%s] failed %s error=%s: %s", event, details, type(exc).__name__, exc)
        self._reply_error(sid, event, str(exc))

    def _reply_error(self, sid: str, event: str, message: str) -> None:
        self.emit('error', {'event': event, 'message': message}, sid)
