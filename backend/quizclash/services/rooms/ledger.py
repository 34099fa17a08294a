"""Per-player score accumulation on top of the score store.

Increments are read-modify-write. Two things keep them linearizable per
``(room, player)``:

1. every increment for one player runs inside that player's in-process lock,
   so two events for the same player never interleave inside this process;
2. the write is a compare-and-swap on the score that was read, retried a
   bounded number of times, so a writer in another process cannot make us
   overwrite its delta.
"""
import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Tuple

from quizclash.store import StoreRejected, StoreUnavailable

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 5


class LedgerError(Exception):
    """Base class for score ledger failures."""


class PlayerNotFound(LedgerError):
    def __init__(self, room: str, player: str):
        super().__init__(f"player {player!r} is not in room {room!r}")
        self.room = room
        self.player = player


class LedgerUnavailable(LedgerError):
    """The underlying store call failed or timed out."""


class ConflictRetryExhausted(LedgerError):
    def __init__(self, room: str, player: str, attempts: int):
        super().__init__(
            f"score of {player!r} in room {room!r} kept changing; gave up after {attempts} attempts"
        )
        self.room = room
        self.player = player
        self.attempts = attempts


class InvalidDelta(LedgerError):
    """The delta is not an integer or would make the score negative."""


class _PlayerLock:
    __slots__ = ('lock', 'holders')

    def __init__(self):
        self.lock = threading.Lock()
        self.holders = 0


class ScoreLedger:
    def __init__(self, store, max_attempts: int = DEFAULT_MAX_ATTEMPTS):
        if max_attempts < 1:
            raise ValueError('max_attempts must be at least 1')
        self.store = store
        self.max_attempts = max_attempts
        self._locks: Dict[Tuple[str, str], _PlayerLock] = {}
        self._locks_guard = threading.Lock()

    def ensure_player(self, room: str, player: str, hero: Any = None) -> Dict[str, Any]:
        """Create the player's record with score 0 unless it already exists.

        An existing record is returned as is: rejoining never resets a score
        and never changes the hero picked on the first join.
        """
        existing = self._call(self.store.query, {'room': room, 'player': player})
        if existing:
            return existing[0]
        try:
            created = self._call(self.store.create, {
                'room': room,
                'player': player,
                'hero': hero,
                'score': 0,
                'finished': False,
            })
        except StoreRejected:
            # Lost a race with a concurrent join of the same name
            existing = self._call(self.store.query, {'room': room, 'player': player})
            if existing:
                return existing[0]
            raise
        logger.info("[ledger] created player=%s room=%s hero=%s", player, room, hero)
        return created

    def increment_score(self, room: str, player: str, delta: int) -> Dict[str, Any]:
        if isinstance(delta, bool) or not isinstance(delta, int):
            raise InvalidDelta(f"delta must be an integer, got {delta!r}")
        with self._player_lock(room, player):
            for attempt in range(1, self.max_attempts + 1):
                current = self._find(room, player)
                prior = int(current['score'] or 0)
                new_score = prior + delta
                if new_score < 0:
                    raise InvalidDelta(f"delta {delta} would take score {prior} below zero")
                updated = self._call(
                    self.store.update,
                    {'room': room, 'player': player, 'score': prior},
                    {'score': new_score},
                )
                if updated:
                    logger.debug("[ledger] score player=%s room=%s %d -> %d", player, room, prior, new_score)
                    return updated[0]
                logger.info(
                    "[ledger] score conflict player=%s room=%s attempt=%d/%d",
                    player, room, attempt, self.max_attempts,
                )
        raise ConflictRetryExhausted(room, player, self.max_attempts)

    def mark_finished(self, room: str, player: str) -> Dict[str, Any]:
        self._find(room, player)
        updated = self._call(self.store.update, {'room': room, 'player': player}, {'finished': True})
        if not updated:
            raise PlayerNotFound(room, player)
        return updated[0]

    def snapshot(self, room: str) -> List[Dict[str, Any]]:
        return self._call(self.store.query, {'room': room})

    def remove_player(self, room: str, player: str) -> bool:
        removed = self._call(self.store.delete, {'room': room, 'player': player})
        return removed > 0

    def purge_room(self, room: str) -> int:
        removed = self._call(self.store.delete, {'room': room})
        logger.info("[ledger] purged room=%s removed=%d", room, removed)
        return removed

    def _find(self, room: str, player: str) -> Dict[str, Any]:
        found = self._call(self.store.query, {'room': room, 'player': player})
        if not found:
            raise PlayerNotFound(room, player)
        return found[0]

    def _call(self, fn, *args):
        try:
            return fn(*args)
        except StoreUnavailable as e:
            raise LedgerUnavailable(str(e)) from e

    @contextmanager
    def _player_lock(self, room: str, player: str) -> Iterator[None]:
        # Entries live only while someone holds or waits on them
        key = (room, player)
        with self._locks_guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = _PlayerLock()
            entry.holders += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._locks_guard:
                entry.holders -= 1
                if not entry.holders:
                    del self._locks[key]
