"""Room synchronization engine: membership, scores, leaderboards, broadcasts.

Pure(ish) domain logic shared by the socket handlers and the CLI, kept free
of transport concerns. The socket layer only parses payloads and hands the
dispatcher an emit function.
"""
from dataclasses import dataclass

from quizclash.store import ScoreStore
from .dispatcher import RoomDispatcher
from .ledger import DEFAULT_MAX_ATTEMPTS, ScoreLedger
from .registry import RoomRegistry


@dataclass
class RoomServices:
    registry: RoomRegistry
    ledger: ScoreLedger
    dispatcher: RoomDispatcher


def build_room_services(store=None, emit=None, max_attempts: int = DEFAULT_MAX_ATTEMPTS) -> RoomServices:
    registry = RoomRegistry()
    ledger = ScoreLedger(store if store is not None else ScoreStore(), max_attempts=max_attempts)
    if emit is None:
        from quizclash.socketio_events import emit_to_session as emit
    dispatcher = RoomDispatcher(registry, ledger, emit)
    return RoomServices(registry=registry, ledger=ledger, dispatcher=dispatcher)
