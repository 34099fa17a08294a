import threading
from typing import Dict, List, Set


class RoomRegistry:
    """Process-local map of room key -> connected session ids.

    Nothing here is persisted; a restart starts from an empty registry and
    clients rejoin. A room entry exists only while it has members.
    """

    def __init__(self):
        self._members: Dict[str, Set[str]] = {}
        self._rooms_by_sid: Dict[str, Set[str]] = {}
        self._lock = threading.Lock()

    def join(self, room: str, sid: str) -> None:
        with self._lock:
            self._members.setdefault(room, set()).add(sid)
            self._rooms_by_sid.setdefault(sid, set()).add(room)

    def leave(self, room: str, sid: str) -> None:
        with self._lock:
            self._discard(room, sid)

    def on_session_closed(self, sid: str) -> List[str]:
        """Remove ``sid`` from every room; returns the rooms it was in."""
        with self._lock:
            rooms = sorted(self._rooms_by_sid.get(sid, ()))
            for room in rooms:
                self._discard(room, sid)
            return rooms

    def members_of(self, room: str) -> Set[str]:
        with self._lock:
            return set(self._members.get(room, ()))

    def rooms_of(self, sid: str) -> Set[str]:
        with self._lock:
            return set(self._rooms_by_sid.get(sid, ()))

    def rooms(self) -> List[str]:
        with self._lock:
            return sorted(self._members)

    def _discard(self, room: str, sid: str) -> None:
        members = self._members.get(room)
        if members is not None:
            members.discard(sid)
            if not members:
                del self._members[room]
        joined = self._rooms_by_sid.get(sid)
        if joined is not None:
            joined.discard(room)
            if not joined:
                del self._rooms_by_sid[sid]
