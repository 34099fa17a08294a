from typing import Any, Dict, Iterable, List


def build_leaderboard(records: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Rank a room's records by score, highest first.

    ``sorted`` is stable, so players with equal scores keep the order they
    arrived in (join order when fed from ``ScoreLedger.snapshot``).
    """
    return sorted(records, key=lambda r: -int(r.get('score') or 0))
