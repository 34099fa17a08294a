"""Score store adapter.

The only code that talks to the persistent record store. It exposes a small
create/query/update/delete-by-filter interface over the ``player_score``
table and translates database failures into two error kinds the rest of the
engine understands. It carries no game logic.
"""
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List

from sqlalchemy import exc as sa_exc, text

from quizclash import db
from quizclash.models import PlayerScore


Record = Dict[str, Any]


class StoreError(Exception):
    """Base class for record store failures."""


class StoreUnavailable(StoreError):
    """The store could not be reached or timed out."""


class StoreRejected(StoreError):
    """The store refused the call (constraint violation, bad input)."""


_COLUMNS = frozenset(PlayerScore.__table__.columns.keys())


def _check_fields(kind: str, fields: Dict[str, Any]) -> None:
    unknown = set(fields) - _COLUMNS
    if unknown:
        raise StoreRejected(f"unknown {kind} field(s): {', '.join(sorted(unknown))}")


@contextmanager
def _store_call(op: str) -> Iterator[None]:
    try:
        yield
    except (sa_exc.IntegrityError, sa_exc.DataError, sa_exc.ProgrammingError) as e:
        db.session.rollback()
        raise StoreRejected(f"{op} rejected: {e.orig}") from e
    except sa_exc.SQLAlchemyError as e:
        db.session.rollback()
        raise StoreUnavailable(f"{op} failed: {e}") from e


class ScoreStore:
    """Pass-through adapter over the ``player_score`` table."""

    def create(self, record: Record) -> Record:
        _check_fields('record', record)
        with _store_call('create'):
            row = PlayerScore(**record)
            db.session.add(row)
            db.session.commit()
            return row.to_dict()

    def query(self, filter: Record) -> List[Record]:
        _check_fields('filter', filter)
        with _store_call('query'):
            rows = PlayerScore.query.filter_by(**filter).order_by(PlayerScore.id).all()
            result = [r.to_dict() for r in rows]
            # End the read transaction so the next read observes fresh commits
            db.session.commit()
            return result

    def update(self, filter: Record, patch: Record) -> List[Record]:
        """Apply ``patch`` to every row matching ``filter`` in one statement.

        The WHERE clause holds the whole filter, so a filter that includes
        the prior value of a patched column acts as a compare-and-swap. The
        affected rows are read back by id inside the same transaction, while
        the UPDATE still holds them, so a later writer can never change what
        is returned. An empty list means the UPDATE matched nothing.
        """
        if not filter:
            raise StoreRejected('update requires a filter')
        if not patch:
            raise StoreRejected('update requires a patch')
        _check_fields('filter', filter)
        _check_fields('patch', patch)
        with _store_call('update'):
            ids = [row_id for (row_id,) in PlayerScore.query.filter_by(**filter)
                   .with_entities(PlayerScore.id).with_for_update()]
            matched = 0
            if ids:
                matched = PlayerScore.query.filter(PlayerScore.id.in_(ids)).filter_by(**filter).update(
                    patch, synchronize_session=False
                )
            result = []
            if matched:
                rows = (PlayerScore.query.filter(PlayerScore.id.in_(ids))
                        .order_by(PlayerScore.id).populate_existing().all())
                result = [r.to_dict() for r in rows
                          if all(getattr(r, k) == v for k, v in patch.items())]
            db.session.commit()
            return result

    def delete(self, filter: Record) -> int:
        if not filter:
            raise StoreRejected('delete requires a filter')
        _check_fields('filter', filter)
        with _store_call('delete'):
            removed = PlayerScore.query.filter_by(**filter).delete(synchronize_session=False)
            db.session.commit()
            return removed

    def ping(self) -> None:
        with _store_call('ping'):
            db.session.execute(text('SELECT 1'))
            db.session.commit()
