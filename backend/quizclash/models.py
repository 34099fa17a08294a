from datetime import datetime, timezone

from quizclash import db


def _utcnow():
    return datetime.now(timezone.utc)


class PlayerScore(db.Model):
    __tablename__ = 'player_score'
    __table_args__ = (
        db.UniqueConstraint('room', 'player', name='uq_player_score_room_player'),
    )
    id = db.Column(db.Integer, primary_key=True)
    room = db.Column(db.String(64), nullable=False, index=True)
    player = db.Column(db.String(64), nullable=False)
    hero = db.Column(db.String(64), nullable=True)
    score = db.Column(db.Integer, default=0, nullable=False)
    finished = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'room': self.room,
            'player': self.player,
            'hero': self.hero,
            'score': self.score,
            'finished': self.finished,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
