"""create player_score table

Revision ID: 4c2a9d1e7b30
Revises:
Create Date: 2026-10-19 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4c2a9d1e7b30'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'player_score',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('room', sa.String(length=64), nullable=False),
        sa.Column('player', sa.String(length=64), nullable=False),
        sa.Column('hero', sa.String(length=64), nullable=True),
        sa.Column('score', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('finished', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('room', 'player', name='uq_player_score_room_player'),
    )
    with op.batch_alter_table('player_score') as batch_op:
        batch_op.create_index('ix_player_score_room', ['room'], unique=False)


def downgrade():
    with op.batch_alter_table('player_score') as batch_op:
        batch_op.drop_index('ix_player_score_room')
    op.drop_table('player_score')
