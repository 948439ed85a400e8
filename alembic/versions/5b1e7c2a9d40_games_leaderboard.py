"""games leaderboard

Revision ID: 5b1e7c2a9d40
Revises:
Create Date: 2026-10-16 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '5b1e7c2a9d40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "games",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("player_name", sa.String(15), nullable=False),
        sa.Column(
            "playlist_id",
            sa.Text(),
            nullable=False,
            comment="id плейлиста на YouTube",
        ),
        sa.Column(
            "score",
            sa.Integer(),
            nullable=False,
            server_default="0",
        ),
        sa.Column("total_questions", sa.Integer(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.CheckConstraint("score >= 0", name="ck_games_score_non_negative"),
        sa.CheckConstraint("total_questions > 0", name="ck_games_total_questions_positive"),
    )

    # лидерборд всегда фильтрует по плейлисту и сортирует по очкам
    op.create_index("ix_games_playlist_id", "games", ["playlist_id"])
    op.create_index("ix_games_playlist_score", "games", ["playlist_id", "score"])


def downgrade() -> None:
    op.drop_index("ix_games_playlist_score", table_name="games")
    op.drop_index("ix_games_playlist_id", table_name="games")
    op.drop_table("games")
