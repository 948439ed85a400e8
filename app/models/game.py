from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base


class Game(Base):
    """Итог одной сыгранной партии. Создаётся один раз при сабмите, дальше не меняется."""

    __tablename__ = "games"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    player_name: Mapped[str] = mapped_column(String(15), nullable=False)
    playlist_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)

    score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_questions: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        Index("ix_games_playlist_score", "playlist_id", "score"),
    )
