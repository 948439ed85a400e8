from __future__ import annotations

import logging
from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.models.game import Game
from app.schemas.game import GameCreate


logger = logging.getLogger(__name__)


async def create_game(session: AsyncSession, data: GameCreate) -> Game:
    game = Game(
        player_name=data.player_name,
        playlist_id=data.playlist_id,
        score=data.score,
        total_questions=data.total_questions,
    )
    session.add(game)
    await session.commit()
    await session.refresh(game)
    logger.info(
        "game saved: id=%s playlist=%s score=%d/%d",
        game.id, game.playlist_id, game.score, game.total_questions,
    )
    return game


async def get_leaderboard(
    session: AsyncSession,
    playlist_id: str,
    limit: int = settings.LEADERBOARD_LIMIT,
) -> List[Game]:
    """Топ по очкам; при равенстве выше тот, кто сыграл раньше."""
    rows = await session.execute(
        select(Game)
        .where(Game.playlist_id == playlist_id)
        .order_by(Game.score.desc(), Game.created_at.asc(), Game.id.asc())
        .limit(limit)
    )
    return list(rows.scalars().all())
