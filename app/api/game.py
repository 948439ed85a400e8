from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_registry
from app.core.db import get_session
from app.schemas.game import GameCreate, GameOut
from app.services.leaderboard import create_game, get_leaderboard
from app.services.sessions import SessionRegistry


router = APIRouter(prefix="/api/games", tags=["games"])


@router.post("", response_model=GameOut, status_code=status.HTTP_201_CREATED)
async def submit_game(
    body: GameCreate,
    session: AsyncSession = Depends(get_session),
    registry: SessionRegistry = Depends(get_registry),
):
    game = await create_game(session, body)
    registry.invalidate_leaderboard(game.playlist_id)
    return GameOut.model_validate(game)


@router.get("/leaderboard/{playlist_id}", response_model=list[GameOut])
async def leaderboard(
    playlist_id: str,
    session: AsyncSession = Depends(get_session),
):
    games = await get_leaderboard(session, playlist_id)
    return [GameOut.model_validate(g) for g in games]
