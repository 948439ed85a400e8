from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_registry, get_resolver
from app.core.db import get_session
from app.schemas.game import GameOut
from app.schemas.session import ChoiceIn, GuessIn, SessionCreate, SessionOut, SubmitIn
from app.services.playlist_resolver import PlaylistResolver
from app.services.quiz_engine import QuizSettings
from app.services.sessions import (
    SessionRegistry,
    restart_session,
    session_leaderboard,
    session_snapshot,
    start_session,
    submit_session_result,
)


router = APIRouter(prefix="/api/sessions", tags=["sessions"])


@router.post("", response_model=SessionOut, status_code=status.HTTP_201_CREATED)
async def create_session(
    body: SessionCreate,
    registry: SessionRegistry = Depends(get_registry),
    resolver: PlaylistResolver = Depends(get_resolver),
):
    qs = await start_session(
        registry,
        resolver,
        body.playlist,
        QuizSettings(total_requested=body.count, time_limit=body.time_limit, mode=body.mode),
    )
    return session_snapshot(qs)


@router.get("/{sid}", response_model=SessionOut)
async def get_session_state(sid: str, registry: SessionRegistry = Depends(get_registry)):
    return session_snapshot(registry.get(sid))


@router.post("/{sid}/start", response_model=SessionOut)
async def start_now(sid: str, registry: SessionRegistry = Depends(get_registry)):
    # пропустить заставку перед первым раундом
    qs = registry.get(sid)
    qs.engine.start_round()
    return session_snapshot(qs)


@router.post("/{sid}/guess", response_model=SessionOut)
async def guess(sid: str, body: GuessIn, registry: SessionRegistry = Depends(get_registry)):
    qs = registry.get(sid)
    qs.engine.submit_guess(body.guess)
    return session_snapshot(qs)


@router.post("/{sid}/choice", response_model=SessionOut)
async def choice(sid: str, body: ChoiceIn, registry: SessionRegistry = Depends(get_registry)):
    qs = registry.get(sid)
    qs.engine.submit_choice(body.choice)
    return session_snapshot(qs)


@router.post("/{sid}/skip", response_model=SessionOut)
async def skip(sid: str, registry: SessionRegistry = Depends(get_registry)):
    qs = registry.get(sid)
    qs.engine.skip()
    return session_snapshot(qs)


@router.post("/{sid}/next", response_model=SessionOut)
async def next_round(sid: str, registry: SessionRegistry = Depends(get_registry)):
    qs = registry.get(sid)
    qs.engine.next_round()
    return session_snapshot(qs)


@router.post("/{sid}/restart", response_model=SessionOut)
async def restart(
    sid: str,
    registry: SessionRegistry = Depends(get_registry),
    resolver: PlaylistResolver = Depends(get_resolver),
):
    return session_snapshot(await restart_session(registry.get(sid), resolver))


@router.post("/{sid}/submit", response_model=GameOut, status_code=status.HTTP_201_CREATED)
async def submit(
    sid: str,
    body: SubmitIn,
    registry: SessionRegistry = Depends(get_registry),
    db: AsyncSession = Depends(get_session),
):
    game = await submit_session_result(registry, registry.get(sid), db, body.player_name)
    return GameOut.model_validate(game)


@router.get("/{sid}/leaderboard", response_model=list[GameOut])
async def leaderboard(
    sid: str,
    registry: SessionRegistry = Depends(get_registry),
    db: AsyncSession = Depends(get_session),
):
    return await session_leaderboard(registry.get(sid), db)


@router.delete("/{sid}", status_code=status.HTTP_204_NO_CONTENT)
async def abort_session(sid: str, registry: SessionRegistry = Depends(get_registry)):
    registry.get(sid)
    registry.drop(sid)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
