from typing import AsyncGenerator

import httpx
from fastapi import Depends, Request

from app.core.config import settings
from app.services.playlist_resolver import PlaylistResolver
from app.services.sessions import SessionRegistry


async def get_http_client() -> AsyncGenerator[httpx.AsyncClient, None]:
    async with httpx.AsyncClient() as client:
        yield client


def get_resolver(client: httpx.AsyncClient = Depends(get_http_client)) -> PlaylistResolver:
    return PlaylistResolver(client, config=settings)


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.sessions
