import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api import game, playlist, sessions
from app.core.config import settings
from app.core.db import close_pool, ensure_schema
from app.core.errors import QuizError, ValidationError
from app.core.logging_config import configure_logging
from app.services.scheduler import LoopScheduler
from app.services.sessions import SessionRegistry


configure_logging()
logger = logging.getLogger(__name__)


app = FastAPI(
    title="Playlist Quiz Backend",
    version="0.1.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.state.sessions = SessionRegistry(LoopScheduler(), idle_ttl=settings.SESSION_IDLE_TTL)

app.include_router(playlist.router)
app.include_router(game.router)
app.include_router(sessions.router)


@app.exception_handler(QuizError)
async def quiz_error_handler(request: Request, exc: QuizError):
    if exc.status_code >= 500:
        logger.error("%s %s -> %d: %s", request.method, request.url.path, exc.status_code, exc.message)
    content = {"message": exc.message}
    if isinstance(exc, ValidationError) and exc.field:
        content["field"] = exc.field
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    # как у фронта: первое сообщение + путь к полю
    err = exc.errors()[0]
    field = ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path"))
    return JSONResponse(status_code=400, content={"message": err.get("msg", "Invalid request"), "field": field})


@app.get("/")
async def root():
    return {"message": "Hello, Playlist Quiz!"}


@app.on_event("startup")
async def startup():
    await ensure_schema()


@app.on_event("shutdown")
async def shutdown():
    app.state.sessions.close_all()
    await close_pool()
