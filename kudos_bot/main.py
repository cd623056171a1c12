"""FastAPI application for kudos-bot."""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware

from kudos_bot.clients.slack_client import SlackApiError, SlackNotConfiguredError
from kudos_bot.config import settings
from kudos_bot.database import initialize
from kudos_bot.handlers.kudos_handler import KudosValidationError
from kudos_bot.routes.api import router as api_router
from kudos_bot.routes.auth import router as auth_router
from kudos_bot.routes.slack import router as slack_router

logging.basicConfig(level=logging.DEBUG if settings.debug else logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("kudos-bot starting up")
    app.state.backend = await initialize(settings)
    yield
    logger.info("kudos-bot shutting down")
    await app.state.backend.close()


app = FastAPI(
    title="Kudos Bot",
    description="Team recognition through Slack kudos, with stats and a leaderboard",
    version="1.0.0",
    lifespan=lifespan,
)

if settings.session_secret == "kudos-secret-key":
    logger.warning("Using the default session secret; set KUDOS_SESSION_SECRET")

app.add_middleware(
    SessionMiddleware,
    secret_key=settings.session_secret,
    session_cookie="slack-kudos-session",
    max_age=24 * 60 * 60,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(KudosValidationError)
async def _validation_error(request: Request, exc: KudosValidationError):
    return JSONResponse(status_code=400, content={"success": False, "error": str(exc)})


@app.exception_handler(RequestValidationError)
async def _request_validation_error(request: Request, exc: RequestValidationError):
    errors = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
    )
    return JSONResponse(status_code=400, content={"success": False, "error": errors})


@app.exception_handler(StarletteHTTPException)
async def _http_error(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": str(exc.detail)},
    )


@app.exception_handler(SlackApiError)
@app.exception_handler(SlackNotConfiguredError)
@app.exception_handler(httpx.HTTPError)
async def _slack_error(request: Request, exc: Exception):
    logger.error("Slack request failed on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=502, content={"success": False, "error": "Slack request failed"})


@app.exception_handler(SQLAlchemyError)
async def _storage_error(request: Request, exc: SQLAlchemyError):
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"success": False, "error": "Database error"})


app.include_router(api_router, prefix=settings.api_prefix)
app.include_router(auth_router, prefix=settings.api_prefix)
app.include_router(slack_router)


@app.get("/health")
async def health():
    return {
        "status": "ok",
        "service": "kudos-bot",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
