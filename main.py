import asyncio
import inspect
import logging
import os
from contextlib import asynccontextmanager, suppress
from typing import Optional

import httpx
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from openai import AsyncOpenAI

from dal.session_dal import SessionDAL
from routes.chat_route import router as chat_router
from routes.report_route import router as report_router
from routes.session_route import router as session_router
from services.session_store import InMemorySessionStore, SessionStore
from services.speech.lipsync import LipSyncExtractor
from utils.database_init import AsyncDatabaseInitializer
from utils.session_sweeper import SessionSweeper
from utils.settings import Settings

load_dotenv()  # Load environment variables from .env file if present

LOG_FORMAT = "%(asctime)s [%(levelname)s] [%(module)s] %(message)s"


def configure_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """Send logs to stderr and, when configured, to a shared log file."""
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)


async def build_session_store(settings: Settings) -> SessionStore:
    """Pick the session backend configured by SESSION_BACKEND."""
    if settings.session_backend == "memory":
        logging.info("Using in-memory session store.")
        return InMemorySessionStore()

    db_initializer = AsyncDatabaseInitializer()
    await db_initializer.ensure_database()
    logging.info("Using SQLite session store at %s", db_initializer.db_path)
    return SessionDAL(db_initializer)


async def _close_client(client) -> None:
    """Close a client exposing either an async or sync close method."""
    aclose = getattr(client, "aclose", None) or getattr(client, "close", None)
    if aclose is None:
        return
    try:
        if inspect.iscoroutinefunction(aclose):
            await aclose()
        else:
            result = aclose()
            if inspect.isawaitable(result):
                await result
    except Exception as exc:
        logging.warning("Error while closing %s: %s", type(client).__name__, exc)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan manager to initialize:
      - the session store (SQLite at DATABASE_DIR/app.db, or in memory)
      - the OpenAI async client and the httpx client for places lookups
      - the background sweep that soft-cleans idle sessions
    and attach them to `app.state`.
    """
    settings = Settings.from_env()
    configure_logging(settings.log_level, settings.log_file)
    app.state.settings = settings

    app.state.session_store = await build_session_store(settings)
    app.state.session_sweeper = SessionSweeper(app.state.session_store, settings.session_idle_seconds)

    # Missing keys do not stop the server; each turn rejects itself instead.
    missing = settings.missing_credentials()
    if missing:
        logging.error("Missing API keys: %s. Chat turns will be rejected.", ", ".join(missing))
    app.state.openai_client = AsyncOpenAI(api_key=settings.openai_api_key) if settings.openai_api_key else None
    app.state.http_client = httpx.AsyncClient(timeout=settings.places_timeout)
    app.state.lipsync_extractor = LipSyncExtractor(
        settings.ffmpeg_bin, settings.rhubarb_bin, timeout=settings.lipsync_timeout
    )

    sweep_task: Optional[asyncio.Task] = None
    if settings.sweep_interval_seconds > 0:
        sweep_task = asyncio.create_task(
            app.state.session_sweeper.run_periodic_cleanup(settings.sweep_interval_seconds)
        )

    try:
        yield
    finally:
        if sweep_task is not None:
            sweep_task.cancel()
            with suppress(asyncio.CancelledError):
                await sweep_task
        for client in (app.state.openai_client, app.state.http_client, app.state.session_store):
            if client is not None:
                await _close_client(client)


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application instance.
    """
    app = FastAPI(title="Voice Travel Agent API", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=os.getenv("CORS_ORIGINS", "*").split(","),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health(request: Request):
        """
        Simple health check that reports which shared clients are available.
        """
        state = request.app.state
        return {
            "ok": True,
            "session_store": type(getattr(state, "session_store", None)).__name__,
            "openai_available": getattr(state, "openai_client", None) is not None,
            "places_available": getattr(state, "http_client", None) is not None,
        }

    # Register application routers
    app.include_router(chat_router)
    app.include_router(session_router)
    app.include_router(report_router)

    return app


app = create_app()
