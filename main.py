import inspect
import logging
import os
from contextlib import asynccontextmanager

from anthropic import AsyncAnthropic
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from openai import AsyncOpenAI

from controllers.chat_controller import make_controller_factory
from models.ai_config import load_ai_config
from routes.chat_flow_route import router as chat_flow_router
from routes.realtime_ws import router as image_ws_router
from services.chat.session_store import ChatSessionStore
from utils.database_init import AsyncDatabaseInitializer

load_dotenv()  # Load environment variables from .env file if present

LOGGER = logging.getLogger(__name__)


async def _close_client(client) -> None:
    """Close an SDK client if it exposes a close/aclose method."""
    if client is None:
        return
    aclose = getattr(client, "aclose", None) or getattr(client, "close", None)
    if aclose is None:
        return
    try:
        result = aclose()
        if inspect.isawaitable(result):
            await result
    except Exception as exc:
        # Shutdown errors must not mask the original failure.
        LOGGER.warning("Error closing client %s: %s", type(client).__name__, exc)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan manager to initialize:
      - the SQLite chat store (at DATABASE_DIR/app.db)
      - the OpenAI and Anthropic async clients
      - the per-session controller store
    and attach them to `app.state`.
    """
    config = load_ai_config()
    app.state.ai_config = config

    db_initializer = AsyncDatabaseInitializer()
    await db_initializer.ensure_database()
    app.state.db_initializer = db_initializer

    if not os.getenv("OPENAI_API_KEY"):
        raise RuntimeError("OPENAI_API_KEY environment variable is not set")
    if not os.getenv("ANTHROPIC_API_KEY"):
        raise RuntimeError("ANTHROPIC_API_KEY environment variable is not set")

    try:
        openai_client = AsyncOpenAI(timeout=config.request_timeout)
    except Exception as exc:
        raise RuntimeError("Failed to initialize OpenAI Async client") from exc
    try:
        anthropic_client = AsyncAnthropic(timeout=config.request_timeout)
    except Exception as exc:
        await _close_client(openai_client)
        raise RuntimeError("Failed to initialize Anthropic Async client") from exc

    app.state.openai_client = openai_client
    app.state.anthropic_client = anthropic_client
    app.state.chat_sessions = ChatSessionStore(
        make_controller_factory(openai_client, anthropic_client, config),
        max_sessions=config.max_sessions,
        idle_seconds=config.session_idle_seconds,
    )

    try:
        yield
    finally:
        await _close_client(getattr(app.state, "openai_client", None))
        await _close_client(getattr(app.state, "anthropic_client", None))


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application instance.
    """
    app = FastAPI(lifespan=lifespan)

    @app.get("/health")
    async def health(request: Request):
        """
        Simple health check that verifies the DB initializer and provider clients.
        """
        state = request.app.state
        return {
            "ok": True,
            "db_initialized": hasattr(state, "db_initializer"),
            "openai_available": getattr(state, "openai_client", None) is not None,
            "anthropic_available": getattr(state, "anthropic_client", None) is not None,
        }

    app.include_router(chat_flow_router)
    app.include_router(image_ws_router)

    return app


app = create_app()
