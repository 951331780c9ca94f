"""Main FastAPI application."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from tars import __version__
from tars.api.endpoints import health_router, router
from tars.clients.anthropic import AnthropicClient, AnthropicConfig
from tars.config import ServerSettings
from tars.services.agent import AgentService
from tars.services.session_manager import SessionManager
from tars.utils.logging import get_logger

logger = get_logger(__name__)


def build_session_manager(settings: ServerSettings) -> SessionManager:
    """Wire the Anthropic client, the tools and the agent loop into a session manager."""
    client = AnthropicClient(config=AnthropicConfig.from_env())
    agent = AgentService(client, max_turns=settings.max_turns)
    return SessionManager(agent, event_buffer=settings.event_buffer)


def create_app(settings: ServerSettings, session_manager: SessionManager | None = None) -> FastAPI:
    """Create the session server application.

    Args:
        settings: Server settings, including the shared bearer token
        session_manager: Session manager to serve, built from the environment when omitted
    """
    manager = session_manager or build_session_manager(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info(f"tars server {__version__} ready")
        yield
        await manager.shutdown()

    app = FastAPI(
        title="tars",
        description=(
            "Session server for a tool-using terminal agent. Clients create a session, post messages "
            "and follow the agent's progress on a Server-Sent Events stream."
        ),
        version=__version__,
        lifespan=lifespan,
        openapi_tags=[
            {
                "name": "Sessions",
                "description": "Create sessions, submit messages and stream agent events. Requires a bearer token.",
            },
            {
                "name": "Health",
                "description": "Service health monitoring and status checks.",
            },
        ],
    )
    app.state.settings = settings
    app.state.session_manager = manager

    app.include_router(router)
    app.include_router(health_router)

    return app
