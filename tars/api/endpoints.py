"""API endpoints for the session server."""

import hmac
from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Header, HTTPException, Request, Response, status
from fastapi.responses import StreamingResponse

from tars import __version__
from tars.config import ServerSettings
from tars.models.conversation import HealthResponse, SendMessageRequest, SessionCreateResponse
from tars.services.session_manager import SessionManager, SubmitResult
from tars.utils.logging import get_logger
from tars.utils.sse import sse_stream

logger = get_logger(__name__)


def get_settings(request: Request) -> ServerSettings:
    return request.app.state.settings


def get_session_manager(request: Request) -> SessionManager:
    return request.app.state.session_manager


def require_token(
    settings: Annotated[ServerSettings, Depends(get_settings)],
    authorization: Annotated[str | None, Header()] = None,
) -> None:
    """Reject the request unless it carries ``Authorization: Bearer <token>``."""
    expected = f"Bearer {settings.auth_token}"
    if authorization is None or not hmac.compare_digest(authorization.encode(), expected.encode()):
        logger.warning("Rejected request with missing or invalid bearer token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )


SessionManagerDep = Annotated[SessionManager, Depends(get_session_manager)]

router = APIRouter(prefix="/sessions", tags=["Sessions"], dependencies=[Depends(require_token)])
health_router = APIRouter(tags=["Health"])


@router.post("", response_model=SessionCreateResponse)
async def create_session(manager: SessionManagerDep) -> SessionCreateResponse:
    """Create a new session with an empty conversation."""
    session = await manager.create_session()
    return SessionCreateResponse(session_id=session.session_id)


@router.post(
    "/{session_id}/messages",
    status_code=status.HTTP_202_ACCEPTED,
    responses={404: {"description": "Unknown session"}, 409: {"description": "A run is already in progress"}},
)
async def send_message(session_id: str, request: SendMessageRequest, manager: SessionManagerDep) -> Response:
    """Start an agent run for a user message.

    Returns as soon as the run is scheduled; its progress is delivered on the
    session's event stream.
    """
    result = await manager.submit(session_id, request.content)

    if result is SubmitResult.NOT_FOUND:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Session not found: {session_id}")
    if result is SubmitResult.CONFLICT:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Session is already running")

    return Response(status_code=status.HTTP_202_ACCEPTED)


@router.get("/{session_id}/stream", response_class=StreamingResponse)
async def stream_session(
    session_id: str,
    manager: SessionManagerDep,
    settings: Annotated[ServerSettings, Depends(get_settings)],
) -> StreamingResponse:
    """Stream the session's events as Server-Sent Events.

    Only events published after the subscription starts are delivered.
    """
    subscription = await manager.subscribe(session_id)
    if subscription is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Session not found: {session_id}")

    logger.info(f"Stream opened for session {session_id}")
    return StreamingResponse(
        sse_stream(subscription, keepalive_interval=settings.keepalive_interval),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@health_router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(UTC),
        version=__version__,
    )
