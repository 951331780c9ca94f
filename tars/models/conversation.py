"""Request and response models for the session API."""

from datetime import datetime

from pydantic import BaseModel


class SessionCreateResponse(BaseModel):
    """Response model for session creation."""

    session_id: str


class SendMessageRequest(BaseModel):
    """Request model for submitting a user message to a session."""

    content: str


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str
    timestamp: datetime
    version: str
