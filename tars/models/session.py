"""Session and conversation state."""

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from tars.models.llm import LLMMessage
from tars.services.broadcaster import DEFAULT_EVENT_BUFFER, EventChannel
from tars.utils.logging import get_logger

logger = get_logger(__name__)


class Conversation:
    """Append-only message history guarded by a lock.

    The lock may be shared with other state (a session's running flag) so that
    both are mutated inside the same critical section.
    """

    def __init__(self, lock: asyncio.Lock | None = None):
        self.lock = lock or asyncio.Lock()
        self._messages: list[LLMMessage] = []

    async def snapshot(self) -> list[LLMMessage]:
        """Return a copy of the history including every append made so far."""
        async with self.lock:
            return list(self._messages)

    async def append(self, *messages: LLMMessage) -> None:
        async with self.lock:
            self._messages.extend(messages)

    def __len__(self) -> int:
        return len(self._messages)


@dataclass
class Session:
    """Session state for a server-side conversation."""

    session_id: str
    event_buffer: int = DEFAULT_EVENT_BUFFER
    running: bool = False
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    last_activity: datetime = field(default_factory=lambda: datetime.now(UTC))
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)
    conversation: Conversation = field(init=False, repr=False)
    events: EventChannel = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.conversation = Conversation(self.lock)
        self.events = EventChannel(self.event_buffer)

    def as_dict(self) -> dict[str, Any]:
        """Return the session as a dictionary."""
        return {
            "session_id": self.session_id,
            "running": self.running,
            "messages": len(self.conversation),
            "subscribers": self.events.subscriber_count,
            "created_at": self.created_at.isoformat(),
            "last_activity": self.last_activity.isoformat(),
        }

    def update_activity(self) -> None:
        """Update the last activity timestamp."""
        self.last_activity = datetime.now(UTC)

    async def try_start(self) -> bool:
        """Mark the session as running unless a run is already in flight.

        The check and the flip happen under a single lock acquisition.

        Returns:
            True if the caller now owns the run, False if one was already running
        """
        async with self.lock:
            if self.running:
                return False
            self.running = True
            self.update_activity()
            return True

    async def finish(self) -> None:
        """Mark the in-flight run as finished."""
        async with self.lock:
            self.running = False
            self.update_activity()
        logger.debug(f"Session {self.session_id} is idle")
