"""Session management for in-memory conversations."""

import asyncio
from enum import StrEnum

from cuid2 import cuid_wrapper

from tars.models.events import DoneEvent, ErrorEvent, StreamEvent
from tars.models.session import Session
from tars.services.agent import AgentService
from tars.services.broadcaster import DEFAULT_EVENT_BUFFER, Subscription
from tars.utils.logging import get_logger

logger = get_logger(__name__)

cuid = cuid_wrapper()


class SubmitResult(StrEnum):
    """Outcome of submitting a user message to a session."""

    ACCEPTED = "accepted"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"


class SessionManager:
    """Owns every session and runs at most one agent loop per session.

    Lock scopes:
    - the manager lock guards the session map, held only for insert and lookup;
    - each session's lock guards its history and running flag, never held across
      a model or tool call.
    """

    def __init__(self, agent: AgentService, event_buffer: int = DEFAULT_EVENT_BUFFER):
        """Initialize session manager.

        Args:
            agent: Agent service that runs the conversation loop
            event_buffer: Events buffered per stream subscriber
        """
        self.agent = agent
        self.event_buffer = event_buffer
        self._sessions: dict[str, Session] = {}
        self._lock = asyncio.Lock()
        self._tasks: set[asyncio.Task[None]] = set()

    async def create_session(self) -> Session:
        """Create a new session with an empty conversation."""
        session = Session(session_id=self._generate_session_id(), event_buffer=self.event_buffer)
        async with self._lock:
            self._sessions[session.session_id] = session
        logger.info(f"Created session {session.session_id}")
        return session

    async def get_session(self, session_id: str) -> Session | None:
        """Get existing session by ID.

        Args:
            session_id: Session identifier

        Returns:
            Session if found, None otherwise
        """
        async with self._lock:
            return self._sessions.get(session_id)

    async def subscribe(self, session_id: str) -> Subscription | None:
        """Subscribe to the live events of a session, None if it does not exist."""
        session = await self.get_session(session_id)
        if session is None:
            return None
        return session.events.subscribe()

    async def submit(self, session_id: str, text: str) -> SubmitResult:
        """Hand a user message to the session's agent loop.

        The loop runs as a separate task; this returns as soon as it is
        scheduled. Its progress and completion are only observable through the
        session's event channel.
        """
        session = await self.get_session(session_id)
        if session is None:
            logger.warning(f"Message submitted to unknown session {session_id}")
            return SubmitResult.NOT_FOUND

        if not await session.try_start():
            logger.warning(f"Rejected message for session {session_id}: a run is already in progress")
            return SubmitResult.CONFLICT

        task = asyncio.create_task(self._run(session, text), name=f"agent-loop-{session_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.info(f"Accepted message for session {session_id}: {text[:50]}...")
        return SubmitResult.ACCEPTED

    async def _run(self, session: Session, text: str) -> None:
        """Run the agent loop and publish exactly one ``DoneEvent`` afterwards.

        The loop's own ``DoneEvent`` is held back until the session is idle
        again, so a subscriber reacting to it can submit straight away.
        """

        def emit(event: StreamEvent) -> None:
            if isinstance(event, DoneEvent):
                return
            session.events.publish(event)

        try:
            await self.agent.run(session.conversation, text, emit)
        except Exception as e:
            logger.error(f"Agent loop failed for session {session.session_id}: {e}", exc_info=True)
            session.events.publish(ErrorEvent(message=str(e) or type(e).__name__))
        finally:
            await session.finish()
            session.events.publish(DoneEvent())

    def get_session_count(self) -> int:
        """Get current number of sessions."""
        return len(self._sessions)

    def get_running_count(self) -> int:
        """Get number of sessions with a run in flight."""
        return len(self._tasks)

    async def shutdown(self) -> None:
        """Cancel in-flight runs when the server stops."""
        tasks = list(self._tasks)
        for task in tasks:
            logger.warning(f"Cancelling {task.get_name()} on shutdown")
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    def _generate_session_id(self) -> str:
        """Generate a new CUID-based session ID."""
        return cuid()
