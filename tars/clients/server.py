"""HTTP client for a tars session server."""

import asyncio
from collections.abc import AsyncIterator

import httpx

from tars.config import normalize_base_url
from tars.models.conversation import SendMessageRequest, SessionCreateResponse
from tars.models.events import StreamEvent
from tars.utils.logging import get_logger
from tars.utils.sse import decode_stream

logger = get_logger(__name__)


class ServerClientError(Exception):
    """The session server refused a request or could not be reached."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


def _failure(action: str, response: httpx.Response) -> ServerClientError:
    return ServerClientError(f"Failed to {action}: {response.status_code} - {response.text}", response.status_code)


class SessionClient:
    """A client attached to one session on a tars server."""

    def __init__(self, base_url: str, token: str, session_id: str, http: httpx.AsyncClient):
        self.base_url = base_url
        self.token = token
        self.session_id = session_id
        self.http = http

    @classmethod
    async def connect(cls, base_url: str, token: str, http: httpx.AsyncClient | None = None) -> "SessionClient":
        """Create a new session on the server and return a client bound to it.

        Raises:
            ServerClientError: If the server rejects the request
        """
        base_url = normalize_base_url(base_url)
        # Streams stay open indefinitely, so reads never time out.
        http = http or httpx.AsyncClient(timeout=httpx.Timeout(30.0, read=None))

        try:
            response = await http.post(f"{base_url}/sessions", headers=cls._auth_headers(token))
        except httpx.HTTPError as e:
            raise ServerClientError(f"Failed to create session: {e}") from e
        if not response.is_success:
            raise _failure("create session", response)

        body = SessionCreateResponse.model_validate(response.json())
        logger.info(f"Attached to session {body.session_id} on {base_url}")
        return cls(base_url, token, body.session_id, http)

    @staticmethod
    def _auth_headers(token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}"}

    @property
    def session_url(self) -> str:
        return f"{self.base_url}/sessions/{self.session_id}"

    async def send_message(self, content: str) -> None:
        """Submit a user message; the server answers before the run finishes.

        Raises:
            ServerClientError: If the session is unknown, busy, or the request fails
        """
        request = SendMessageRequest(content=content)
        try:
            response = await self.http.post(
                f"{self.session_url}/messages",
                json=request.model_dump(),
                headers=self._auth_headers(self.token),
            )
        except httpx.HTTPError as e:
            raise ServerClientError(f"Failed to send message: {e}") from e
        if not response.is_success:
            raise _failure("send message", response)

    async def stream_events(self, connected: asyncio.Event | None = None) -> AsyncIterator[StreamEvent]:
        """Follow the session's event stream until the server closes it.

        Args:
            connected: Set once the server has accepted the stream, so callers
                know events published from then on will be received

        Raises:
            ServerClientError: If the stream cannot be opened
        """
        headers = self._auth_headers(self.token)
        async with self.http.stream("GET", f"{self.session_url}/stream", headers=headers) as response:
            if not response.is_success:
                await response.aread()
                raise _failure("open stream", response)

            if connected is not None:
                connected.set()

            async for event in decode_stream(response.aiter_bytes()):
                yield event

    async def aclose(self) -> None:
        await self.http.aclose()
