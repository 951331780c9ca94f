"""Server and client settings resolved from flags, environment and the token file."""

import os
import secrets
from dataclasses import dataclass
from pathlib import Path

from tars.services.broadcaster import DEFAULT_EVENT_BUFFER
from tars.utils.logging import get_logger
from tars.utils.sse import DEFAULT_KEEPALIVE_INTERVAL

logger = get_logger(__name__)

DEFAULT_PORT = 7331
DEFAULT_LISTEN = f"127.0.0.1:{DEFAULT_PORT}"
DEFAULT_SERVER_URL = f"http://{DEFAULT_LISTEN}"


class TokenNotFoundError(Exception):
    """No auth token was given and none is stored on disk."""


@dataclass
class ServerSettings:
    """Configuration for the session server."""

    auth_token: str
    listen: str = DEFAULT_LISTEN
    keepalive_interval: float = DEFAULT_KEEPALIVE_INTERVAL
    event_buffer: int = DEFAULT_EVENT_BUFFER
    max_turns: int | None = None

    @property
    def host(self) -> str:
        host, _, _ = self.listen.rpartition(":")
        return host.strip("[]") or "127.0.0.1"

    @property
    def port(self) -> int:
        _, _, port = self.listen.rpartition(":")
        return int(port) if port else DEFAULT_PORT


def token_path() -> Path:
    """Location of the shared server token, ``~/.tars/server.token``."""
    home = os.getenv("HOME") or os.getenv("USERPROFILE")
    if home:
        return Path(home) / ".tars" / "server.token"
    return Path("tars.token")


def read_token_file(path: Path | None = None) -> str | None:
    path = path or token_path()
    try:
        token = path.read_text(encoding="utf-8").strip()
    except OSError:
        return None
    return token or None


def write_token_file(token: str, path: Path | None = None) -> Path:
    """Store the token, readable by the current user only."""
    path = path or token_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(token)
    return path


def resolve_server_token(explicit: str | None = None, path: Path | None = None) -> str:
    """Pick the token the server accepts.

    An explicit token is stored for local clients to find. Otherwise the stored
    token is reused, and failing that a new random one is generated and stored.
    """
    if explicit:
        write_token_file(explicit, path)
        return explicit

    stored = read_token_file(path)
    if stored:
        return stored

    token = secrets.token_urlsafe(32)
    stored_at = write_token_file(token, path)
    logger.info(f"Generated a new auth token at {stored_at}")
    return token


def resolve_client_token(explicit: str | None = None, path: Path | None = None) -> str:
    """Pick the token a client presents to the server.

    Raises:
        TokenNotFoundError: If no token was given and none is stored
    """
    if explicit:
        return explicit

    stored = read_token_file(path)
    if stored is None:
        raise TokenNotFoundError(
            "No auth token found; pass --token, set TARS_TOKEN, or start the server to create one."
        )
    return stored


def normalize_base_url(value: str) -> str:
    return value.strip().rstrip("/")
