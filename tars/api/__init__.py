"""HTTP API for the session server."""
