"""tars: a terminal agent with a streaming session server."""

__version__ = "0.1.0"
