"""Clients for the model provider and the session server."""
