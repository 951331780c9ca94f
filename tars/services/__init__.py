"""Agent loop, session management and event fan-out."""
