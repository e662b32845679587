"""Client helpers for talking to a presence server."""
