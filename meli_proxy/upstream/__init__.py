"""Upstream marketplace API access with retry/backoff."""
