"""Upstream clients, error taxonomy and the application context."""
