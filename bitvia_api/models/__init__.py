"""Internal data models."""
