"""FastAPI application, routers and dependencies."""
