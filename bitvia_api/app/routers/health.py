"""Liveness endpoint."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from bitvia_api.app.dependencies import get_context
from bitvia_api.core.context import AppContext
from bitvia_api.schemas.responses import HealthResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health(context: AppContext = Depends(get_context)):
    """Report that the process is up and the context is built."""
    return HealthResponse(
        status="ok",
        timestamp=datetime.now(timezone.utc),
        version=context.settings.api_version
    )
