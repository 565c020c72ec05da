"""FastAPI dependencies resolving the application context and services."""

from fastapi import HTTPException, Request, status

from bitvia_api.core.context import AppContext
from bitvia_api.services.address_service import AddressService
from bitvia_api.services.chain_service import ChainService
from bitvia_api.services.tx_service import TxService


def get_context(request: Request) -> AppContext:
    """Get the application context built at startup."""
    context = getattr(request.app.state, "context", None)
    if context is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service not ready"
        )
    return context


def get_tx_service(request: Request) -> TxService:
    return TxService(get_context(request))


def get_address_service(request: Request) -> AddressService:
    return AddressService(get_context(request))


def get_chain_service(request: Request) -> ChainService:
    return ChainService(get_context(request))
