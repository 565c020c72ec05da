"""Address balance and history endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query
import structlog

from bitvia_api.app.routers import ERROR_RESPONSES
from bitvia_api.app.dependencies import get_address_service
from bitvia_api.schemas.responses import AddrBalance, AddrHistoryResp
from bitvia_api.services.address_service import AddressService

router = APIRouter()
logger = structlog.get_logger(__name__)


@router.get("/addr/{address}", response_model=AddrBalance, responses=ERROR_RESPONSES)
async def addr_balance(
    address: str = Path(..., description="Mainnet address"),
    details: bool = Query(default=False, description="Include the UTXO list"),
    service: AddressService = Depends(get_address_service)
):
    """Address balance (confirmed plus unconfirmed), optionally with UTXOs."""
    logger.info("Address balance request received", address=address, details=details)
    return await service.get_balance(address, details=details)


@router.get("/addr/{address}/history", response_model=AddrHistoryResp, responses=ERROR_RESPONSES)
async def addr_history(
    address: str = Path(..., description="Mainnet address"),
    offset: Optional[int] = Query(default=None, ge=0, description="First entry of the page"),
    limit: Optional[int] = Query(default=None, ge=0, description="Page size, clamped to 1..200"),
    service: AddressService = Depends(get_address_service)
):
    """
    One page of address history, most recent first.

    Each item carries the value the address received (`value_out_btc`),
    the value it spent (`value_in_btc`), their difference and a direction:
    `in`, `out`, `self` or `unknown`.
    """
    logger.info("Address history request received", address=address, offset=offset, limit=limit)
    return await service.get_history(address, offset=offset, limit=limit)
