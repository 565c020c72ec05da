"""Mempool, network and block endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query
import structlog

from bitvia_api.app.routers import ERROR_RESPONSES
from bitvia_api.app.dependencies import get_chain_service
from bitvia_api.schemas.responses import BlockHashResp, BlockView, MempoolInfo, NetworkSummary
from bitvia_api.services.chain_service import ChainService

router = APIRouter()
logger = structlog.get_logger(__name__)


@router.get("/mempoolinfo", response_model=MempoolInfo, responses=ERROR_RESPONSES)
async def mempool_info(service: ChainService = Depends(get_chain_service)):
    """Current mempool size, memory usage and minimum fee."""
    return await service.get_mempool_info()


@router.get("/network", response_model=NetworkSummary, responses=ERROR_RESPONSES)
async def network_summary(service: ChainService = Depends(get_chain_service)):
    """
    Network summary: tip height, difficulty, hashrate, projected difficulty
    change for the current epoch and estimated supply.
    """
    return await service.get_network_summary()


@router.get("/blockhash/{height}", response_model=BlockHashResp, responses=ERROR_RESPONSES)
async def block_hash(
    height: int = Path(..., ge=0, description="Block height"),
    service: ChainService = Depends(get_chain_service)
):
    """Hash of the block at a height."""
    return await service.get_block_hash(height)


@router.get("/block/{block_hash}", response_model=BlockView, responses=ERROR_RESPONSES)
async def block_by_hash(
    block_hash: str = Path(..., description="Block hash"),
    offset: Optional[int] = Query(default=None, ge=0, description="First txid of the page"),
    limit: Optional[int] = Query(default=None, ge=0, description="Page size, clamped to 1..200"),
    service: ChainService = Depends(get_chain_service)
):
    """Block summary with a page of its txids."""
    logger.debug("Block request received", block_hash=block_hash, offset=offset, limit=limit)
    return await service.get_block(block_hash, offset=offset, limit=limit)
