"""Transaction endpoint."""

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query
import structlog

from bitvia_api.app.routers import ERROR_RESPONSES
from bitvia_api.app.dependencies import get_tx_service
from bitvia_api.schemas.responses import TxView
from bitvia_api.services.tx_service import TxService

router = APIRouter()
logger = structlog.get_logger(__name__)


@router.get("/tx/{txid}", response_model=TxView, responses=ERROR_RESPONSES)
async def tx_by_id(
    txid: str = Path(..., description="Transaction id"),
    resolve: Optional[int] = Query(default=None, ge=0, description="Inputs to resolve (default 20, max 100)"),
    service: TxService = Depends(get_tx_service)
):
    """
    Transaction with resolved previous outputs, totals, fee and feerate.

    `inputs_total_btc`, `fee_btc` and `feerate_sat_vb` are null when no
    input could be resolved (for example a coinbase). They are never reported
    as zero in that case.
    """
    request_logger = logger.bind(endpoint="tx_by_id", txid=txid, resolve=resolve)
    request_logger.info("Transaction request received")
    return await service.get_tx_view(txid, resolve=resolve)
