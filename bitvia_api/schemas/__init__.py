"""Pydantic schemas for the Bitvia explorer API."""

from bitvia_api.schemas.responses import (
    MempoolInfo,
    NetworkSummary,
    BlockHashResp,
    BlockView,
    PrevoutResolved,
    TxView,
    AddrUtxo,
    AddrBalance,
    AddrHistoryItem,
    AddrHistoryResp,
    HealthResponse,
    ErrorResponse
)

from bitvia_api.schemas.models import Direction, classify_direction

__all__ = [
    "MempoolInfo",
    "NetworkSummary",
    "BlockHashResp",
    "BlockView",
    "PrevoutResolved",
    "TxView",
    "AddrUtxo",
    "AddrBalance",
    "AddrHistoryItem",
    "AddrHistoryResp",
    "HealthResponse",
    "ErrorResponse",
    "Direction",
    "classify_direction"
]
