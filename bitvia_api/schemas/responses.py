"""Response schemas for the Bitvia explorer API.

Optional fields are always serialized (as null) so that "unknown" stays
distinguishable from zero for the presentation layer.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from bitvia_api.schemas.models import Direction


class MempoolInfo(BaseModel):
    """Subset of getmempoolinfo."""

    size: int = Field(..., description="Transactions in the mempool")
    bytes: int = Field(..., description="Sum of transaction virtual sizes")
    usage: int = Field(..., description="Memory usage in bytes")
    fullrbf: bool = Field(default=False, description="Full replace-by-fee enabled")
    unbroadcastcount: int = Field(default=0, description="Transactions not yet broadcast")
    mempoolminfee: float = Field(default=0.0, description="Minimum fee rate in BTC/kvB")


class NetworkSummary(BaseModel):
    """Response for /api/network."""

    height: int
    difficulty: float
    hashrate_ghps: float

    avg_block_interval_sec: float
    blocks_into_epoch: int
    blocks_to_next_adjust: int
    est_diff_change_pct: float

    current_subsidy_btc: float
    est_new_btc_per_day: float
    est_circulating_btc: float

    tip_time: int


class BlockHashResp(BaseModel):
    """Response for /api/blockhash/{height}."""

    height: int
    hash: str


class BlockView(BaseModel):
    """Block summary with a page of txids."""

    hash: str
    height: int
    time: int
    mediantime: Optional[int] = None
    size: int
    weight: Optional[int] = None
    n_tx: int
    prev: Optional[str] = None
    next: Optional[str] = None

    txids: List[str]
    more_tx: bool

    total_tx: int
    offset: int
    limit: int


class PrevoutResolved(BaseModel):
    """A resolved previous output."""

    txid: str
    vout: int
    value_btc: float
    address: str


class TxView(BaseModel):
    """Transaction with resolved inputs, totals and fee."""

    txid: str
    size: Optional[int] = None
    vsize: Optional[int] = None
    weight: Optional[int] = None
    confirmations: Optional[int] = None
    blockhash: Optional[str] = None
    is_coinbase: bool

    inputs_resolved: List[PrevoutResolved]
    inputs_total_btc: Optional[float] = Field(None, description="Null when no input resolved")
    outputs_total_btc: float
    fee_btc: Optional[float] = Field(None, description="Null when the input total is unknown")
    feerate_sat_vb: Optional[float] = Field(None, description="Null without a fee or a virtual size")

    total_inputs: int
    resolved_inputs: int
    more_inputs: bool

    vout: List[Dict[str, Any]]


class AddrUtxo(BaseModel):
    """Unspent output of an address."""

    txid: str
    vout: int
    amount_btc: float
    height: Optional[int] = Field(None, description="Null while unconfirmed")
    script_pub_key: str


class AddrBalance(BaseModel):
    """Response for /api/addr/{address}."""

    address: str
    total_btc: float
    utxo_count: int
    utxos: Optional[List[AddrUtxo]] = Field(None, description="Present only with ?details")


class AddrHistoryItem(BaseModel):
    """One transaction in an address history page."""

    txid: str
    height: int = Field(..., description="<= 0 while unconfirmed")
    timestamp: Optional[int] = Field(None, description="Block time, null while unconfirmed")
    direction: Direction
    delta_btc: float
    value_in_btc: float
    value_out_btc: float


class AddrHistoryResp(BaseModel):
    """Response for /api/addr/{address}/history."""

    address: str
    total: int
    offset: int
    limit: int
    items: List[AddrHistoryItem]


class HealthResponse(BaseModel):
    """Health endpoint response."""

    status: str = Field(..., description="Overall service status")
    timestamp: datetime = Field(..., description="Health check timestamp")
    version: str = Field(..., description="API version")


class ErrorDetail(BaseModel):
    """Error body."""

    code: str
    message: str
    timestamp: datetime
    request_id: str = "unknown"


class ErrorResponse(BaseModel):
    """Error envelope returned for failed requests."""

    error: ErrorDetail
