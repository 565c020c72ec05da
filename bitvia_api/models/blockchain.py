"""Blockchain data models shared by the upstream clients and services."""

from dataclasses import dataclass, field
from typing import List, Optional

COINBASE_PREV_TXID = "00" * 32
COINBASE_PREV_VOUT = 0xFFFFFFFF


@dataclass(frozen=True)
class TxInput:
    """Transaction input as deserialized from raw bytes."""
    prev_txid: str
    prev_vout: int
    script_sig: bytes = b""
    sequence: int = 0xFFFFFFFF

    @property
    def is_coinbase(self) -> bool:
        return self.prev_txid == COINBASE_PREV_TXID and self.prev_vout == COINBASE_PREV_VOUT

    @property
    def prevout(self) -> Optional["PrevoutReference"]:
        """Reference to the spent output, None for coinbase inputs."""
        if self.is_coinbase:
            return None
        return PrevoutReference(txid=self.prev_txid, vout=self.prev_vout)


@dataclass(frozen=True)
class TxOutput:
    """Transaction output: value in satoshis and the locking script."""
    value: int
    script_pubkey: bytes


@dataclass(frozen=True)
class RawTransaction:
    """Transaction deserialized from the indexer's raw hex."""
    txid: str
    version: int
    inputs: List[TxInput] = field(default_factory=list)
    outputs: List[TxOutput] = field(default_factory=list)
    lock_time: int = 0
    size: int = 0
    weight: int = 0


@dataclass(frozen=True)
class BlockHeader:
    """80-byte block header."""
    version: int
    prev_hash: str
    merkle_root: str
    timestamp: int
    bits: int
    nonce: int


@dataclass(frozen=True)
class HistoryEntry:
    """One entry of a script's history; height <= 0 means unconfirmed."""
    txid: str
    height: int


@dataclass(frozen=True)
class ScriptBalance:
    """Confirmed and unconfirmed balance of a script in satoshis."""
    confirmed: int
    unconfirmed: int


@dataclass(frozen=True)
class UnspentOutput:
    """Unspent output paying a script; height 0 means unconfirmed."""
    txid: str
    vout: int
    value: int
    height: int


@dataclass(frozen=True)
class PrevoutReference:
    """(previous txid, output index) spent by an input."""
    txid: str
    vout: int


@dataclass(frozen=True)
class ResolvedPrevout:
    """Materialized previous output."""
    txid: str
    vout: int
    value: int
    address: str
    script_pubkey: Optional[bytes] = None


@dataclass(frozen=True)
class ResolvedInputs:
    """Resolved previous outputs and their aggregate value.

    ``total`` is None when no input resolved, which is distinct from a
    resolved total of zero.
    """
    prevouts: List[ResolvedPrevout]
    total: Optional[int]

    @classmethod
    def from_prevouts(cls, prevouts: List[ResolvedPrevout]) -> "ResolvedInputs":
        total = sum(p.value for p in prevouts) if prevouts else None
        return cls(prevouts=prevouts, total=total)
