"""Pytest configuration and fixtures for Bitvia explorer tests."""

from typing import Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from bitvia_api.config.settings import APISettings
from bitvia_api.core.context import AppContext
from bitvia_api.core.errors import NotFoundError
from bitvia_api.core.indexer_adapter import IndexerAdapter
from bitvia_api.models.blockchain import (
    COINBASE_PREV_TXID, COINBASE_PREV_VOUT, BlockHeader, HistoryEntry,
    RawTransaction, ScriptBalance, TxInput, TxOutput, UnspentOutput
)


# ============================================================================
# ADDRESS VECTORS
# ============================================================================

GENESIS_ADDRESS = "1A1zP1eP5QGefi2DMPTfTL5SLmv7DivfNa"
GENESIS_SCRIPT = bytes.fromhex("76a91462e907b15cbf27d5425399ebf6f0fb50ebb88f1888ac")

P2WPKH_ADDRESS = "bc1qw508d6qejxtdg4y5r3zarvary0c5xw7kv8f3t4"
P2WPKH_SCRIPT = bytes.fromhex("0014751e76e8199196d454941c45d1b3a323f1433bd6")

P2TR_ADDRESS = "bc1p0xlxvlhemja6c4dqv22uapctqupfhlxm9h8z3k2e72q4k9hcz7vqzk5jj0"
P2TR_SCRIPT = bytes.fromhex("512079be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798")

OP_RETURN_SCRIPT = bytes.fromhex("6a0568656c6c6f")

# Genesis block header
GENESIS_HEADER_HEX = (
    "0100000000000000000000000000000000000000000000000000000000000000"
    "000000003ba3edfd7a7b12b27ac72c3e67768f617fc81bc3888a51323a9fb8aa"
    "4b1e5e4a29ab5f49ffff001d1dac2b7c"
)


def txid_for(n: int) -> str:
    """Deterministic 64-hex txid."""
    return f"{n:064x}"


def make_tx(txid: str, inputs: List[tuple], outputs: List[tuple]) -> RawTransaction:
    """RawTransaction from (prev_txid, vout) inputs and (value, script) outputs."""
    return RawTransaction(
        txid=txid,
        version=2,
        inputs=[TxInput(prev_txid=t, prev_vout=v) for t, v in inputs],
        outputs=[TxOutput(value=value, script_pubkey=script) for value, script in outputs],
        size=200,
        weight=800,
    )


def make_coinbase(txid: str, outputs: List[tuple]) -> RawTransaction:
    return make_tx(txid, [(COINBASE_PREV_TXID, COINBASE_PREV_VOUT)], outputs)


def make_header(timestamp: int) -> BlockHeader:
    return BlockHeader(
        version=0x20000000,
        prev_hash="00" * 32,
        merkle_root="11" * 32,
        timestamp=timestamp,
        bits=0x1703a30c,
        nonce=0,
    )


def node_vout(value_btc, address: Optional[str] = None, n: int = 0) -> Dict:
    """Output as decoded by getrawtransaction verbose."""
    spk = {"hex": "", "type": "witness_v0_keyhash"}
    if address is not None:
        spk["address"] = address
    return {"value": value_btc, "n": n, "scriptPubKey": spk}


def serialize_tx(inputs: List[tuple], outputs: List[tuple], witnesses: Optional[List[List[bytes]]] = None,
                 version: int = 1, lock_time: int = 0) -> bytes:
    """Wire serialization of a transaction (segwit when ``witnesses`` is given)."""

    def varint(n: int) -> bytes:
        if n < 0xfd:
            return bytes([n])
        if n <= 0xffff:
            return b"\xfd" + n.to_bytes(2, "little")
        return b"\xfe" + n.to_bytes(4, "little")

    raw = version.to_bytes(4, "little")
    if witnesses is not None:
        raw += b"\x00\x01"
    raw += varint(len(inputs))
    for prev_txid, vout in inputs:
        raw += bytes.fromhex(prev_txid)[::-1] + vout.to_bytes(4, "little")
        raw += varint(0) + (0xFFFFFFFF).to_bytes(4, "little")
    raw += varint(len(outputs))
    for value, script in outputs:
        raw += value.to_bytes(8, "little") + varint(len(script)) + script
    if witnesses is not None:
        for stack in witnesses:
            raw += varint(len(stack))
            for item in stack:
                raw += varint(len(item)) + item
    raw += lock_time.to_bytes(4, "little")
    return raw


# ============================================================================
# FAKE INDEXER
# ============================================================================

class FakeIndexer(IndexerAdapter):
    """In-memory indexer recording how often each operation runs."""

    def __init__(self):
        self.transactions: Dict[str, RawTransaction] = {}
        self.histories: Dict[bytes, List[HistoryEntry]] = {}
        self.balances: Dict[bytes, ScriptBalance] = {}
        self.unspent: Dict[bytes, List[UnspentOutput]] = {}
        self.headers: Dict[int, BlockHeader] = {}
        self.calls: Dict[str, int] = {}
        self.closed = False

    def _count(self, name: str):
        self.calls[name] = self.calls.get(name, 0) + 1

    def add_tx(self, tx: RawTransaction) -> RawTransaction:
        self.transactions[tx.txid] = tx
        return tx

    async def get_history(self, script: bytes) -> List[HistoryEntry]:
        self._count("get_history")
        return list(self.histories.get(script, []))

    async def get_balance(self, script: bytes) -> ScriptBalance:
        self._count("get_balance")
        return self.balances.get(script, ScriptBalance(confirmed=0, unconfirmed=0))

    async def list_unspent(self, script: bytes) -> List[UnspentOutput]:
        self._count("list_unspent")
        return list(self.unspent.get(script, []))

    async def get_transaction(self, txid: str) -> RawTransaction:
        self._count("get_transaction")
        if txid not in self.transactions:
            raise NotFoundError(f"blockchain.transaction.get: unknown {txid}", rpc_code=-5, upstream="indexer")
        return self.transactions[txid]

    async def get_block_header(self, height: int) -> BlockHeader:
        self._count("get_block_header")
        return self.headers.get(height, make_header(1_600_000_000 + height * 600))

    async def close(self):
        self.closed = True


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def settings():
    """Settings isolated from the environment."""
    return APISettings(
        _env_file=None,
        rpc_url="http://node.test:8332",
        rpc_user="user",
        rpc_password="pass",
        electrs_addr="electrs.test:50001",
        enable_metrics=False,
        access_log=False,
        log_level="WARNING",
    )


@pytest.fixture
def fake_indexer():
    return FakeIndexer()


@pytest.fixture
def mock_rpc():
    """RPC client double; every helper is an AsyncMock."""
    rpc = MagicMock()
    for name in ("call", "batch_call", "get_blockchain_info", "get_mempool_info", "get_block_hash",
                 "get_block_header", "get_block", "get_raw_transaction", "get_raw_transactions",
                 "get_network_hashps", "close"):
        setattr(rpc, name, AsyncMock())
    return rpc


@pytest.fixture
def context(settings, mock_rpc, fake_indexer):
    return AppContext(settings=settings, rpc=mock_rpc, indexer=fake_indexer)
