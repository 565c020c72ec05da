"""Async access to the Electrum indexer.

``IndexerAdapter`` is the capability interface used by the resolution
services. ``ThreadedIndexerAdapter`` runs the blocking ``ElectrumClient`` on a
bounded thread pool so the event loop never blocks on indexer I/O.
"""

import asyncio
import functools
import time
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional

import structlog

from bitvia_api.config.settings import APISettings
from bitvia_api.core.electrum_client import ElectrumClient
from bitvia_api.core.errors import ExplorerError, ProtocolError, TransportError, WorkerFailure
from bitvia_api.models.blockchain import (
    BlockHeader, HistoryEntry, RawTransaction, ScriptBalance, UnspentOutput
)
from bitvia_api.utils.bitcoin import script_hash
from bitvia_api.utils.metrics import metrics
from bitvia_api.utils.transaction import TxDecodeError, parse_block_header_hex, parse_transaction_hex

logger = structlog.get_logger(__name__)

UPSTREAM = "indexer"


class IndexerAdapter(ABC):
    """The five indexer operations the explorer relies on."""

    @abstractmethod
    async def get_history(self, script: bytes) -> List[HistoryEntry]:
        """History of a script, most recent first (unconfirmed entries lead)."""

    @abstractmethod
    async def get_balance(self, script: bytes) -> ScriptBalance:
        """Confirmed and unconfirmed balance of a script."""

    @abstractmethod
    async def list_unspent(self, script: bytes) -> List[UnspentOutput]:
        """Unspent outputs paying a script."""

    @abstractmethod
    async def get_transaction(self, txid: str) -> RawTransaction:
        """Whole transaction by id."""

    @abstractmethod
    async def get_block_header(self, height: int) -> BlockHeader:
        """Block header at a height."""

    async def close(self):
        """Release adapter resources."""


def _history_from_wire(entries: List[Dict[str, Any]]) -> List[HistoryEntry]:
    try:
        history = [HistoryEntry(txid=e['tx_hash'], height=int(e['height'])) for e in entries]
    except (KeyError, TypeError, ValueError) as e:
        raise ProtocolError(f"malformed history entry: {e}", upstream=UPSTREAM) from e
    # The protocol lists oldest first with mempool entries last
    history.reverse()
    return history


def _balance_from_wire(balance: Dict[str, Any]) -> ScriptBalance:
    try:
        return ScriptBalance(confirmed=int(balance['confirmed']), unconfirmed=int(balance['unconfirmed']))
    except (KeyError, TypeError, ValueError) as e:
        raise ProtocolError(f"malformed balance: {e}", upstream=UPSTREAM) from e


def _unspent_from_wire(utxos: List[Dict[str, Any]]) -> List[UnspentOutput]:
    try:
        return [
            UnspentOutput(txid=u['tx_hash'], vout=int(u['tx_pos']), value=int(u['value']), height=int(u['height']))
            for u in utxos
        ]
    except (KeyError, TypeError, ValueError) as e:
        raise ProtocolError(f"malformed unspent entry: {e}", upstream=UPSTREAM) from e


def _fetch_history(client: ElectrumClient, script: bytes) -> List[HistoryEntry]:
    return _history_from_wire(client.scripthash_get_history(script_hash(script)))


def _fetch_balance(client: ElectrumClient, script: bytes) -> ScriptBalance:
    return _balance_from_wire(client.scripthash_get_balance(script_hash(script)))


def _fetch_unspent(client: ElectrumClient, script: bytes) -> List[UnspentOutput]:
    return _unspent_from_wire(client.scripthash_listunspent(script_hash(script)))


def _fetch_transaction(client: ElectrumClient, txid: str) -> RawTransaction:
    raw_hex = client.transaction_get(txid)
    try:
        return parse_transaction_hex(raw_hex, txid)
    except TxDecodeError as e:
        raise ProtocolError(f"indexer returned an undecodable transaction {txid}: {e}", upstream=UPSTREAM) from e


def _fetch_block_header(client: ElectrumClient, height: int) -> BlockHeader:
    header_hex = client.block_header(height)
    try:
        return parse_block_header_hex(header_hex)
    except TxDecodeError as e:
        raise ProtocolError(f"indexer returned an undecodable header at {height}: {e}", upstream=UPSTREAM) from e


class ThreadedIndexerAdapter(IndexerAdapter):
    """Runs blocking Electrum calls on a bounded worker pool.

    Each operation opens its own connection. Typed explorer errors raised in
    the worker propagate unchanged; anything else becomes a WorkerFailure, and
    a worker exceeding ``indexer_timeout`` becomes a TransportError.
    """

    def __init__(self, settings: APISettings,
                 client_factory: Optional[Callable[[], ElectrumClient]] = None,
                 executor: Optional[ThreadPoolExecutor] = None):
        host, port = settings.electrs_endpoint
        self.timeout = settings.indexer_timeout
        self.client_factory = client_factory or functools.partial(ElectrumClient, host, port, self.timeout)
        self.executor = executor or ThreadPoolExecutor(
            max_workers=settings.indexer_workers,
            thread_name_prefix="indexer"
        )
        self.logger = logger.bind(component="indexer_adapter", electrs=settings.electrs_addr)

        self.logger.info("Indexer adapter initialized", workers=settings.indexer_workers)

    def _with_client(self, operation: Callable, *args):
        """Worker-side body: connect, run one operation, disconnect."""
        with self.client_factory() as client:
            return operation(client, *args)

    async def _run(self, method: str, operation: Callable, *args):
        """Run an operation on the pool and join it back into the event loop."""
        loop = asyncio.get_running_loop()
        start_time = time.monotonic()
        outcome = "ok"

        try:
            future = loop.run_in_executor(self.executor, functools.partial(self._with_client, operation, *args))
        except RuntimeError as e:
            metrics.upstream_calls.labels(upstream=UPSTREAM, method=method, outcome="worker_failure").inc()
            raise WorkerFailure(f"{method}: indexer worker pool refused the task: {e}") from e

        metrics.indexer_inflight.inc()
        try:
            return await asyncio.wait_for(future, timeout=self.timeout)
        except asyncio.TimeoutError as e:
            outcome = "timeout"
            self.logger.warning("Indexer call timed out", method=method, timeout=self.timeout)
            raise TransportError(f"{method}: indexer call timed out after {self.timeout}s", upstream=UPSTREAM) from e
        except ExplorerError as e:
            outcome = type(e).__name__
            raise
        except Exception as e:
            outcome = "worker_failure"
            self.logger.error("Indexer worker failed", method=method, error=str(e), exc_info=True)
            raise WorkerFailure(f"{method}: indexer task failed: {e}") from e
        finally:
            metrics.indexer_inflight.dec()
            metrics.upstream_calls.labels(upstream=UPSTREAM, method=method, outcome=outcome).inc()
            metrics.upstream_duration.labels(upstream=UPSTREAM, method=method).observe(
                time.monotonic() - start_time
            )

    async def get_history(self, script: bytes) -> List[HistoryEntry]:
        return await self._run("get_history", _fetch_history, script)

    async def get_balance(self, script: bytes) -> ScriptBalance:
        return await self._run("get_balance", _fetch_balance, script)

    async def list_unspent(self, script: bytes) -> List[UnspentOutput]:
        return await self._run("list_unspent", _fetch_unspent, script)

    async def get_transaction(self, txid: str) -> RawTransaction:
        return await self._run("get_transaction", _fetch_transaction, txid)

    async def get_block_header(self, height: int) -> BlockHeader:
        return await self._run("get_block_header", _fetch_block_header, height)

    async def close(self):
        """Stop accepting work; running calls finish on their own."""
        self.executor.shutdown(wait=False)
        self.logger.info("Indexer adapter closed")
