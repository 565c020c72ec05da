"""Bitcoin Core JSON-RPC client for the explorer API."""

import time
from typing import Any, Dict, List, Optional

import httpx
import structlog

from bitvia_api.config.settings import APISettings
from bitvia_api.core.errors import (
    MissingResultError, NotFoundError, ProtocolError, TransportError
)
from bitvia_api.utils.metrics import metrics

logger = structlog.get_logger(__name__)

UPSTREAM = "node"

# RPC_INVALID_ADDRESS_OR_KEY: unknown transaction or block
RPC_NOT_FOUND_CODES = frozenset({-5})


def _raise_for_error(method: str, error: Dict[str, Any]) -> None:
    """Turn a JSON-RPC error object into a typed exception."""
    code = error.get('code', -1) if isinstance(error, dict) else -1
    message = error.get('message', 'Unknown RPC error') if isinstance(error, dict) else str(error)
    exc_class = NotFoundError if code in RPC_NOT_FOUND_CODES else ProtocolError
    raise exc_class(f"{method}: RPC error {code}: {message}", rpc_code=code, upstream=UPSTREAM)


class BitcoinRPCClient:
    """Async Bitcoin Core JSON-RPC client supporting single and batched calls.

    No retries are attempted; every failure surfaces to the caller as a
    TransportError, ProtocolError (NotFoundError for code -5) or
    MissingResultError.
    """

    def __init__(self, settings: APISettings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.rpc_url = settings.rpc_url
        self.timeout = settings.rpc_timeout
        self.client = httpx.AsyncClient(
            auth=(settings.rpc_user, settings.rpc_password),
            timeout=httpx.Timeout(settings.rpc_timeout),
            headers={
                'Content-Type': 'application/json',
                'User-Agent': f'bitvia-api/{settings.api_version}'
            },
            transport=transport,
        )
        self.logger = logger.bind(component="rpc_client")

        self.logger.info("Bitcoin RPC client initialized", url=self.rpc_url)

    async def _post(self, method: str, payload: Any) -> Any:
        """POST a request body and return the decoded JSON."""
        start_time = time.monotonic()
        try:
            response = await self.client.post(self.rpc_url, json=payload)
        except httpx.HTTPError as e:
            metrics.upstream_calls.labels(upstream=UPSTREAM, method=method, outcome="transport_error").inc()
            self.logger.warning("RPC request failed", method=method, error=str(e))
            raise TransportError(f"{method}: rpc http send failed: {e}", upstream=UPSTREAM) from e
        finally:
            metrics.upstream_duration.labels(upstream=UPSTREAM, method=method).observe(
                time.monotonic() - start_time
            )

        # Core reports RPC errors with HTTP 404/500 and a JSON body, so the
        # status code alone does not decide failure.
        try:
            return response.json()
        except ValueError as e:
            metrics.upstream_calls.labels(upstream=UPSTREAM, method=method, outcome="transport_error").inc()
            raise TransportError(
                f"{method}: rpc parse failed (status {response.status_code})", upstream=UPSTREAM
            ) from e

    async def call(self, method: str, params: Optional[List[Any]] = None) -> Any:
        """Issue a single JSON-RPC call and return its result."""
        payload = {
            "jsonrpc": "1.0",
            "id": "bitvia",
            "method": method,
            "params": params if params is not None else []
        }

        data = await self._post(method, payload)
        if not isinstance(data, dict):
            metrics.upstream_calls.labels(upstream=UPSTREAM, method=method, outcome="missing_result").inc()
            raise MissingResultError(f"{method}: rpc response is not an object", upstream=UPSTREAM)

        if data.get('error') is not None:
            metrics.upstream_calls.labels(upstream=UPSTREAM, method=method, outcome="error").inc()
            _raise_for_error(method, data['error'])

        if data.get('result') is None:
            metrics.upstream_calls.labels(upstream=UPSTREAM, method=method, outcome="missing_result").inc()
            raise MissingResultError(f"{method}: rpc response missing result", upstream=UPSTREAM)

        metrics.upstream_calls.labels(upstream=UPSTREAM, method=method, outcome="ok").inc()
        return data['result']

    async def batch_call(self, method: str, params_list: List[List[Any]]) -> List[Any]:
        """Issue one batched request; results follow the order of ``params_list``.

        The batch is atomic: any item carrying an error aborts the whole call.
        """
        if not params_list:
            return []

        batch = [
            {
                "jsonrpc": "1.0",
                "id": f"b{i}",
                "method": method,
                "params": params
            }
            for i, params in enumerate(params_list)
        ]

        data = await self._post(method, batch)
        if not isinstance(data, list):
            # Core answers a malformed batch with a single error object
            if isinstance(data, dict) and data.get('error') is not None:
                metrics.upstream_calls.labels(upstream=UPSTREAM, method=method, outcome="error").inc()
                _raise_for_error(method, data['error'])
            metrics.upstream_calls.labels(upstream=UPSTREAM, method=method, outcome="missing_result").inc()
            raise MissingResultError(f"{method}: rpc batch response is not a list", upstream=UPSTREAM)

        by_id = {item.get('id'): item for item in data if isinstance(item, dict)}

        results = []
        for request in batch:
            item = by_id.get(request['id'])
            if item is None:
                metrics.upstream_calls.labels(upstream=UPSTREAM, method=method, outcome="missing_result").inc()
                raise MissingResultError(
                    f"{method}: rpc batch response missing item {request['id']}", upstream=UPSTREAM
                )
            if item.get('error') is not None:
                metrics.upstream_calls.labels(upstream=UPSTREAM, method=method, outcome="error").inc()
                _raise_for_error(method, item['error'])
            if item.get('result') is None:
                metrics.upstream_calls.labels(upstream=UPSTREAM, method=method, outcome="missing_result").inc()
                raise MissingResultError(
                    f"{method}: rpc batch item {request['id']} missing result", upstream=UPSTREAM
                )
            results.append(item['result'])

        metrics.upstream_calls.labels(upstream=UPSTREAM, method=method, outcome="ok").inc()
        self.logger.debug("RPC batch completed", method=method, items=len(results))
        return results

    async def get_blockchain_info(self) -> Dict[str, Any]:
        """Get blockchain information."""
        return await self.call("getblockchaininfo")

    async def get_mempool_info(self) -> Dict[str, Any]:
        """Get mempool information."""
        return await self.call("getmempoolinfo")

    async def get_block_hash(self, height: int) -> str:
        """Get block hash by height."""
        return await self.call("getblockhash", [height])

    async def get_block_header(self, block_hash: str) -> Dict[str, Any]:
        """Get decoded block header by hash."""
        return await self.call("getblockheader", [block_hash, True])

    async def get_block(self, block_hash: str, verbosity: int = 1) -> Dict[str, Any]:
        """
        Get block data by hash.

        Args:
            block_hash: Block hash
            verbosity: 1=json with txids, 2=json with tx details
        """
        return await self.call("getblock", [block_hash, verbosity])

    async def get_raw_transaction(self, txid: str) -> Dict[str, Any]:
        """Get a decoded transaction by id."""
        return await self.call("getrawtransaction", [txid, True])

    async def get_raw_transactions(self, txids: List[str]) -> List[Dict[str, Any]]:
        """Get several decoded transactions in one batch."""
        return await self.batch_call("getrawtransaction", [[txid, True] for txid in txids])

    async def get_network_hashps(self) -> float:
        """Get the estimated network hashrate in H/s."""
        return await self.call("getnetworkhashps")

    async def close(self):
        """Close the RPC session."""
        await self.client.aclose()
        self.logger.info("RPC client session closed")
