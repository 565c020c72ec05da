"""Blocking Electrum protocol client (newline-delimited JSON-RPC over TCP)."""

import json
import socket
from typing import Any, Dict, List, Optional

import structlog

from bitvia_api.core.errors import (
    MissingResultError, NotFoundError, ProtocolError, TransportError
)

logger = structlog.get_logger(__name__)

UPSTREAM = "indexer"
CLIENT_NAME = "bitvia-api"
PROTOCOL_VERSION = "1.4"

# Node error code for unknown transactions, either top level or forwarded
# by the indexer inside the error's data object.
NOT_FOUND_CODE = -5


def classify_error(method: str, error: Any) -> ProtocolError:
    """Build a typed exception from an Electrum error object."""
    if not isinstance(error, dict):
        return ProtocolError(f"{method}: {error}", upstream=UPSTREAM)

    code = error.get('code')
    message = error.get('message', 'Unknown indexer error')
    data = error.get('data')
    nested_code = data.get('code') if isinstance(data, dict) else None

    if NOT_FOUND_CODE in (code, nested_code):
        return NotFoundError(f"{method}: {message}", rpc_code=NOT_FOUND_CODE, upstream=UPSTREAM, data=data)
    return ProtocolError(f"{method}: indexer error {code}: {message}", rpc_code=code, upstream=UPSTREAM, data=data)


class ElectrumClient:
    """Synchronous Electrum protocol client.

    One instance owns one TCP connection. Every request blocks the calling
    thread until a response line arrives or the socket timeout expires, so it
    must only run on worker threads.
    """

    def __init__(self, host: str, port: int, timeout: float = 20.0):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.request_id = 0
        self._sock: Optional[socket.socket] = None
        self._file = None

    def connect(self) -> "ElectrumClient":
        """Open the connection and negotiate the protocol version."""
        try:
            self._sock = socket.create_connection((self.host, self.port), timeout=self.timeout)
            self._file = self._sock.makefile("rwb")
        except OSError as e:
            self.close()
            raise TransportError(f"indexer connect to {self.host}:{self.port} failed: {e}", upstream=UPSTREAM) from e

        try:
            self.request("server.version", [CLIENT_NAME, PROTOCOL_VERSION])
        except Exception:
            self.close()
            raise
        return self

    def close(self):
        """Close the connection."""
        for resource in (self._file, self._sock):
            if resource is not None:
                try:
                    resource.close()
                except OSError:
                    logger.debug("Error closing indexer connection", host=self.host, port=self.port)
        self._file = None
        self._sock = None

    def __enter__(self) -> "ElectrumClient":
        return self.connect()

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def request(self, method: str, params: Optional[List[Any]] = None) -> Any:
        """Send one request and wait for its response."""
        if self._file is None:
            raise TransportError("indexer connection is not open", upstream=UPSTREAM)

        self.request_id += 1
        request_id = self.request_id
        payload = {
            "jsonrpc": "2.0",
            "id": request_id,
            "method": method,
            "params": params or []
        }

        try:
            self._file.write(json.dumps(payload).encode() + b"\n")
            self._file.flush()
            response = self._read_response(request_id)
        except OSError as e:
            raise TransportError(f"{method}: indexer request failed: {e}", upstream=UPSTREAM) from e

        if response.get('error') is not None:
            raise classify_error(method, response['error'])
        if 'result' not in response:
            raise MissingResultError(f"{method}: indexer response missing result", upstream=UPSTREAM)
        return response['result']

    def _read_response(self, request_id: int) -> Dict[str, Any]:
        """Read lines until the response for ``request_id`` arrives.

        Notifications (no id) are skipped.
        """
        while True:
            line = self._file.readline()
            if not line:
                raise TransportError("indexer closed the connection", upstream=UPSTREAM)
            try:
                message = json.loads(line)
            except ValueError as e:
                raise ProtocolError(f"indexer sent invalid JSON: {e}", upstream=UPSTREAM) from e
            if not isinstance(message, dict):
                raise ProtocolError("indexer sent a non-object message", upstream=UPSTREAM)
            if message.get('id') == request_id:
                return message

    # Electrum protocol methods

    def scripthash_get_history(self, scripthash: str) -> List[Dict[str, Any]]:
        return self.request("blockchain.scripthash.get_history", [scripthash])

    def scripthash_get_balance(self, scripthash: str) -> Dict[str, Any]:
        return self.request("blockchain.scripthash.get_balance", [scripthash])

    def scripthash_listunspent(self, scripthash: str) -> List[Dict[str, Any]]:
        return self.request("blockchain.scripthash.listunspent", [scripthash])

    def transaction_get(self, txid: str) -> str:
        """Raw transaction hex."""
        return self.request("blockchain.transaction.get", [txid, False])

    def block_header(self, height: int) -> str:
        """Raw 80-byte header hex."""
        return self.request("blockchain.block.header", [height])
