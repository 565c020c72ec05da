"""Tests for the Bitcoin Core JSON-RPC client."""

import asyncio
import json

import httpx
import pytest

from bitvia_api.core.errors import MissingResultError, NotFoundError, ProtocolError, TransportError
from bitvia_api.core.rpc_client import BitcoinRPCClient


def _client(settings, handler) -> BitcoinRPCClient:
    return BitcoinRPCClient(settings, transport=httpx.MockTransport(handler))


def _run(client: BitcoinRPCClient, coro):
    async def runner():
        try:
            return await coro
        finally:
            await client.close()
    return asyncio.run(runner())


class TestSingleCalls:
    """call() and its error classification."""

    def test_result_returned(self, settings):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            seen["auth"] = request.headers.get("authorization")
            return httpx.Response(200, json={"result": 840_000, "error": None, "id": "bitvia"})

        client = _client(settings, handler)
        result = _run(client, client.call("getblockcount"))

        assert result == 840_000
        assert seen["body"]["method"] == "getblockcount"
        assert seen["body"]["params"] == []
        assert seen["auth"].startswith("Basic ")

    def test_not_found_code(self, settings):
        def handler(request):
            return httpx.Response(500, json={
                "result": None,
                "error": {"code": -5, "message": "No such mempool or blockchain transaction"},
                "id": "bitvia"
            })

        client = _client(settings, handler)
        with pytest.raises(NotFoundError) as exc_info:
            _run(client, client.get_raw_transaction("ab" * 32))
        assert exc_info.value.rpc_code == -5

    def test_other_error_is_protocol_error(self, settings):
        def handler(request):
            return httpx.Response(500, json={
                "result": None,
                "error": {"code": -8, "message": "Block height out of range"},
                "id": "bitvia"
            })

        client = _client(settings, handler)
        with pytest.raises(ProtocolError) as exc_info:
            _run(client, client.get_block_hash(10_000_000))
        assert not isinstance(exc_info.value, NotFoundError)
        assert exc_info.value.rpc_code == -8

    def test_null_result_is_missing(self, settings):
        def handler(request):
            return httpx.Response(200, json={"result": None, "error": None, "id": "bitvia"})

        client = _client(settings, handler)
        with pytest.raises(MissingResultError):
            _run(client, client.get_mempool_info())

    def test_connection_failure_is_transport_error(self, settings):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = _client(settings, handler)
        with pytest.raises(TransportError):
            _run(client, client.get_blockchain_info())

    def test_non_json_body_is_transport_error(self, settings):
        def handler(request):
            return httpx.Response(401, text="Unauthorized")

        client = _client(settings, handler)
        with pytest.raises(TransportError):
            _run(client, client.get_blockchain_info())


class TestBatchCalls:
    """batch_call() ordering and atomicity."""

    def test_results_follow_request_order(self, settings):
        def handler(request):
            batch = json.loads(request.content)
            replies = [
                {"id": item["id"], "result": {"txid": item["params"][0]}, "error": None}
                for item in batch
            ]
            return httpx.Response(200, json=list(reversed(replies)))

        client = _client(settings, handler)
        txids = ["aa" * 32, "bb" * 32, "cc" * 32]
        results = _run(client, client.get_raw_transactions(txids))

        assert [r["txid"] for r in results] == txids

    def test_one_error_fails_the_batch(self, settings):
        def handler(request):
            batch = json.loads(request.content)
            replies = [{"id": item["id"], "result": {"ok": True}, "error": None} for item in batch]
            replies[1] = {"id": batch[1]["id"], "result": None,
                          "error": {"code": -5, "message": "No such mempool or blockchain transaction"}}
            return httpx.Response(200, json=replies)

        client = _client(settings, handler)
        with pytest.raises(NotFoundError):
            _run(client, client.get_raw_transactions(["aa" * 32, "bb" * 32]))

    def test_missing_item_fails_the_batch(self, settings):
        def handler(request):
            batch = json.loads(request.content)
            return httpx.Response(200, json=[{"id": batch[0]["id"], "result": 1, "error": None}])

        client = _client(settings, handler)
        with pytest.raises(MissingResultError):
            _run(client, client.batch_call("getblockhash", [[1], [2]]))

    def test_empty_batch_sends_nothing(self, settings):
        def handler(request):
            raise AssertionError("no request expected")

        client = _client(settings, handler)
        assert _run(client, client.batch_call("getblockhash", [])) == []
