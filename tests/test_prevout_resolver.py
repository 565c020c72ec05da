"""Tests for prevout resolution and the transaction view."""

import asyncio

import pytest

from bitvia_api.core.errors import NotFoundError, ValidationError
from bitvia_api.models.blockchain import PrevoutReference
from bitvia_api.services.prevout_resolver import PrevoutResolver, references_from_node_vin, resolve_count
from bitvia_api.services.request_cache import RequestCache
from bitvia_api.services.tx_service import TxService
from bitvia_api.utils.bitcoin import NO_ADDRESS

from conftest import (
    GENESIS_ADDRESS, GENESIS_SCRIPT, OP_RETURN_SCRIPT, P2WPKH_ADDRESS, P2WPKH_SCRIPT,
    make_tx, node_vout, txid_for
)


def _node_tx(txid: str, vin, vout, vsize=200):
    return {
        "txid": txid,
        "size": vsize,
        "vsize": vsize,
        "weight": vsize * 4,
        "confirmations": 3,
        "blockhash": "00" * 32,
        "vin": vin,
        "vout": vout,
    }


class TestResolveCount:
    """How many inputs get resolved."""

    @pytest.mark.parametrize("requested,total,expected", [
        (None, 5, 5),
        (None, 150, 20),
        (500, 30, 30),
        (500, 150, 100),
        (0, 10, 0),
        (3, 10, 3),
    ])
    def test_resolve_count(self, requested, total, expected):
        assert resolve_count(requested, total) == expected

    def test_coinbase_inputs_skipped(self):
        vin = [{"coinbase": "03a0bb0d", "sequence": 4294967295}]
        assert references_from_node_vin(vin, 20) == []

    def test_only_first_n_inputs(self):
        vin = [{"txid": txid_for(i), "vout": i} for i in range(10)]
        refs = references_from_node_vin(vin, 3)
        assert refs == [PrevoutReference(txid=txid_for(i), vout=i) for i in range(3)]


class TestResolveViaIndexer:
    """Indexer strategy with the request cache."""

    def test_resolves_in_order_with_total(self, mock_rpc, fake_indexer):
        fake_indexer.add_tx(make_tx(txid_for(1), [(txid_for(100), 0)],
                                    [(10_000, GENESIS_SCRIPT), (20_000, OP_RETURN_SCRIPT)]))
        fake_indexer.add_tx(make_tx(txid_for(2), [(txid_for(101), 0)], [(5_000, P2WPKH_SCRIPT)]))
        resolver = PrevoutResolver(mock_rpc, fake_indexer)

        refs = [PrevoutReference(txid_for(2), 0), PrevoutReference(txid_for(1), 1), PrevoutReference(txid_for(1), 0)]
        resolved = asyncio.run(resolver.resolve(refs, "indexer"))

        assert [(p.txid, p.vout) for p in resolved.prevouts] == [(r.txid, r.vout) for r in refs]
        assert [p.address for p in resolved.prevouts] == [P2WPKH_ADDRESS, NO_ADDRESS, GENESIS_ADDRESS]
        assert resolved.total == 35_000

    def test_each_previous_transaction_fetched_once(self, mock_rpc, fake_indexer):
        fake_indexer.add_tx(make_tx(txid_for(1), [(txid_for(100), 0)],
                                    [(1_000, GENESIS_SCRIPT)] * 30))
        resolver = PrevoutResolver(mock_rpc, fake_indexer)
        cache = RequestCache(fake_indexer)

        refs = [PrevoutReference(txid_for(1), i) for i in range(30)]
        resolved = asyncio.run(resolver.resolve(refs, "indexer", cache))

        assert resolved.total == 30_000
        assert fake_indexer.calls["get_transaction"] == 1
        assert cache.misses == 1
        assert cache.hits == 29

    def test_shared_reference_resolves_identically(self, mock_rpc, fake_indexer):
        fake_indexer.add_tx(make_tx(txid_for(1), [(txid_for(100), 0)], [(4_000, P2WPKH_SCRIPT)]))
        resolver = PrevoutResolver(mock_rpc, fake_indexer)
        cache = RequestCache(fake_indexer)

        refs = [PrevoutReference(txid_for(1), 0)] * 2
        resolved = asyncio.run(resolver.resolve(refs, "indexer", cache))

        assert resolved.prevouts[0] == resolved.prevouts[1]
        assert resolved.prevouts[0].address == P2WPKH_ADDRESS
        assert resolved.total == 8_000
        assert cache.misses == 1
        assert cache.hits == 1

    def test_empty_references_have_unknown_total(self, mock_rpc, fake_indexer):
        resolver = PrevoutResolver(mock_rpc, fake_indexer)
        resolved = asyncio.run(resolver.resolve([], "indexer"))
        assert resolved.prevouts == []
        assert resolved.total is None

    def test_out_of_range_index(self, mock_rpc, fake_indexer):
        fake_indexer.add_tx(make_tx(txid_for(1), [(txid_for(100), 0)], [(1_000, GENESIS_SCRIPT)]))
        resolver = PrevoutResolver(mock_rpc, fake_indexer)

        with pytest.raises(ValidationError):
            asyncio.run(resolver.resolve([PrevoutReference(txid_for(1), 5)], "indexer"))

    def test_bad_reference_txid(self, mock_rpc, fake_indexer):
        resolver = PrevoutResolver(mock_rpc, fake_indexer)

        with pytest.raises(ValidationError):
            asyncio.run(resolver.resolve([PrevoutReference("xyz", 0)], "indexer"))

    def test_unknown_previous_transaction_fails_resolution(self, mock_rpc, fake_indexer):
        resolver = PrevoutResolver(mock_rpc, fake_indexer)

        with pytest.raises(NotFoundError):
            asyncio.run(resolver.resolve([PrevoutReference(txid_for(404), 0)], "indexer"))


class TestResolveViaNode:
    """Node strategy with one batched call."""

    def test_single_batch_for_distinct_txids(self, mock_rpc, fake_indexer):
        mock_rpc.get_raw_transactions.return_value = [
            {"txid": txid_for(1), "vout": [node_vout(0.5, GENESIS_ADDRESS), node_vout(0.25, n=1)]},
            {"txid": txid_for(2), "vout": [{"value": 1.0, "scriptPubKey": {"addresses": [P2WPKH_ADDRESS]}}]},
        ]
        resolver = PrevoutResolver(mock_rpc, fake_indexer)

        refs = [PrevoutReference(txid_for(1), 0), PrevoutReference(txid_for(2), 0), PrevoutReference(txid_for(1), 1)]
        resolved = asyncio.run(resolver.resolve(refs, "node"))

        mock_rpc.get_raw_transactions.assert_awaited_once_with([txid_for(1), txid_for(2)])
        assert [p.address for p in resolved.prevouts] == [GENESIS_ADDRESS, P2WPKH_ADDRESS, NO_ADDRESS]
        assert [p.value for p in resolved.prevouts] == [50_000_000, 100_000_000, 25_000_000]
        assert resolved.total == 175_000_000
        assert fake_indexer.calls == {}

    def test_out_of_range_index(self, mock_rpc, fake_indexer):
        mock_rpc.get_raw_transactions.return_value = [{"txid": txid_for(1), "vout": [node_vout(0.5)]}]
        resolver = PrevoutResolver(mock_rpc, fake_indexer)

        with pytest.raises(ValidationError):
            asyncio.run(resolver.resolve([PrevoutReference(txid_for(1), 3)], "node"))

    def test_no_references_no_call(self, mock_rpc, fake_indexer):
        resolver = PrevoutResolver(mock_rpc, fake_indexer)
        resolved = asyncio.run(resolver.resolve([], "node"))

        assert resolved.total is None
        mock_rpc.get_raw_transactions.assert_not_awaited()


class TestTxService:
    """Transaction view assembly."""

    def test_fee_and_feerate(self, context, mock_rpc, fake_indexer):
        fake_indexer.add_tx(make_tx(txid_for(1), [(txid_for(100), 0)], [(100_000, GENESIS_SCRIPT)]))
        mock_rpc.get_raw_transaction.return_value = _node_tx(
            txid_for(50),
            vin=[{"txid": txid_for(1), "vout": 0}],
            vout=[node_vout(0.0009, P2WPKH_ADDRESS)],
            vsize=100,
        )

        view = asyncio.run(TxService(context).get_tx_view(txid_for(50)))

        assert view.inputs_total_btc == 0.001
        assert view.outputs_total_btc == 0.0009
        assert view.fee_btc == pytest.approx(0.0001)
        assert view.feerate_sat_vb == 100.0
        assert view.inputs_resolved[0].address == GENESIS_ADDRESS
        assert view.total_inputs == 1
        assert view.resolved_inputs == 1
        assert view.more_inputs is False
        assert view.is_coinbase is False

    def test_coinbase_has_no_fee(self, context, mock_rpc):
        mock_rpc.get_raw_transaction.return_value = _node_tx(
            txid_for(60),
            vin=[{"coinbase": "03a0bb0d", "sequence": 4294967295}],
            vout=[node_vout(3.125, GENESIS_ADDRESS)],
        )

        view = asyncio.run(TxService(context).get_tx_view(txid_for(60)))

        assert view.is_coinbase is True
        assert view.inputs_resolved == []
        assert view.inputs_total_btc is None
        assert view.fee_btc is None
        assert view.feerate_sat_vb is None
        assert view.outputs_total_btc == 3.125

    @pytest.mark.parametrize("inputs,expected_resolved,expected_more", [
        (30, 30, False),
        (150, 100, True),
    ])
    def test_resolve_cap(self, context, mock_rpc, fake_indexer, inputs, expected_resolved, expected_more):
        fake_indexer.add_tx(make_tx(txid_for(1), [(txid_for(100), 0)], [(1_000, GENESIS_SCRIPT)] * inputs))
        mock_rpc.get_raw_transaction.return_value = _node_tx(
            txid_for(70),
            vin=[{"txid": txid_for(1), "vout": i} for i in range(inputs)],
            vout=[node_vout(0.00001)],
        )

        view = asyncio.run(TxService(context).get_tx_view(txid_for(70), resolve=500))

        assert view.total_inputs == inputs
        assert view.resolved_inputs == expected_resolved
        assert len(view.inputs_resolved) == expected_resolved
        assert view.more_inputs is expected_more
        assert fake_indexer.calls["get_transaction"] == 1

    def test_node_source(self, context, mock_rpc, fake_indexer):
        settings = context.settings.model_copy(update={"prevout_source": "node"})
        context = type(context)(settings=settings, rpc=mock_rpc, indexer=fake_indexer)
        mock_rpc.get_raw_transaction.return_value = _node_tx(
            txid_for(80),
            vin=[{"txid": txid_for(1), "vout": 0}],
            vout=[node_vout(0.5)],
        )
        mock_rpc.get_raw_transactions.return_value = [{"txid": txid_for(1), "vout": [node_vout(0.6, GENESIS_ADDRESS)]}]

        view = asyncio.run(TxService(context).get_tx_view(txid_for(80)))

        assert view.fee_btc == pytest.approx(0.1)
        assert fake_indexer.calls == {}

    def test_malformed_txid(self, context, mock_rpc):
        with pytest.raises(ValidationError):
            asyncio.run(TxService(context).get_tx_view("not-a-txid"))
        mock_rpc.get_raw_transaction.assert_not_awaited()
