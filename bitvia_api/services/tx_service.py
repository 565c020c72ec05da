"""Transaction view assembly."""

from typing import Optional

import structlog

from bitvia_api.core.context import AppContext
from bitvia_api.core.errors import ValidationError
from bitvia_api.schemas.responses import PrevoutResolved, TxView
from bitvia_api.services.fees import summarize_fees
from bitvia_api.services.prevout_resolver import PrevoutResolver, references_from_node_vin, resolve_count
from bitvia_api.services.request_cache import RequestCache
from bitvia_api.utils.bitcoin import is_valid_txid, sats_to_btc, tx_is_coinbase

logger = structlog.get_logger(__name__)


class TxService:
    """Builds TxView responses from the node and the prevout resolver."""

    def __init__(self, context: AppContext):
        self.settings = context.settings
        self.rpc = context.rpc
        self.indexer = context.indexer
        self.resolver = PrevoutResolver(context.rpc, context.indexer)
        self.logger = logger.bind(service="tx")

    async def get_tx_view(self, txid: str, resolve: Optional[int] = None) -> TxView:
        """
        Fetch a transaction and resolve up to ``resolve`` of its inputs.

        The main transaction always comes from the node so confirmations,
        block hash and virtual size are authoritative. Previous outputs come
        from the source named by ``prevout_source``.
        """
        if not is_valid_txid(txid):
            raise ValidationError(f"malformed txid: {txid}")

        tx = await self.rpc.get_raw_transaction(txid)
        vin = tx.get('vin') or []
        vout = tx.get('vout') or []

        total_inputs = len(vin)
        resolve_n = resolve_count(
            resolve, total_inputs,
            default=self.settings.default_resolve,
            cap=self.settings.resolve_cap
        )
        refs = references_from_node_vin(vin, resolve_n)

        cache = RequestCache(self.indexer)
        resolved = await self.resolver.resolve(refs, self.settings.prevout_source, cache)
        fees = summarize_fees(resolved.total, vout, tx.get('vsize'))

        self.logger.info("Transaction view built",
                         txid=txid,
                         total_inputs=total_inputs,
                         resolved_inputs=resolve_n,
                         source=self.settings.prevout_source,
                         fee_known=fees.fee is not None)

        return TxView(
            txid=tx.get('txid', txid),
            size=tx.get('size'),
            vsize=tx.get('vsize'),
            weight=tx.get('weight'),
            confirmations=tx.get('confirmations'),
            blockhash=tx.get('blockhash'),
            is_coinbase=tx_is_coinbase(tx),
            inputs_resolved=[
                PrevoutResolved(
                    txid=p.txid,
                    vout=p.vout,
                    value_btc=sats_to_btc(p.value),
                    address=p.address
                )
                for p in resolved.prevouts
            ],
            inputs_total_btc=sats_to_btc(fees.inputs_total) if fees.inputs_total is not None else None,
            outputs_total_btc=sats_to_btc(fees.outputs_total),
            fee_btc=sats_to_btc(fees.fee) if fees.fee is not None else None,
            feerate_sat_vb=fees.feerate,
            total_inputs=total_inputs,
            resolved_inputs=resolve_n,
            more_inputs=total_inputs > resolve_n,
            vout=vout,
        )
