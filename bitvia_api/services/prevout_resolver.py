"""Previous-output resolution for transaction inputs."""

from typing import Any, Dict, List, Optional

import structlog

from bitvia_api.core.errors import ValidationError
from bitvia_api.core.indexer_adapter import IndexerAdapter
from bitvia_api.core.rpc_client import BitcoinRPCClient
from bitvia_api.models.blockchain import PrevoutReference, ResolvedInputs, ResolvedPrevout
from bitvia_api.services.request_cache import RequestCache
from bitvia_api.utils.bitcoin import is_valid_txid, node_vout_address, render_address, vout_value_sats

logger = structlog.get_logger(__name__)

DEFAULT_RESOLVE = 20
RESOLVE_CAP = 100


def resolve_count(requested: Optional[int], total_inputs: int,
                  default: int = DEFAULT_RESOLVE, cap: int = RESOLVE_CAP) -> int:
    """Number of inputs to resolve: min(requested, cap, total_inputs)."""
    n = default if requested is None else requested
    return max(0, min(n, cap, total_inputs))


def references_from_node_vin(vin: List[Dict[str, Any]], limit: int) -> List[PrevoutReference]:
    """Prevout references of the first ``limit`` node-decoded inputs, coinbase skipped."""
    refs = []
    for entry in vin[:limit]:
        txid = entry.get('txid')
        vout = entry.get('vout')
        if txid is None or vout is None or 'coinbase' in entry:
            continue
        refs.append(PrevoutReference(txid=txid, vout=vout))
    return refs


def _validate_reference(ref: PrevoutReference) -> None:
    if not is_valid_txid(ref.txid):
        raise ValidationError(f"bad prev txid {ref.txid!r}")
    if not isinstance(ref.vout, int) or isinstance(ref.vout, bool) or ref.vout < 0:
        raise ValidationError(f"bad prevout index {ref.vout!r} for {ref.txid}")


class PrevoutResolver:
    """Resolves prevout references through the node or the indexer.

    Both strategies return the resolved list in reference order plus an input
    total that is None unless at least one reference resolved. Any failure
    aborts the whole resolution.
    """

    def __init__(self, rpc: BitcoinRPCClient, indexer: IndexerAdapter):
        self.rpc = rpc
        self.indexer = indexer
        self.logger = logger.bind(component="prevout_resolver")

    async def resolve(self, refs: List[PrevoutReference], source: str,
                      cache: Optional[RequestCache] = None) -> ResolvedInputs:
        """Resolve with the named strategy (``node`` or ``indexer``)."""
        if source == "node":
            return await self.resolve_via_node(refs)
        return await self.resolve_via_indexer(refs, cache or RequestCache(self.indexer))

    async def resolve_via_node(self, refs: List[PrevoutReference]) -> ResolvedInputs:
        """One batched getrawtransaction for the distinct previous transactions."""
        for ref in refs:
            _validate_reference(ref)
        if not refs:
            return ResolvedInputs.from_prevouts([])

        txids = list(dict.fromkeys(ref.txid for ref in refs))
        fetched = await self.rpc.get_raw_transactions(txids)
        by_txid = dict(zip(txids, fetched))

        prevouts = []
        for ref in refs:
            vouts = by_txid[ref.txid].get('vout') or []
            if ref.vout >= len(vouts):
                raise ValidationError(f"prevout index {ref.vout} out of range for {ref.txid}")
            vout = vouts[ref.vout]
            prevouts.append(ResolvedPrevout(
                txid=ref.txid,
                vout=ref.vout,
                value=vout_value_sats(vout),
                address=node_vout_address(vout),
            ))

        self.logger.debug("Resolved prevouts via node", inputs=len(prevouts), transactions=len(txids))
        return ResolvedInputs.from_prevouts(prevouts)

    async def resolve_via_indexer(self, refs: List[PrevoutReference], cache: RequestCache) -> ResolvedInputs:
        """Fetch each previous transaction through the request cache."""
        prevouts = []
        for ref in refs:
            prevouts.append(await self.resolve_one(ref, cache))

        self.logger.debug("Resolved prevouts via indexer",
                          inputs=len(prevouts),
                          cache_hits=cache.hits,
                          cache_misses=cache.misses)
        return ResolvedInputs.from_prevouts(prevouts)

    async def resolve_one(self, ref: PrevoutReference, cache: RequestCache) -> ResolvedPrevout:
        """Resolve a single reference through the indexer and the cache."""
        _validate_reference(ref)
        prev_tx = await cache.transaction(ref.txid)
        if ref.vout >= len(prev_tx.outputs):
            raise ValidationError(f"prevout index {ref.vout} out of range for {ref.txid}")
        output = prev_tx.outputs[ref.vout]
        return ResolvedPrevout(
            txid=ref.txid,
            vout=ref.vout,
            value=output.value,
            address=render_address(output.script_pubkey),
            script_pubkey=output.script_pubkey,
        )
