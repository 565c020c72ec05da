"""Address balance and history aggregation over the indexer."""

from dataclasses import dataclass
from typing import Optional

import structlog

from bitvia_api.core.context import AppContext
from bitvia_api.models.blockchain import HistoryEntry
from bitvia_api.schemas.models import classify_direction
from bitvia_api.schemas.responses import (
    AddrBalance, AddrHistoryItem, AddrHistoryResp, AddrUtxo
)
from bitvia_api.services.prevout_resolver import PrevoutResolver
from bitvia_api.services.request_cache import RequestCache
from bitvia_api.utils.bitcoin import address_to_script, sats_to_btc, script_to_address
from bitvia_api.utils.pagination import clamp_page

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class AddressFlow:
    """Satoshis an address received from and spent into one transaction."""
    value_in: int
    value_out: int

    @property
    def delta(self) -> int:
        return self.value_out - self.value_in


class AddressService:
    """Answers the address balance and address history endpoints."""

    def __init__(self, context: AppContext):
        self.settings = context.settings
        self.indexer = context.indexer
        self.resolver = PrevoutResolver(context.rpc, context.indexer)
        self.logger = logger.bind(service="address")

    async def get_balance(self, address: str, details: bool = False) -> AddrBalance:
        """Balance of an address, optionally with its UTXO list."""
        script = address_to_script(address)
        canonical = script_to_address(script) or address

        balance = await self.indexer.get_balance(script)
        raw_total = balance.confirmed + balance.unconfirmed
        if raw_total < 0:
            # Clamped for display; kept visible because it points at an
            # inconsistent indexer view.
            self.logger.warning("Negative combined balance clamped to zero",
                                address=canonical,
                                confirmed=balance.confirmed,
                                unconfirmed=balance.unconfirmed)
        total = max(0, raw_total)

        utxos = []
        if details:
            script_hex = script.hex()
            for u in await self.indexer.list_unspent(script):
                utxos.append(AddrUtxo(
                    txid=u.txid,
                    vout=u.vout,
                    amount_btc=sats_to_btc(u.value),
                    height=u.height if u.height != 0 else None,
                    script_pub_key=script_hex,
                ))

        return AddrBalance(
            address=canonical,
            total_btc=sats_to_btc(total),
            utxo_count=len(utxos),
            utxos=utxos if details else None,
        )

    async def get_history(self, address: str, offset: Optional[int] = None,
                          limit: Optional[int] = None) -> AddrHistoryResp:
        """
        One page of an address's history, most recent first.

        The page is sliced from the reference list before any transaction is
        fetched, so the work done grows with the page size only.
        """
        script = address_to_script(address)
        canonical = script_to_address(script) or address

        history = await self.indexer.get_history(script)
        page = clamp_page(len(history), offset, limit, self.settings.history_default_limit)

        cache = RequestCache(self.indexer)
        items = []
        for entry in page.slice(history):
            items.append(await self._enrich(entry, script, cache))

        self.logger.info("Address history page built",
                         address=canonical,
                         total=len(history),
                         offset=page.offset,
                         limit=page.limit,
                         items=len(items),
                         cache_hits=cache.hits,
                         cache_misses=cache.misses)

        return AddrHistoryResp(
            address=canonical,
            total=len(history),
            offset=page.offset,
            limit=page.limit,
            items=items,
        )

    async def address_flow(self, txid: str, script: bytes, cache: RequestCache) -> AddressFlow:
        """Sum the outputs paying ``script`` and the inputs spending from it."""
        tx = await cache.transaction(txid)

        value_out = sum(o.value for o in tx.outputs if o.script_pubkey == script)

        value_in = 0
        for txin in tx.inputs:
            ref = txin.prevout
            if ref is None:
                continue
            prevout = await self.resolver.resolve_one(ref, cache)
            if prevout.script_pubkey == script:
                value_in += prevout.value

        return AddressFlow(value_in=value_in, value_out=value_out)

    async def _enrich(self, entry: HistoryEntry, script: bytes, cache: RequestCache) -> AddrHistoryItem:
        flow = await self.address_flow(entry.txid, script, cache)
        timestamp = await cache.header_time(entry.height) if entry.height > 0 else None

        return AddrHistoryItem(
            txid=entry.txid,
            height=entry.height,
            timestamp=timestamp,
            direction=classify_direction(flow.value_in, flow.value_out),
            delta_btc=sats_to_btc(flow.delta),
            value_in_btc=sats_to_btc(flow.value_in),
            value_out_btc=sats_to_btc(flow.value_out),
        )
