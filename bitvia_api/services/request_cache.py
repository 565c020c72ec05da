"""Request-scoped cache of indexer transactions and header timestamps."""

from typing import Dict

import structlog

from bitvia_api.core.indexer_adapter import IndexerAdapter
from bitvia_api.models.blockchain import RawTransaction
from bitvia_api.utils.metrics import metrics

logger = structlog.get_logger(__name__)


class RequestCache:
    """txid -> transaction and height -> timestamp maps for one request.

    Create one per request and let it go out of scope when the response is
    built. Instances are never shared between requests.
    """

    def __init__(self, indexer: IndexerAdapter):
        self.indexer = indexer
        self.transactions: Dict[str, RawTransaction] = {}
        self.header_times: Dict[int, int] = {}
        self.hits = 0
        self.misses = 0

    async def transaction(self, txid: str) -> RawTransaction:
        """Transaction by id, fetched from the indexer at most once."""
        tx = self.transactions.get(txid)
        if tx is not None:
            self.hits += 1
            metrics.cache_hits.labels(cache_type="transaction").inc()
            return tx

        self.misses += 1
        metrics.cache_misses.labels(cache_type="transaction").inc()
        tx = await self.indexer.get_transaction(txid)
        self.transactions[txid] = tx
        return tx

    async def header_time(self, height: int) -> int:
        """Block timestamp at a height, fetched from the indexer at most once."""
        timestamp = self.header_times.get(height)
        if timestamp is not None:
            self.hits += 1
            metrics.cache_hits.labels(cache_type="header").inc()
            return timestamp

        self.misses += 1
        metrics.cache_misses.labels(cache_type="header").inc()
        header = await self.indexer.get_block_header(height)
        self.header_times[height] = header.timestamp
        return header.timestamp
