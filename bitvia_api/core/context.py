"""Process-wide application context."""

from dataclasses import dataclass

import structlog

from bitvia_api.config.settings import APISettings
from bitvia_api.core.indexer_adapter import IndexerAdapter, ThreadedIndexerAdapter
from bitvia_api.core.rpc_client import BitcoinRPCClient

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class AppContext:
    """Upstream clients and configuration, built once at startup.

    Nothing request-specific lives here; request caches are created per call.
    """
    settings: APISettings
    rpc: BitcoinRPCClient
    indexer: IndexerAdapter

    @classmethod
    def from_settings(cls, settings: APISettings) -> "AppContext":
        return cls(
            settings=settings,
            rpc=BitcoinRPCClient(settings),
            indexer=ThreadedIndexerAdapter(settings),
        )

    async def close(self):
        """Close upstream clients."""
        await self.rpc.close()
        await self.indexer.close()
        logger.info("Application context closed")
