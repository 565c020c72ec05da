"""Chain-level views: mempool, network summary and blocks."""

from typing import Optional

import structlog

from bitvia_api.core.context import AppContext
from bitvia_api.core.errors import ValidationError
from bitvia_api.schemas.responses import BlockHashResp, BlockView, MempoolInfo, NetworkSummary
from bitvia_api.utils.bitcoin import is_valid_txid
from bitvia_api.utils.pagination import clamp_page
from bitvia_api.utils.supply import (
    BLOCKS_PER_DAY, current_subsidy_btc, epoch_start_height, mined_supply_btc,
    project_difficulty_epoch
)

logger = structlog.get_logger(__name__)


class ChainService:
    """Node-backed chain summaries."""

    def __init__(self, context: AppContext):
        self.settings = context.settings
        self.rpc = context.rpc
        self.logger = logger.bind(service="chain")

    async def get_mempool_info(self) -> MempoolInfo:
        """Mempool size and fee floor."""
        info = await self.rpc.get_mempool_info()
        return MempoolInfo(**{k: v for k, v in info.items() if k in MempoolInfo.model_fields})

    async def _header_time(self, height: int) -> int:
        block_hash = await self.rpc.get_block_hash(height)
        header = await self.rpc.get_block_header(block_hash)
        return int(header['time'])

    async def get_network_summary(self) -> NetworkSummary:
        """Height, difficulty, epoch projection, hashrate and supply."""
        chain_info = await self.rpc.get_blockchain_info()
        height = int(chain_info['blocks'])
        difficulty = float(chain_info['difficulty'])

        tip_time = await self._header_time(height)

        start_height = epoch_start_height(height)
        start_time = tip_time if start_height == height else await self._header_time(start_height)
        projection = project_difficulty_epoch(height, start_time, tip_time)

        hashps = await self.rpc.get_network_hashps()

        subsidy = current_subsidy_btc(height)

        self.logger.debug("Network summary built", height=height)

        return NetworkSummary(
            height=height,
            difficulty=difficulty,
            hashrate_ghps=float(hashps) / 1e9,
            avg_block_interval_sec=projection.avg_block_interval_sec,
            blocks_into_epoch=projection.blocks_into_epoch,
            blocks_to_next_adjust=projection.blocks_to_next_adjust,
            est_diff_change_pct=projection.est_diff_change_pct,
            current_subsidy_btc=subsidy,
            est_new_btc_per_day=subsidy * BLOCKS_PER_DAY,
            est_circulating_btc=mined_supply_btc(height),
            tip_time=tip_time,
        )

    async def get_block_hash(self, height: int) -> BlockHashResp:
        """Hash of the block at a height."""
        if height < 0:
            raise ValidationError(f"negative block height: {height}")
        block_hash = await self.rpc.get_block_hash(height)
        return BlockHashResp(height=height, hash=block_hash)

    async def get_block(self, block_hash: str, offset: Optional[int] = None,
                        limit: Optional[int] = None) -> BlockView:
        """Block summary with one page of its txids."""
        if not is_valid_txid(block_hash):
            raise ValidationError(f"malformed block hash: {block_hash}")

        block = await self.rpc.get_block(block_hash, verbosity=1)
        txids = block.get('tx') or []

        total = len(txids)
        page = clamp_page(total, offset, limit, self.settings.block_default_limit)

        return BlockView(
            hash=block['hash'],
            height=block['height'],
            time=block['time'],
            mediantime=block.get('mediantime'),
            size=block['size'],
            weight=block.get('weight'),
            n_tx=block.get('nTx', total),
            prev=block.get('previousblockhash'),
            next=block.get('nextblockhash'),
            txids=page.slice(txids),
            more_tx=page.end < total,
            total_tx=total,
            offset=page.offset,
            limit=page.limit,
        )
