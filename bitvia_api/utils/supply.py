"""Supply and difficulty-epoch estimates. Pure arithmetic, no I/O."""

from dataclasses import dataclass

from bitvia_api.utils.bitcoin import SATOSHIS_PER_BTC

INITIAL_SUBSIDY_SATS = 50 * SATOSHIS_PER_BTC
HALVING_INTERVAL = 210_000
MAX_HALVINGS = 64

EPOCH_LENGTH = 2016
TARGET_SPACING_SEC = 600.0
MAX_PROJECTED_CHANGE_PCT = 50.0
BLOCKS_PER_DAY = 144


def mined_supply_sats(height: int) -> int:
    """Satoshis issued by the first ``height`` blocks after genesis."""
    remaining = max(0, height)
    subsidy = INITIAL_SUBSIDY_SATS
    total = 0

    for _ in range(MAX_HALVINGS):
        if remaining == 0 or subsidy == 0:
            break
        blocks = min(remaining, HALVING_INTERVAL)
        total += blocks * subsidy
        remaining -= blocks
        subsidy >>= 1

    return total


def mined_supply_btc(height: int) -> float:
    """Total mined supply up to ``height`` in BTC (genesis subsidy excluded)."""
    return mined_supply_sats(height) / SATOSHIS_PER_BTC


def current_subsidy_sats(height: int) -> int:
    """Block subsidy at ``height`` in satoshis."""
    halvings = max(0, height) // HALVING_INTERVAL
    if halvings >= MAX_HALVINGS:
        return 0
    return INITIAL_SUBSIDY_SATS >> halvings


def current_subsidy_btc(height: int) -> float:
    """Block subsidy at ``height`` in BTC."""
    return current_subsidy_sats(height) / SATOSHIS_PER_BTC


@dataclass(frozen=True)
class EpochProjection:
    """Progress through the current difficulty epoch."""
    blocks_into_epoch: int
    blocks_to_next_adjust: int
    avg_block_interval_sec: float
    est_diff_change_pct: float


def epoch_start_height(height: int) -> int:
    """First block height of the epoch containing ``height``."""
    return height - (height % EPOCH_LENGTH)


def project_difficulty_epoch(height: int, epoch_start_time: int, tip_time: int) -> EpochProjection:
    """Project the next difficulty adjustment from the spacing observed so far.

    With no blocks elapsed in the epoch the target spacing and a zero change
    are reported. The projection is clamped to +/-50%.
    """
    blocks_into_epoch = height % EPOCH_LENGTH
    blocks_to_next_adjust = EPOCH_LENGTH - blocks_into_epoch

    if blocks_into_epoch == 0:
        return EpochProjection(
            blocks_into_epoch=0,
            blocks_to_next_adjust=blocks_to_next_adjust,
            avg_block_interval_sec=TARGET_SPACING_SEC,
            est_diff_change_pct=0.0,
        )

    elapsed = tip_time - epoch_start_time
    avg_interval = elapsed / blocks_into_epoch if elapsed > 0 else TARGET_SPACING_SEC

    ratio = TARGET_SPACING_SEC / avg_interval
    change_pct = max(-MAX_PROJECTED_CHANGE_PCT, min(MAX_PROJECTED_CHANGE_PCT, (ratio - 1.0) * 100.0))

    return EpochProjection(
        blocks_into_epoch=blocks_into_epoch,
        blocks_to_next_adjust=blocks_to_next_adjust,
        avg_block_interval_sec=avg_interval,
        est_diff_change_pct=change_pct,
    )
