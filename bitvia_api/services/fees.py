"""Fee and feerate arithmetic over resolved inputs and outputs."""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

from bitvia_api.utils.bitcoin import vout_value_sats


@dataclass(frozen=True)
class FeeSummary:
    """Totals in satoshis; None means unknown, never zero."""
    inputs_total: Optional[int]
    outputs_total: int
    fee: Optional[int]
    feerate: Optional[float]


def outputs_total(vouts: Iterable[Dict[str, Any]]) -> int:
    """Sum of output values; a malformed value counts as 0 for that output only."""
    return sum(vout_value_sats(vout) for vout in vouts)


def calculate_fee(inputs_total: Optional[int], outputs_sum: int) -> Optional[int]:
    """Fee, or None when the input total is unknown."""
    if inputs_total is None:
        return None
    return max(0, inputs_total - outputs_sum)


def calculate_feerate(fee: Optional[int], vsize: Optional[int]) -> Optional[float]:
    """Feerate in sat/vB, or None without a fee or a positive virtual size."""
    if fee is None or not vsize or vsize <= 0:
        return None
    return fee / vsize


def summarize_fees(inputs_total: Optional[int], vouts: Iterable[Dict[str, Any]],
                   vsize: Optional[int]) -> FeeSummary:
    """Compute output total, fee and feerate for a transaction."""
    out_total = outputs_total(vouts)
    fee = calculate_fee(inputs_total, out_total)
    return FeeSummary(
        inputs_total=inputs_total,
        outputs_total=out_total,
        fee=fee,
        feerate=calculate_feerate(fee, vsize),
    )
