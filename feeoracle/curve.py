"""Fee suggestion curve.

The idea is close to the old gas price oracle: take a low percentile of
recent prices. The base fee is a far less noisy signal than individual
transaction prices though, so it is sampled over an exponentially weighted
window whose width follows the caller's time preference. Price swings seen
over a past period are taken as the chance of similar levels being
retested over a similar future period.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Union

from feeoracle.normalizer import normalize_base_fees
from feeoracle.rewards import collect_rewards, suggest_priority_fee
from feeoracle.sampler import predict_min_base_fee
from feeoracle.settings import OracleSettings
from feeoracle.types import FeeCurve, FeeSuggestion, NormalizedBaseFees, RewardPool

log = logging.getLogger(__name__)

BlockId = Union[int, str]


def time_factors(settings: Optional[OracleSettings] = None) -> List[int]:
    """max_time_factor, max_time_factor / 2, ..., 1 (most patient first)."""
    s = settings or OracleSettings()
    out: List[int] = []
    tf = int(s.max_time_factor)
    while tf >= 1:
        out.append(tf)
        tf //= 2
    return out


def build_curve(
    normalized: NormalizedBaseFees,
    rewards: RewardPool,
    settings: Optional[OracleSettings] = None,
) -> FeeCurve:
    s = settings or OracleSettings()
    result: List[FeeSuggestion] = []
    max_base_fee = 0.0
    for tf in time_factors(s):
        priority_fee = suggest_priority_fee(rewards, tf, s)
        base_fee = predict_min_base_fee(normalized, tf - 1, s)
        tip = float(priority_fee)
        if base_fee > max_base_fee:
            max_base_fee = base_fee
        else:
            # A narrower window giving a lower base fee than a wider one means
            # we are probably in a price dip. Keep the higher base fee and
            # offer extra tip to get in while the dip lasts.
            tip += (max_base_fee - base_fee) * s.extra_priority_fee_ratio
            base_fee = max_base_fee
        result.append(
            FeeSuggestion(
                time_factor=tf,
                max_fee_per_gas=base_fee + priority_fee,
                max_priority_fee_per_gas=tip,
            )
        )
    result.reverse()
    return tuple(result)


async def suggest_fees_at(
    source: Any,
    head: BlockId = "latest",
    settings: Optional[OracleSettings] = None,
) -> FeeCurve:
    """Fee suggestions as of ``head`` ("latest", "pending" or a block number).

    ``source`` is anything with an async ``fetch_fee_history(block_count,
    last_block, reward_percentiles=None)`` returning a FeeHistory.
    """
    s = settings or OracleSettings()
    # No reward percentiles: header-only, cheap even for a light client.
    history = await source.fetch_fee_history(s.history_block_count, head)
    normalized = normalize_base_fees(history.base_fee_per_gas, history.gas_used_ratio, s)
    rewards = await collect_rewards(source, history.oldest_block, history.gas_used_ratio, s)
    log.debug(
        "fee window head=%s oldest=%s blocks=%s reward_samples=%s",
        head,
        history.oldest_block,
        history.block_count,
        len(rewards),
    )
    curve = build_curve(normalized, rewards, s)
    for item in curve:
        log.debug(
            "tf=%s max_fee=%.0f max_priority_fee=%.0f",
            item.time_factor,
            item.max_fee_per_gas,
            item.max_priority_fee_per_gas,
        )
    return curve


async def suggest_fees(source: Any, settings: Optional[OracleSettings] = None) -> FeeCurve:
    return await suggest_fees_at(source, "latest", settings)
