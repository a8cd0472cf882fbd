from __future__ import annotations

import logging
import math
from typing import Any, List, Optional, Sequence

from feeoracle.settings import OracleSettings
from feeoracle.types import RewardPool

log = logging.getLogger(__name__)


def _usable(ratio: float, settings: OracleSettings) -> bool:
    # empty blocks carry no price signal, full ones are not representative
    return 0 < ratio <= settings.full_block_ratio


def max_block_count(
    gas_used_ratio: Sequence[float],
    ptr: int,
    need_blocks: int,
    settings: Optional[OracleSettings] = None,
) -> int:
    """Number of consecutive usable blocks ending at ``ptr`` (scanning back)."""
    s = settings or OracleSettings()
    count = 0
    while need_blocks > 0 and ptr >= 0:
        if not _usable(gas_used_ratio[ptr], s):
            break
        ptr -= 1
        need_blocks -= 1
        count += 1
    return count


async def collect_rewards(
    source: Any,
    oldest_block: int,
    gas_used_ratio: Sequence[float],
    settings: Optional[OracleSettings] = None,
) -> RewardPool:
    """Sorted low-percentile rewards of the last few usable blocks.

    Reward-bearing fee history queries are expensive, so one query is issued
    per run of consecutive usable blocks and only ``reward_blocks`` blocks
    are sampled in total.
    """
    s = settings or OracleSettings()
    percentiles = s.reward_percentiles

    ptr = len(gas_used_ratio) - 1
    need_blocks = int(s.reward_blocks)
    rewards: List[int] = []
    while need_blocks > 0 and ptr >= 0:
        block_count = max_block_count(gas_used_ratio, ptr, need_blocks, s)
        if block_count > 0:
            history = await source.fetch_fee_history(block_count, oldest_block + ptr, percentiles)
            rows = history.reward or ()
            for row in rows:
                rewards.extend(int(r) for r in row if r > 0)
            if len(rows) < block_count:
                log.debug("reward history ended early at block %s (%s/%s rows)", oldest_block + ptr, len(rows), block_count)
                break
            need_blocks -= block_count
        ptr -= block_count + 1

    rewards.sort()
    return tuple(rewards)


def suggest_priority_fee(
    rewards: RewardPool,
    time_factor: float,
    settings: Optional[OracleSettings] = None,
) -> float:
    """Priority fee that is usually enough for blocks that are not full.

    Urgent suggestions (time_factor near 1) take a high rank of the pool,
    patient ones approach ``min_block_percentile``.
    """
    s = settings or OracleSettings()
    if not rewards:
        return s.fallback_priority_fee
    pct = s.min_block_percentile + (s.max_block_percentile - s.min_block_percentile) / time_factor
    rank = int(math.floor((len(rewards) - 1) * pct / 100.0))
    return rewards[max(0, min(len(rewards) - 1, rank))]
