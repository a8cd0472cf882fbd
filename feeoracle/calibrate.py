from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

from feeoracle.curve import suggest_fees_at, time_factors
from feeoracle.settings import OracleSettings
from feeoracle.types import FeeCurve, FeeHistory

log = logging.getLogger(__name__)


def can_include(max_fee: float, priority_fee: float, block_delay: int, actual: FeeHistory) -> bool:
    """True if the tx could have been included within ``block_delay`` blocks.

    ``actual`` is the realized history after the suggestion, with a single
    low reward percentile per block.
    """
    rows = actual.reward or ()
    last = min(int(block_delay), len(rows) - 1)
    for i in range(last + 1):
        reward = min(priority_fee, max_fee - actual.base_fee_per_gas[i])
        if reward >= rows[i][0]:
            return True
    return False


async def _replay_block(
    source: Any,
    block: int,
    head: int,
    settings: OracleSettings,
) -> List[bool]:
    predicted: FeeCurve = await suggest_fees_at(source, block, settings)
    # realized window is block+1 .. block+horizon, cut off at the chain head
    last = min(block + int(settings.max_time_factor) + 1, head)
    if last <= block:
        return [False] * len(predicted)
    actual = await source.fetch_fee_history(
        last - block, last, [float(settings.calibration_reward_percentile)]
    )
    return [
        can_include(p.max_fee_per_gas, p.max_priority_fee_per_gas, p.time_factor, actual)
        for p in predicted
    ]


async def _head_block(source: Any) -> int:
    tip: FeeHistory = await source.fetch_fee_history(1, "latest")
    return tip.oldest_block + tip.block_count - 1


async def calibrate_range(
    source: Any,
    begin: int,
    end: int,
    settings: Optional[OracleSettings] = None,
    *,
    concurrency: int = 1,
) -> Dict[int, float]:
    """Replay suggestions over ``begin..end`` and measure inclusion rates.

    Returns the share of blocks, per time factor, where the suggestion would
    have been included in time. A realized window that runs past the chain
    head is scored on the blocks that exist. Offline tuning only.
    """
    s = settings or OracleSettings()
    if begin > end:
        raise ValueError(f"empty block range {begin}..{end}")

    head = await _head_block(source)
    if end > head:
        raise ValueError(f"block {end} is past the chain head {head}")

    factors = sorted(time_factors(s))
    success = {tf: 0.0 for tf in factors}
    add_rate = 1.0 / (end + 1 - begin)
    sem = asyncio.Semaphore(max(1, int(concurrency)))

    async def _run(block: int) -> List[bool]:
        async with sem:
            return await _replay_block(source, block, head, s)

    results = await asyncio.gather(*(_run(b) for b in range(begin, end + 1)))
    for block, included in zip(range(begin, end + 1), results):
        for tf, ok in zip(factors, included):
            if ok:
                success[tf] += add_rate
        log.debug("calibrated block %s: %s", block, included)
    return success
