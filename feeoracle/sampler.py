from __future__ import annotations

import math
from typing import Optional

from feeoracle.settings import OracleSettings
from feeoracle.types import NormalizedBaseFees

# Below this the weighting window is treated as zero width
MIN_TIME_DIV = 1e-6


def sampling_curve(percentile: float, settings: Optional[OracleSettings] = None) -> float:
    """Smooth 0 -> 1 ramp over the sampled percentile band."""
    s = settings or OracleSettings()
    lo = s.sample_min_percentile
    hi = s.sample_max_percentile
    if percentile <= lo:
        return 0.0
    if percentile >= hi:
        return 1.0
    return (1.0 - math.cos((percentile - lo) * math.pi / (hi - lo))) / 2.0


def predict_min_base_fee(
    normalized: NormalizedBaseFees,
    time_div: float,
    settings: Optional[OracleSettings] = None,
) -> float:
    """Average of the base fees falling into the sampled percentile band.

    Each block is weighted with ``exp(-age / time_div)`` where age is the
    distance from the projected block, so a wider ``time_div`` looks further
    back. Weights are normalized to sum to 1 over the whole window.
    """
    s = settings or OracleSettings()
    values = normalized.values
    if time_div < MIN_TIME_DIV:
        return values[-1]

    n = len(values)
    pending_weight = (1.0 - math.exp(-1.0 / time_div)) / (1.0 - math.exp(-n / time_div))
    sum_weight = 0.0
    result = 0.0
    curve_last = 0.0
    for idx in normalized.order:
        sum_weight += pending_weight * math.exp((idx - n + 1) / time_div)
        curve = sampling_curve(sum_weight * 100.0, s)
        result += (curve - curve_last) * values[idx]
        if curve >= 1.0:
            return result
        curve_last = curve
    return result
