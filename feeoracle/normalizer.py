from __future__ import annotations

from typing import List, Optional, Sequence

from feeoracle.settings import OracleSettings
from feeoracle.types import NormalizedBaseFees


def normalize_base_fees(
    base_fees: Sequence[int],
    gas_used_ratio: Sequence[float],
    settings: Optional[OracleSettings] = None,
) -> NormalizedBaseFees:
    """Repair base fee history so full blocks do not drag the estimate down.

    In a full block the minimal priority fee might not have been enough to get
    included, so its base fee is replaced by the next block's. The projected
    (pending) block is assumed to end up full as well, which gives some upward
    bias to the most urgent suggestions.
    """
    s = settings or OracleSettings()
    if not base_fees:
        raise ValueError("empty base fee history")
    if len(base_fees) != len(gas_used_ratio) + 1:
        raise ValueError(
            f"base fee history must be one longer than gasUsedRatio ({len(base_fees)} vs {len(gas_used_ratio)})"
        )

    values: List[float] = [float(b) for b in base_fees]
    values[-1] *= s.pending_base_fee_multiplier
    for i in range(len(gas_used_ratio) - 1, -1, -1):
        if gas_used_ratio[i] > s.full_block_ratio:
            values[i] = values[i + 1]

    order = sorted(range(len(values)), key=lambda i: (values[i], i))
    return NormalizedBaseFees(values=tuple(values), order=tuple(order))
