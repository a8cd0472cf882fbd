from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional, Tuple


@dataclass(frozen=True)
class BlockFeeSample:
    index: int
    base_fee: int
    gas_used_ratio: float


@dataclass(frozen=True)
class FeeHistory:
    """One eth_feeHistory response, oldest block first.

    ``base_fee_per_gas`` has one more entry than ``gas_used_ratio``: the last
    one is the base fee of the block after ``oldest_block + block_count - 1``.
    """

    oldest_block: int
    base_fee_per_gas: Tuple[int, ...]
    gas_used_ratio: Tuple[float, ...]
    reward: Optional[Tuple[Tuple[int, ...], ...]] = None

    def __post_init__(self) -> None:
        if len(self.base_fee_per_gas) != len(self.gas_used_ratio) + 1:
            raise ValueError(
                "baseFeePerGas must be one longer than gasUsedRatio "
                f"({len(self.base_fee_per_gas)} vs {len(self.gas_used_ratio)})"
            )
        if self.reward is not None and len(self.reward) != len(self.gas_used_ratio):
            raise ValueError(f"reward rows ({len(self.reward)}) != blocks ({len(self.gas_used_ratio)})")

    @property
    def block_count(self) -> int:
        return len(self.gas_used_ratio)

    def samples(self) -> Iterator[BlockFeeSample]:
        for i, ratio in enumerate(self.gas_used_ratio):
            yield BlockFeeSample(
                index=self.oldest_block + i,
                base_fee=self.base_fee_per_gas[i],
                gas_used_ratio=ratio,
            )


@dataclass(frozen=True)
class NormalizedBaseFees:
    values: Tuple[float, ...]
    # indices of ``values`` sorted ascending by value, ties by index
    order: Tuple[int, ...]

    def __len__(self) -> int:
        return len(self.values)


# Ascending, zero samples dropped
RewardPool = Tuple[int, ...]


@dataclass(frozen=True)
class FeeSuggestion:
    time_factor: int
    max_fee_per_gas: float
    max_priority_fee_per_gas: float

    def to_tx_params(self) -> Dict[str, int]:
        """Integer wei values for an EIP-1559 transaction (rounded up)."""
        return {
            "maxFeePerGas": int(math.ceil(self.max_fee_per_gas)),
            "maxPriorityFeePerGas": int(math.ceil(self.max_priority_fee_per_gas)),
        }

    def as_dict(self) -> Dict[str, Any]:
        return {
            "timeFactor": self.time_factor,
            "maxFeePerGas": self.max_fee_per_gas,
            "maxPriorityFeePerGas": self.max_priority_fee_per_gas,
        }


# Ascending by time_factor, most urgent first
FeeCurve = Tuple[FeeSuggestion, ...]
