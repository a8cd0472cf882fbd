"""eth_feeHistory data sources.

Every source exposes the same coroutine::

    fetch_fee_history(block_count, last_block, reward_percentiles=None) -> FeeHistory

Arrays are oldest first. A response shorter than ``block_count`` means the
start of available history was reached; it is not an error.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from eth_utils import is_hexstr, to_int

from feeoracle.types import FeeHistory
from infra.metrics import METRICS

log = logging.getLogger(__name__)

BlockId = Union[int, str]

BLOCK_TAGS = ("latest", "pending", "safe", "finalized", "earliest")


def _quantity(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(f"not a quantity: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and is_hexstr(value):
        return to_int(hexstr=value)
    raise ValueError(f"not a quantity: {value!r}")


def _block_param(block: BlockId) -> str:
    if isinstance(block, int) and not isinstance(block, bool):
        if block < 0:
            raise ValueError(f"negative block number: {block}")
        return hex(block)
    tag = str(block).strip().lower()
    if tag in BLOCK_TAGS or is_hexstr(tag):
        return tag
    raise ValueError(f"unsupported block id: {block!r}")


def parse_fee_history(res: Mapping[str, Any]) -> FeeHistory:
    """Build a FeeHistory from a raw eth_feeHistory result (hex or int quantities)."""
    if not isinstance(res, Mapping):
        raise ValueError(f"fee history result is not an object: {type(res).__name__}")
    try:
        oldest = _quantity(res["oldestBlock"])
        base_fees = tuple(_quantity(x) for x in res["baseFeePerGas"])
        ratios = tuple(float(x) for x in res["gasUsedRatio"])
    except KeyError as e:
        raise ValueError(f"fee history result is missing {e}") from e

    reward = None
    raw_reward = res.get("reward")
    if raw_reward is not None:
        reward = tuple(tuple(_quantity(x) for x in row) for row in raw_reward)
    return FeeHistory(
        oldest_block=oldest,
        base_fee_per_gas=base_fees,
        gas_used_ratio=ratios,
        reward=reward,
    )


class RPCFeeHistorySource:
    """eth_feeHistory over a JSON-RPC client with an async ``call(method, params)``."""

    def __init__(self, rpc: Any, *, timeout_s: Optional[float] = None) -> None:
        self.rpc = rpc
        self.timeout_s = timeout_s

    async def fetch_fee_history(
        self,
        block_count: int,
        last_block: BlockId,
        reward_percentiles: Optional[Sequence[float]] = None,
    ) -> FeeHistory:
        params: List[Any] = [hex(int(block_count)), _block_param(last_block)]
        percentiles = [float(p) for p in (reward_percentiles or [])]
        params.append(percentiles)
        METRICS.inc("fee_history_queries_total", 1)
        if percentiles:
            METRICS.inc("fee_history_reward_queries_total", 1)
        res = await self.rpc.call("eth_feeHistory", params, timeout_s=self.timeout_s)
        history = parse_fee_history(res)
        if history.block_count < int(block_count):
            log.debug("short fee history: %s of %s blocks ending at %s", history.block_count, block_count, last_block)
        return history


class Web3FeeHistorySource:
    """eth_feeHistory through a synchronous web3 provider (see infra.rpc.get_provider)."""

    def __init__(self, w3: Any) -> None:
        self.w3 = w3

    def _fetch(self, block_count: int, last_block: BlockId, percentiles: List[float]) -> FeeHistory:
        res = self.w3.eth.fee_history(int(block_count), last_block, percentiles or None)
        return parse_fee_history(dict(res))

    async def fetch_fee_history(
        self,
        block_count: int,
        last_block: BlockId,
        reward_percentiles: Optional[Sequence[float]] = None,
    ) -> FeeHistory:
        percentiles = [float(p) for p in (reward_percentiles or [])]
        METRICS.inc("fee_history_queries_total", 1)
        if percentiles:
            METRICS.inc("fee_history_reward_queries_total", 1)
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._fetch, block_count, last_block, percentiles)


class StaticFeeHistorySource:
    """Serves fee history from recorded per-block data, like a node would.

    ``base_fees`` holds one entry more than ``gas_used_ratio`` (the base fee
    of the block after the newest one). ``block_tips`` optionally holds the
    effective tips of each block's transactions; reward percentiles are taken
    from them, with 0 for blocks without transactions.
    """

    def __init__(
        self,
        base_fees: Sequence[int],
        gas_used_ratio: Sequence[float],
        *,
        block_tips: Optional[Sequence[Sequence[int]]] = None,
        oldest_block: int = 0,
    ) -> None:
        if len(base_fees) != len(gas_used_ratio) + 1:
            raise ValueError("base_fees must be one longer than gas_used_ratio")
        if block_tips is not None and len(block_tips) != len(gas_used_ratio):
            raise ValueError("block_tips must have one entry per block")
        self.base_fees = [int(b) for b in base_fees]
        self.gas_used_ratio = [float(r) for r in gas_used_ratio]
        self.block_tips = [sorted(int(t) for t in tips) for tips in block_tips] if block_tips is not None else None
        self.oldest_block = int(oldest_block)
        self.calls: List[Dict[str, Any]] = []

    @property
    def head(self) -> int:
        return self.oldest_block + len(self.gas_used_ratio) - 1

    def _resolve(self, last_block: BlockId) -> int:
        if isinstance(last_block, str):
            tag = last_block.strip().lower()
            if tag in ("latest", "pending", "safe", "finalized"):
                return self.head
            if tag == "earliest":
                return self.oldest_block
            return _quantity(tag)
        return int(last_block)

    def _reward(self, idx: int, percentile: float) -> int:
        tips = self.block_tips[idx] if self.block_tips is not None else []
        if not tips:
            return 0
        k = min(len(tips) - 1, int(percentile / 100.0 * len(tips)))
        return tips[k]

    async def fetch_fee_history(
        self,
        block_count: int,
        last_block: BlockId,
        reward_percentiles: Optional[Sequence[float]] = None,
    ) -> FeeHistory:
        percentiles = [float(p) for p in (reward_percentiles or [])]
        self.calls.append({"block_count": int(block_count), "last_block": last_block, "percentiles": percentiles})
        last = self._resolve(last_block)
        if last > self.head or last < self.oldest_block:
            raise ValueError(f"block {last} is outside recorded history {self.oldest_block}..{self.head}")
        first = max(self.oldest_block, last - int(block_count) + 1)
        lo = first - self.oldest_block
        hi = last - self.oldest_block + 1
        reward = None
        if percentiles:
            reward = tuple(tuple(self._reward(i, p) for p in percentiles) for i in range(lo, hi))
        return FeeHistory(
            oldest_block=first,
            base_fee_per_gas=tuple(self.base_fees[lo:hi + 1]),
            gas_used_ratio=tuple(self.gas_used_ratio[lo:hi]),
            reward=reward,
        )


async def dump_fees(source: Any, block_count: int, last_block: BlockId = "latest") -> Dict[str, Any]:
    """Fee history of a range in decimal form, with the 10th percentile reward."""
    fh = await source.fetch_fee_history(block_count, last_block, [10.0])
    rows = fh.reward or ()
    return {
        "oldest_block": fh.oldest_block,
        "base_fee": list(fh.base_fee_per_gas[:-1]),
        "gas_used": list(fh.gas_used_ratio),
        "reward": [int(row[0]) for row in rows],
    }
