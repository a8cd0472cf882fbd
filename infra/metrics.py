from __future__ import annotations

from collections import Counter, defaultdict, deque
from typing import Any, Deque, Dict, Optional, Sequence


def _rank(values: Sequence[float], pct: float) -> Optional[float]:
    if not values:
        return None
    ordered = sorted(values)
    k = int(round(pct / 100.0 * (len(ordered) - 1)))
    return float(ordered[max(0, min(len(ordered) - 1, k))])


class Metrics:
    """Process-wide tallies for RPC traffic and fee history queries.

    Counters are plain totals, reason counters split a total by cause, and
    histograms keep the newest ``max_samples`` observations per name.
    """

    def __init__(self, max_samples: int = 2000) -> None:
        self.max_samples = int(max_samples)
        self.reset()

    def reset(self) -> None:
        self._totals: Counter = Counter()
        self._reasons: Dict[str, Counter] = defaultdict(Counter)
        self._samples: Dict[str, Deque[float]] = defaultdict(lambda: deque(maxlen=self.max_samples))

    def inc(self, name: str, n: int = 1) -> None:
        if name:
            self._totals[name] += int(n)

    def inc_reason(self, group: str, reason: str, n: int = 1) -> None:
        if group and reason:
            self._reasons[group][reason] += int(n)

    def observe(self, name: str, value: float) -> None:
        v = float(value)
        if name and v == v:
            self._samples[name].append(v)

    def counter(self, name: str) -> int:
        return int(self._totals[name]) if name in self._totals else 0

    def snapshot(self) -> Dict[str, Any]:
        return {
            "counters": dict(self._totals),
            "reason_counters": {group: dict(counts) for group, counts in self._reasons.items()},
            "histograms": {
                name: {"count": len(vals), "p50": _rank(vals, 50.0), "p95": _rank(vals, 95.0)}
                for name, vals in self._samples.items()
            },
        }


METRICS = Metrics()
