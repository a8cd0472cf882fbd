import random

import pytest

from feeoracle.normalizer import normalize_base_fees
from feeoracle.sampler import predict_min_base_fee, sampling_curve
from feeoracle.settings import OracleSettings


def test_sampling_curve_band() -> None:
    assert sampling_curve(0.0) == 0.0
    assert sampling_curve(10.0) == 0.0
    assert sampling_curve(20.0) == pytest.approx(0.5)
    assert sampling_curve(30.0) == 1.0
    assert sampling_curve(95.0) == 1.0
    points = [sampling_curve(p / 10.0) for p in range(0, 401)]
    assert all(a <= b for a, b in zip(points, points[1:]))


def test_sampling_curve_custom_band() -> None:
    s = OracleSettings(sample_min_percentile=0, sample_max_percentile=50)
    assert sampling_curve(25.0, s) == pytest.approx(0.5)
    assert sampling_curve(50.0, s) == 1.0


def test_zero_time_div_returns_latest() -> None:
    normalized = normalize_base_fees([10, 20, 30, 40], [0.5, 0.5, 0.5])
    assert predict_min_base_fee(normalized, 0) == 45.0
    assert predict_min_base_fee(normalized, 1e-9) == 45.0


def test_single_block_window_returns_value() -> None:
    normalized = normalize_base_fees([80], [])
    assert predict_min_base_fee(normalized, 5.0) == pytest.approx(90.0)


def test_constant_history() -> None:
    normalized = normalize_base_fees([50] * 30, [0.95] * 29)
    assert predict_min_base_fee(normalized, 7.0) == pytest.approx(56.25)


def test_recent_spike_is_ignored() -> None:
    normalized = normalize_base_fees([10] * 50 + [100], [0.5] * 50)
    assert predict_min_base_fee(normalized, 1.0) == pytest.approx(10.0)


def test_window_width_follows_time_div() -> None:
    # old cheap blocks, recent expensive ones
    normalized = normalize_base_fees([10] * 100 + [50] * 21, [0.5] * 120)
    assert predict_min_base_fee(normalized, 2.0) == pytest.approx(50.0)
    assert predict_min_base_fee(normalized, 1000.0) == pytest.approx(10.0)


def test_prediction_is_bounded_by_window() -> None:
    rng = random.Random(7)
    for _ in range(200):
        n = rng.randint(1, 60)
        base = [rng.randint(1, 10**11) for _ in range(n + 1)]
        ratios = [rng.random() for _ in range(n)]
        normalized = normalize_base_fees(base, ratios)
        lo = min(normalized.values)
        hi = max(normalized.values)
        time_div = rng.choice([0.5, 1.0, 3.0, 17.0, 127.0, 500.0])
        res = predict_min_base_fee(normalized, time_div)
        assert lo * (1 - 1e-9) <= res <= hi * (1 + 1e-9)
