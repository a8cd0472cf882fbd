import json
from pathlib import Path

import pytest

from feeoracle.settings import OracleSettings, load_settings


def test_defaults() -> None:
    s = OracleSettings()
    assert s.sample_min_percentile == 10
    assert s.sample_max_percentile == 30
    assert s.max_time_factor == 128
    assert s.extra_priority_fee_ratio == 0.25
    assert s.fallback_priority_fee == 2_000_000_000
    assert s.reward_percentiles == [float(p) for p in range(21)]


def test_repo_config_matches_defaults() -> None:
    root = Path(__file__).resolve().parents[1]
    assert load_settings(root / "configs" / "oracle.json", environ={}) == OracleSettings()


def test_file_and_env_overrides(tmp_path) -> None:
    path = tmp_path / "oracle.json"
    path.write_text(json.dumps({"max_time_factor": 64, "fallback_priority_fee": "1e9", "unknown": 1}), encoding="utf-8")
    s = load_settings(path, environ={"FEE_ORACLE_MAX_TIME_FACTOR": "32", "FEE_ORACLE_SAMPLE_MAX_PERCENTILE": "40"})
    assert s.max_time_factor == 32
    assert s.fallback_priority_fee == 1_000_000_000
    assert s.sample_max_percentile == 40.0


def test_config_path_from_env(tmp_path) -> None:
    path = tmp_path / "oracle.json"
    path.write_text(json.dumps({"extra_priority_fee_ratio": 0.5}), encoding="utf-8")
    s = load_settings(environ={"FEE_ORACLE_CONFIG": str(path)})
    assert s.extra_priority_fee_ratio == 0.5


def test_unparsable_values_are_ignored(tmp_path) -> None:
    s = load_settings(environ={"FEE_ORACLE_REWARD_BLOCKS": "many"})
    assert s.reward_blocks == 5
    assert load_settings(tmp_path / "missing.json", environ={}) == OracleSettings()


def test_invalid_settings() -> None:
    with pytest.raises(ValueError):
        OracleSettings(max_time_factor=100)
    with pytest.raises(ValueError):
        OracleSettings(sample_min_percentile=30, sample_max_percentile=10)
    with pytest.raises(ValueError):
        OracleSettings(min_block_percentile=90, max_block_percentile=80)
    with pytest.raises(ValueError):
        load_settings(environ={"FEE_ORACLE_MAX_TIME_FACTOR": "3"})


def test_as_dict_reloads_as_config(tmp_path) -> None:
    s = OracleSettings(max_time_factor=64, reward_blocks=3)
    path = tmp_path / "oracle.json"
    path.write_text(json.dumps(s.as_dict()), encoding="utf-8")
    assert load_settings(path, environ={}) == s
