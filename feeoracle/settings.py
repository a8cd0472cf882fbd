from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from feeoracle import config

log = logging.getLogger(__name__)

ENV_PREFIX = "FEE_ORACLE_"


@dataclass(frozen=True)
class OracleSettings:
    """Tunables of the fee oracle.

    Passed explicitly through the pipeline so several configurations can be
    evaluated side by side (e.g. when calibrating).
    """

    sample_min_percentile: float = config.SAMPLE_MIN_PERCENTILE
    sample_max_percentile: float = config.SAMPLE_MAX_PERCENTILE
    max_reward_percentile: int = config.MAX_REWARD_PERCENTILE
    min_block_percentile: float = config.MIN_BLOCK_PERCENTILE
    max_block_percentile: float = config.MAX_BLOCK_PERCENTILE
    reward_blocks: int = config.REWARD_BLOCKS
    max_time_factor: int = config.MAX_TIME_FACTOR
    extra_priority_fee_ratio: float = config.EXTRA_PRIORITY_FEE_RATIO
    fallback_priority_fee: int = config.FALLBACK_PRIORITY_FEE
    full_block_ratio: float = config.FULL_BLOCK_RATIO
    pending_base_fee_multiplier: float = config.PENDING_BASE_FEE_MULTIPLIER
    history_block_count: int = config.HISTORY_BLOCK_COUNT
    calibration_reward_percentile: float = config.CALIBRATION_REWARD_PERCENTILE

    def __post_init__(self) -> None:
        if not 0 <= self.sample_min_percentile < self.sample_max_percentile <= 100:
            raise ValueError(
                f"invalid sampling band: {self.sample_min_percentile}..{self.sample_max_percentile}"
            )
        if not 0 <= self.min_block_percentile <= self.max_block_percentile <= 100:
            raise ValueError(
                f"invalid block percentile range: {self.min_block_percentile}..{self.max_block_percentile}"
            )
        if not 0 <= self.max_reward_percentile <= 100:
            raise ValueError(f"max_reward_percentile out of range: {self.max_reward_percentile}")
        mtf = int(self.max_time_factor)
        if mtf < 1 or mtf & (mtf - 1):
            raise ValueError(f"max_time_factor must be a power of two, got {self.max_time_factor}")
        if self.reward_blocks < 1:
            raise ValueError("reward_blocks must be positive")
        if self.history_block_count < 1:
            raise ValueError("history_block_count must be positive")
        if self.extra_priority_fee_ratio < 0:
            raise ValueError("extra_priority_fee_ratio must not be negative")
        if self.fallback_priority_fee < 0:
            raise ValueError("fallback_priority_fee must not be negative")

    @property
    def reward_percentiles(self) -> list[float]:
        return [float(p) for p in range(int(self.max_reward_percentile) + 1)]

    def as_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def _read_json(path: Path) -> Optional[Dict[str, Any]]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except Exception:
        log.warning("cannot read settings file %s", path)
        return None
    return data if isinstance(data, dict) else None


def _coerce(value: Any, like: Any) -> Any:
    # int/float follow the default's type; "2e9" is accepted for int fields
    if isinstance(like, int):
        return int(float(value))
    return float(value)


def _normalize_overrides(raw: Mapping[str, Any]) -> Dict[str, Any]:
    defaults = OracleSettings()
    known = {f.name for f in fields(OracleSettings)}
    out: Dict[str, Any] = {}
    for k, v in raw.items():
        key = str(k).strip().lower()
        if key not in known or v is None:
            continue
        try:
            out[key] = _coerce(v, getattr(defaults, key))
        except (TypeError, ValueError):
            log.warning("ignoring unparsable setting %s=%r", key, v)
            continue
    return out


def _env_overrides(environ: Mapping[str, str]) -> Dict[str, Any]:
    raw: Dict[str, Any] = {}
    for k, v in environ.items():
        if k.startswith(ENV_PREFIX) and k != ENV_PREFIX + "CONFIG":
            raw[k[len(ENV_PREFIX):]] = v
    return _normalize_overrides(raw)


def load_settings(
    path: Optional[Path] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
) -> OracleSettings:
    """Build settings from defaults, an optional JSON file and env overrides.

    File lookup: explicit ``path``, else env ``FEE_ORACLE_CONFIG``. Env vars
    ``FEE_ORACLE_<NAME>`` win over the file.
    """
    env = os.environ if environ is None else environ
    settings = OracleSettings()

    cfg_path = path
    if cfg_path is None and env.get(ENV_PREFIX + "CONFIG"):
        cfg_path = Path(env[ENV_PREFIX + "CONFIG"])
    if cfg_path is not None:
        data = _read_json(Path(cfg_path))
        if data:
            settings = replace(settings, **_normalize_overrides(data))

    overrides = _env_overrides(env)
    if overrides:
        settings = replace(settings, **overrides)
    return settings
