import json
import logging

from feeoracle.artifacts import configure_logging, curve_to_json, write_json
from feeoracle.types import FeeSuggestion
from infra.metrics import Metrics


def test_curve_to_json() -> None:
    curve = (FeeSuggestion(1, 100.5, 2.25), FeeSuggestion(2, 90.0, 2.0))
    assert curve_to_json(curve) == [
        {"timeFactor": 1, "maxFeePerGas": 100.5, "maxPriorityFeePerGas": 2.25},
        {"timeFactor": 2, "maxFeePerGas": 90.0, "maxPriorityFeePerGas": 2.0},
    ]
    assert curve_to_json(curve, tx_params=True)[0] == {"timeFactor": 1, "maxFeePerGas": 101, "maxPriorityFeePerGas": 3}


def test_configure_logging_writes_file(tmp_path) -> None:
    log_file = tmp_path / "logs" / "oracle.log"
    logger = configure_logging(logging.DEBUG, log_file)
    logging.getLogger("feeoracle.curve").debug("window ready")
    logging.getLogger("infra.rpc").info("rpc ready")
    for handler in logger.handlers:
        handler.flush()
    text = log_file.read_text(encoding="utf-8")
    assert "window ready" in text
    assert "rpc ready" in text
    logger.handlers.clear()
    logging.getLogger("infra").handlers.clear()


def test_write_json(tmp_path) -> None:
    path = tmp_path / "out" / "curve.json"
    write_json(path, [{"timeFactor": 1}])
    assert json.loads(path.read_text(encoding="utf-8")) == [{"timeFactor": 1}]


def test_metrics_snapshot() -> None:
    m = Metrics(max_samples=3)
    m.inc("fee_history_queries_total")
    m.inc_reason("rpc_fail_by_reason", "timeout")
    for v in (1.0, 2.0, 3.0, 4.0, float("nan")):
        m.observe("rpc_latency_ms", v)
    snap = m.snapshot()
    assert snap["counters"] == {"fee_history_queries_total": 1}
    assert snap["reason_counters"] == {"rpc_fail_by_reason": {"timeout": 1}}
    assert snap["histograms"]["rpc_latency_ms"] == {"count": 3, "p50": 3.0, "p95": 4.0}
