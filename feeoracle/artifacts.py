from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable, Optional, Union

from feeoracle.types import FeeSuggestion

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(level: Union[int, str] = logging.INFO, log_file: Optional[Path] = None) -> logging.Logger:
    logger = logging.getLogger("feeoracle")
    logger.setLevel(level)
    logger.handlers.clear()

    fmt = logging.Formatter(LOG_FORMAT)

    if log_file is not None:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setFormatter(fmt)
        logger.addHandler(file_handler)

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(fmt)
    logger.addHandler(stream_handler)

    # infra.* (RPC, fee history sources) logs through the same handlers
    infra_logger = logging.getLogger("infra")
    infra_logger.setLevel(level)
    infra_logger.handlers = list(logger.handlers)

    return logger


def curve_to_json(curve: Iterable[FeeSuggestion], *, tx_params: bool = False) -> list:
    out = []
    for item in curve:
        if tx_params:
            out.append({"timeFactor": item.time_factor, **item.to_tx_params()})
        else:
            out.append(item.as_dict())
    return out


def write_json(path: Path, obj: Any) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(json.dumps(obj, indent=2), encoding="utf-8")


def dumps(obj: Any) -> str:
    return json.dumps(obj, indent=2)
