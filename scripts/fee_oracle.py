from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, Optional, Union


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from feeoracle import config  # noqa: E402
from feeoracle.artifacts import configure_logging, curve_to_json, dumps, write_json  # noqa: E402
from feeoracle.calibrate import calibrate_range  # noqa: E402
from feeoracle.curve import suggest_fees_at  # noqa: E402
from feeoracle.settings import OracleSettings, load_settings  # noqa: E402
from infra.fee_history import RPCFeeHistorySource, Web3FeeHistorySource, dump_fees  # noqa: E402
from infra.metrics import METRICS  # noqa: E402
from infra.rpc import AsyncRPC, get_provider  # noqa: E402


def _block_arg(raw: str) -> Union[int, str]:
    text = str(raw).strip().lower()
    if text in ("latest", "pending"):
        return text
    try:
        return int(text, 0)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected a block number, 'latest' or 'pending': {raw}")


async def _run(args: argparse.Namespace, settings: OracleSettings, logger: logging.Logger) -> Any:
    rpc: Optional[AsyncRPC] = None
    if args.web3:
        source: Any = Web3FeeHistorySource(get_provider([args.rpc] if args.rpc else None))
    else:
        rpc = AsyncRPC(args.rpc or None)
        source = RPCFeeHistorySource(rpc)

    try:
        if args.command == "suggest":
            curve = await suggest_fees_at(source, args.block, settings)
            return curve_to_json(curve, tx_params=args.tx_params)
        if args.command == "calibrate":
            rates = await calibrate_range(
                source,
                args.from_block,
                args.to_block,
                settings,
                concurrency=args.concurrency,
            )
            logger.info("calibrated %s blocks", args.to_block - args.from_block + 1)
            return [{"timeFactor": tf, "successRate": rate} for tf, rate in rates.items()]
        return await dump_fees(source, args.blocks, args.block)
    finally:
        if rpc is not None:
            await rpc.close()


def main() -> int:
    parser = argparse.ArgumentParser(description="EIP-1559 economical fee oracle")
    parser.add_argument("--rpc", type=str, default="", help="RPC URL (default: env RPC_URLS/RPC_URL)")
    parser.add_argument("--web3", action="store_true", help="query through a web3 provider")
    parser.add_argument("--config", type=str, default="", help="settings JSON file")
    parser.add_argument("--log-level", default="INFO", help="logging level")
    parser.add_argument("--log-file", type=str, default="", help="also log to this file")
    parser.add_argument("--out", type=str, default="", help="write the JSON result to this file")
    sub = parser.add_subparsers(dest="command", required=True)

    p_suggest = sub.add_parser("suggest", help="print the fee suggestion curve")
    p_suggest.add_argument("--block", type=_block_arg, default="latest", help="head block")
    p_suggest.add_argument("--tx-params", action="store_true", help="integer wei values")

    p_cal = sub.add_parser("calibrate", help="measure inclusion rates over a block range")
    p_cal.add_argument("--from", dest="from_block", type=int, required=True, help="first block")
    p_cal.add_argument("--to", dest="to_block", type=int, required=True, help="last block")
    p_cal.add_argument("--concurrency", type=int, default=config.CALIBRATION_CONCURRENCY, help="parallel block replays")

    p_dump = sub.add_parser("dump", help="print fee history in decimal form")
    p_dump.add_argument("--blocks", type=int, default=20, help="number of blocks")
    p_dump.add_argument("--block", type=_block_arg, default="latest", help="last block")

    args = parser.parse_args()

    logger = configure_logging(args.log_level.upper(), Path(args.log_file) if args.log_file else None)
    try:
        settings = load_settings(Path(args.config) if args.config else None)
    except ValueError as e:
        logger.error("invalid settings: %s", e)
        return 2
    logger.debug("settings=%s", settings.as_dict())

    try:
        result = asyncio.run(_run(args, settings, logger))
    except (RuntimeError, ValueError, ConnectionError) as e:
        logger.error("%s failed: %s", args.command, e)
        return 1

    logger.debug("metrics=%s", METRICS.snapshot())
    if args.out:
        write_json(Path(args.out), result)
        logger.info("wrote %s", args.out)
    else:
        print(dumps(result))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
