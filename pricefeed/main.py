#!/usr/bin/env python3
"""Price Feed Reflector.

Polls AggregatorV3 price feed contracts over JSON-RPC and logs every
decoded round until interrupted.

Run with CLI args or env vars. CLI args take precedence.
"""

import argparse
import asyncio
import logging
import os
import sys

from .src.errors import ConfigError
from .src.FeedScheduler import FeedScheduler
from .src.Reflector import CallbackReflector
from .src.RoundData import RoundData
from .src.RpcGateway import NETWORKS, HttpRpcGateway, resolve_rpc_url

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def parse_contracts(contracts_str: str | None) -> list[tuple[str, str]]:
    """Parse a comma-separated contract list.

    Format: SYMBOL1=address1,SYMBOL2=address2
    Example: ETH=0x9ef1B8c0E4F7dc8bF5719Ea496883DC6401d5b2e

    :param contracts_str: Comma-separated contract string.
    :returns: Ordered list of (symbol, address) tuples.
    :raises ValueError: If an item is not in SYMBOL=address form.
    """
    if not contracts_str:
        return []

    contracts = []
    for item in contracts_str.split(","):
        item = item.strip()
        if not item:
            continue
        if "=" not in item:
            raise ValueError(f"Invalid contract '{item}'. Expected SYMBOL=address")
        symbol, address = item.split("=", 1)
        if not symbol.strip():
            raise ValueError(f"Missing symbol in '{item}'")
        contracts.append((symbol.strip(), address.strip()))
    return contracts


def format_round(round_data: RoundData) -> str:
    """Format a round for logging.

    :param round_data: Round to format.
    :returns: String like "ETH: 3123.45 (round 7, updated 1700000000)".
    """
    value = round_data.price if round_data.price is not None else round_data.answer
    return (
        f"{round_data.symbol}: {value} "
        f"(round {round_data.round_id}, updated {round_data.updated_at})"
    )


def log_round(round_data: RoundData) -> None:
    """Reflector callback used by the CLI."""
    logger.info(format_round(round_data))


async def run_until_stopped(scheduler: FeedScheduler) -> None:
    """Start the scheduler on the current loop and wait for it to exit."""
    scheduler.start()
    try:
        await scheduler.wait_stopped()
    finally:
        scheduler.stop()
        await scheduler.wait_stopped()


def main() -> None:
    """Main entry point for the Price Feed Reflector CLI."""
    parser = argparse.ArgumentParser(
        description="Price Feed Reflector: Periodic on-chain price feed polling",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Network presets:
  {', '.join(NETWORKS)}

Examples:
  # ETH/USD on BNB Smart Chain every 10 seconds
  python -m pricefeed.main --network bsc \\
      --contracts ETH=0x9ef1B8c0E4F7dc8bF5719Ea496883DC6401d5b2e --interval 10

  # Custom RPC endpoint
  python -m pricefeed.main --rpc-url https://eth.llamarpc.com \\
      --contracts ETH=0x5f4eC3Df9cbd43714FE2740f5E3616155c5b8419

Environment variables (CLI args take precedence):
  NETWORK, RPC_URL, CONTRACTS, FETCH_INTERVAL, RPC_TIMEOUT
""",
    )

    parser.add_argument(
        "--network",
        type=str,
        help=f"Network preset ({', '.join(NETWORKS)})",
        default=os.environ.get("NETWORK") or "ethereum",
    )

    parser.add_argument(
        "--rpc-url",
        dest="rpc_url",
        type=str,
        help="JSON-RPC endpoint URL (overrides --network)",
        default=os.environ.get("RPC_URL"),
    )

    parser.add_argument(
        "--contracts",
        type=str,
        help="Comma-separated feeds (e.g., ETH=0x9ef1...,BTC=0x2649...)",
        default=os.environ.get("CONTRACTS"),
    )

    parser.add_argument(
        "--interval",
        type=float,
        help="Seconds between polls (default: 10)",
        default=float(os.environ.get("FETCH_INTERVAL") or "10"),
    )

    parser.add_argument(
        "--rpc-timeout",
        dest="rpc_timeout",
        type=float,
        help="Timeout for individual RPC requests in seconds (default: 10.0)",
        default=float(os.environ.get("RPC_TIMEOUT") or "10.0"),
    )

    parser.add_argument(
        "--no-decimals",
        dest="fetch_decimals",
        action="store_false",
        help="Do not read decimals(); report raw answers only",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )

    args = parser.parse_args()

    # Configure logging level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    # Validate arguments
    if args.interval <= 0:
        parser.error("--interval must be positive")

    if args.rpc_timeout <= 0:
        parser.error("--rpc-timeout must be positive")

    try:
        contracts = parse_contracts(args.contracts)
    except ValueError as e:
        parser.error(str(e))

    if not contracts:
        parser.error("At least one contract must be specified")

    rpc_url = args.rpc_url or resolve_rpc_url(args.network)

    # Log configuration
    logger.info("=" * 60)
    logger.info("Price Feed Reflector")
    logger.info("=" * 60)
    logger.info(f"RPC URL:           {rpc_url}")
    logger.info(f"Contracts:         {', '.join(s for s, _ in contracts)}")
    logger.info(f"Interval:          {args.interval}s")
    logger.info(f"RPC Timeout:       {args.rpc_timeout}s")
    logger.info(f"Decimals:          {'on' if args.fetch_decimals else 'off'}")
    logger.info("=" * 60)

    try:
        scheduler = FeedScheduler.try_new(
            rpc_url=rpc_url,
            interval_seconds=args.interval,
            reflector=CallbackReflector(log_round),
            contracts=contracts,
            gateway=HttpRpcGateway(rpc_url, timeout=args.rpc_timeout),
            fetch_decimals=args.fetch_decimals,
        )
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(2)

    try:
        asyncio.run(run_until_stopped(scheduler))
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
