"""
LAN endpoint discovery CLI

Resolve the development backend from a shell, probe a single address, or
list reachable candidates.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import replace
from typing import Optional, Sequence

from .config import merge_config, validate_address
from .context import DiscoveryContext
from .errors import InvalidAddressError
from .prober import ReachabilityProber
from .scanner import SubnetScanner
from .settings import get_settings
from .types import DiscoveryConfig

logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO", debug: bool = False) -> None:
    """Configure root logging for command line use."""
    numeric_level = logging.DEBUG if debug else getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lan-endpoint-discovery",
        description="Find the development backend on the local network",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  lan-endpoint-discovery resolve
  lan-endpoint-discovery resolve --prefix 192.168.10 --prefix 192.168.1
  lan-endpoint-discovery probe 192.168.1.108
  lan-endpoint-discovery candidates --limit 3
        """,
    )
    parser.add_argument(
        "--prefix",
        action="append",
        dest="prefixes",
        help="Subnet prefix to scan, repeatable (e.g. 192.168.1)",
    )
    parser.add_argument("--port", type=int, help="Backend port (default: 4000)")
    parser.add_argument("--timeout", type=float, help="Per-probe timeout in seconds (default: 0.8)")
    parser.add_argument("--concurrency", type=int, help="Probes in flight per stage (default: 8)")
    parser.add_argument("--simulator", action="store_true", help="Fall back to localhost")
    parser.add_argument("--fallback-file", help="YAML/JSON file holding the fallback list")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")
    subparsers.add_parser("resolve", help="Resolve the backend endpoint URLs")

    probe_parser = subparsers.add_parser("probe", help="Probe a single address")
    probe_parser.add_argument("address", help="Address to probe")

    candidates_parser = subparsers.add_parser(
        "candidates", help="List reachable addresses among common developer hosts"
    )
    candidates_parser.add_argument("--limit", type=int, default=5, help="Maximum results (default: 5)")

    return parser


def config_from_args(args: argparse.Namespace) -> DiscoveryConfig:
    """Settings from the environment, overridden by command line flags"""
    config = get_settings().to_config()
    overrides = {}
    if args.prefixes:
        overrides["subnet_prefixes"] = args.prefixes
    if args.port is not None:
        overrides["port"] = args.port
    if args.timeout is not None:
        overrides["probe_timeout_seconds"] = args.timeout
    if args.concurrency is not None:
        overrides["scan_concurrency"] = args.concurrency
    if args.simulator:
        overrides["is_simulator"] = True
    if args.fallback_file:
        overrides["fallback_file"] = args.fallback_file
    return merge_config(replace(config, **overrides))


async def run_resolve(config: DiscoveryConfig) -> dict:
    async with DiscoveryContext(config) as context:
        endpoint = await context.resolve()
        result = context.detector.last_result
        output = endpoint.to_dict()
        if result is not None:
            output["source"] = result.source.value
            output["duration_seconds"] = round(result.duration_seconds, 2)
        return output


async def run_probe(config: DiscoveryConfig, address: str) -> dict:
    async with ReachabilityProber(config) as prober:
        result = await prober.probe(address)
    return result.to_dict()


async def run_candidates(config: DiscoveryConfig, limit: int) -> dict:
    async with ReachabilityProber(config) as prober:
        scanner = SubnetScanner(prober, config)
        addresses = await scanner.find_reachable(limit=limit)
    return {"data": addresses}


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Main CLI entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    setup_logging(debug=args.verbose)

    try:
        config = config_from_args(args)
        if args.command == "probe":
            validate_address(args.address)
    except (ValueError, InvalidAddressError) as e:
        print(json.dumps({"error": str(e)}), file=sys.stderr)
        sys.exit(2)

    try:
        if args.command == "resolve":
            result = asyncio.run(run_resolve(config))
            exit_code = 0
        elif args.command == "probe":
            result = asyncio.run(run_probe(config, args.address))
            exit_code = 0 if result["reachable"] else 1
        else:
            result = asyncio.run(run_candidates(config, args.limit))
            exit_code = 0
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(1)

    print(json.dumps(result))
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
