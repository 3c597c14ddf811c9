#!/usr/bin/env python3
"""
Luno client - command line entry point.

Runs one read-only API call and prints the JSON response, e.g.::

    python main.py ticker --pair ETHZAR
    python main.py trades --since 2024-01-01T00:00:00+00:00
    python main.py balances
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional, Sequence

from luno.core.config import DEFAULT_CONFIG_PATH, load_config
from luno.core.logger import get_logger, setup_logging
from luno.exchange.client import LunoClient
from luno.exchange.exceptions import LunoAPIError, LunoArgumentError

logger = get_logger("main")


def _since(value: Optional[str]) -> Any:
    if value is None:
        return None
    if value.isdigit():
        return int(value)
    return datetime.fromisoformat(value)


_COMMANDS: Dict[str, Callable[[LunoClient, argparse.Namespace], Awaitable[Any]]] = {
    "ticker": lambda c, a: c.get_ticker(a.pair),
    "tickers": lambda c, a: c.get_all_tickers(),
    "orderbook": lambda c, a: c.get_order_book(a.pair),
    "trades": lambda c, a: c.get_trades(_since(a.since), a.pair),
    "balances": lambda c, a: c.get_balances(),
    "fees": lambda c, a: c.get_fee_info(a.pair),
    "orders": lambda c, a: c.get_order_list(a.state, a.pair),
    "withdrawals": lambda c, a: c.get_withdrawal_requests(),
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Query the Luno REST API.")
    parser.add_argument("command", choices=sorted(_COMMANDS))
    parser.add_argument("--pair", default=None, help="Currency pair, e.g. XBTZAR.")
    parser.add_argument("--since", default=None, help="Unix timestamp or ISO-8601 datetime.")
    parser.add_argument("--state", default=None, help="Order state filter, e.g. PENDING.")
    parser.add_argument(
        "--config",
        default=DEFAULT_CONFIG_PATH,
        help="YAML config path (environment variables take precedence).",
    )
    return parser


async def run(client: LunoClient, args: argparse.Namespace) -> Any:
    async with client:
        return await _COMMANDS[args.command](client, args)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config = load_config(args.config)
    setup_logging(
        log_level=config.app.log_level,
        log_dir=config.app.log_dir,
        json_output=config.app.json_logs,
    )
    client = LunoClient.from_config(config)

    try:
        result = asyncio.run(run(client, args))
    except LunoArgumentError as e:
        print(str(e), file=sys.stderr)
        return 2
    except LunoAPIError as e:
        logger.error("Luno API call failed", command=args.command, status=e.status)
        print(json.dumps({"error": e.to_dict()}, indent=2))
        return 1

    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
