"""XLM settlement engine command line.

Usage:
    python -m xlm_settlement serve [--host H] [--port P]
    python -m xlm_settlement fund-testnet-account
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

import uvicorn

from xlm_settlement.config import get_settings
from xlm_settlement.providers.stellar import generate_testnet_account


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m xlm_settlement",
        description="Stellar settlement engine",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    serve = subparsers.add_parser("serve", help="Run the settlement engine HTTP API")
    serve.add_argument("--host", type=str, help="Bind address (default: ENGINE_HOST)")
    serve.add_argument("--port", type=int, help="Bind port (default: ENGINE_PORT)")

    subparsers.add_parser(
        "fund-testnet-account",
        help="Create a testnet account through friendbot and print its secret",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the CLI."""
    args = _build_parser().parse_args(argv)
    settings = get_settings()
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "fund-testnet-account":
        secret = asyncio.run(
            generate_testnet_account(settings.engine_config().ledger.friendbot_url)
        )
        print(secret)
        return 0

    if args.command in (None, "serve"):
        uvicorn.run(
            "xlm_settlement.api.app:create_app",
            factory=True,
            host=getattr(args, "host", None) or settings.host,
            port=getattr(args, "port", None) or settings.port,
        )
        return 0

    return 1


if __name__ == "__main__":
    sys.exit(main())
