"""Command-line interface for the confidential balance engine."""
from __future__ import annotations

import argparse
import asyncio
import sys

from .chains.evm import EvmClient
from .config import AppConfig, load_config
from .errors import normalize_error
from .faucet import HttpFaucet
from .logging_setup import configure_logging
from .services.balances import NATIVE_DECIMALS
from .units import format_units


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse CLI parser."""
    parser = argparse.ArgumentParser(
        prog="confidential-engine",
        description="Confidential token balance tooling",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.yaml (default: config.yaml in project root)",
    )
    parser.add_argument(
        "--network",
        default=None,
        help="Network name from config.yaml (overrides active_network)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )

    sub = parser.add_subparsers(dest="command")

    sub.add_parser("info", help="Show the active network and token details")

    balance_parser = sub.add_parser("balance", help="Native and public token balance")
    balance_parser.add_argument("address", help="Account address")

    faucet_parser = sub.add_parser("faucet", help="Request test funds for an address")
    faucet_parser.add_argument("address", help="Recipient address")

    explain_parser = sub.add_parser(
        "explain-error", help="Show how an error message is classified"
    )
    explain_parser.add_argument("message", help="Raw error text")

    return parser


async def _info(config: AppConfig) -> None:
    chain = config.chain
    token = await EvmClient(chain).get_token_info(chain.token_address)
    print(f"Network:   {config.active_network} (chain {chain.chain_id})")
    print(f"RPC:       {chain.rpc_url}")
    print(f"Token:     {token.symbol} ({token.decimals} decimals) {chain.token_address}")
    if chain.contract_address:
        print(f"Contract:  {chain.contract_address}")
    print(f"Explorer:  {chain.explorer_url}")


async def _balance(config: AppConfig, address: str) -> None:
    chain = config.chain
    client = EvmClient(chain)
    token = await client.get_token_info(chain.token_address)
    native = await client.get_balance(address)
    print(f"Native: {format_units(native, NATIVE_DECIMALS)}")
    public = await client.get_token_balance(chain.token_address, address)
    print(f"{token.symbol}: {format_units(public, token.decimals)}")


async def _faucet(config: AppConfig, address: str) -> int:
    result = await HttpFaucet(config.faucet).request(address)
    if not result.success:
        print(f"Faucet failed: {result.error}")
        return 1
    print(result.message or "Funds sent")
    for tx_hash in result.hashes or (result.hash,):
        print(f"  {config.chain.explorer_url}{tx_hash}")
    return 0


async def _run(args: argparse.Namespace) -> int:
    """Execute the selected command."""
    configure_logging(args.log_level)

    if args.command == "explain-error":
        err = normalize_error(args.message)
        print(f"{err.category.value}: {err.message}")
        return 0

    config = load_config(args.config, network=args.network)

    if args.command == "info":
        await _info(config)
    elif args.command == "balance":
        await _balance(config, args.address)
    elif args.command == "faucet":
        return await _faucet(config, args.address)
    else:
        build_parser().print_help()
        return 1
    return 0


def main() -> None:
    """Entry point."""
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    sys.exit(asyncio.run(_run(args)))
