#!/usr/bin/env python3
"""
Command line entry point.

    python main.py ticket <l1_tx_hash> --chain ARB_SEPOLIA
    python main.py withdrawal <l2_tx_hash> --chain ARB_ONE
    python main.py fee --to 0x... --data 0x... --value 0 --chain ARB_ONE
    python main.py submission-cost --data-length 100
    python main.py retryable --to 0x... --data 0x... --l2-call-value 0
    python main.py history <address>

RPC urls and the Arbiscan key are read from .env (see utils/config.py ENV).
"""

import argparse
import asyncio
import logging
import sys
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional, Tuple

from eth_utils.address import to_checksum_address
from hexbytes import HexBytes
from web3 import Web3

from chains.nitro_stack.chain_client import AsyncWeb3ChainClient
from chains.nitro_stack.challenge_period import format_duration
from chains.nitro_stack.custom_errors import NitroStackError
from chains.nitro_stack.explorer import ArbiscanClient
from chains.nitro_stack.gas_estimator import (
    FeeEstimator,
    format_fee_estimate,
    recommend_gas_prices,
)
from chains.nitro_stack.message_status import (
    MessageStatusResolver,
    format_status,
    format_ticket_info,
)
from utils.config import (
    CHAIN_NAME_TO_ID,
    RPC_TIMEOUT_SECONDS,
    ChainName,
    NetworkProfile,
    get_network_profile,
    get_parent_chain_name,
)
from utils.log import setup_logging

logger = logging.getLogger(__name__)

ROLLUPS = [ChainName.ARB_ONE, ChainName.ARB_NOVA, ChainName.ARB_SEPOLIA]


def build_parser() -> argparse.ArgumentParser:
    # shared by every command so the options may follow the command name
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--chain",
        type=ChainName,
        choices=ROLLUPS,
        default=ChainName.ARB_SEPOLIA,
        help="rollup to query (default: ARB_SEPOLIA)",
    )
    common.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="overrides LOG_LEVEL from .env",
    )
    common.add_argument(
        "--timeout",
        type=float,
        default=RPC_TIMEOUT_SECONDS,
        help="deadline of each chain read in seconds",
    )

    parser = argparse.ArgumentParser(
        description="Arbitrum Nitro message tracker and fee estimator"
    )
    commands = parser.add_subparsers(dest="command", required=True)

    ticket = commands.add_parser(
        "ticket", parents=[common], help="status of retryable tickets of an L1 tx"
    )
    ticket.add_argument("tx_hash")

    withdrawal = commands.add_parser(
        "withdrawal", parents=[common], help="status of L2 -> L1 messages of an L2 tx"
    )
    withdrawal.add_argument("tx_hash")

    fee = commands.add_parser("fee", parents=[common], help="fee estimate of an L2 call")
    fee.add_argument("--to", required=True)
    fee.add_argument("--data", default="0x")
    fee.add_argument("--value", type=int, default=0, help="wei")
    fee.add_argument("--sender", default=None)

    submission = commands.add_parser(
        "submission-cost", parents=[common], help="retryable submission cost and deposit"
    )
    submission.add_argument("--data-length", type=int, required=True)
    submission.add_argument(
        "--l1-base-fee", type=int, default=None, help="wei, read from L1 when omitted"
    )
    submission.add_argument("--l2-call-value", type=int, default=0)
    submission.add_argument("--gas-limit", type=int, default=0)
    submission.add_argument("--max-fee-per-gas", type=int, default=0)

    retryable = commands.add_parser(
        "retryable", parents=[common], help="gas parameters of a retryable ticket"
    )
    retryable.add_argument("--to", required=True)
    retryable.add_argument("--data", default="0x")
    retryable.add_argument("--l2-call-value", type=int, default=0)
    retryable.add_argument("--sender", default=None)

    history = commands.add_parser(
        "history", parents=[common], help="latest transactions of an address"
    )
    history.add_argument("address")
    history.add_argument("--limit", type=int, default=10)

    return parser


@asynccontextmanager
async def _clients(
    chain: ChainName,
) -> AsyncIterator[Tuple[NetworkProfile, AsyncWeb3ChainClient, AsyncWeb3ChainClient]]:
    profile = get_network_profile(CHAIN_NAME_TO_ID[chain])

    l2_client = AsyncWeb3ChainClient.for_rollup(chain, profile)
    l1_client = AsyncWeb3ChainClient.for_parent_chain(get_parent_chain_name(profile))

    try:
        yield profile, l1_client, l2_client
    finally:
        await asyncio.gather(l1_client.aclose(), l2_client.aclose())


async def _ticket(args: argparse.Namespace) -> None:
    async with _clients(args.chain) as (profile, l1_client, l2_client):
        resolver = MessageStatusResolver(l1_client, l2_client, profile)
        tickets = await resolver.resolve_l1_to_l2_status(args.tx_hash, timeout=args.timeout)

    for ticket in tickets:
        for label, value in format_ticket_info(ticket).items():
            print(f"{label}: {value}")
        print()


async def _withdrawal(args: argparse.Namespace) -> None:
    now = int(time.time())

    async with _clients(args.chain) as (profile, l1_client, l2_client):
        resolver = MessageStatusResolver(l1_client, l2_client, profile)
        messages = await resolver.resolve_l2_to_l1_status(
            args.tx_hash, now=now, timeout=args.timeout
        )

    for message in messages:
        print(f"Position: {message.position if message.position is not None else '-'}")
        print(f"  Status: {format_status(message.status)}")
        if message.destination:
            print(f"  Destination: {message.destination}")
            print(f"  Amount: {Web3.from_wei(message.amount, 'ether')} ETH")
        if message.challenge_end_epoch_seconds is not None:
            remaining = message.challenge_end_epoch_seconds - now
            print(f"  Challenge period: {format_duration(remaining)}")


async def _fee(args: argparse.Namespace) -> None:
    sender = to_checksum_address(args.sender) if args.sender else None

    async with _clients(args.chain) as (profile, _, l2_client):
        snapshot = await l2_client.get_fee_data(timeout=args.timeout)
        estimate = await FeeEstimator(l2_client).estimate(
            to_checksum_address(args.to),
            HexBytes(args.data),
            args.value,
            profile,
            sender=sender,
            timeout=args.timeout,
            snapshot=snapshot,
        )

    for label, value in format_fee_estimate(estimate).items():
        print(f"{label}: {value}")
    if estimate.used_l1_fallback:
        print("(L1 gas counted from calldata bytes)")

    for speed, recommendation in recommend_gas_prices(snapshot).items():
        print(
            f"{speed}: maxFeePerGas={recommendation.max_fee_per_gas} "
            f"maxPriorityFeePerGas={recommendation.max_priority_fee_per_gas}"
        )


async def _submission_cost(args: argparse.Namespace) -> None:
    profile = get_network_profile(CHAIN_NAME_TO_ID[args.chain])

    l1_base_fee = args.l1_base_fee
    if l1_base_fee is None:
        l1_client = AsyncWeb3ChainClient.for_parent_chain(get_parent_chain_name(profile))
        try:
            snapshot = await l1_client.get_fee_data(timeout=args.timeout)
        finally:
            await l1_client.aclose()
        l1_base_fee = snapshot.base_fee

    cost = FeeEstimator.estimate_submission_cost(
        args.data_length,
        l1_base_fee,
        profile,
        l2_call_value=args.l2_call_value,
        gas_limit=args.gas_limit,
        max_fee_per_gas=args.max_fee_per_gas,
    )

    print(f"L1 base fee: {l1_base_fee}")
    print(f"Submission gas: {cost.submission_gas}")
    print(f"Submission fee: {cost.submission_fee}")
    print(f"Max submission cost: {cost.max_submission_cost}")
    print(f"Required deposit: {cost.required_deposit}")


async def _retryable(args: argparse.Namespace) -> None:
    sender = to_checksum_address(args.sender) if args.sender else None

    async with _clients(args.chain) as (profile, l1_client, l2_client):
        estimate = await FeeEstimator(l2_client, l1_client).estimate_retryable(
            to_checksum_address(args.to),
            HexBytes(args.data),
            args.l2_call_value,
            profile,
            sender=sender,
            timeout=args.timeout,
        )

    print(f"Gas limit: {estimate.gas_limit}")
    print(f"Max fee per gas: {estimate.max_fee_per_gas}")
    print(f"Max submission cost: {estimate.submission.max_submission_cost}")
    print(f"Deposit: {Web3.from_wei(estimate.deposit, 'ether')} ETH")


async def _history(args: argparse.Namespace) -> None:
    profile = get_network_profile(CHAIN_NAME_TO_ID[args.chain])

    async with ArbiscanClient(profile=profile) as explorer:
        transactions = await explorer.get_transactions(args.address, offset=args.limit)

    if not transactions:
        print("No transactions found")

    for tx in transactions:
        print(f"{tx.get('blockNumber')} {tx.get('hash')} {tx.get('from')} -> {tx.get('to')}")


COMMANDS = {
    "ticket": _ticket,
    "withdrawal": _withdrawal,
    "fee": _fee,
    "submission-cost": _submission_cost,
    "retryable": _retryable,
    "history": _history,
}


async def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    setup_logging(args.log_level)

    try:
        await COMMANDS[args.command](args)
    except ValueError as e:
        logger.error(f"Configuration Error: {e}")
        return 1
    except NitroStackError as e:
        logger.error(f"{e.__class__.__name__}: {e}")
        return 1

    return 0


def run() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
