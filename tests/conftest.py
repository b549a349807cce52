"""Shared pytest fixtures: network profile, fake chain clients and receipt builders."""

from typing import Any, Callable, Dict, List, Optional
from unittest.mock import AsyncMock

import pytest
from eth_abi.abi import encode
from eth_utils.abi import event_abi_to_log_topic
from eth_utils.address import to_checksum_address
from hexbytes import HexBytes

from chains.nitro_stack.chain_client import AsyncWeb3ChainClient
from chains.nitro_stack.types import GasPriceSnapshot
from utils.chain import get_abi
from utils.config import (
    ABI_ARB_BRIDGE,
    ABI_ARB_SYS,
    ABI_DELAYED_INBOX,
    NetworkProfile,
    get_network_profile,
)

SENDER = to_checksum_address("0x" + "11" * 20)
DESTINATION = to_checksum_address("0x" + "22" * 20)
REFUND = to_checksum_address("0x" + "33" * 20)


def _word(value: int) -> bytes:
    return value.to_bytes(32, byteorder="big")


def _address_word(address: str) -> int:
    return int.from_bytes(bytes(HexBytes(address)), byteorder="big")


def _event_topic(abi_path: str, name: str) -> HexBytes:
    (event_abi,) = [
        item
        for item in get_abi(abi_path)
        if item.get("type") == "event" and item.get("name") == name
    ]
    return HexBytes(event_abi_to_log_topic(event_abi))


@pytest.fixture
def profile() -> NetworkProfile:
    """Arbitrum One: 7 day challenge period."""
    return get_network_profile(42161)


@pytest.fixture
def snapshot() -> GasPriceSnapshot:
    return GasPriceSnapshot(
        gas_price=100_000_000,
        base_fee=100_000_000,
        max_fee_per_gas=200_000_000,
        max_priority_fee_per_gas=0,
        l1_base_fee=20_000_000_000,
        block_number=1_000,
    )


@pytest.fixture
def l1_client() -> AsyncMock:
    return AsyncMock(spec=AsyncWeb3ChainClient)


@pytest.fixture
def l2_client() -> AsyncMock:
    return AsyncMock(spec=AsyncWeb3ChainClient)


@pytest.fixture
def retryable_logs(profile: NetworkProfile) -> Callable[..., List[Dict[str, Any]]]:
    """
    Builds the `InboxMessageDelivered` + `MessageDelivered` log pair the delayed
    inbox and the bridge emit for one `createRetryableTicket()` call.
    """
    inbox_topic = _event_topic(ABI_DELAYED_INBOX, "InboxMessageDelivered")
    bridge_topic = _event_topic(ABI_ARB_BRIDGE, "MessageDelivered")

    def build(
        message_number: int,
        kind: int = 9,
        calldata: bytes = b"",
        l2_call_value: int = 0,
        inbox: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        packed = b"".join(
            _word(value)
            for value in [
                _address_word(DESTINATION),
                l2_call_value,
                10**15,  # msg.value
                10**12,  # max submission cost
                _address_word(REFUND),
                _address_word(REFUND),
                100_000,  # gas limit
                200_000_000,  # max fee per gas
                len(calldata),
            ]
        ) + calldata

        bridge_log = {
            "address": profile.bridge,
            "topics": [bridge_topic, HexBytes(_word(message_number)), HexBytes(b"\x00" * 32)],
            "data": HexBytes(
                encode(
                    ["address", "uint8", "address", "bytes32", "uint256", "uint64"],
                    [profile.inbox, kind, SENDER, b"\x01" * 32, 30_000_000_000, 1_700_000_000],
                )
            ),
        }
        inbox_log = {
            "address": inbox or profile.inbox,
            "topics": [inbox_topic, HexBytes(_word(message_number))],
            "data": HexBytes(encode(["bytes"], [packed])),
        }

        return [bridge_log, inbox_log]

    return build


@pytest.fixture
def l2_to_l1_log(profile: NetworkProfile) -> Callable[..., Dict[str, Any]]:
    topic = _event_topic(ABI_ARB_SYS, "L2ToL1Tx")

    def build(position: int, callvalue: int = 10**16) -> Dict[str, Any]:
        return {
            "address": profile.arb_sys,
            "topics": [
                topic,
                HexBytes(b"\x00" * 12 + bytes(HexBytes(DESTINATION))),
                HexBytes(_word(0xABC)),
                HexBytes(_word(position)),
            ],
            "data": HexBytes(
                encode(
                    ["address", "uint256", "uint256", "uint256", "uint256", "bytes"],
                    [SENDER, 500, 18_000_000, 1_700_000_000, callvalue, b""],
                )
            ),
        }

    return build


@pytest.fixture
def make_receipt() -> Callable[..., Dict[str, Any]]:
    def build(logs: List[Dict[str, Any]], status: int = 1, block_number: int = 500) -> Dict[str, Any]:
        block_fields = {
            "transactionIndex": 0,
            "transactionHash": HexBytes(b"\xaa" * 32),
            "blockHash": HexBytes(b"\xbb" * 32),
            "blockNumber": block_number,
        }
        receipt_logs = [
            {**block_fields, "logIndex": index, **log} for index, log in enumerate(logs)
        ]

        return {"status": status, "blockNumber": block_number, "logs": receipt_logs}

    return build
