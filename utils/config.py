import os
from enum import StrEnum
from types import MappingProxyType
from typing import Dict, Final, Mapping, NamedTuple

from eth_typing import ChecksumAddress
from eth_utils.address import to_checksum_address


class ENV(StrEnum):
    ETH_MAINNET_RPC_URL = "ETH_MAINNET_RPC_URL"
    ETH_SEPOLIA_RPC_URL = "ETH_SEPOLIA_RPC_URL"
    ARB_ONE_RPC_URL = "ARB_ONE_RPC_URL"
    ARB_NOVA_RPC_URL = "ARB_NOVA_RPC_URL"
    ARB_SEPOLIA_RPC_URL = "ARB_SEPOLIA_RPC_URL"
    ARBISCAN_API_KEY = "ARBISCAN_API_KEY"
    ARBISCAN_RATE_LIMIT = "ARBISCAN_RATE_LIMIT"
    LOG_LEVEL = "LOG_LEVEL"


class ChainName(StrEnum):
    ETH_MAINNET = "ETH_MAINNET"
    ETH_SEPOLIA = "ETH_SEPOLIA"
    ARB_ONE = "ARB_ONE"
    ARB_NOVA = "ARB_NOVA"
    ARB_SEPOLIA = "ARB_SEPOLIA"


CHAIN_NAME_TO_ID: Final[Mapping[ChainName, int]] = MappingProxyType(
    {
        ChainName.ETH_MAINNET: 1,
        ChainName.ETH_SEPOLIA: 11155111,
        ChainName.ARB_ONE: 42161,
        ChainName.ARB_NOVA: 42170,
        ChainName.ARB_SEPOLIA: 421614,
    }
)


# RPC / EXPLORER

RPC_TIMEOUT_SECONDS = 30
DEFAULT_EXPLORER_RATE_LIMIT = 5
EXPLORER_TIMEOUT_SECONDS = 30


# GAS ESTIMATE

# basis points, 15000 == 1.5x
GAS_LIMIT_MULTIPLIER_BPS = 15_000
BPS_DENOMINATOR = 10_000


# NITRO CONFIG

ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

ABI_DELAYED_INBOX = os.path.join(ROOT_DIR, "chains/nitro_stack/ABI/delayed_inbox.json")
ABI_ARB_BRIDGE = os.path.join(ROOT_DIR, "chains/nitro_stack/ABI/bridge.json")
ABI_OUTBOX = os.path.join(ROOT_DIR, "chains/nitro_stack/ABI/outbox.json")
ABI_ARB_SYS = os.path.join(ROOT_DIR, "chains/nitro_stack/ABI/arb_sys_precompile.json")
ABI_ARB_RETRYABLE_TX = os.path.join(
    ROOT_DIR, "chains/nitro_stack/ABI/arb_retryable_tx_precompile.json"
)
ABI_ARB_GAS_INFO = os.path.join(
    ROOT_DIR, "chains/nitro_stack/ABI/arb_gas_info_precompile.json"
)
ABI_NODE_INTERFACE = os.path.join(ROOT_DIR, "chains/nitro_stack/ABI/node_interface.json")

ONE_HOUR = 60 * 60
SEVEN_DAYS = 7 * 24 * ONE_HOUR

ARB_SYS = to_checksum_address("0x0000000000000000000000000000000000000064")
ARB_GAS_INFO = to_checksum_address("0x000000000000000000000000000000000000006C")
ARB_RETRYABLE_TX = to_checksum_address("0x000000000000000000000000000000000000006E")
NODE_INTERFACE = to_checksum_address("0x00000000000000000000000000000000000000C8")


class NetworkProfile(NamedTuple):
    """
    Immutable per-network constants for a Nitro rollup and its parent chain.

    Attributes:
        chain_id: Rollup chain id
        name: Human readable network name
        parent_chain_id: Chain id of the parent (L1) chain
        challenge_period_seconds: Time an L2 -> L1 message waits before it can be executed
        inbox: Delayed inbox on the parent chain
        bridge: Bridge on the parent chain
        outbox: Outbox on the parent chain
        explorer_api_url: Arbiscan-style explorer REST endpoint
        arb_sys: ArbSys precompile on the rollup
        arb_retryable_tx: ArbRetryableTx precompile on the rollup
        arb_gas_info: ArbGasInfo precompile on the rollup
        node_interface: NodeInterface virtual contract on the rollup
        submission_cost_base_gas: Fixed gas of a retryable submission
        submission_cost_per_byte_gas: Gas per byte of retryable calldata
        calldata_zero_byte_gas: L1 gas per zero calldata byte
        calldata_non_zero_byte_gas: L1 gas per non-zero calldata byte
        submission_safety_multiplier_bps: Safety margin on the submission fee
    """

    chain_id: int
    name: str
    parent_chain_id: int
    challenge_period_seconds: int
    inbox: ChecksumAddress
    bridge: ChecksumAddress
    outbox: ChecksumAddress
    explorer_api_url: str
    arb_sys: ChecksumAddress = ARB_SYS
    arb_retryable_tx: ChecksumAddress = ARB_RETRYABLE_TX
    arb_gas_info: ChecksumAddress = ARB_GAS_INFO
    node_interface: ChecksumAddress = NODE_INTERFACE
    submission_cost_base_gas: int = 1400
    submission_cost_per_byte_gas: int = 6
    calldata_zero_byte_gas: int = 4
    calldata_non_zero_byte_gas: int = 16
    submission_safety_multiplier_bps: int = 15_000


class UnknownNetworkError(ValueError):
    """Raised when no NetworkProfile is registered for a chain id."""


_PROFILES: Dict[int, NetworkProfile] = {
    42161: NetworkProfile(
        chain_id=42161,
        name="Arbitrum One",
        parent_chain_id=1,
        challenge_period_seconds=SEVEN_DAYS,
        inbox=to_checksum_address("0x4Dbd4fc535Ac27206064B68FfCf827b0A60BAB3f"),
        bridge=to_checksum_address("0x8315177aB297bA92A06054cE80a67Ed4DBd7ed3a"),
        outbox=to_checksum_address("0x0B9857ae2D4A3DBe74ffE1d7DF045bb7F96E4840"),
        explorer_api_url="https://api.arbiscan.io",
    ),
    42170: NetworkProfile(
        chain_id=42170,
        name="Arbitrum Nova",
        parent_chain_id=1,
        challenge_period_seconds=SEVEN_DAYS,
        inbox=to_checksum_address("0xc4448b71118c9071Bcb9734A0EAc55D18A153949"),
        bridge=to_checksum_address("0xC1Ebd02f738644983b6C4B2d440b8e77DdE276Bd"),
        outbox=to_checksum_address("0xD4B80C3D7240325D18E645B49e6535A3Bf95cc58"),
        explorer_api_url="https://api-nova.arbiscan.io",
    ),
    421614: NetworkProfile(
        chain_id=421614,
        name="Arbitrum Sepolia",
        parent_chain_id=11155111,
        challenge_period_seconds=ONE_HOUR,
        inbox=to_checksum_address("0xaAe29B0366299461418F5324a79Afc425BE5ae21"),
        bridge=to_checksum_address("0x38f918D0E9F1b721EDaA41302E399fa1B79333a9"),
        outbox=to_checksum_address("0x65f07C7D521164a4d5DaC6eB8Fac8DA067A3B78F"),
        explorer_api_url="https://api-sepolia.arbiscan.io",
    ),
}

NETWORK_PROFILES: Final[Mapping[int, NetworkProfile]] = MappingProxyType(_PROFILES)


def get_network_profile(chain_id: int) -> NetworkProfile:
    profile = NETWORK_PROFILES.get(chain_id)

    if profile is None:
        raise UnknownNetworkError(
            f"No network profile for chain id {chain_id}. "
            f"Known chain ids: {sorted(NETWORK_PROFILES)}"
        )

    return profile


def get_parent_chain_name(profile: NetworkProfile) -> ChainName:
    for chain_name, chain_id in CHAIN_NAME_TO_ID.items():
        if chain_id == profile.parent_chain_id:
            return chain_name

    raise UnknownNetworkError(
        f"No parent chain configured for chain id {profile.parent_chain_id}"
    )
