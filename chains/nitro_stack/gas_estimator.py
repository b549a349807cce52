import asyncio
import logging
from typing import Dict, Optional, Tuple

from eth_abi.exceptions import DecodingError
from eth_typing import ChecksumAddress
from hexbytes import HexBytes
from web3 import Web3
from web3.types import TxParams

from utils.chain import apply_bps_buffer, decode_call_result, encode_call, get_contract
from utils.config import ABI_NODE_INTERFACE, GAS_LIMIT_MULTIPLIER_BPS, NetworkProfile
from .chain_client import ChainClient
from .custom_errors import (
    NitroStackCallRevertedError,
    NitroStackError,
    NitroStackTimeoutError,
)
from .types import (
    FeeComparison,
    FeeEstimate,
    GasPriceRecommendation,
    GasPriceSnapshot,
    RetryableGasEstimate,
    SubmissionCostEstimate,
    to_bps,
)

# used when the L2 execution of a retryable cannot be simulated
DEFAULT_RETRYABLE_GAS_LIMIT = 300_000

PRIORITY_FEE_SLOW = Web3.to_wei("0.001", "gwei")
PRIORITY_FEE_STANDARD = Web3.to_wei("0.01", "gwei")
PRIORITY_FEE_FAST = Web3.to_wei("0.1", "gwei")


def calldata_l1_gas(calldata: bytes, profile: NetworkProfile) -> int:
    """
    L1 gas of posting `calldata`, counted byte by byte.

    >>> calldata_l1_gas(bytes.fromhex("00ff"), profile)
    20
    """
    zero_bytes = bytes(calldata).count(0)
    non_zero_bytes = len(calldata) - zero_bytes

    return (
        zero_bytes * profile.calldata_zero_byte_gas
        + non_zero_bytes * profile.calldata_non_zero_byte_gas
    )


class FeeEstimator:
    """
    Estimates what a transaction costs on a Nitro rollup. The total fee has two
    components: L2 execution (gas limit times max fee per gas) and the L1 data
    fee paid for posting the calldata to the parent chain.

    Also sizes retryable tickets: the submission cost is charged on the parent
    chain for storing the ticket and has to be covered by the deposit, together
    with the L2 call value and the L2 execution cost. Underpaying the
    submission cost makes the L1 transaction fail, underpaying L2 gas leaves the
    ticket to be redeemed manually.

    Parameters
    ----------
    `l2_client` : ChainClient
    `l1_client` : ChainClient, optional
        parent chain client, only needed by `estimate_retryable()`
    """

    def __init__(
        self, l2_client: ChainClient, l1_client: Optional[ChainClient] = None
    ) -> None:
        self.l2_client = l2_client
        self.l1_client = l1_client
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    async def _l1_gas_units(
        self,
        to: ChecksumAddress,
        calldata: HexBytes,
        profile: NetworkProfile,
        timeout: Optional[float],
    ) -> Tuple[int, bool]:
        """
        returns (l1 gas units, used fallback). Prefers the NodeInterface estimate and
        counts calldata bytes when it is unavailable.
        """
        node_interface = get_contract(profile.node_interface, ABI_NODE_INTERFACE)

        try:
            result = await self.l2_client.call_view(
                profile.node_interface,
                encode_call(
                    node_interface, "gasEstimateL1Component", to, False, bytes(calldata)
                ),
                timeout=timeout,
            )
            gas_estimate_for_l1, _, _ = decode_call_result(
                node_interface, "gasEstimateL1Component", result
            )

            return gas_estimate_for_l1, False
        except NitroStackTimeoutError:
            raise
        except (NitroStackError, DecodingError) as e:
            self.logger.debug(
                f"NodeInterface.gasEstimateL1Component unavailable on {profile.name}, "
                f"counting calldata bytes: {e}"
            )

        return calldata_l1_gas(calldata, profile), True

    async def estimate(
        self,
        to: ChecksumAddress,
        calldata: bytes,
        value: int,
        profile: NetworkProfile,
        sender: Optional[ChecksumAddress] = None,
        timeout: Optional[float] = None,
        snapshot: Optional[GasPriceSnapshot] = None,
    ) -> FeeEstimate:
        """
        Fee estimate of a call on the rollup.

        Parameters
        ----------
        `to` : ChecksumAddress
        `calldata` : bytes
        `value` : int
            wei sent along with the call
        `profile` : NetworkProfile
        `sender` : ChecksumAddress, optional
        `timeout` : float, optional
        `snapshot` : GasPriceSnapshot, optional
            fee data already read from the rollup, fetched when omitted

        Returns
        -------
        FeeEstimate
        """
        calldata = HexBytes(calldata)

        transaction: TxParams = {"to": to, "data": calldata, "value": value}
        if sender is not None:
            transaction["from"] = sender

        if snapshot is None:
            gas_limit, snapshot, (l1_gas_units, used_fallback) = await asyncio.gather(
                self.l2_client.estimate_gas(transaction, timeout=timeout),
                self.l2_client.get_fee_data(timeout=timeout),
                self._l1_gas_units(to, calldata, profile, timeout),
            )
        else:
            gas_limit, (l1_gas_units, used_fallback) = await asyncio.gather(
                self.l2_client.estimate_gas(transaction, timeout=timeout),
                self._l1_gas_units(to, calldata, profile, timeout),
            )

        return FeeEstimate.build(gas_limit, snapshot, l1_gas_units, used_fallback)

    @staticmethod
    def estimate_submission_cost(
        data_length_bytes: int,
        l1_base_fee: int,
        profile: NetworkProfile,
        *,
        l2_call_value: int = 0,
        gas_limit: int = 0,
        max_fee_per_gas: int = 0,
    ) -> SubmissionCostEstimate:
        """
        Submission cost of a retryable ticket carrying `data_length_bytes` of calldata,
        and the deposit it requires.

        Parameters
        ----------
        `data_length_bytes` : int
        `l1_base_fee` : int
            base fee of the parent chain
        `profile` : NetworkProfile
        `l2_call_value`, `gas_limit`, `max_fee_per_gas` : int
            L2 side of the ticket, included in `required_deposit`

        Returns
        -------
        SubmissionCostEstimate
        """
        if data_length_bytes < 0:
            raise ValueError("`data_length_bytes` must be non-negative")

        submission_gas = (
            profile.submission_cost_base_gas
            + data_length_bytes * profile.submission_cost_per_byte_gas
        )
        submission_fee = submission_gas * l1_base_fee
        max_submission_cost = apply_bps_buffer(
            submission_fee, profile.submission_safety_multiplier_bps
        )

        return SubmissionCostEstimate(
            data_length_bytes=data_length_bytes,
            submission_gas=submission_gas,
            submission_fee=submission_fee,
            max_submission_cost=max_submission_cost,
            required_deposit=l2_call_value
            + max_submission_cost
            + gas_limit * max_fee_per_gas,
        )

    async def estimate_l1_data_fee(
        self,
        calldata: bytes,
        profile: NetworkProfile,
        timeout: Optional[float] = None,
    ) -> int:
        """L1 data fee of `calldata` at the rollup's current L1 base fee estimate."""
        snapshot = await self.l2_client.get_fee_data(timeout=timeout)

        return calldata_l1_gas(calldata, profile) * snapshot.l1_base_fee

    async def _retryable_gas_limit(
        self, transaction: TxParams, timeout: Optional[float]
    ) -> int:
        try:
            return await self.l2_client.estimate_gas(transaction, timeout=timeout)
        except NitroStackCallRevertedError as e:
            self.logger.warning(
                f"L2 gas estimate reverted, using {DEFAULT_RETRYABLE_GAS_LIMIT}: {e}"
            )
            return DEFAULT_RETRYABLE_GAS_LIMIT

    async def estimate_retryable(
        self,
        to: ChecksumAddress,
        calldata: bytes,
        l2_call_value: int,
        profile: NetworkProfile,
        sender: Optional[ChecksumAddress] = None,
        gas_limit_multiplier_bps: int = GAS_LIMIT_MULTIPLIER_BPS,
        timeout: Optional[float] = None,
    ) -> RetryableGasEstimate:
        """
        All the values needed to submit a retryable ticket: L2 gas limit (buffered by
        `gas_limit_multiplier_bps`), L2 max fee per gas, submission cost and deposit.

        Returns
        -------
        RetryableGasEstimate
        """
        if self.l1_client is None:
            raise ValueError("`l1_client` is required to size a retryable ticket")

        calldata = HexBytes(calldata)

        transaction: TxParams = {"to": to, "data": calldata, "value": l2_call_value}
        if sender is not None:
            transaction["from"] = sender

        l1_snapshot, l2_snapshot, gas_estimate = await asyncio.gather(
            self.l1_client.get_fee_data(timeout=timeout),
            self.l2_client.get_fee_data(timeout=timeout),
            self._retryable_gas_limit(transaction, timeout),
        )

        gas_limit = apply_bps_buffer(gas_estimate, gas_limit_multiplier_bps)

        submission = self.estimate_submission_cost(
            len(calldata),
            l1_snapshot.base_fee,
            profile,
            l2_call_value=l2_call_value,
            gas_limit=gas_limit,
            max_fee_per_gas=l2_snapshot.max_fee_per_gas,
        )

        return RetryableGasEstimate(
            gas_limit=gas_limit,
            max_fee_per_gas=l2_snapshot.max_fee_per_gas,
            l1_base_fee=l1_snapshot.base_fee,
            submission=submission,
        )


def recommend_gas_prices(snapshot: GasPriceSnapshot) -> Dict[str, GasPriceRecommendation]:
    """
    slow / standard / fast fee caps: +5 %, +10 % and +20 % over the L2 base fee.
    """
    base_fee = snapshot.base_fee

    return {
        "slow": GasPriceRecommendation(base_fee + base_fee // 20, PRIORITY_FEE_SLOW),
        "standard": GasPriceRecommendation(
            base_fee + base_fee // 10, PRIORITY_FEE_STANDARD
        ),
        "fast": GasPriceRecommendation(base_fee + base_fee // 5, PRIORITY_FEE_FAST),
    }


def compare_fee_estimates(
    first: FeeEstimate,
    second: FeeEstimate,
    labels: Tuple[str, str] = ("first", "second"),
) -> FeeComparison:
    """
    Which estimate is cheaper and by how much. Ties go to `first`.
    """
    if second.total_fee < first.total_fee:
        cheaper, higher, lower = labels[1], first.total_fee, second.total_fee
    else:
        cheaper, higher, lower = labels[0], second.total_fee, first.total_fee

    savings = higher - lower

    return FeeComparison(cheaper=cheaper, savings=savings, savings_bps=to_bps(savings, higher))


def format_fee_estimate(estimate: FeeEstimate) -> Dict[str, str]:
    def ether(wei: int) -> str:
        return str(Web3.from_wei(wei, "ether"))

    def gwei(wei: int) -> str:
        return f"{Web3.from_wei(wei, 'gwei')} Gwei"

    return {
        "Gas Limit": str(estimate.gas_limit),
        "Max Fee Per Gas": gwei(estimate.max_fee_per_gas),
        "Max Priority Fee": gwei(estimate.max_priority_fee_per_gas),
        "L1 Data Fee": f"{ether(estimate.l1_data_fee)} ETH ({estimate.l1_percentage}%)",
        "L2 Execution Fee": f"{ether(estimate.l2_execution_fee)} ETH ({estimate.l2_percentage}%)",
        "Total Fee": f"{ether(estimate.total_fee)} ETH",
    }
