from enum import Enum, IntEnum
from typing import Dict, NamedTuple, Optional, TypedDict

from eth_typing import ChecksumAddress
from hexbytes import HexBytes

from utils.config import BPS_DENOMINATOR


class TicketStatus(Enum):
    NOT_YET_CREATED = 1
    CREATION_FAILED = 2
    FUNDS_DEPOSITED_ON_L2 = 3
    REDEEMED = 4
    EXPIRED = 5

    @property
    def is_terminal(self) -> bool:
        return self in (
            TicketStatus.CREATION_FAILED,
            TicketStatus.REDEEMED,
            TicketStatus.EXPIRED,
        )

    @property
    def is_success(self) -> bool:
        return self is TicketStatus.REDEEMED


class WithdrawalStatus(IntEnum):
    """Ordered: a withdrawal only moves UNCONFIRMED -> CONFIRMED -> EXECUTED."""

    UNCONFIRMED = 1
    CONFIRMED = 2
    EXECUTED = 3

    @property
    def is_terminal(self) -> bool:
        return self is WithdrawalStatus.EXECUTED

    @property
    def is_success(self) -> bool:
        return self is WithdrawalStatus.EXECUTED


TICKET_STATUS_LABELS: Dict[TicketStatus, str] = {
    TicketStatus.NOT_YET_CREATED: "Not Yet Created",
    TicketStatus.CREATION_FAILED: "Creation Failed",
    TicketStatus.FUNDS_DEPOSITED_ON_L2: "Funds Deposited on L2",
    TicketStatus.REDEEMED: "Redeemed",
    TicketStatus.EXPIRED: "Expired",
}

WITHDRAWAL_STATUS_LABELS: Dict[WithdrawalStatus, str] = {
    WithdrawalStatus.UNCONFIRMED: "Unconfirmed (In Challenge Period)",
    WithdrawalStatus.CONFIRMED: "Confirmed (Ready to Execute)",
    WithdrawalStatus.EXECUTED: "Executed",
}


class RetryableTicketParams(TypedDict):
    to: ChecksumAddress
    l2CallValue: int
    maxSubmissionCost: int
    excessFeeRefundAddress: ChecksumAddress
    callValueRefundAddress: ChecksumAddress
    gasLimit: int
    maxFeePerGas: int
    data: HexBytes


class MessageDeliveredArgs(TypedDict):
    messageIndex: int
    inbox: ChecksumAddress
    kind: int
    sender: ChecksumAddress
    messageDataHash: HexBytes
    baseFeeL1: int
    timestamp: int


class L2ToL1TxArgs(TypedDict):
    caller: ChecksumAddress
    destination: ChecksumAddress
    hash: int
    position: int
    arbBlockNum: int
    ethBlockNum: int
    timestamp: int
    callvalue: int
    data: HexBytes


class RetryableTicket(NamedTuple):
    ticket_id: Optional[HexBytes]
    status: TicketStatus
    timeout_epoch_seconds: int = 0
    message_number: Optional[int] = None
    params: Optional[RetryableTicketParams] = None
    sender: Optional[ChecksumAddress] = None
    deposit: int = 0


class WithdrawalMessage(NamedTuple):
    l2_tx_hash: HexBytes
    status: WithdrawalStatus
    position: Optional[int] = None
    destination: Optional[ChecksumAddress] = None
    caller: Optional[ChecksumAddress] = None
    amount: int = 0
    challenge_end_epoch_seconds: Optional[int] = None


class ChallengeStatus(NamedTuple):
    end_epoch_seconds: int
    remaining_seconds: int
    is_ready: bool


class GasPriceSnapshot(NamedTuple):
    """
    Fee fields of the latest block. `base_fee` and `l1_base_fee` are read at
    `block_number`; `gas_price` and `max_priority_fee_per_gas` are the node's
    current answers and may already reflect a newer block.

    `l1_base_fee` is the rollup's estimate of the parent chain base fee. On a
    parent chain it equals `base_fee`.
    """

    gas_price: int
    base_fee: int
    max_fee_per_gas: int
    max_priority_fee_per_gas: int
    l1_base_fee: int
    block_number: int


def to_bps(part: int, total: int) -> int:
    if total == 0:
        return 0

    return part * BPS_DENOMINATOR // total


def format_bps(bps: int) -> str:
    """10000 bps -> "100.00". Integer only so the display never drifts."""
    return f"{bps // 100}.{bps % 100:02d}"


class FeeEstimate(NamedTuple):
    gas_limit: int
    max_fee_per_gas: int
    max_priority_fee_per_gas: int
    l1_base_fee: int
    l1_gas_units: int
    l1_data_fee: int
    l2_execution_fee: int
    total_fee: int
    used_l1_fallback: bool = False

    @classmethod
    def build(
        cls,
        gas_limit: int,
        snapshot: GasPriceSnapshot,
        l1_gas_units: int,
        used_l1_fallback: bool = False,
    ) -> "FeeEstimate":
        l1_data_fee = l1_gas_units * snapshot.l1_base_fee
        l2_execution_fee = gas_limit * snapshot.max_fee_per_gas

        return cls(
            gas_limit=gas_limit,
            max_fee_per_gas=snapshot.max_fee_per_gas,
            max_priority_fee_per_gas=snapshot.max_priority_fee_per_gas,
            l1_base_fee=snapshot.l1_base_fee,
            l1_gas_units=l1_gas_units,
            l1_data_fee=l1_data_fee,
            l2_execution_fee=l2_execution_fee,
            total_fee=l1_data_fee + l2_execution_fee,
            used_l1_fallback=used_l1_fallback,
        )

    @property
    def l1_percentage_bps(self) -> int:
        return to_bps(self.l1_data_fee, self.total_fee)

    @property
    def l2_percentage_bps(self) -> int:
        return to_bps(self.l2_execution_fee, self.total_fee)

    @property
    def l1_percentage(self) -> str:
        return format_bps(self.l1_percentage_bps)

    @property
    def l2_percentage(self) -> str:
        return format_bps(self.l2_percentage_bps)


class SubmissionCostEstimate(NamedTuple):
    data_length_bytes: int
    submission_gas: int
    submission_fee: int
    max_submission_cost: int
    required_deposit: int


class RetryableGasEstimate(NamedTuple):
    gas_limit: int
    max_fee_per_gas: int
    l1_base_fee: int
    submission: SubmissionCostEstimate

    @property
    def deposit(self) -> int:
        return self.submission.required_deposit


class GasPriceRecommendation(NamedTuple):
    max_fee_per_gas: int
    max_priority_fee_per_gas: int


class FeeComparison(NamedTuple):
    cheaper: str
    savings: int
    savings_bps: int
