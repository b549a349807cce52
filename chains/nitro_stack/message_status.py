"""
Status of cross-layer messages derived from live chain state.

Every call is a pure read of the current state: nothing is cached between calls
and no background polling happens here. Callers poll `resolve_*` on their own
schedule and stop once `status.is_terminal`.
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence, Union

from hexbytes import HexBytes
from web3 import Web3
from web3.types import TxReceipt

from utils.chain import decode_call_result, encode_call, get_contract
from utils.config import ABI_ARB_RETRYABLE_TX, ABI_OUTBOX, NetworkProfile
from .chain_client import ChainClient
from .challenge_period import challenge_status
from .custom_errors import NitroStackCallRevertedError
from .events import parse_l2_to_l1_txs, parse_retryable_creations
from .types import (
    TICKET_STATUS_LABELS,
    WITHDRAWAL_STATUS_LABELS,
    L2ToL1TxArgs,
    RetryableTicket,
    TicketStatus,
    WithdrawalMessage,
    WithdrawalStatus,
)

TXN_SUCCESSFUL = 1

TxHash = Union[HexBytes, bytes, str]


def classify_ticket(timeout_epoch_seconds: int, now: int) -> TicketStatus:
    """
    A zero timeout is reported as `REDEEMED`. The precompile answers the same
    way for a ticket id that never existed, so callers holding their own proof
    of creation are the only ones able to tell the two apart.
    """
    if timeout_epoch_seconds == 0:
        return TicketStatus.REDEEMED

    if now > timeout_epoch_seconds:
        return TicketStatus.EXPIRED

    return TicketStatus.FUNDS_DEPOSITED_ON_L2


class MessageStatusResolver:
    """
    Resolves retryable tickets (L1 -> L2) and withdrawals (L2 -> L1) of one
    Nitro rollup.

    Parameters
    ----------
    `l1_client` : ChainClient
        client of the parent chain (inbox, bridge, outbox)

    `l2_client` : ChainClient
        client of the rollup (ArbSys, ArbRetryableTx)

    `profile` : NetworkProfile

    `clock` : Callable[[], int], optional
        source of the current epoch seconds, defaults to `time.time`
    """

    def __init__(
        self,
        l1_client: ChainClient,
        l2_client: ChainClient,
        profile: NetworkProfile,
        clock: Optional[Callable[[], int]] = None,
    ) -> None:
        self.l1_client = l1_client
        self.l2_client = l2_client
        self.profile = profile
        self.clock = clock or (lambda: int(time.time()))
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    async def _get_ticket_timeout(
        self, ticket_id: HexBytes, timeout: Optional[float]
    ) -> int:
        arb_retryable_tx = get_contract(self.profile.arb_retryable_tx, ABI_ARB_RETRYABLE_TX)
        abi = arb_retryable_tx.abi

        try:
            result = await self.l2_client.call_view(
                self.profile.arb_retryable_tx,
                encode_call(arb_retryable_tx, "getTimeout", bytes(ticket_id)),
                timeout=timeout,
            )
        except NitroStackCallRevertedError as e:
            if e.matches(abi, "NoTicketWithID"):
                return 0

            raise NitroStackCallRevertedError.from_contract_error(abi, e) from e

        (timeout_epoch_seconds,) = decode_call_result(arb_retryable_tx, "getTimeout", result)

        return timeout_epoch_seconds

    async def _is_spent(self, position: int, timeout: Optional[float]) -> bool:
        outbox = get_contract(self.profile.outbox, ABI_OUTBOX)

        try:
            result = await self.l1_client.call_view(
                self.profile.outbox,
                encode_call(outbox, "isSpent", position),
                timeout=timeout,
            )
        except NitroStackCallRevertedError as e:
            raise NitroStackCallRevertedError.from_contract_error(outbox.abi, e) from e

        (spent,) = decode_call_result(outbox, "isSpent", result)

        return spent

    async def resolve_l1_to_l2_status(
        self,
        l1_tx_hash: TxHash,
        now: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> List[RetryableTicket]:
        """
        Status of every retryable ticket created by an L1 transaction, in log order.

        Parameters
        ----------
        `l1_tx_hash` : HexBytes
            transaction hash on L1 that called `createRetryableTicket()` (possibly
            more than once)

        `now` : int, optional
            epoch seconds used to decide expiry, defaults to the resolver clock

        `timeout` : float, optional
            deadline of each chain read

        Returns
        -------
        `List[RetryableTicket]`, never empty
        """
        l1_tx_hash = HexBytes(l1_tx_hash)

        receipt: Optional[TxReceipt] = await self.l1_client.get_transaction_receipt(
            l1_tx_hash, timeout=timeout
        )

        if receipt is None:
            self.logger.debug(f"No L1 receipt yet for {l1_tx_hash.hex()}")
            return [RetryableTicket(ticket_id=None, status=TicketStatus.NOT_YET_CREATED)]

        if receipt.get("status") != TXN_SUCCESSFUL:
            return [RetryableTicket(ticket_id=None, status=TicketStatus.CREATION_FAILED)]

        creations = parse_retryable_creations(receipt, self.profile)

        if not creations:
            self.logger.debug(f"No retryable ticket created by {l1_tx_hash.hex()}")
            return [RetryableTicket(ticket_id=None, status=TicketStatus.CREATION_FAILED)]

        timeouts = await asyncio.gather(
            *(
                self._get_ticket_timeout(creation.ticket_id, timeout)
                for creation in creations
            )
        )

        if now is None:
            now = self.clock()

        return [
            RetryableTicket(
                ticket_id=creation.ticket_id,
                status=classify_ticket(timeout_epoch_seconds, now),
                timeout_epoch_seconds=timeout_epoch_seconds,
                message_number=creation.message_number,
                params=creation.params,
                sender=creation.sender,
                deposit=creation.call_value,
            )
            for creation, timeout_epoch_seconds in zip(creations, timeouts)
        ]

    async def resolve_l2_to_l1_status(
        self,
        l2_tx_hash: TxHash,
        now: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> List[WithdrawalMessage]:
        """
        Status of every L2 -> L1 message sent by an L2 transaction, in log order.

        An executed (spent) message is `EXECUTED` whatever its challenge window
        says. Otherwise it is `CONFIRMED` once the challenge period measured from
        the L2 block timestamp has elapsed, `UNCONFIRMED` before that.

        Returns
        -------
        `List[WithdrawalMessage]`, never empty
        """
        l2_tx_hash = HexBytes(l2_tx_hash)

        receipt: Optional[TxReceipt] = await self.l2_client.get_transaction_receipt(
            l2_tx_hash, timeout=timeout
        )

        if receipt is None:
            self.logger.debug(f"No L2 receipt yet for {l2_tx_hash.hex()}")
            return [WithdrawalMessage(l2_tx_hash, WithdrawalStatus.UNCONFIRMED)]

        events = parse_l2_to_l1_txs(receipt, self.profile)

        if not events:
            # not indexed yet
            return [WithdrawalMessage(l2_tx_hash, WithdrawalStatus.UNCONFIRMED)]

        spent = await asyncio.gather(
            *(self._is_spent(event["position"], timeout) for event in events)
        )

        challenge_end: Optional[int] = None
        is_ready = False

        if not all(spent):
            block = await self.l2_client.get_block(receipt["blockNumber"], timeout=timeout)

            if block is not None:
                if now is None:
                    now = self.clock()

                window = challenge_status(block["timestamp"], self.profile, now)
                challenge_end = window.end_epoch_seconds
                is_ready = window.is_ready

        return [
            self._withdrawal(l2_tx_hash, event, is_spent, is_ready, challenge_end)
            for event, is_spent in zip(events, spent)
        ]

    @staticmethod
    def _withdrawal(
        l2_tx_hash: HexBytes,
        event: L2ToL1TxArgs,
        is_spent: bool,
        is_ready: bool,
        challenge_end: Optional[int],
    ) -> WithdrawalMessage:
        if is_spent:
            status = WithdrawalStatus.EXECUTED
        elif is_ready:
            status = WithdrawalStatus.CONFIRMED
        else:
            status = WithdrawalStatus.UNCONFIRMED

        return WithdrawalMessage(
            l2_tx_hash=l2_tx_hash,
            status=status,
            position=event["position"],
            destination=event["destination"],
            caller=event["caller"],
            amount=event["callvalue"],
            challenge_end_epoch_seconds=challenge_end,
        )


def canonical_status(
    messages: Sequence[Union[RetryableTicket, WithdrawalMessage]],
) -> Union[TicketStatus, WithdrawalStatus]:
    """Status of the first message, for callers that track one status per transaction."""
    if not messages:
        raise ValueError("No messages to take a status from")

    return messages[0].status


def format_status(status: Union[TicketStatus, WithdrawalStatus]) -> str:
    if isinstance(status, TicketStatus):
        return TICKET_STATUS_LABELS[status]

    return WITHDRAWAL_STATUS_LABELS[status]


def format_ticket_info(ticket: RetryableTicket) -> Dict[str, str]:
    """
    Display fields of a retryable ticket: status, timeout and the parameters
    it was created with.
    """
    info = {
        "Ticket ID": ticket.ticket_id.to_0x_hex() if ticket.ticket_id else "-",
        "Status": format_status(ticket.status),
    }

    params = ticket.params
    if params is not None:
        info.update(
            {
                "Destination": params["to"],
                "L2 Call Value": f"{Web3.from_wei(params['l2CallValue'], 'ether')} ETH",
                "Gas Limit": str(params["gasLimit"]),
                "Max Fee Per Gas": f"{Web3.from_wei(params['maxFeePerGas'], 'gwei')} Gwei",
                "Max Submission Cost": f"{Web3.from_wei(params['maxSubmissionCost'], 'ether')} ETH",
                "Excess Fee Refund Address": params["excessFeeRefundAddress"],
                "Call Value Refund Address": params["callValueRefundAddress"],
                "Calldata": params["data"].to_0x_hex(),
            }
        )

    if ticket.sender is not None:
        info["Sender"] = ticket.sender
        info["Deposit"] = f"{Web3.from_wei(ticket.deposit, 'ether')} ETH"

    if ticket.timeout_epoch_seconds > 0:
        timeout = datetime.fromtimestamp(ticket.timeout_epoch_seconds, tz=timezone.utc)
        info["Timeout"] = timeout.isoformat()
    else:
        info["Timeout"] = "N/A"

    return info
