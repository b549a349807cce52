"""
Decoding of the receipt logs that mark cross-layer messages.

L1 -> L2: a retryable ticket is created when the delayed inbox emits
`InboxMessageDelivered` together with the bridge's `MessageDelivered` of the
same message index and kind `L1MessageType_submitRetryableTx` (9). The ticket
id is the hash of the typed retryable transaction the rollup derives from them.

L2 -> L1: every `sendTxToL1` / `withdrawEth` emits `L2ToL1Tx` from ArbSys.
"""

from typing import Dict, List, NamedTuple, Tuple

from eth_abi.abi import decode
from eth_typing import ChecksumAddress
from eth_utils.address import to_checksum_address
from hexbytes import HexBytes
from web3 import Web3
from web3.contract.contract import ContractEvent
from web3.logs import DISCARD
from web3.types import EventData, TxReceipt
import rlp

from utils.chain import get_contract
from utils.config import (
    ABI_ARB_BRIDGE,
    ABI_ARB_SYS,
    ABI_DELAYED_INBOX,
    NetworkProfile,
)
from .types import L2ToL1TxArgs, MessageDeliveredArgs, RetryableTicketParams

L1_MESSAGE_TYPE_SUBMIT_RETRYABLE_TX = 9
ARBITRUM_SUBMIT_RETRYABLE_TX_TYPE = b"\x69"

ADDRESS_ZERO = to_checksum_address("0x" + "00" * 20)

# 9 packed uint256 words precede the calldata in the inbox message
_INBOX_HEADER_WORDS = 9


class RetryableCreation(NamedTuple):
    message_number: int
    ticket_id: HexBytes
    params: RetryableTicketParams
    sender: ChecksumAddress
    call_value: int


def _same_address(left: str, right: str) -> bool:
    return left.lower() == right.lower()


def _address_from_word(word: int) -> ChecksumAddress:
    return to_checksum_address(word.to_bytes(32, byteorder="big")[-20:])


def _rlp_int(value: int) -> bytes:
    # RLP integers are big-endian without leading zeros, 0 encodes as empty bytes
    return value.to_bytes(32, byteorder="big").lstrip(b"\x00")


def _process_receipt(
    event: ContractEvent, receipt: TxReceipt, address: ChecksumAddress
) -> List[EventData]:
    # logs of other events are discarded; the same event from another emitter is filtered out
    return [
        log
        for log in event.process_receipt(receipt, errors=DISCARD)
        if _same_address(log["address"], address)
    ]


def parse_message_delivered(
    receipt: TxReceipt, profile: NetworkProfile
) -> Dict[int, MessageDeliveredArgs]:
    """
    Bridge `MessageDelivered` events of the receipt keyed by message index.
    """
    bridge = get_contract(profile.bridge, ABI_ARB_BRIDGE)

    delivered: Dict[int, MessageDeliveredArgs] = {}
    for log in _process_receipt(bridge.events.MessageDelivered(), receipt, profile.bridge):
        args = log["args"]

        delivered[args["messageIndex"]] = {
            "messageIndex": args["messageIndex"],
            "inbox": args["inbox"],
            "kind": args["kind"],
            "sender": args["sender"],
            "messageDataHash": HexBytes(args["messageDataHash"]),
            "baseFeeL1": args["baseFeeL1"],
            "timestamp": args["timestamp"],
        }

    return delivered


def decode_inbox_message_delivered_data(
    data: bytes,
) -> Tuple[RetryableTicketParams, int, int]:
    """
    decodes the packed retryable message carried by `InboxMessageDelivered`

    Parameters
    ----------
    `data` : bytes

    Returns
    -------
    Tuple[RetryableTicketParams, calldata_length: int, call_value: int]
    """
    data_abi_types = [
        "uint256",  ## dest
        "uint256",  ## l2 call value
        "uint256",  ## msg val
        "uint256",  ## max submission
        "uint256",  ## excess fee refund addr
        "uint256",  ## call value refund addr
        "uint256",  ## max gas
        "uint256",  ## gas price bid
        "uint256",  ## data length
    ]

    decoded = decode(data_abi_types, bytes(data), strict=False)

    call_value = decoded[2]
    calldata_length = decoded[8]

    header_length = _INBOX_HEADER_WORDS * 32
    calldata = HexBytes(data[header_length : header_length + calldata_length])

    metadata: RetryableTicketParams = {
        "to": _address_from_word(decoded[0]),
        "l2CallValue": decoded[1],
        "maxSubmissionCost": decoded[3],
        "excessFeeRefundAddress": _address_from_word(decoded[4]),
        "callValueRefundAddress": _address_from_word(decoded[5]),
        "gasLimit": decoded[6],
        "maxFeePerGas": decoded[7],
        "data": calldata,
    }

    return (metadata, calldata_length, call_value)


def calculate_retryable_id(
    chain_id: int,
    call_value: int,
    from_: ChecksumAddress,
    metadata: RetryableTicketParams,
    message_number: int,
    l1_base_fee_per_gas: int,
) -> HexBytes:
    """
    Hash of the retryable ticket transaction created on L2 once the L1
    `createRetryableTicket()` is picked up. All inputs come from the events the
    L1 transaction emits.

    Parameters
    ----------
    `chain_id` : int
    `call_value` : int
    `from_` : ChecksumAddress
    `metadata` : RetryableTicketParams
    `message_number` : int
    `l1_base_fee_per_gas` : int

    Returns
    -------
    `retryable_ticket_id` : HexBytes
    """
    fields: List[bytes] = [
        _rlp_int(chain_id),
        # message number is the only left-padded field
        message_number.to_bytes(32, byteorder="big"),
        # sender_address (as in MessageDelivered() Event)
        bytes(HexBytes(from_)),
        # baseFeeL1 (as in MessageDelivered() Event)
        _rlp_int(l1_base_fee_per_gas),
        # L1 Call Value
        _rlp_int(call_value),
        _rlp_int(metadata["maxFeePerGas"]),
        _rlp_int(metadata["gasLimit"]),
        # To address (empty in case of contract creation)
        bytes(HexBytes(metadata["to"])) if metadata["to"] != ADDRESS_ZERO else b"",
        _rlp_int(metadata["l2CallValue"]),
        bytes(HexBytes(metadata["callValueRefundAddress"])),
        _rlp_int(metadata["maxSubmissionCost"]),
        bytes(HexBytes(metadata["excessFeeRefundAddress"])),
        bytes(metadata["data"]),
    ]

    rlp_encoded = rlp.encode(fields)

    typed_txn = ARBITRUM_SUBMIT_RETRYABLE_TX_TYPE + bytes(rlp_encoded)

    return HexBytes(Web3.keccak(typed_txn))


def parse_retryable_creations(
    receipt: TxReceipt, profile: NetworkProfile
) -> List[RetryableCreation]:
    """
    Every retryable ticket created by an L1 transaction, in log order. A
    transaction may batch-create several tickets.
    """
    inbox = get_contract(profile.inbox, ABI_DELAYED_INBOX)

    delivered = parse_message_delivered(receipt, profile)

    creations: List[RetryableCreation] = []
    for log in _process_receipt(
        inbox.events.InboxMessageDelivered(), receipt, profile.inbox
    ):
        message_number: int = log["args"]["messageNum"]
        bridge_event = delivered.get(message_number)

        if (
            bridge_event is None
            or bridge_event["kind"] != L1_MESSAGE_TYPE_SUBMIT_RETRYABLE_TX
        ):
            continue

        metadata, _, call_value = decode_inbox_message_delivered_data(
            HexBytes(log["args"]["data"])
        )

        ticket_id = calculate_retryable_id(
            profile.chain_id,
            call_value,
            bridge_event["sender"],
            metadata,
            message_number,
            bridge_event["baseFeeL1"],
        )
        creations.append(
            RetryableCreation(
                message_number=message_number,
                ticket_id=ticket_id,
                params=metadata,
                sender=bridge_event["sender"],
                call_value=call_value,
            )
        )

    return creations


def parse_l2_to_l1_txs(receipt: TxReceipt, profile: NetworkProfile) -> List[L2ToL1TxArgs]:
    """
    Every `L2ToL1Tx` emitted by ArbSys in the receipt, in log order.
    """
    arb_sys = get_contract(profile.arb_sys, ABI_ARB_SYS)

    parsed: List[L2ToL1TxArgs] = []
    for log in _process_receipt(arb_sys.events.L2ToL1Tx(), receipt, profile.arb_sys):
        args = log["args"]

        parsed.append(
            {
                "caller": args["caller"],
                "destination": args["destination"],
                "hash": args["hash"],
                "position": args["position"],
                "arbBlockNum": args["arbBlockNum"],
                "ethBlockNum": args["ethBlockNum"],
                "timestamp": args["timestamp"],
                "callvalue": args["callvalue"],
                "data": HexBytes(args["data"]),
            }
        )

    return parsed
