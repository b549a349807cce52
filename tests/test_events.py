"""Tests for receipt log decoding and the retryable ticket id."""

import rlp
from eth_abi.abi import decode
from eth_utils.address import to_checksum_address
from hexbytes import HexBytes
from rlp.sedes import Binary, big_endian_int, binary
from web3 import Web3

from chains.nitro_stack.events import (
    ADDRESS_ZERO,
    calculate_retryable_id,
    decode_inbox_message_delivered_data,
    parse_l2_to_l1_txs,
    parse_message_delivered,
    parse_retryable_creations,
)

SENDER = to_checksum_address("0x" + "11" * 20)
DESTINATION = to_checksum_address("0x" + "22" * 20)
REFUND = to_checksum_address("0x" + "33" * 20)


class ArbitrumSubmitRetryableTx(rlp.Serializable):
    fields = [
        ("chain_id", big_endian_int),
        ("request_id", Binary.fixed_length(32)),
        ("sender", Binary.fixed_length(20)),
        ("l1_base_fee", big_endian_int),
        ("deposit_value", big_endian_int),
        ("gas_fee_cap", big_endian_int),
        ("gas", big_endian_int),
        ("retry_to", Binary.fixed_length(20, allow_empty=True)),
        ("retry_value", big_endian_int),
        ("beneficiary", Binary.fixed_length(20)),
        ("max_submission_fee", big_endian_int),
        ("fee_refund_address", Binary.fixed_length(20)),
        ("retry_data", binary),
    ]


def _reference_ticket_id(chain_id, call_value, sender, params, message_number, l1_base_fee):
    retry_to = b"" if params["to"] == ADDRESS_ZERO else bytes(HexBytes(params["to"]))
    tx = ArbitrumSubmitRetryableTx(
        chain_id=chain_id,
        request_id=message_number.to_bytes(32, byteorder="big"),
        sender=bytes(HexBytes(sender)),
        l1_base_fee=l1_base_fee,
        deposit_value=call_value,
        gas_fee_cap=params["maxFeePerGas"],
        gas=params["gasLimit"],
        retry_to=retry_to,
        retry_value=params["l2CallValue"],
        beneficiary=bytes(HexBytes(params["callValueRefundAddress"])),
        max_submission_fee=params["maxSubmissionCost"],
        fee_refund_address=bytes(HexBytes(params["excessFeeRefundAddress"])),
        retry_data=bytes(params["data"]),
    )
    return HexBytes(Web3.keccak(b"\x69" + rlp.encode(tx)))


def _params(**overrides):
    params = {
        "to": DESTINATION,
        "l2CallValue": 0,
        "maxSubmissionCost": 10**12,
        "excessFeeRefundAddress": REFUND,
        "callValueRefundAddress": REFUND,
        "gasLimit": 100_000,
        "maxFeePerGas": 200_000_000,
        "data": HexBytes(b""),
    }
    params.update(overrides)
    return params


class TestRetryableId:
    def test_minimal_ticket_hashes_known_preimage(self):
        # 0x69 || rlp([42161, uint256(1), sender, 1, 0, 0, 0, "", 0, refund, 0, refund, ""])
        preimage = bytes.fromhex(
            "69f86b82a4b1a0"
            + "00" * 31 + "01"
            + "94" + "11" * 20
            + "01" + "80" * 5
            + "94" + "33" * 20
            + "80"
            + "94" + "33" * 20
            + "80"
        )
        params = _params(
            to=ADDRESS_ZERO, maxSubmissionCost=0, gasLimit=0, maxFeePerGas=0
        )

        ticket_id = calculate_retryable_id(42161, 0, SENDER, params, 1, 1)

        assert ticket_id == HexBytes(Web3.keccak(preimage))

    def test_matches_typed_transaction_encoding(self):
        params = _params(l2CallValue=5 * 10**15, data=HexBytes(b"\xa9\x05\x9c\xbb" + b"\x00" * 64))

        ticket_id = calculate_retryable_id(42161, 10**16, SENDER, params, 1_234_567, 31_000_000_000)

        assert ticket_id == _reference_ticket_id(
            42161, 10**16, SENDER, params, 1_234_567, 31_000_000_000
        )

    def test_contract_creation_matches_typed_transaction_encoding(self):
        params = _params(to=ADDRESS_ZERO, data=HexBytes(b"\x60\x80\x60\x40"))

        ticket_id = calculate_retryable_id(421614, 0, SENDER, params, 0, 0)

        assert ticket_id == _reference_ticket_id(421614, 0, SENDER, params, 0, 0)

    def test_is_deterministic_32_bytes(self):
        first = calculate_retryable_id(42161, 10**15, SENDER, _params(), 7, 30_000_000_000)
        second = calculate_retryable_id(42161, 10**15, SENDER, _params(), 7, 30_000_000_000)

        assert first == second
        assert len(first) == 32

    def test_every_input_changes_the_id(self):
        base = calculate_retryable_id(42161, 10**15, SENDER, _params(), 7, 1)

        variants = [
            calculate_retryable_id(42170, 10**15, SENDER, _params(), 7, 1),
            calculate_retryable_id(42161, 10**15 + 1, SENDER, _params(), 7, 1),
            calculate_retryable_id(42161, 10**15, REFUND, _params(), 7, 1),
            calculate_retryable_id(42161, 10**15, SENDER, _params(gasLimit=1), 7, 1),
            calculate_retryable_id(42161, 10**15, SENDER, _params(data=HexBytes(b"\x01")), 7, 1),
            calculate_retryable_id(42161, 10**15, SENDER, _params(), 8, 1),
            calculate_retryable_id(42161, 10**15, SENDER, _params(), 7, 2),
        ]

        assert len({bytes(v) for v in variants + [base]}) == len(variants) + 1

    def test_contract_creation_differs_from_call(self):
        call = calculate_retryable_id(42161, 0, SENDER, _params(), 1, 1)
        creation = calculate_retryable_id(42161, 0, SENDER, _params(to=ADDRESS_ZERO), 1, 1)

        assert call != creation


class TestInboxData:
    def test_decodes_packed_retryable_message(self, retryable_logs):
        _, inbox_log = retryable_logs(1, calldata=b"\xca\xfe", l2_call_value=9)
        (data,) = decode(["bytes"], bytes(inbox_log["data"]))
        params, calldata_length, call_value = decode_inbox_message_delivered_data(data)

        assert params["to"] == DESTINATION
        assert params["l2CallValue"] == 9
        assert params["excessFeeRefundAddress"] == REFUND
        assert params["gasLimit"] == 100_000
        assert params["data"] == HexBytes(b"\xca\xfe")
        assert calldata_length == 2
        assert call_value == 10**15


class TestReceiptParsing:
    def test_message_delivered(self, retryable_logs, make_receipt, profile):
        bridge_log, _ = retryable_logs(12)

        delivered = parse_message_delivered(make_receipt([bridge_log]), profile)

        args = delivered[12]
        assert args["messageIndex"] == 12
        assert args["kind"] == 9
        assert args["sender"] == SENDER
        assert args["inbox"] == profile.inbox
        assert args["baseFeeL1"] == 30_000_000_000

    def test_message_delivered_from_other_bridge_is_ignored(self, retryable_logs, make_receipt, profile):
        bridge_log, _ = retryable_logs(12)
        bridge_log["address"] = DESTINATION

        assert parse_message_delivered(make_receipt([bridge_log]), profile) == {}

    def test_creation_carries_ticket_params(self, retryable_logs, make_receipt, profile):
        bridge_log, inbox_log = retryable_logs(4, calldata=b"\xca\xfe", l2_call_value=9)

        (creation,) = parse_retryable_creations(make_receipt([bridge_log, inbox_log]), profile)

        assert creation.params["to"] == DESTINATION
        assert creation.params["l2CallValue"] == 9
        assert creation.params["gasLimit"] == 100_000
        assert creation.params["maxFeePerGas"] == 200_000_000
        assert creation.params["maxSubmissionCost"] == 10**12
        assert creation.params["callValueRefundAddress"] == REFUND
        assert creation.params["data"] == HexBytes(b"\xca\xfe")
        assert creation.sender == SENDER
        assert creation.call_value == 10**15
        assert creation.ticket_id == calculate_retryable_id(
            profile.chain_id, 10**15, SENDER, creation.params, 4, 30_000_000_000
        )

    def test_creation_is_joined_on_message_index(self, retryable_logs, make_receipt, profile):
        bridge_a, inbox_a = retryable_logs(1)
        bridge_b, inbox_b = retryable_logs(2)

        # bridge logs in a different order than inbox logs
        receipt = make_receipt([bridge_b, bridge_a, inbox_a, inbox_b])

        creations = parse_retryable_creations(receipt, profile)

        assert [c.message_number for c in creations] == [1, 2]

    def test_inbox_log_without_bridge_log_is_ignored(self, retryable_logs, make_receipt, profile):
        _, inbox_log = retryable_logs(1)

        assert parse_retryable_creations(make_receipt([inbox_log]), profile) == []

    def test_l2_to_l1_events(self, l2_to_l1_log, make_receipt, profile):
        receipt = make_receipt([l2_to_l1_log(3), {"address": profile.arb_sys, "topics": [], "data": "0x"}])

        events = parse_l2_to_l1_txs(receipt, profile)

        assert len(events) == 1
        assert events[0]["position"] == 3
        assert events[0]["destination"] == DESTINATION
        assert events[0]["caller"] == SENDER
        assert events[0]["callvalue"] == 10**16
        assert events[0]["hash"] == 0xABC
