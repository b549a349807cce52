"""Tests for ABI helpers, bps buffers and revert decoding."""

import pytest
from eth_abi.abi import encode
from web3 import Web3

from chains.nitro_stack.custom_errors import NitroStackCallRevertedError
from utils.chain import (
    apply_bps_buffer,
    decode_call_result,
    encode_call,
    get_abi,
    get_contract,
    get_contract_error_info,
)
from utils.config import ABI_ARB_RETRYABLE_TX, ABI_NODE_INTERFACE, ABI_OUTBOX


class TestApplyBpsBuffer:
    def test_scales_with_integer_division(self):
        assert apply_bps_buffer(100_000, 15_000) == 150_000
        assert apply_bps_buffer(3, 15_000) == 4
        assert apply_bps_buffer(100, 10_000, buffer=5) == 105

    def test_rejects_shrinking_multiplier(self):
        with pytest.raises(ValueError):
            apply_bps_buffer(100, 9_999)

    def test_rejects_negative_buffer(self):
        with pytest.raises(ValueError):
            apply_bps_buffer(100, 10_000, buffer=-1)


class TestContractHelpers:
    def test_contract_is_cached_per_address_and_abi(self, profile):
        first = get_contract(profile.outbox, ABI_OUTBOX)

        assert get_contract(profile.outbox, ABI_OUTBOX) is first
        assert first.address == profile.outbox

    def test_encode_call(self, profile):
        arb_retryable_tx = get_contract(profile.arb_retryable_tx, ABI_ARB_RETRYABLE_TX)
        ticket_id = b"\x07" * 32

        data = encode_call(arb_retryable_tx, "getTimeout", ticket_id)

        assert data[:4] == Web3.keccak(text="getTimeout(bytes32)")[:4]
        assert data[4:] == ticket_id

    def test_decode_call_result(self, profile):
        node_interface = get_contract(profile.node_interface, ABI_NODE_INTERFACE)
        result = encode(["uint64", "uint256", "uint256"], [1_500, 2, 3])

        assert decode_call_result(node_interface, "gasEstimateL1Component", result) == (1_500, 2, 3)

    def test_unknown_function_raises(self, profile):
        outbox = get_contract(profile.outbox, ABI_OUTBOX)

        with pytest.raises(ValueError):
            decode_call_result(outbox, "executeTransaction", b"")

    def test_missing_file_raises(self):
        with pytest.raises(FileNotFoundError):
            get_abi("/nonexistent/abi.json")


class TestRevertDecoding:
    def test_matches_custom_error(self):
        abi = get_abi(ABI_ARB_RETRYABLE_TX)
        revert_data = bytes(Web3.keccak(text="NoTicketWithID()")[:4])

        info = get_contract_error_info(abi, revert_data)

        assert info is not None
        assert info.name == "NoTicketWithID"
        assert info.signature == "NoTicketWithID()"

    def test_no_match(self):
        abi = get_abi(ABI_ARB_RETRYABLE_TX)

        assert get_contract_error_info(abi, b"\x01\x02\x03\x04") is None
        assert get_contract_error_info(abi, b"") is None
        assert get_contract_error_info(abi, None) is None

    def test_error_with_arguments(self):
        abi = get_abi(ABI_OUTBOX)
        revert_data = bytes(Web3.keccak(text="AlreadySpent(uint256)")[:4]) + (5).to_bytes(32, "big")

        error = NitroStackCallRevertedError("execution reverted", revert_data=revert_data)
        named = NitroStackCallRevertedError.from_contract_error(abi, error)

        assert error.matches(abi, "AlreadySpent")
        assert str(named) == "`AlreadySpent(uint256)` error occurred."
        assert named.revert_data == revert_data

    def test_unmatched_error_keeps_message(self):
        abi = get_abi(ABI_OUTBOX)
        error = NitroStackCallRevertedError("execution reverted", revert_data=b"\xff" * 4)

        copy = NitroStackCallRevertedError.from_contract_error(abi, error)

        assert copy is not error
        assert str(copy) == "execution reverted"
        assert not error.matches(abi, "AlreadySpent")
