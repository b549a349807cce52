import os
import json
from functools import lru_cache
from typing import Any, Dict, List, NamedTuple, Optional, Sequence, Tuple
from eth_typing import ABIComponent, ChecksumAddress
from eth_utils.abi import abi_to_signature, get_abi_output_types
from hexbytes import HexBytes
from web3 import Web3
from web3.contract import Contract

from .config import BPS_DENOMINATOR

# offline instance, only used for its ABI codec
_w3 = Web3()


def apply_bps_buffer(value: int, multiplier_bps: int, buffer: int = 0) -> int:
    """
    Scales `value` by `multiplier_bps / 10000` (integer division) and adds `buffer`.
    """
    if multiplier_bps < BPS_DENOMINATOR:
        raise ValueError("`multiplier_bps` should be >= 10000 to ensure sufficient gas")

    if buffer < 0:
        raise ValueError("`buffer` must be non-negative")

    return value * multiplier_bps // BPS_DENOMINATOR + buffer


@lru_cache(maxsize=None)
def _load_abi(path: str) -> tuple:
    with open(path, "r") as file:
        return tuple(json.load(file))


def get_abi(path: str) -> List[Dict[str, Any]]:
    if os.path.isfile(path):
        return list(_load_abi(path))
    else:
        raise FileNotFoundError(f"File path not found: {path}")


@lru_cache(maxsize=None)
def get_contract(address: ChecksumAddress, abi_path: str) -> Contract:
    """
    Contract bound to `address` for encoding calls and decoding receipts. It
    has no provider: reads go through a ChainClient.
    """
    return _w3.eth.contract(address=address, abi=get_abi(abi_path))


def encode_call(contract: Contract, fn_name: str, *args: Any) -> HexBytes:
    """Selector and ABI-encoded arguments of `fn_name`, ready for `eth_call`."""
    return HexBytes(contract.encode_abi(fn_name, args=list(args)))


def decode_call_result(contract: Contract, fn_name: str, result: bytes) -> Tuple[Any, ...]:
    fn_abi = contract.get_function_by_name(fn_name).abi

    return tuple(_w3.codec.decode(get_abi_output_types(fn_abi), bytes(result)))


class ContractErrorInfo(NamedTuple):
    """
    Named tuple containing contract error information.

    Attributes:
        name: Error name (e.g., "NoTicketWithID")
        signature: Full error signature (e.g., "NoTicketWithID()")
        inputs: List of input parameters from ABI
        selector: 4-byte error selector hex string (e.g., "0x80698456")
    """

    name: str
    signature: str
    inputs: Sequence[ABIComponent]
    selector: str


def get_contract_error_info(
    abi: Sequence[Dict[str, Any]], revert_data: Optional[bytes]
) -> Optional[ContractErrorInfo]:
    """
    Match revert data to a custom error declared in the ABI.

    Args:
        abi: Contract ABI
        revert_data: Raw revert payload returned by `eth_call`

    Returns:
        ContractErrorInfo named tuple if matched, None otherwise

    Example:
        >>> try:
        >>>     await client.call_view(profile.arb_retryable_tx, calldata)
        >>> except NitroStackCallRevertedError as e:
        >>>     error_info = get_contract_error_info(abi, e.revert_data)
        >>>     if error_info:
        >>>         print(f"Error: {error_info.name}")
    """
    if not revert_data or len(revert_data) < 4:
        return None

    error_selector = HexBytes(revert_data[:4]).to_0x_hex()

    for item in abi:
        if item.get("type") != "error":
            continue

        error_name = item.get("name")
        if error_name is None:
            continue

        signature = abi_to_signature(item)

        hash_bytes = Web3.keccak(text=signature)
        selector = HexBytes(hash_bytes[:4]).to_0x_hex()

        if selector == error_selector:
            return ContractErrorInfo(
                name=error_name,
                signature=signature,
                inputs=item.get("inputs", []),
                selector=selector,
            )

    return None
