"""
Read-only chain access used by the message tracker and the fee estimator.

`ChainClient` is the contract the core depends on. `AsyncWeb3ChainClient` is the
stock implementation over `web3.AsyncWeb3`: it only adds deadline handling and
translates web3 failures into the Nitro Stack error taxonomy.
"""

import asyncio
import logging
from typing import (
    Any,
    Awaitable,
    Optional,
    Protocol,
    Sequence,
    TypeVar,
    runtime_checkable,
)

from eth_typing import BlockIdentifier, ChecksumAddress
from hexbytes import HexBytes
from web3 import AsyncWeb3
from web3.exceptions import BlockNotFound, ContractLogicError, TransactionNotFound
from web3.types import BlockData, FilterParams, LogReceipt, TxParams, TxReceipt

from utils.chain import decode_call_result, encode_call, get_contract
from utils.config import ABI_ARB_GAS_INFO, ChainName, NetworkProfile
from utils.providers import get_async_web3
from .custom_errors import (
    NitroStackCallRevertedError,
    NitroStackError,
    NitroStackTimeoutError,
    NitroStackTransportError,
)
from .types import GasPriceSnapshot

T = TypeVar("T")


@runtime_checkable
class ChainClient(Protocol):
    """
    Read-only operations against one chain. Every call takes an optional
    `timeout` in seconds; expiry raises `NitroStackTimeoutError`.
    """

    async def get_transaction_receipt(
        self, tx_hash: HexBytes, timeout: Optional[float] = None
    ) -> Optional[TxReceipt]: ...

    async def get_block(
        self, block_identifier: BlockIdentifier, timeout: Optional[float] = None
    ) -> Optional[BlockData]: ...

    async def get_logs(
        self, filter_params: FilterParams, timeout: Optional[float] = None
    ) -> Sequence[LogReceipt]: ...

    async def call_view(
        self,
        address: ChecksumAddress,
        data: bytes,
        timeout: Optional[float] = None,
    ) -> bytes: ...

    async def estimate_gas(
        self, transaction: TxParams, timeout: Optional[float] = None
    ) -> int: ...

    async def get_fee_data(self, timeout: Optional[float] = None) -> GasPriceSnapshot: ...

    async def aclose(self) -> None: ...


def _revert_data(error: ContractLogicError) -> Optional[bytes]:
    data = getattr(error, "data", None)

    if isinstance(data, (bytes, bytearray)):
        return bytes(data)

    if isinstance(data, str) and data.startswith("0x"):
        try:
            return bytes(HexBytes(data))
        except ValueError:
            return None

    return None


class AsyncWeb3ChainClient:
    """
    `ChainClient` over an `AsyncWeb3` instance.

    Parameters
    ----------
    `w3` : AsyncWeb3

    `gas_info_address` : ChecksumAddress, optional
        ArbGasInfo precompile. Set for a Nitro rollup, left empty for its parent chain.

    `default_timeout` : float, optional
        Deadline used when a call does not pass its own.
    """

    def __init__(
        self,
        w3: AsyncWeb3,
        gas_info_address: Optional[ChecksumAddress] = None,
        default_timeout: Optional[float] = None,
    ) -> None:
        self.w3 = w3
        self.gas_info_address = gas_info_address
        self.default_timeout = default_timeout
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @classmethod
    def for_rollup(
        cls, chain_name: ChainName, profile: NetworkProfile, **kwargs: Any
    ) -> "AsyncWeb3ChainClient":
        return cls(get_async_web3(chain_name), profile.arb_gas_info, **kwargs)

    @classmethod
    def for_parent_chain(cls, chain_name: ChainName, **kwargs: Any) -> "AsyncWeb3ChainClient":
        return cls(get_async_web3(chain_name), None, **kwargs)

    async def _guard(
        self, operation: str, awaitable: Awaitable[T], timeout: Optional[float]
    ) -> T:
        deadline = timeout if timeout is not None else self.default_timeout

        try:
            return await asyncio.wait_for(awaitable, deadline)
        except asyncio.TimeoutError as e:
            raise NitroStackTimeoutError(
                f"`{operation}` did not answer within {deadline}s", e
            ) from e
        except NitroStackError:
            raise
        except ContractLogicError as e:
            raise NitroStackCallRevertedError(
                f"`{operation}` reverted: {e}",
                revert_data=_revert_data(e),
                original_error=e,
            ) from e
        except Exception as e:
            raise NitroStackTransportError(f"`{operation}` failed: {e}", e) from e

    async def get_transaction_receipt(
        self, tx_hash: HexBytes, timeout: Optional[float] = None
    ) -> Optional[TxReceipt]:
        async def fetch() -> Optional[TxReceipt]:
            try:
                return await self.w3.eth.get_transaction_receipt(tx_hash)
            except TransactionNotFound:
                return None

        return await self._guard("eth_getTransactionReceipt", fetch(), timeout)

    async def get_block(
        self, block_identifier: BlockIdentifier, timeout: Optional[float] = None
    ) -> Optional[BlockData]:
        async def fetch() -> Optional[BlockData]:
            try:
                return await self.w3.eth.get_block(block_identifier)
            except BlockNotFound:
                return None

        return await self._guard("eth_getBlockByNumber", fetch(), timeout)

    async def get_logs(
        self, filter_params: FilterParams, timeout: Optional[float] = None
    ) -> Sequence[LogReceipt]:
        return await self._guard(
            "eth_getLogs", self.w3.eth.get_logs(filter_params), timeout
        )

    async def call_view(
        self,
        address: ChecksumAddress,
        data: bytes,
        timeout: Optional[float] = None,
        block_identifier: BlockIdentifier = "latest",
    ) -> bytes:
        call: TxParams = {"to": address, "data": HexBytes(data)}

        result = await self._guard(
            "eth_call", self.w3.eth.call(call, block_identifier), timeout
        )

        return bytes(result)

    async def estimate_gas(
        self, transaction: TxParams, timeout: Optional[float] = None
    ) -> int:
        return await self._guard(
            "eth_estimateGas", self.w3.eth.estimate_gas(transaction), timeout
        )

    async def _l1_base_fee_estimate(self, block_number: int) -> Optional[int]:
        if self.gas_info_address is None:
            return None

        gas_info = get_contract(self.gas_info_address, ABI_ARB_GAS_INFO)

        try:
            result = await self.w3.eth.call(
                {
                    "to": self.gas_info_address,
                    "data": encode_call(gas_info, "getL1BaseFeeEstimate"),
                },
                block_number,
            )
        except ContractLogicError as e:
            self.logger.debug(f"ArbGasInfo.getL1BaseFeeEstimate reverted: {e}")
            return None

        (l1_base_fee,) = decode_call_result(gas_info, "getL1BaseFeeEstimate", result)

        return l1_base_fee

    async def _fee_data(self) -> GasPriceSnapshot:
        block = await self.w3.eth.get_block("latest")

        block_number = block["number"]
        base_fee = block.get("baseFeePerGas", 0)

        gas_price, max_priority_fee, l1_base_fee = await asyncio.gather(
            self.w3.eth.gas_price,
            self.w3.eth.max_priority_fee,
            self._l1_base_fee_estimate(block_number),
        )

        if l1_base_fee is None:
            # parent chain uses its own base fee, a rollup falls back to gas price
            l1_base_fee = base_fee if self.gas_info_address is None else gas_price

        return GasPriceSnapshot(
            gas_price=gas_price,
            base_fee=base_fee,
            max_fee_per_gas=2 * base_fee + max_priority_fee,
            max_priority_fee_per_gas=max_priority_fee,
            l1_base_fee=l1_base_fee,
            block_number=block_number,
        )

    async def get_fee_data(self, timeout: Optional[float] = None) -> GasPriceSnapshot:
        return await self._guard("get_fee_data", self._fee_data(), timeout)

    async def aclose(self) -> None:
        """Closes the provider's HTTP session."""
        await self.w3.provider.disconnect()
