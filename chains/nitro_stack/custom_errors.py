from typing import Any, Dict, Optional, Sequence

from utils.chain import get_contract_error_info


class NitroStackError(Exception):
    """Base Exception for Nitro Stack operations."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message)
        self.original_error = original_error


class NitroStackTimeoutError(NitroStackError):
    """Raised when a chain read does not answer before the caller's deadline."""


class NitroStackTransportError(NitroStackError):
    """Raised when a chain read fails below the contract level (connection, RPC error)."""


class NitroStackCallRevertedError(NitroStackError):
    """Raised when an `eth_call` reverts. `revert_data` holds the raw revert payload."""

    def __init__(
        self,
        message: str,
        revert_data: Optional[bytes] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message, original_error)
        self.revert_data = revert_data

    def matches(self, abi: Sequence[Dict[str, Any]], error_name: str) -> bool:
        error_info = get_contract_error_info(abi, self.revert_data)

        return error_info is not None and error_info.name == error_name

    @classmethod
    def from_contract_error(
        cls, abi: Sequence[Dict[str, Any]], error: "NitroStackCallRevertedError"
    ) -> "NitroStackCallRevertedError":
        """
        Returns a copy of `error`, with the custom error signature as its message when
        the revert data matches an error declared in `abi`.
        """
        error_info = get_contract_error_info(abi, error.revert_data)

        if error_info:
            return cls(
                f"`{error_info.signature}` error occurred.",
                revert_data=error.revert_data,
                original_error=error.original_error,
            )

        return cls(
            str(error),
            revert_data=error.revert_data,
            original_error=error.original_error,
        )


class ExplorerError(NitroStackError):
    """Raised when the explorer API answers with `status == "0"` or the HTTP call fails."""


class ExplorerRateLimitedError(ExplorerError):
    """Raised when the explorer rejects a call because the request quota was exceeded."""
