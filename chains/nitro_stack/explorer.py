"""
Arbiscan-style explorer REST client.

Every request goes through one `RateLimiter` so concurrent callers never exceed
the API key quota. Responses come wrapped in `{status, message, result}`:
`status == "0"` is an error, except for "No transactions found", which is an
empty result.
"""

import logging
import os
from typing import Any, Dict, List, Optional

import httpx
from dotenv import load_dotenv

from utils.config import (
    DEFAULT_EXPLORER_RATE_LIMIT,
    ENV,
    EXPLORER_TIMEOUT_SECONDS,
    NetworkProfile,
)
from utils.rate_limiter import RateLimiter
from .custom_errors import ExplorerError, ExplorerRateLimitedError

load_dotenv()

NO_TRANSACTIONS_FOUND = "No transactions found"
LATEST_BLOCK = 99_999_999

_RATE_LIMIT_MARKERS = ("rate limit", "max calls per sec")


def _is_rate_limited(message: str, result: Any) -> bool:
    text = f"{message} {result if isinstance(result, str) else ''}".lower()

    return any(marker in text for marker in _RATE_LIMIT_MARKERS)


def _env_rate_limit() -> float:
    value = os.getenv(ENV.ARBISCAN_RATE_LIMIT)

    return float(value) if value else DEFAULT_EXPLORER_RATE_LIMIT


class ArbiscanClient:
    """
    Parameters
    ----------
    `api_key` : str, optional
        defaults to ARBISCAN_API_KEY from the environment
    `profile` : NetworkProfile, optional
        network whose `explorer_api_url` is used
    `base_url` : str, optional
        overrides the profile url
    `calls_per_second` : float, optional
        defaults to ARBISCAN_RATE_LIMIT, then 5
    `timeout` : float
    `transport` : httpx.AsyncBaseTransport, optional
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        profile: Optional[NetworkProfile] = None,
        base_url: Optional[str] = None,
        calls_per_second: Optional[float] = None,
        timeout: float = EXPLORER_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        base_url = base_url or (profile.explorer_api_url if profile else None)

        if not base_url:
            raise ValueError("Either `profile` or `base_url` is required")

        self.api_key = api_key if api_key is not None else os.getenv(ENV.ARBISCAN_API_KEY, "")
        self.base_url = base_url
        self.rate_limiter = RateLimiter(calls_per_second or _env_rate_limit())
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

        self._client = httpx.AsyncClient(
            base_url=base_url, timeout=timeout, transport=transport
        )

    async def __aenter__(self) -> "ArbiscanClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()
        await self.rate_limiter.aclose()

    def _unwrap(self, module: str, action: str, payload: Any) -> Any:
        if not isinstance(payload, dict) or "status" not in payload:
            raise ExplorerError(f"Unexpected Arbiscan response for {module}.{action}")

        status = str(payload.get("status"))
        message = str(payload.get("message", ""))
        result = payload.get("result")

        if status == "0" and message != NO_TRANSACTIONS_FOUND:
            if _is_rate_limited(message, result):
                raise ExplorerRateLimitedError(f"Arbiscan API error: {message}")

            detail = f" ({result})" if isinstance(result, str) and result else ""
            raise ExplorerError(f"Arbiscan API error: {message}{detail}")

        return result

    async def request(self, module: str, action: str, **params: Any) -> Any:
        """
        GET `/api?module=<module>&action=<action>&apikey=...&<params>`, returns `result`.
        `None` params are left out.
        """
        query: Dict[str, Any] = {"module": module, "action": action, "apikey": self.api_key}
        query.update({key: value for key, value in params.items() if value is not None})

        await self.rate_limiter.acquire()

        try:
            response = await self._client.get("/api", params=query)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            raise ExplorerError(
                f"Arbiscan HTTP {e.response.status_code} for {module}.{action}", e
            ) from e
        except httpx.HTTPError as e:
            raise ExplorerError(f"Arbiscan request {module}.{action} failed: {e}", e) from e
        except ValueError as e:
            raise ExplorerError(f"Arbiscan returned invalid JSON for {module}.{action}", e) from e

        try:
            return self._unwrap(module, action, payload)
        except ExplorerError as e:
            self.logger.warning(f"{module}.{action}: {e}")
            raise

    # ACCOUNT

    async def get_balance(self, address: str) -> int:
        result = await self.request("account", "balance", address=address, tag="latest")

        return int(result)

    async def get_transactions(
        self,
        address: str,
        start_block: int = 0,
        end_block: int = LATEST_BLOCK,
        page: int = 1,
        offset: int = 10,
        sort: str = "desc",
    ) -> List[Dict[str, Any]]:
        return await self.request(
            "account",
            "txlist",
            address=address,
            startblock=start_block,
            endblock=end_block,
            page=page,
            offset=offset,
            sort=sort,
        ) or []

    async def get_internal_transactions(
        self,
        address: str,
        start_block: int = 0,
        end_block: int = LATEST_BLOCK,
        page: int = 1,
        offset: int = 10,
        sort: str = "desc",
    ) -> List[Dict[str, Any]]:
        return await self.request(
            "account",
            "txlistinternal",
            address=address,
            startblock=start_block,
            endblock=end_block,
            page=page,
            offset=offset,
            sort=sort,
        ) or []

    async def get_token_transfers(
        self,
        address: str,
        contract_address: Optional[str] = None,
        start_block: int = 0,
        end_block: int = LATEST_BLOCK,
        page: int = 1,
        offset: int = 100,
        sort: str = "desc",
    ) -> List[Dict[str, Any]]:
        return await self.request(
            "account",
            "tokentx",
            address=address,
            contractaddress=contract_address,
            startblock=start_block,
            endblock=end_block,
            page=page,
            offset=offset,
            sort=sort,
        ) or []

    # GAS / CONTRACT / BLOCK

    async def get_gas_oracle(self) -> Dict[str, Any]:
        return await self.request("gastracker", "gasoracle")

    async def get_contract_abi(self, address: str) -> str:
        return await self.request("contract", "getabi", address=address)

    async def get_block_number_by_time(self, timestamp: int, closest: str = "before") -> int:
        result = await self.request(
            "block", "getblocknobytime", timestamp=timestamp, closest=closest
        )

        return int(result)
