from typing import Dict
from web3 import AsyncWeb3
from .config import ENV, RPC_TIMEOUT_SECONDS, ChainName
from dotenv import load_dotenv
import os


load_dotenv()


def get_providers() -> Dict[ChainName, str]:
    providers: Dict[ChainName, str] = {}

    for chain in ChainName:
        url = os.getenv(ENV[f"{chain.name}_RPC_URL"])
        if url:
            providers[chain] = url

    return providers


def get_async_web3(chain_name: ChainName) -> AsyncWeb3:
    providers = get_providers()

    if chain_name not in providers:
        raise ValueError(
            f"Unknown chain: {chain_name}. Set {chain_name.name}_RPC_URL in .env"
        )

    w3 = AsyncWeb3(
        AsyncWeb3.AsyncHTTPProvider(
            providers[chain_name],
            request_kwargs={"timeout": RPC_TIMEOUT_SECONDS},
        )
    )

    return w3
