import logging
import os
from typing import Optional

from dotenv import load_dotenv

from .config import ENV

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: Optional[str] = None) -> None:
    """
    Configure the root logger. `level` falls back to LOG_LEVEL from .env, then INFO.
    """
    load_dotenv()

    level_name = (level or os.getenv(ENV.LOG_LEVEL) or "INFO").upper()
    numeric_level = logging.getLevelName(level_name)

    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {level_name}")

    logging.basicConfig(level=numeric_level, format=LOG_FORMAT)

    # web3 and httpx are chatty at DEBUG
    logging.getLogger("web3").setLevel(max(numeric_level, logging.INFO))
    logging.getLogger("httpx").setLevel(max(numeric_level, logging.WARNING))
