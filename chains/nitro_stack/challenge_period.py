import time
from typing import Optional

from utils.config import NetworkProfile
from .types import ChallengeStatus

SECONDS_PER_MINUTE = 60
SECONDS_PER_HOUR = 60 * SECONDS_PER_MINUTE
SECONDS_PER_DAY = 24 * SECONDS_PER_HOUR


def challenge_status(
    l2_block_timestamp: int, profile: NetworkProfile, now: Optional[int] = None
) -> ChallengeStatus:
    """
    Readiness window of an L2 -> L1 message sent in a block with `l2_block_timestamp`.

    Parameters
    ----------
    `l2_block_timestamp` : int
        timestamp of the L2 block that emitted the message

    `profile` : NetworkProfile

    `now` : int, optional
        epoch seconds, defaults to the current time

    Returns
    -------
    `ChallengeStatus`
    """
    if now is None:
        now = int(time.time())

    end_epoch_seconds = l2_block_timestamp + profile.challenge_period_seconds
    remaining_seconds = max(0, end_epoch_seconds - now)

    return ChallengeStatus(
        end_epoch_seconds=end_epoch_seconds,
        remaining_seconds=remaining_seconds,
        is_ready=remaining_seconds == 0,
    )


def format_duration(seconds: int) -> str:
    """604799 -> "6d 23h 59m", 0 -> "Ready"."""
    if seconds <= 0:
        return "Ready"

    days, rest = divmod(seconds, SECONDS_PER_DAY)
    hours, rest = divmod(rest, SECONDS_PER_HOUR)
    minutes = rest // SECONDS_PER_MINUTE

    parts = []
    if days > 0:
        parts.append(f"{days}d")
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0 or not parts:
        parts.append(f"{minutes}m")

    return " ".join(parts)
