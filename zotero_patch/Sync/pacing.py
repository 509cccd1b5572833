# pacing.py
# Description: Wait providers and retry policy used by the sync protocol.
#
# Imports
import asyncio
import random
from typing import Optional, Protocol
#
# 3rd-Party Imports
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, model_validator
#
# Local Imports
from .exceptions import SyncCancelledError
#
########################################################################################################################
#
# Functions:

class RetryPolicy(BaseModel):
    """
    Bounds and delays for the retry paths of the sync protocol.

    A limit of None means retry until the server stops asking. Rate-limit and
    conflict retries are server-directed and default to unlimited; transient
    retries (unrecognized statuses while fetching the version) are bounded.
    """
    model_config = ConfigDict(frozen=True)

    max_transient_retries: int = Field(default=5, ge=0)
    max_rate_limit_retries: Optional[int] = Field(default=None, ge=0)
    max_conflict_retries: Optional[int] = Field(default=None, ge=0)
    base_backoff_seconds: float = Field(default=1.0, gt=0)
    max_backoff_seconds: float = Field(default=60.0, gt=0)
    # Floor for every wait the client chooses itself
    min_backoff_seconds: float = Field(default=1.0, ge=0)
    jitter: bool = True

    @model_validator(mode="after")
    def _check_bounds(self) -> "RetryPolicy":
        if self.max_backoff_seconds < self.min_backoff_seconds:
            raise ValueError("max_backoff_seconds must be >= min_backoff_seconds")
        return self

    def backoff_for(self, attempt: int, rng: Optional[random.Random] = None) -> float:
        """Exponential backoff with full jitter for the given 1-based attempt, never below the floor."""
        exponent = max(attempt - 1, 0)
        ceiling = min(self.max_backoff_seconds, self.base_backoff_seconds * (2 ** min(exponent, 32)))
        delay = (rng or random).uniform(0, ceiling) if self.jitter else ceiling
        return max(self.min_backoff_seconds, delay)


class Sleeper(Protocol):
    async def sleep(self, seconds: float) -> None:
        ...


class AsyncioSleeper:
    """
    Production sleeper. Waits on the cancel event with a timeout so that
    setting the event interrupts the wait.
    """

    def __init__(self, cancel_event: Optional[asyncio.Event] = None):
        self.cancel_event = cancel_event

    def check_cancelled(self):
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise SyncCancelledError("Sync run was cancelled")

    async def sleep(self, seconds: float) -> None:
        self.check_cancelled()
        if seconds <= 0:
            return
        logger.debug(f"Pausing for {seconds:.2f}s")
        if self.cancel_event is None:
            await asyncio.sleep(seconds)
            return
        try:
            await asyncio.wait_for(self.cancel_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return
        raise SyncCancelledError(f"Sync run was cancelled during a {seconds:.2f}s wait")

#
# End of pacing.py
#######################################################################################################################
