# sync_protocol.py
# Description: Version-fetch / patch-submit state machine for writing batches to a Zotero library.
#
# Imports
import random
import time
from dataclasses import dataclass
from typing import Optional, Sequence
#
# 3rd-Party Imports
import httpx
from loguru import logger
#
# Local Imports
from ..Constants import HTTP_OK, HTTP_PRECONDITION_FAILED, HTTP_TOO_MANY_REQUESTS, SUBMIT_SUCCESS_CODES
from ..Metrics.metrics_logger import MetricsLogger
from ..zotero_api.client import ZoteroAPIClient
from ..zotero_api.exceptions import ProtocolValueError
from ..zotero_api.schemas import PatchRecord, BatchOutcome, VersionSource
from ..zotero_api.utils import get_backoff_seconds, get_retry_after_seconds, read_library_version, parse_write_report
from .exceptions import BatchSyncError, RetryExhaustedError, SyncError
from .pacing import RetryPolicy, Sleeper, AsyncioSleeper
#
########################################################################################################################
#
# Functions:

@dataclass
class _AttemptStats:
    version_fetches: int = 0
    conflicts: int = 0
    rate_limit_waits: int = 0


class SyncProtocol:
    """
    Drives one batch at a time through the Zotero write protocol.

    Every batch starts with a fresh library version. A 412 means the library
    moved on since that read, so the version is fetched again and the same
    payload resubmitted. A 429 waits for Retry-After (or the policy's backoff
    when absent) and repeats the same call with the same version. A Backoff
    header on a success is advisory: the call returns its result only after
    waiting that long. Any other status on submit is fatal.
    """

    def __init__(
        self,
        client: ZoteroAPIClient,
        policy: Optional[RetryPolicy] = None,
        sleeper: Optional[Sleeper] = None,
        version_source: VersionSource = "header",
        rng: Optional[random.Random] = None,
    ):
        self.client = client
        self.policy = policy or RetryPolicy()
        self.sleeper = sleeper or AsyncioSleeper()
        self.version_source = version_source
        self._rng = rng or random.Random()
        self.metrics = MetricsLogger(base_labels={"component": "sync_protocol", "group_id": client.group_id})

    # --- Pacing helpers ---

    async def _honor_backoff(self, response: httpx.Response, operation: str):
        backoff = get_backoff_seconds(response)
        if backoff:
            logger.info(f"Server requested {backoff:.2f}s of pacing after {operation}")
            self.metrics.log_histogram("zotero_backoff_wait_seconds", backoff, labels={"operation": operation})
            await self.sleeper.sleep(backoff)

    async def _wait_rate_limited(self, response: httpx.Response, attempt: int, operation: str):
        limit = self.policy.max_rate_limit_retries
        if limit is not None and attempt > limit:
            raise RetryExhaustedError(
                f"{operation} still rate limited after {limit} retries",
                attempts=attempt, status_code=HTTP_TOO_MANY_REQUESTS,
            )
        retry_after = get_retry_after_seconds(response)
        if retry_after is None:
            delay = self.policy.backoff_for(attempt, self._rng)
            logger.warning(f"{operation} rate limited without Retry-After; backing off {delay:.2f}s (attempt {attempt})")
        else:
            delay = max(retry_after, self.policy.min_backoff_seconds)
            logger.warning(f"{operation} rate limited; retrying after {delay:.2f}s (attempt {attempt})")
        self.metrics.log_counter("zotero_rate_limited_total", labels={"operation": operation})
        self.metrics.log_histogram("zotero_rate_limit_wait_seconds", delay, labels={"operation": operation})
        await self.sleeper.sleep(delay)

    def _count_request(self, operation: str, response: httpx.Response):
        self.metrics.log_counter("zotero_requests_total",
                                 labels={"operation": operation, "status": response.status_code})

    # --- Protocol operations ---

    async def fetch_version(self, stats: Optional[_AttemptStats] = None) -> int:
        """Reads the current library version, retrying through rate limits and transient statuses."""
        stats = stats if stats is not None else _AttemptStats()
        transient_failures = 0
        rate_limited = 0
        while True:
            response = await self.client.fetch_version()
            self._count_request("fetch_version", response)
            status = response.status_code

            if status == HTTP_OK:
                version = read_library_version(response, self.version_source)
                stats.version_fetches += 1
                logger.debug(f"Library {self.client.group_id} is at version {version}")
                await self._honor_backoff(response, "fetch_version")
                return version

            if status == HTTP_TOO_MANY_REQUESTS:
                rate_limited += 1
                stats.rate_limit_waits += 1
                await self._wait_rate_limited(response, rate_limited, "fetch_version")
                continue

            transient_failures += 1
            if transient_failures > self.policy.max_transient_retries:
                raise RetryExhaustedError(
                    f"Version fetch failed after {transient_failures} attempts with unexpected statuses",
                    attempts=transient_failures, status_code=status,
                )
            delay = self.policy.backoff_for(transient_failures, self._rng)
            logger.warning(f"Version fetch returned HTTP {status}; retrying in {delay:.2f}s "
                           f"({transient_failures}/{self.policy.max_transient_retries})")
            self.metrics.log_counter("zotero_transient_retries_total", labels={"status": status})
            await self.sleeper.sleep(delay)

    async def submit_batch(self, batch: Sequence[PatchRecord], batch_index: int = 0) -> BatchOutcome:
        """
        Applies one batch. Returns a successful BatchOutcome or raises.

        Raises:
            BatchSyncError: The submit returned a status other than success, 429 or 412, or the
                batch was applied but its Backoff header was unreadable (see SyncError.applied).
            RetryExhaustedError: A bounded retry budget in the policy ran out.
            ProtocolValueError: A Retry-After or version value was malformed.
            APIConnectionError: The transport failed.
        """
        started = time.perf_counter()
        stats = _AttemptStats()
        version = await self.fetch_version(stats)
        rate_limited = 0

        while True:
            response = await self.client.submit_batch(batch, version)
            self._count_request("submit_batch", response)
            status = response.status_code

            if status in SUBMIT_SUCCESS_CODES:
                write_report = parse_write_report(response)
                failed_keys = write_report.failed_keys(list(batch)) if write_report else []
                if failed_keys:
                    logger.warning(f"Batch {batch_index}: server rejected {len(failed_keys)} item(s): {failed_keys}")
                logger.info(f"Batch {batch_index} ({len(batch)} records) applied at version {version}")
                outcome = BatchOutcome(
                    index=batch_index,
                    size=len(batch),
                    status="success",
                    http_status=status,
                    version=version,
                    version_fetches=stats.version_fetches,
                    conflicts=stats.conflicts,
                    rate_limit_waits=stats.rate_limit_waits,
                    failed_keys=failed_keys,
                )
                # The server has applied the batch; later failures must not hide that
                try:
                    await self._honor_backoff(response, "submit_batch")
                except ProtocolValueError as e:
                    raise BatchSyncError(
                        f"Batch applied but {e}", batch_index=batch_index, status_code=status, applied=outcome,
                    ) from e
                except SyncError as e:
                    e.applied = outcome
                    raise
                elapsed = time.perf_counter() - started
                self.metrics.log_histogram("zotero_batch_duration_seconds", elapsed)
                return outcome

            if status == HTTP_TOO_MANY_REQUESTS:
                rate_limited += 1
                stats.rate_limit_waits += 1
                await self._wait_rate_limited(response, rate_limited, "submit_batch")
                continue

            if status == HTTP_PRECONDITION_FAILED:
                stats.conflicts += 1
                limit = self.policy.max_conflict_retries
                if limit is not None and stats.conflicts > limit:
                    raise RetryExhaustedError(
                        f"Batch still conflicting after {limit} version refreshes",
                        attempts=stats.conflicts, batch_index=batch_index, status_code=status,
                    )
                logger.info(f"Batch {batch_index}: library version {version} is stale, fetching a fresh one")
                self.metrics.log_counter("zotero_version_conflicts_total")
                version = await self.fetch_version(stats)
                continue

            raise BatchSyncError(
                f"Submit rejected: {response.text[:200]}",
                batch_index=batch_index, status_code=status,
            )

#
# End of sync_protocol.py
#######################################################################################################################
