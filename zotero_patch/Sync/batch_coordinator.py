# batch_coordinator.py
# Description: Splits the ordered record list into API-sized batches and applies them one at a time.
#
# Imports
import asyncio
from typing import Iterator, List, Optional, Sequence, Tuple
#
# 3rd-Party Imports
from loguru import logger
#
# Local Imports
from ..Constants import MAX_BATCH_SIZE
from ..Metrics.metrics_logger import timeit, log_counter
from ..zotero_api.exceptions import ZoteroAPIError
from ..zotero_api.schemas import PatchRecord, BatchOutcome, SyncReport
from .exceptions import SyncError, SyncCancelledError
from .sync_protocol import SyncProtocol
#
########################################################################################################################
#
# Functions:

def chunk_records(records: Sequence[PatchRecord], size: int = MAX_BATCH_SIZE) -> Iterator[Tuple[PatchRecord, ...]]:
    """Yields contiguous, order-preserving slices of at most `size` records."""
    if not 1 <= size <= MAX_BATCH_SIZE:
        raise ValueError(f"Batch size must be between 1 and {MAX_BATCH_SIZE}, got {size}")
    for start in range(0, len(records), size):
        yield tuple(records[start:start + size])


class BatchCoordinator:
    """
    Applies every batch strictly in order, never concurrently: each submit is
    stamped with the library version read just before it, so two in-flight
    batches would race on that counter.

    The first failing batch stops the run. Batches applied before it stay
    applied; the raised SyncError carries the report so far.
    """

    def __init__(self, protocol: SyncProtocol, batch_size: int = MAX_BATCH_SIZE,
                 cancel_event: Optional[asyncio.Event] = None):
        if not 1 <= batch_size <= MAX_BATCH_SIZE:
            raise ValueError(f"Batch size must be between 1 and {MAX_BATCH_SIZE}, got {batch_size}")
        self.protocol = protocol
        self.batch_size = batch_size
        self.cancel_event = cancel_event

    def plan(self, records: Sequence[PatchRecord]) -> List[Tuple[PatchRecord, ...]]:
        return list(chunk_records(records, self.batch_size))

    def _fail(self, report: SyncReport, index: int, batch: Sequence[PatchRecord], error: SyncError) -> SyncError:
        if error.batch_index is None:
            error.batch_index = index
        error.report = report
        if error.applied is not None:
            report.batches.append(error.applied.model_copy(update={"error": error.message}))
            log_counter("zotero_batches_total", labels={"status": "success"})
            return error
        status = "cancelled" if isinstance(error, SyncCancelledError) else "failure"
        report.batches.append(BatchOutcome(
            index=index, size=len(batch), status=status,
            http_status=error.status_code, error=error.message,
        ))
        log_counter("zotero_batches_total", labels={"status": status})
        return error

    @timeit(metric_name="zotero_sync_run_duration_seconds")
    async def sync_all(self, records: Sequence[PatchRecord]) -> SyncReport:
        report = SyncReport(total_records=len(records))
        batches = self.plan(records)
        logger.info(f"Syncing {len(records)} records in {len(batches)} batch(es) of up to {self.batch_size}")

        for index, batch in enumerate(batches):
            try:
                if self.cancel_event is not None and self.cancel_event.is_set():
                    raise SyncCancelledError("Sync run was cancelled before the batch started")
                outcome = await self.protocol.submit_batch(batch, index)
            except SyncError as e:
                logger.error(f"Stopping sync at batch {index + 1}/{len(batches)}: {e}")
                raise self._fail(report, index, batch, e)
            except ZoteroAPIError as e:
                logger.error(f"Stopping sync at batch {index + 1}/{len(batches)}: {e}")
                raise self._fail(report, index, batch, SyncError(str(e), batch_index=index)) from e
            report.batches.append(outcome)
            log_counter("zotero_batches_total", labels={"status": "success"})

        logger.info(f"Sync complete: {report.records_applied} records applied in {len(report.batches)} batch(es)")
        return report

#
# End of batch_coordinator.py
#######################################################################################################################
