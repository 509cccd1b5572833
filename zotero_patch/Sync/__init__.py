# zotero_patch/Sync/__init__.py
from .batch_coordinator import BatchCoordinator, chunk_records
from .exceptions import SyncError, BatchSyncError, RetryExhaustedError, SyncCancelledError
from .pacing import RetryPolicy, Sleeper, AsyncioSleeper
from .sync_protocol import SyncProtocol

__all__ = [
    "BatchCoordinator", "chunk_records",
    "SyncError", "BatchSyncError", "RetryExhaustedError", "SyncCancelledError",
    "RetryPolicy", "Sleeper", "AsyncioSleeper",
    "SyncProtocol",
]
