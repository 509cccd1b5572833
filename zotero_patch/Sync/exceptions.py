# zotero_patch/Sync/exceptions.py
#
#
# Imports
from typing import Optional
#
# Local Imports
from ..zotero_api.exceptions import ZoteroPatchError
from ..zotero_api.schemas import BatchOutcome, SyncReport
#
#######################################################################################################################
#
# Functions:

class SyncError(ZoteroPatchError):
    """
    Base exception for a sync run that stopped before all batches were applied.

    batch_index is the 0-based position of the batch that stopped the run and
    report holds the outcomes of every batch attempted so far. Batches listed
    as successful in the report remain applied on the server.

    applied is set when the stopping batch was itself accepted by the server
    and the run failed afterwards, e.g. on an unreadable Backoff header.
    """
    def __init__(self, message: str, batch_index: Optional[int] = None, status_code: Optional[int] = None,
                 report: Optional[SyncReport] = None, applied: Optional[BatchOutcome] = None):
        super().__init__(message)
        self.message = message
        self.batch_index = batch_index
        self.status_code = status_code
        self.report = report
        self.applied = applied

    def __str__(self):
        location = f"batch {self.batch_index}" if self.batch_index is not None else "sync"
        status = f" (HTTP {self.status_code})" if self.status_code is not None else ""
        return f"{location}{status}: {self.message}"

class BatchSyncError(SyncError):
    """Raised when a batch submit returns a status the protocol cannot recover from."""
    pass

class RetryExhaustedError(SyncError):
    """Raised when a retry budget runs out."""
    def __init__(self, message: str, attempts: int, **kwargs):
        super().__init__(message, **kwargs)
        self.attempts = attempts

class SyncCancelledError(SyncError):
    """Raised when the cancellation signal is observed."""
    pass

#
# End of zotero_patch/Sync/exceptions.py
########################################################################################################################
