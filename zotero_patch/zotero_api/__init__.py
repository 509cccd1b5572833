# zotero_patch/zotero_api/__init__.py
from .client import ZoteroAPIClient
from .exceptions import (
    ZoteroPatchError, ConfigurationError, RecordSourceError, MalformedRowError,
    ZoteroAPIError, APIConnectionError, ProtocolValueError
)
from .schemas import (
    PatchRecord, LibraryResponse, WriteReport, BatchOutcome, SyncReport,
    VersionSource, WriteMethod, BatchStatus # Export Literals
)

__all__ = [
    "ZoteroAPIClient",
    "ZoteroPatchError", "ConfigurationError", "RecordSourceError", "MalformedRowError",
    "ZoteroAPIError", "APIConnectionError", "ProtocolValueError",
    "PatchRecord", "LibraryResponse", "WriteReport", "BatchOutcome", "SyncReport",
    "VersionSource", "WriteMethod", "BatchStatus"
]
