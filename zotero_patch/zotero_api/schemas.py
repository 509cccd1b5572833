# zotero_patch/zotero_api/schemas.py
from typing import List, Optional, Dict, Any, Literal
from pydantic import BaseModel, ConfigDict, Field

# Where the library version is read from on a successful version fetch
VersionSource = Literal['header', 'body', 'auto']
WriteMethod = Literal['POST', 'PATCH']


# --- Request Models ---
class PatchRecord(BaseModel):
    """A single item update: the item key plus the two fields to overwrite."""
    model_config = ConfigDict(frozen=True)

    key: str = Field(serialization_alias="Key", min_length=1)
    title: str = Field(serialization_alias="Title")
    extra: str = Field(serialization_alias="Extra")

    def to_payload(self) -> Dict[str, str]:
        # Wire format uses capitalized field names
        return self.model_dump(by_alias=True)


# --- Response Models ---
class LibraryResponse(BaseModel):
    """Body of the version endpoint when it returns the library object."""
    model_config = ConfigDict(extra="ignore")

    version: int = Field(ge=0)


class WriteReport(BaseModel):
    """
    Body of a multi-object write. The API answers 200 with per-index maps
    describing which objects were written, unchanged, or rejected.
    """
    model_config = ConfigDict(extra="ignore")

    successful: Dict[str, Any] = Field(default_factory=dict)
    success: Dict[str, Any] = Field(default_factory=dict)
    unchanged: Dict[str, Any] = Field(default_factory=dict)
    failed: Dict[str, Any] = Field(default_factory=dict)

    @property
    def failed_count(self) -> int:
        return len(self.failed)

    def failed_keys(self, batch: List[PatchRecord]) -> List[str]:
        """Maps the index-keyed 'failed' entries back to item keys."""
        keys = []
        for index_str in self.failed:
            try:
                keys.append(batch[int(index_str)].key)
            except (ValueError, IndexError):
                keys.append(index_str)
        return keys


# --- Sync Outcome Models ---
BatchStatus = Literal['success', 'failure', 'cancelled']

class BatchOutcome(BaseModel):
    index: int
    size: int
    status: BatchStatus
    http_status: Optional[int] = None
    version: Optional[int] = None
    version_fetches: int = 0
    conflicts: int = 0
    rate_limit_waits: int = 0
    failed_keys: List[str] = Field(default_factory=list)
    error: Optional[str] = None


class SyncReport(BaseModel):
    total_records: int = 0
    batches: List[BatchOutcome] = Field(default_factory=list)

    @property
    def succeeded(self) -> List[BatchOutcome]:
        return [b for b in self.batches if b.status == 'success']

    @property
    def records_applied(self) -> int:
        return sum(b.size for b in self.succeeded)
