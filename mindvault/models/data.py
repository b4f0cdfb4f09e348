# data management models — interchange document, clear report, capability matrix

from typing import Optional
from pydantic import BaseModel, Field

from mindvault.models.journal import JournalEntry, UserProfile, now_ms


class InterchangeDocument(BaseModel):
    """full export of one user's entries and profile"""
    entries: list[JournalEntry]
    profile: UserProfile
    exported_at: int = Field(default_factory=now_ms, alias="exportedAt")

    model_config = {"populate_by_name": True}


class InterchangeImport(BaseModel):
    """incoming backup. a missing field leaves that part of state unchanged"""
    entries: Optional[list[JournalEntry]] = None
    profile: Optional[UserProfile] = None
    exported_at: Optional[int] = Field(None, alias="exportedAt")

    model_config = {"populate_by_name": True}


class ClearReport(BaseModel):
    """outcome of a bulk wipe"""
    entries_removed: int = Field(..., alias="entriesRemoved")
    profile_removed: bool = Field(..., alias="profileRemoved")
    atomic: bool
    note: Optional[str] = None

    model_config = {"populate_by_name": True}


class StoreCapabilities(BaseModel):
    """what a storage backend does and does not guarantee"""
    backend: str
    atomic_writes: bool = Field(..., alias="atomicWrites")
    retention_cap: Optional[int] = Field(None, alias="retentionCap")
    atomic_clear: bool = Field(..., alias="atomicClear")

    model_config = {"populate_by_name": True, "frozen": True}
