# on-device journal store — one json blob per user on local disk
# entry + profile land in a single atomic file replace, history capped at the most recent N

import hashlib
import json
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from mindvault.config import settings
from mindvault.exceptions import StorageReadError, StorageWriteError
from mindvault.models.data import ClearReport, InterchangeImport, StoreCapabilities
from mindvault.models.journal import JournalEntry, UserProfile, now_ms
from mindvault.services.profile_merger import merge_facts
from mindvault.services.store import JournalStore, sort_recent_first

logger = logging.getLogger(__name__)

_SAFE_NAME = re.compile(r"^[A-Za-z0-9_.-]{1,64}$")


@dataclass
class _Blob:
    entries: list[JournalEntry] = field(default_factory=list)
    profile: Optional[UserProfile] = None


class LocalJournalStore(JournalStore):
    """synchronous file IO inside each call. writes are atomic (tmp file + os.replace)"""

    backend = "local"

    def __init__(self, user_id: str, data_dir: Optional[Path] = None, retention_limit: Optional[int] = None):
        super().__init__(user_id)
        self.data_dir = Path(data_dir) if data_dir is not None else settings.LOCAL_DATA_DIR
        self.retention_limit = retention_limit if retention_limit is not None else settings.LOCAL_RETENTION_LIMIT

    @property
    def capabilities(self) -> StoreCapabilities:
        return StoreCapabilities(
            backend=self.backend,
            atomicWrites=True,
            retentionCap=self.retention_limit,
            atomicClear=True,
        )

    @property
    def path(self) -> Path:
        name = self.user_id if _SAFE_NAME.match(self.user_id) else hashlib.md5(self.user_id.encode()).hexdigest()
        return self.data_dir / f"{name}.json"

    # blob io

    def _read_blob(self) -> _Blob:
        if not self.path.exists():
            return _Blob()
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            if not isinstance(raw, dict):
                raise ValueError("top-level value is not an object")
            entries = [JournalEntry.model_validate(e) for e in raw.get("entries") or []]
            profile = UserProfile.model_validate(raw["profile"]) if raw.get("profile") else None
        except (OSError, ValueError) as e:
            raise StorageReadError(f"Could not read {self.path}: {e}") from e
        return _Blob(entries=entries, profile=profile)

    def _read_blob_for_write(self) -> _Blob:
        # an unreadable file must not be overwritten with partial state
        try:
            return self._read_blob()
        except StorageReadError as e:
            raise StorageWriteError(f"Refusing to overwrite unreadable store: {e}") from e

    def _write_blob(self, blob: _Blob) -> None:
        entries = sort_recent_first(blob.entries)
        dropped = len(entries) - self.retention_limit
        if dropped > 0:
            logger.info(f"Retention cap {self.retention_limit} reached, dropping {dropped} oldest entr(ies)")
            entries = entries[: self.retention_limit]
        blob.entries = entries

        payload = {
            "entries": [e.model_dump(by_alias=True, exclude_none=True, mode="json") for e in entries],
            "profile": blob.profile.model_dump(by_alias=True, mode="json") if blob.profile else None,
        }
        tmp_path = self.path.with_suffix(".json.tmp")
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.error(f"Could not write {self.path}: {e}")
            raise StorageWriteError(f"Could not write {self.path}: {e}") from e

    @staticmethod
    def _merged(profile: Optional[UserProfile], new_facts: list[str]) -> UserProfile:
        existing = profile.core_memories if profile else []
        return UserProfile(coreMemories=merge_facts(existing, new_facts), lastUpdated=now_ms())

    # entries

    async def save_entry(self, entry: JournalEntry) -> None:
        """entry and merged profile go out in one combined write"""
        async with self._profile_lock:
            blob = self._read_blob_for_write()
            blob.entries = [e for e in blob.entries if e.id != entry.id] + [entry]
            if entry.metadata.extracted_facts:
                blob.profile = self._merged(blob.profile, entry.metadata.extracted_facts)
            self._write_blob(blob)
        logger.info(f"Entry {entry.id} saved locally")

    async def put_entry(self, entry: JournalEntry) -> None:
        async with self._profile_lock:
            blob = self._read_blob_for_write()
            blob.entries = [e for e in blob.entries if e.id != entry.id] + [entry]
            self._write_blob(blob)

    async def get_entries(self) -> list[JournalEntry]:
        try:
            blob = self._read_blob()
        except StorageReadError as e:
            logger.warning(f"Entry read failed for {self.user_id}, returning empty history: {e}")
            return []
        return sort_recent_first(blob.entries)[: self.retention_limit]

    # profile

    async def _load_profile(self) -> Optional[UserProfile]:
        return self._read_blob().profile

    async def _merge_profile(self, new_facts: list[str]) -> UserProfile:
        blob = self._read_blob_for_write()
        blob.profile = self._merged(blob.profile, new_facts)
        self._write_blob(blob)
        return blob.profile

    # data management

    async def clear_history(self) -> ClearReport:
        async with self._profile_lock:
            try:
                blob = self._read_blob()
            except StorageReadError:
                blob = _Blob()
            try:
                self.path.unlink(missing_ok=True)
            except OSError as e:
                raise StorageWriteError(f"Could not delete {self.path}: {e}") from e
        logger.info(f"Cleared local history for {self.user_id}")
        return ClearReport(
            entriesRemoved=len(blob.entries),
            profileRemoved=blob.profile is not None,
            atomic=True,
        )

    async def _apply_import(self, document: InterchangeImport) -> None:
        if document.entries is not None and document.profile is not None:
            blob = _Blob()
        else:
            blob = self._read_blob_for_write()
        if document.entries is not None:
            blob.entries = list(document.entries)
        if document.profile is not None:
            blob.profile = document.profile
        self._write_blob(blob)
