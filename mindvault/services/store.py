# journal store interface — entries + the per-user profile singleton
# shared by the local (json file) and mongo backends

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

from pydantic import ValidationError

from mindvault.exceptions import (
    InterchangeImportError,
    PartialSaveError,
    StorageReadError,
    StorageWriteError,
)
from mindvault.models.data import ClearReport, InterchangeDocument, InterchangeImport, StoreCapabilities
from mindvault.models.journal import JournalEntry, UserProfile

logger = logging.getLogger(__name__)


def parse_interchange(raw: Any) -> InterchangeImport:
    """validate an interchange document before anything is applied.

    accepts a json string/bytes or an already decoded object. the document
    must be an object carrying `entries` and/or `profile`.
    """
    if isinstance(raw, (str, bytes, bytearray)):
        try:
            raw = json.loads(raw)
        except ValueError as e:
            raise InterchangeImportError(f"Import file is not valid JSON: {e}") from e

    if not isinstance(raw, dict):
        raise InterchangeImportError("Import document must be a JSON object")
    if "entries" not in raw and "profile" not in raw:
        raise InterchangeImportError("Import document has neither 'entries' nor 'profile'")
    for key in ("entries", "profile"):
        if key in raw and raw[key] is None:
            raise InterchangeImportError(f"Import document has a null '{key}'")

    try:
        document = InterchangeImport.model_validate(raw)
    except ValidationError as e:
        raise InterchangeImportError(f"Import document failed validation: {e.error_count()} error(s)") from e

    if document.entries is not None:
        ids = [entry.id for entry in document.entries]
        if len(ids) != len(set(ids)):
            raise InterchangeImportError("Import document contains duplicate entry ids")

    return document


def sort_recent_first(entries: list[JournalEntry]) -> list[JournalEntry]:
    return sorted(entries, key=lambda e: e.timestamp, reverse=True)


class JournalStore(ABC):
    """entry store and profile store for one user.

    profile merges are read-modify-write; they run one at a time per store
    instance behind _profile_lock, so share one instance per user.
    """

    backend: str = ""

    def __init__(self, user_id: str):
        self.user_id = user_id
        self._profile_lock = asyncio.Lock()

    @property
    def busy(self) -> bool:
        """a profile merge or import is in flight"""
        return self._profile_lock.locked()

    @property
    @abstractmethod
    def capabilities(self) -> StoreCapabilities:
        """the guarantees this backend makes"""

    # entries

    async def save_entry(self, entry: JournalEntry) -> None:
        """persist the entry, then fold its facts into the profile.

        two separate writes: if the second fails the entry stays persisted
        and PartialSaveError names it.
        """
        await self.put_entry(entry)
        try:
            await self.update_user_profile(entry.metadata.extracted_facts)
        except StorageWriteError as e:
            logger.error(f"Entry {entry.id} saved but profile merge failed: {e}")
            raise PartialSaveError(entry.id, e) from e

    @abstractmethod
    async def put_entry(self, entry: JournalEntry) -> None:
        """write one entry keyed by its id. raises StorageWriteError"""

    @abstractmethod
    async def get_entries(self) -> list[JournalEntry]:
        """entries, most recent first. never raises"""

    # profile

    async def get_user_profile(self) -> UserProfile:
        """current profile, or an empty one if there is none or the read fails"""
        try:
            profile = await self._load_profile()
        except StorageReadError as e:
            logger.warning(f"Profile read failed for {self.user_id}, using empty profile: {e}")
            return UserProfile()
        return profile if profile is not None else UserProfile()

    async def update_user_profile(self, new_facts: list[str]) -> Optional[UserProfile]:
        """merge new facts into the stored profile. no-op for an empty list"""
        if not new_facts:
            return None
        async with self._profile_lock:
            profile = await self._merge_profile(new_facts)
        logger.info(f"Profile for {self.user_id} now holds {len(profile.core_memories)} fact(s)")
        return profile

    @abstractmethod
    async def _load_profile(self) -> Optional[UserProfile]:
        """stored profile or None. raises StorageReadError"""

    @abstractmethod
    async def _merge_profile(self, new_facts: list[str]) -> UserProfile:
        """read, merge and write back the profile. raises StorageWriteError"""

    # data management

    @abstractmethod
    async def clear_history(self) -> ClearReport:
        """remove every entry and the profile"""

    async def export_data(self) -> InterchangeDocument:
        entries = await self.get_entries()
        profile = await self.get_user_profile()
        return InterchangeDocument(entries=entries, profile=profile)

    async def import_data(self, raw: Any) -> InterchangeImport:
        """validate the whole document, then replace entries and/or profile"""
        document = parse_interchange(raw)
        async with self._profile_lock:
            await self._apply_import(document)
        logger.info(
            f"Imported {len(document.entries) if document.entries is not None else 'no'} entries, "
            f"profile {'replaced' if document.profile is not None else 'unchanged'} for {self.user_id}"
        )
        return document

    @abstractmethod
    async def _apply_import(self, document: InterchangeImport) -> None:
        """replace state from a validated document"""
