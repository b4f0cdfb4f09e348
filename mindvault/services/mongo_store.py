# cloud journal store — per-user entries and profile in mongodb
# no transactions: entry and profile are separate writes, profile merges are version-checked

import logging
from typing import Any, Optional

from pymongo.errors import DuplicateKeyError, PyMongoError

from mindvault.config import settings
from mindvault.exceptions import StorageReadError, StorageWriteError
from mindvault.models.data import ClearReport, InterchangeImport, StoreCapabilities
from mindvault.models.journal import JournalEntry, UserProfile, now_ms
from mindvault.services.db import Database
from mindvault.services.profile_merger import merge_facts
from mindvault.services.store import JournalStore

logger = logging.getLogger(__name__)

CLEAR_NOTE = (
    "Entries and profile are deleted in two separate writes. "
    "A failure between them can leave the profile behind."
)


def _entry_doc(entry: JournalEntry, user_id: str) -> dict[str, Any]:
    doc = entry.model_dump(by_alias=True, exclude_none=True, mode="json")
    doc["user_id"] = user_id
    return doc


def _doc_to_entry(doc: dict) -> JournalEntry:
    data = {k: v for k, v in doc.items() if k not in ("_id", "user_id")}
    return JournalEntry.model_validate(data)


def _version_filter(user_id: str, version: Optional[int]) -> dict[str, Any]:
    # profiles written before versioning have no version field
    if version is None:
        return {"_id": user_id, "version": {"$exists": False}}
    return {"_id": user_id, "version": version}


class MongoJournalStore(JournalStore):
    """unbounded history, two-write saves and optimistic profile merges"""

    backend = "mongo"

    def __init__(self, database: Database, user_id: str, max_retries: Optional[int] = None):
        super().__init__(user_id)
        self.database = database
        self.max_retries = max_retries if max_retries is not None else settings.PROFILE_MERGE_RETRIES

    @property
    def capabilities(self) -> StoreCapabilities:
        return StoreCapabilities(
            backend=self.backend,
            atomicWrites=False,
            retentionCap=None,
            atomicClear=False,
        )

    # entries

    async def put_entry(self, entry: JournalEntry) -> None:
        try:
            await self.database.journal_entries.replace_one(
                {"user_id": self.user_id, "id": entry.id},
                _entry_doc(entry, self.user_id),
                upsert=True,
            )
        except PyMongoError as e:
            logger.error(f"Could not save entry {entry.id}: {e}")
            raise StorageWriteError(f"Could not save entry {entry.id}: {e}") from e
        logger.info(f"Entry {entry.id} saved for {self.user_id}")

    async def get_entries(self) -> list[JournalEntry]:
        entries = []
        try:
            cursor = self.database.journal_entries.find({"user_id": self.user_id}).sort("timestamp", -1)
            async for doc in cursor:
                try:
                    entries.append(_doc_to_entry(doc))
                except ValueError as e:
                    logger.warning(f"Skipping unreadable entry {doc.get('id')}: {e}")
        except PyMongoError as e:
            logger.warning(f"Entry read failed for {self.user_id}, returning empty history: {e}")
            return []
        return entries

    # profile

    async def _read_profile_doc(self) -> Optional[dict]:
        try:
            return await self.database.profiles.find_one({"_id": self.user_id})
        except PyMongoError as e:
            raise StorageReadError(f"Could not read profile for {self.user_id}: {e}") from e

    async def _load_profile(self) -> Optional[UserProfile]:
        doc = await self._read_profile_doc()
        if doc is None:
            return None
        try:
            return UserProfile.model_validate(doc)
        except ValueError as e:
            raise StorageReadError(f"Stored profile for {self.user_id} is malformed: {e}") from e

    async def _merge_profile(self, new_facts: list[str]) -> UserProfile:
        """read-modify-write guarded by the version field, retried when another writer wins"""
        for attempt in range(1, self.max_retries + 1):
            try:
                doc = await self._read_profile_doc()
            except StorageReadError as e:
                raise StorageWriteError(str(e)) from e

            existing = doc.get("coreMemories", []) if doc else []
            profile = UserProfile(coreMemories=merge_facts(existing, new_facts), lastUpdated=now_ms())
            body = profile.model_dump(by_alias=True)

            try:
                if doc is None:
                    await self.database.profiles.insert_one({"_id": self.user_id, **body, "version": 1})
                    return profile

                version = doc.get("version")
                result = await self.database.profiles.update_one(
                    _version_filter(self.user_id, version),
                    {"$set": {**body, "version": (version or 0) + 1}},
                )
            except DuplicateKeyError:
                logger.info(f"Profile for {self.user_id} created concurrently, retrying merge ({attempt})")
                continue
            except PyMongoError as e:
                logger.error(f"Could not write profile for {self.user_id}: {e}")
                raise StorageWriteError(f"Could not write profile for {self.user_id}: {e}") from e

            if result.matched_count == 1:
                return profile
            logger.info(f"Profile for {self.user_id} changed concurrently, retrying merge ({attempt})")

        raise StorageWriteError(
            f"Profile merge for {self.user_id} lost {self.max_retries} concurrent updates in a row"
        )

    # data management

    async def clear_history(self) -> ClearReport:
        async with self._profile_lock:
            try:
                entries_result = await self.database.journal_entries.delete_many({"user_id": self.user_id})
            except PyMongoError as e:
                raise StorageWriteError(f"Could not delete entries for {self.user_id}: {e}") from e

            try:
                profile_result = await self.database.profiles.delete_one({"_id": self.user_id})
            except PyMongoError as e:
                raise StorageWriteError(
                    f"Deleted {entries_result.deleted_count} entries but the profile "
                    f"for {self.user_id} could not be removed: {e}"
                ) from e

        logger.info(f"Cleared cloud history for {self.user_id}: {entries_result.deleted_count} entries")
        return ClearReport(
            entriesRemoved=entries_result.deleted_count,
            profileRemoved=profile_result.deleted_count > 0,
            atomic=False,
            note=CLEAR_NOTE,
        )

    async def _apply_import(self, document: InterchangeImport) -> None:
        try:
            if document.entries is not None:
                await self.database.journal_entries.delete_many({"user_id": self.user_id})
                docs = [_entry_doc(e, self.user_id) for e in document.entries]
                if docs:
                    await self.database.journal_entries.insert_many(docs)

            if document.profile is not None:
                await self.database.profiles.update_one(
                    {"_id": self.user_id},
                    {"$set": document.profile.model_dump(by_alias=True), "$inc": {"version": 1}},
                    upsert=True,
                )
        except PyMongoError as e:
            logger.error(f"Import failed part way for {self.user_id}: {e}")
            raise StorageWriteError(f"Import failed part way for {self.user_id}: {e}") from e
