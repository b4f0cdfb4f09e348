# shared fixtures for the test suite
# provides an in-memory motor mock, both store backends, a mocked analysis client and an httpx client

import asyncio
import copy
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from pymongo.errors import DuplicateKeyError

from mindvault.main import app
from mindvault import dependencies
from mindvault.dependencies import get_analysis_client, get_store
from mindvault.models.journal import JournalEntry, ProcessedMetadata, PsychMetrics
from mindvault.services.analysis import AnalysisClient
from mindvault.services.local_store import LocalJournalStore
from mindvault.services.mongo_store import MongoJournalStore


USER_ID = "user_001"


# sample data

def make_metadata(facts=None, **overrides) -> ProcessedMetadata:
    """realistic extraction result, facts and fields overridable"""
    data = {
        "transcript": "Aaja office ma deadline ko pressure thiyo, but I managed to finish the report.",
        "summary": "Work deadline pressure, report finished despite stress.",
        "sentiment": "Stressed",
        "tags": ["work", "deadline"],
        "keyEvents": ["Finished the quarterly report"],
        "extractedFacts": ["Works in an office"] if facts is None else facts,
        "psychometrics": {
            "valence": -0.2,
            "arousal": 0.7,
            "cbtDistortions": ["Catastrophizing"],
            "maslowLevel": "Esteem",
        },
    }
    data.update(overrides)
    return ProcessedMetadata.model_validate(data)


def make_entry(entry_id: str, timestamp: int, facts=None) -> JournalEntry:
    return JournalEntry(
        id=entry_id,
        timestamp=timestamp,
        dateStr="10/19/2026, 3:04:05 PM",
        locationName="Work (Office/Work)",
        metadata=make_metadata(facts=facts),
    )


# async cursor mock

class AsyncCursorMock:
    """mock for motor's async cursor, supports async for and chained methods"""

    def __init__(self, data=None):
        self._data = data or []
        self._index = 0

    def sort(self, key, direction=1):
        self._data = sorted(self._data, key=lambda d: d.get(key), reverse=direction == -1)
        return self

    def limit(self, n):
        self._data = self._data[:n]
        return self

    def __aiter__(self):
        self._index = 0
        return self

    async def __anext__(self):
        if self._index >= len(self._data):
            raise StopAsyncIteration
        item = self._data[self._index]
        self._index += 1
        return copy.deepcopy(item)


class MockCollection:
    """mock for a motor collection with async methods.

    find_one yields to the event loop so interleaved read-modify-write
    sequences behave like they would against a real server.
    """

    def __init__(self, data=None):
        self._data = data or []
        self.calls = []

    def find(self, query=None, projection=None):
        self.calls.append("find")
        results = [d for d in self._data if self._matches(d, query or {})]
        return AsyncCursorMock(results)

    async def find_one(self, query=None, projection=None):
        self.calls.append("find_one")
        await asyncio.sleep(0)
        for doc in self._data:
            if self._matches(doc, query or {}):
                return copy.deepcopy(doc)
        return None

    async def insert_one(self, doc):
        self.calls.append("insert_one")
        if any(d.get("_id") == doc.get("_id") for d in self._data):
            raise DuplicateKeyError(f"duplicate _id {doc.get('_id')}")
        self._data.append(copy.deepcopy(doc))
        result = MagicMock()
        result.inserted_id = doc.get("_id")
        return result

    async def insert_many(self, docs):
        self.calls.append("insert_many")
        for doc in docs:
            self._data.append(copy.deepcopy(doc))
        result = MagicMock()
        result.inserted_ids = [d.get("_id") for d in docs]
        return result

    async def replace_one(self, query, doc, upsert=False):
        self.calls.append("replace_one")
        result = MagicMock()
        result.matched_count = 0
        for i, existing in enumerate(self._data):
            if self._matches(existing, query):
                self._data[i] = copy.deepcopy(doc)
                result.matched_count = 1
                return result
        if upsert:
            self._data.append(copy.deepcopy(doc))
        return result

    async def update_one(self, query, update, upsert=False):
        self.calls.append("update_one")
        result = MagicMock()
        result.matched_count = 0
        result.modified_count = 0
        target = next((d for d in self._data if self._matches(d, query)), None)
        if target is None:
            if not upsert:
                return result
            target = {k: v for k, v in query.items() if not isinstance(v, dict)}
            self._data.append(target)
        else:
            result.matched_count = 1
        target.update(copy.deepcopy(update.get("$set", {})))
        for key, amount in update.get("$inc", {}).items():
            target[key] = target.get(key, 0) + amount
        result.modified_count = 1
        return result

    async def delete_many(self, query):
        self.calls.append("delete_many")
        before = len(self._data)
        self._data = [d for d in self._data if not self._matches(d, query)]
        result = MagicMock()
        result.deleted_count = before - len(self._data)
        return result

    async def delete_one(self, query):
        self.calls.append("delete_one")
        result = MagicMock()
        result.deleted_count = 0
        for i, doc in enumerate(self._data):
            if self._matches(doc, query):
                del self._data[i]
                result.deleted_count = 1
                break
        return result

    async def create_indexes(self, *args, **kwargs):
        return ["mock_index"]

    def _matches(self, doc, query):
        """basic mongodb query matching for tests"""
        for key, value in query.items():
            if isinstance(value, dict) and "$exists" in value:
                if (key in doc) != value["$exists"]:
                    return False
            elif doc.get(key) != value:
                return False
        return True


class MockDatabase:
    """mock database that mimics the Database class"""

    def __init__(self):
        self.journal_entries = MockCollection([])
        self.profiles = MockCollection([])

    async def connect(self):
        pass

    async def close(self):
        pass


@pytest.fixture
def mock_db():
    """create a fresh mock database for each test"""
    return MockDatabase()


@pytest.fixture
def local_store(tmp_path):
    return LocalJournalStore(USER_ID, data_dir=tmp_path, retention_limit=100)


@pytest.fixture
def mongo_store(mock_db):
    return MongoJournalStore(mock_db, USER_ID, max_retries=5)


@pytest.fixture(params=["local", "mongo"])
def store(request, tmp_path, mock_db):
    """every store contract test runs against both backends"""
    if request.param == "local":
        return LocalJournalStore(USER_ID, data_dir=tmp_path, retention_limit=100)
    return MongoJournalStore(mock_db, USER_ID, max_retries=5)


@pytest.fixture
def analysis_client():
    """mocked analysis client returning a fixed extraction and answer"""
    client = AsyncMock(spec=AnalysisClient)
    client.extract.return_value = make_metadata()
    client.query.return_value = "Your valence has been trending upward since last week."
    return client


@pytest.fixture(autouse=True)
def reset_dependency_cache():
    """stores and pipelines are cached per user across requests"""
    dependencies._stores.clear()
    dependencies._pipelines.clear()
    yield
    dependencies._stores.clear()
    dependencies._pipelines.clear()


@pytest_asyncio.fixture
async def client(local_store, analysis_client):
    """httpx async test client over the local store and a mocked analysis client"""

    def override_get_store():
        return local_store

    def override_get_analysis_client():
        return analysis_client

    app.dependency_overrides[get_store] = override_get_store
    app.dependency_overrides[get_analysis_client] = override_get_analysis_client

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
