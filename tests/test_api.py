# tests for the http api
# entries, profile, insights and data management over the local store with a mocked analysis client

import base64
from unittest.mock import AsyncMock

import pytest
from fastapi import Depends
from pymongo.errors import PyMongoError

from mindvault.config import settings
from mindvault.dependencies import get_store, get_user_id
from mindvault.exceptions import AnalysisError
from mindvault.main import app
from mindvault.services.journal_pipeline import EMPTY_HISTORY_MESSAGE
from mindvault.services.local_store import LocalJournalStore
from tests.conftest import make_entry

AUDIO = base64.b64encode(b"\x1a\x45\xdf\xa3 fake webm payload").decode()


def _entry_body(**overrides) -> dict:
    body = {"audio": AUDIO, "mimeType": "audio/webm;codecs=opus", "contextTag": "Work"}
    body.update(overrides)
    return body


class TestHealth:

    async def test_health(self, client):
        resp = await client.get("/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ok"
        assert data["service"] == "mindvault-api"

    async def test_openapi_title(self, client):
        resp = await client.get("/openapi.json")
        assert resp.json()["info"]["title"] == "MindVault API"


class TestCreateEntry:

    async def test_create_entry(self, client, analysis_client):
        resp = await client.post("/entries", json=_entry_body(placeName="Cafe Nero"))
        assert resp.status_code == 201
        data = resp.json()
        assert data["locationName"] == "Work (Cafe Nero)"
        assert data["metadata"]["psychometrics"]["maslowLevel"] == "Esteem"
        assert "dateStr" in data

        clip = analysis_client.extract.await_args.args[0]
        assert clip.mime_type == "audio/webm;codecs=opus"

    async def test_entry_feeds_profile(self, client):
        await client.post("/entries", json=_entry_body())
        resp = await client.get("/profile")
        assert resp.json()["coreMemories"] == ["Works in an office"]

    async def test_data_url_prefix_accepted(self, client):
        resp = await client.post("/entries", json=_entry_body(audio=f"data:audio/webm;base64,{AUDIO}"))
        assert resp.status_code == 201

    async def test_coordinates_kept(self, client):
        resp = await client.post("/entries", json=_entry_body(coordinates={"latitude": 27.7, "longitude": 85.3}))
        assert resp.json()["coordinates"] == {"latitude": 27.7, "longitude": 85.3}

    async def test_invalid_base64(self, client):
        resp = await client.post("/entries", json=_entry_body(audio="not base64 !!"))
        assert resp.status_code == 422

    async def test_empty_recording(self, client, analysis_client):
        resp = await client.post("/entries", json=_entry_body(audio="data:audio/webm;base64,"))
        assert resp.status_code == 422
        analysis_client.extract.assert_not_awaited()

    async def test_unknown_context_tag(self, client):
        resp = await client.post("/entries", json=_entry_body(contextTag="Gym"))
        assert resp.status_code == 422

    async def test_analysis_failure(self, client, analysis_client):
        analysis_client.extract.side_effect = AnalysisError("No response from analysis service")
        resp = await client.post("/entries", json=_entry_body())
        assert resp.status_code == 502

        listed = await client.get("/entries")
        assert listed.json() == []

    async def test_partial_save_names_the_entry(self, client, mongo_store, mock_db):
        mock_db.profiles.find_one = AsyncMock(side_effect=PyMongoError("connection reset"))
        app.dependency_overrides[get_store] = lambda: mongo_store

        resp = await client.post("/entries", json=_entry_body())
        assert resp.status_code == 500
        detail = resp.json()["detail"]
        assert detail["entryId"] == mock_db.journal_entries._data[0]["id"]


class TestListEntries:

    async def test_most_recent_first(self, client, local_store):
        for i in range(3):
            await local_store.save_entry(make_entry(f"e{i}", 1_000 + i))
        resp = await client.get("/entries")
        assert resp.status_code == 200
        assert [e["id"] for e in resp.json()] == ["e2", "e1", "e0"]

    async def test_limit(self, client, local_store):
        for i in range(3):
            await local_store.save_entry(make_entry(f"e{i}", 1_000 + i))
        resp = await client.get("/entries?limit=2")
        assert [e["id"] for e in resp.json()] == ["e2", "e1"]

    async def test_limit_is_optional(self, client):
        schema = (await client.get("/openapi.json")).json()
        params = schema["paths"]["/entries"]["get"]["parameters"]
        limit = next(p for p in params if p["name"] == "limit")
        assert limit["required"] is False

    async def test_invalid_limit(self, client):
        resp = await client.get("/entries?limit=0")
        assert resp.status_code == 422


class TestProfile:

    async def test_empty_profile(self, client):
        resp = await client.get("/profile")
        assert resp.status_code == 200
        data = resp.json()
        assert data["coreMemories"] == []
        assert isinstance(data["lastUpdated"], int)


class TestInsights:

    async def test_empty_history_gets_guidance(self, client, analysis_client):
        resp = await client.post("/insights/query", json={"query": "How am I doing?"})
        assert resp.status_code == 200
        assert resp.json()["answer"] == EMPTY_HISTORY_MESSAGE
        analysis_client.query.assert_not_awaited()

    async def test_answer_from_history(self, client, local_store, analysis_client):
        await local_store.save_entry(make_entry("e1", 1_000))
        resp = await client.post("/insights/query", json={"query": "How am I doing?"})
        assert resp.json()["answer"] == "Your valence has been trending upward since last week."
        projection = analysis_client.query.await_args.args[0]
        assert len(projection) == 1

    async def test_blank_query_rejected(self, client):
        resp = await client.post("/insights/query", json={"query": ""})
        assert resp.status_code == 422


class TestDataManagement:

    async def test_export(self, client, local_store):
        await local_store.save_entry(make_entry("e1", 1_000, facts=["A"]))
        resp = await client.get("/data/export")
        assert resp.status_code == 200
        data = resp.json()
        assert [e["id"] for e in data["entries"]] == ["e1"]
        assert data["profile"]["coreMemories"] == ["A"]
        assert "exportedAt" in data

    async def test_export_then_import(self, client, local_store):
        await local_store.save_entry(make_entry("e1", 1_000, facts=["A"]))
        exported = (await client.get("/data/export")).json()
        await client.delete("/data")

        resp = await client.post("/data/import", json=exported)
        assert resp.status_code == 200
        assert resp.json() == {"entriesImported": 1, "profileImported": True}
        assert [e.id for e in await local_store.get_entries()] == ["e1"]

    async def test_profile_only_import(self, client):
        resp = await client.post("/data/import", json={"profile": {"coreMemories": ["B"], "lastUpdated": 1}})
        assert resp.json() == {"entriesImported": None, "profileImported": True}

    @pytest.mark.parametrize("payload", [{}, {"entries": [{"id": "broken"}]}, [1, 2], {"entries": None}])
    async def test_malformed_import(self, client, local_store, payload):
        await local_store.save_entry(make_entry("e1", 1_000))
        resp = await client.post("/data/import", json=payload)
        assert resp.status_code == 400
        assert [e.id for e in await local_store.get_entries()] == ["e1"]

    async def test_clear(self, client, local_store):
        await local_store.save_entry(make_entry("e1", 1_000, facts=["A"]))
        resp = await client.delete("/data")
        assert resp.status_code == 200
        assert resp.json()["entriesRemoved"] == 1
        assert resp.json()["atomic"] is True
        assert (await client.get("/entries")).json() == []

    async def test_clear_on_cloud_backend_is_flagged(self, client, mongo_store):
        app.dependency_overrides[get_store] = lambda: mongo_store
        await mongo_store.save_entry(make_entry("e1", 1_000, facts=["A"]))
        resp = await client.delete("/data")
        assert resp.status_code == 200
        assert resp.json()["atomic"] is False
        assert resp.json()["note"]

    async def test_capabilities(self, client):
        resp = await client.get("/data/capabilities")
        assert resp.json() == {
            "backend": "local",
            "atomicWrites": True,
            "retentionCap": 100,
            "atomicClear": True,
        }




class TestUserHeader:

    @pytest.fixture
    def per_user_stores(self, client, tmp_path):
        """one local store per X-User-Id, the way the real dependency caches them"""
        stores = {}

        def override_get_store(user_id: str = Depends(get_user_id)):
            if user_id not in stores:
                stores[user_id] = LocalJournalStore(user_id, data_dir=tmp_path)
            return stores[user_id]

        app.dependency_overrides[get_store] = override_get_store
        return stores

    async def test_users_are_separated(self, client, per_user_stores):
        await client.post("/entries", json=_entry_body(), headers={"X-User-Id": "alice"})

        mine = await client.get("/entries", headers={"X-User-Id": "alice"})
        theirs = await client.get("/entries", headers={"X-User-Id": "bob"})
        assert len(mine.json()) == 1
        assert theirs.json() == []
        assert set(per_user_stores) == {"alice", "bob"}

    async def test_missing_header_uses_default_user(self, client, per_user_stores):
        await client.get("/profile")
        assert list(per_user_stores) == [settings.DEFAULT_USER_ID]
