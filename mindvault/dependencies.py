# fastapi dependency injection
# resolves the requesting user, their store, the analysis client and the pipeline

import logging
from collections import OrderedDict
from typing import Optional
from fastapi import Depends, Header, HTTPException, status

from mindvault.config import settings
from mindvault.services.analysis import AnalysisClient
from mindvault.services.db import Database, get_db
from mindvault.services.gemini_client import GeminiAnalysisClient
from mindvault.services.journal_pipeline import JournalPipeline
from mindvault.services.local_store import LocalJournalStore
from mindvault.services.mongo_store import MongoJournalStore
from mindvault.services.store import JournalStore

logger = logging.getLogger(__name__)

# one store and pipeline per user so profile merges share a lock
# and entry timestamps keep increasing. both are lru-bounded by USER_CACHE_SIZE
_stores: "OrderedDict[tuple[str, str], JournalStore]" = OrderedDict()
_pipelines: "OrderedDict[str, JournalPipeline]" = OrderedDict()
_analysis_client: Optional[AnalysisClient] = None


def get_user_id(x_user_id: Optional[str] = Header(None, alias="X-User-Id", max_length=128)) -> str:
    """user id from the X-User-Id header. sign-in happens upstream of this service"""
    user_id = (x_user_id or settings.DEFAULT_USER_ID).strip()
    if not user_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing user id")
    return user_id


def _trim(cache: OrderedDict, is_busy) -> None:
    """drop least recently used entries beyond USER_CACHE_SIZE, never a busy one"""
    for key in list(cache):
        if len(cache) <= settings.USER_CACHE_SIZE:
            return
        if not is_busy(cache[key]):
            del cache[key]


def get_store(
    user_id: str = Depends(get_user_id),
    database: Database = Depends(get_db),
) -> JournalStore:
    """the configured storage backend for this user"""
    backend = settings.STORAGE_BACKEND
    key = (backend, user_id)
    store = _stores.get(key)
    if store is not None:
        _stores.move_to_end(key)
        return store

    if backend == "mongo":
        store = MongoJournalStore(database, user_id)
    elif backend == "local":
        store = LocalJournalStore(user_id)
    else:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Unknown storage backend: {backend}",
        )
    _stores[key] = store
    # a store with a merge in flight keeps its lock until the merge is done
    _trim(_stores, lambda s: s.busy)
    logger.info(f"Opened {backend} store for {user_id}")
    return store


def get_analysis_client() -> AnalysisClient:
    """singleton gemini client"""
    global _analysis_client
    if _analysis_client is None:
        _analysis_client = GeminiAnalysisClient()
    return _analysis_client


def get_pipeline(
    store: JournalStore = Depends(get_store),
    analysis_client: AnalysisClient = Depends(get_analysis_client),
) -> JournalPipeline:
    pipeline = _pipelines.get(store.user_id)
    if pipeline is None or pipeline.store is not store or pipeline.analysis_client is not analysis_client:
        pipeline = JournalPipeline(analysis_client, store)
        _pipelines[store.user_id] = pipeline
    _pipelines.move_to_end(store.user_id)
    _trim(_pipelines, lambda p: p.store.busy)
    return pipeline
