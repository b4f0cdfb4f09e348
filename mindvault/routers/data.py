# data router — export, import, bulk wipe and backend capabilities

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, status

from mindvault.dependencies import get_store
from mindvault.exceptions import InterchangeImportError, StorageWriteError
from mindvault.models.data import ClearReport, InterchangeDocument, StoreCapabilities
from mindvault.services.store import JournalStore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/data", tags=["data"])


@router.get("/export", response_model=InterchangeDocument)
async def export_data(store: JournalStore = Depends(get_store)):
    """every entry plus the profile as one interchange document"""
    return await store.export_data()


@router.post("/import")
async def import_data(
    payload: Any = Body(...),
    store: JournalStore = Depends(get_store),
):
    """replace entries and/or profile from an interchange document.

    the document is validated as a whole first; a malformed one changes nothing.
    """
    try:
        document = await store.import_data(payload)
    except InterchangeImportError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except StorageWriteError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))

    return {
        "entriesImported": len(document.entries) if document.entries is not None else None,
        "profileImported": document.profile is not None,
    }


@router.delete("", response_model=ClearReport)
async def clear_history(store: JournalStore = Depends(get_store)):
    """remove every entry and the profile. on the cloud backend this is not atomic"""
    try:
        report = await store.clear_history()
    except StorageWriteError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))

    if not report.atomic:
        logger.warning(f"Non-atomic wipe for {store.user_id}: {report.note}")
    return report


@router.get("/capabilities", response_model=StoreCapabilities)
async def capabilities(store: JournalStore = Depends(get_store)):
    return store.capabilities
