# entries router — create an entry from an uploaded clip and list the history

import base64
import binascii
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from mindvault.config import settings
from mindvault.dependencies import get_pipeline, get_store
from mindvault.exceptions import AnalysisError, EmptyRecordingError, PartialSaveError, StorageWriteError
from mindvault.models.analysis import AudioClip
from mindvault.models.journal import EntryCreate, JournalEntry
from mindvault.services.journal_pipeline import JournalPipeline
from mindvault.services.location import resolve_location
from mindvault.services.store import JournalStore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/entries", tags=["entries"])


def _decode_audio(audio: str) -> bytes:
    """decode base64 audio, tolerating a data: url prefix"""
    if audio.startswith("data:") and "," in audio:
        audio = audio.split(",", 1)[1]
    try:
        return base64.b64decode(audio, validate=True)
    except (binascii.Error, ValueError):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Audio must be base64 encoded",
        )


@router.post("", response_model=JournalEntry, status_code=status.HTTP_201_CREATED)
async def create_entry(
    body: EntryCreate,
    pipeline: JournalPipeline = Depends(get_pipeline),
):
    """transcribe, annotate and store a recorded clip.

    the entry is stored first and the profile merge follows. if only the
    merge fails the response is a 500 naming the entry that was kept.
    """
    data = _decode_audio(body.audio)
    if len(data) > settings.MAX_AUDIO_BYTES:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"Audio clip exceeds {settings.MAX_AUDIO_BYTES} bytes",
        )

    clip = AudioClip(data=data, mime_type=body.mime_type)
    location = resolve_location(body.context_tag, body.coordinates, body.place_name)

    try:
        return await pipeline.create_entry(clip, location)
    except EmptyRecordingError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except AnalysisError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    except PartialSaveError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"message": str(e), "entryId": e.entry_id},
        )
    except StorageWriteError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))


@router.get("", response_model=list[JournalEntry])
async def list_entries(
    limit: Optional[int] = Query(None, ge=1, le=1000),
    store: JournalStore = Depends(get_store),
):
    """entries, most recent first"""
    entries = await store.get_entries()
    if limit is not None:
        entries = entries[:limit]
    return entries
