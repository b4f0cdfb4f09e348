# journal pipeline — capture -> analysis -> store for new entries,
# store -> analysis for questions about the history

import logging
import uuid
from datetime import datetime
from typing import Any, Optional

from mindvault.exceptions import EmptyRecordingError
from mindvault.models.analysis import AudioClip, ExtractionContext, LocationContext
from mindvault.models.journal import JournalEntry
from mindvault.services.analysis import AnalysisClient
from mindvault.services.capture import AudioCaptureController
from mindvault.services.store import JournalStore

logger = logging.getLogger(__name__)

EMPTY_HISTORY_MESSAGE = (
    "I need some journal entries before I can analyze your history. "
    "Try recording a few thoughts first!"
)
QUERY_FAILED_MESSAGE = "Sorry, I encountered an issue analyzing your history."


def format_date(moment: datetime) -> str:
    """human readable local timestamp, e.g. 10/19/2026, 3:04:05 PM"""
    hour = moment.hour % 12 or 12
    return f"{moment:%m/%d/%Y}, {hour}:{moment:%M:%S} {'AM' if moment.hour < 12 else 'PM'}"


def project_entry(entry: JournalEntry) -> dict[str, Any]:
    """compact view of an entry for history questions, without transcript or tags"""
    psych = entry.metadata.psychometrics
    return {
        "date": entry.date_str,
        "location": entry.location_name,
        "summary": entry.metadata.summary,
        "keyEvents": list(entry.metadata.key_events),
        "psych": {
            "valence": psych.valence,
            "arousal": psych.arousal,
            "distortions": list(psych.cbt_distortions),
            "maslow": psych.maslow_level,
        },
    }


class JournalPipeline:
    """sequences one entry-creation flow: analyze, build, save. each step waits for the previous"""

    def __init__(self, analysis_client: AnalysisClient, store: JournalStore):
        self.analysis_client = analysis_client
        self.store = store
        self._last_timestamp = 0

    def _next_timestamp(self, moment: datetime) -> int:
        # strictly increasing even if two entries land in the same millisecond
        timestamp = max(int(moment.timestamp() * 1000), self._last_timestamp + 1)
        self._last_timestamp = timestamp
        return timestamp

    async def create_entry(
        self,
        clip: AudioClip,
        location: LocationContext,
        now: Optional[datetime] = None,
    ) -> JournalEntry:
        """analyze a finished clip and persist the resulting entry.

        raises EmptyRecordingError before any service or store call,
        AnalysisError without building an entry, StorageWriteError (or
        PartialSaveError once the entry itself is stored) from the save.
        """
        if not clip.data:
            raise EmptyRecordingError("Recording failed: No audio data captured.")

        moment = now or datetime.now().astimezone()
        date_str = format_date(moment)
        context = ExtractionContext(location=location.composite, timestamp=date_str)

        metadata = await self.analysis_client.extract(clip, context)

        entry = JournalEntry(
            id=str(uuid.uuid4()),
            timestamp=self._next_timestamp(moment),
            dateStr=date_str,
            locationName=location.composite,
            coordinates=location.coordinates,
            metadata=metadata,
        )
        await self.store.save_entry(entry)
        logger.info(f"Entry {entry.id} created at {location.composite}")
        return entry

    async def record_entry(self, controller: AudioCaptureController, location: LocationContext) -> JournalEntry:
        """stop an active recording and run its clip through create_entry"""
        await controller.stop()
        return await controller.process(lambda clip: self.create_entry(clip, location))

    async def query_history(self, history: list[JournalEntry], query: str) -> str:
        """answer a question about past entries. advisory, so failures become an apology"""
        if not history:
            return EMPTY_HISTORY_MESSAGE

        projection = [project_entry(entry) for entry in history]
        profile = await self.store.get_user_profile()
        try:
            return await self.analysis_client.query(projection, list(profile.core_memories), query)
        except Exception as e:
            logger.error(f"History query failed: {e}")
            return QUERY_FAILED_MESSAGE
