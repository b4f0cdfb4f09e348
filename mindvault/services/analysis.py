# analysis client interface — extraction of a clip and historical queries
# concrete adapter lives in gemini_client.py, tests mock this interface

from abc import ABC, abstractmethod
from typing import Any

from mindvault.models.analysis import AudioClip, ExtractionContext
from mindvault.models.journal import ProcessedMetadata


class AnalysisClient(ABC):
    """typed boundary to the language-understanding service.

    both calls either return a validated result or raise AnalysisError,
    never a raw service payload.
    """

    @abstractmethod
    async def extract(self, clip: AudioClip, context: ExtractionContext) -> ProcessedMetadata:
        """transcribe and annotate one clip"""

    @abstractmethod
    async def query(
        self,
        history_projection: list[dict[str, Any]],
        profile_facts: list[str],
        query: str,
    ) -> str:
        """answer a natural language question about the entry history"""
