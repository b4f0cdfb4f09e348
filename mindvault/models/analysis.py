# analysis models — clip, extraction context and historical query payloads

from dataclasses import dataclass
from typing import Optional
from pydantic import BaseModel, Field

from mindvault.models.journal import Coordinates


@dataclass(frozen=True)
class AudioClip:
    """finished in-memory recording tagged with its media type"""
    data: bytes
    mime_type: str

    @property
    def base_mime_type(self) -> str:
        """media type without codec parameters (audio/webm;codecs=opus -> audio/webm)"""
        return self.mime_type.split(";")[0].strip() or "audio/webm"

    def __len__(self) -> int:
        return len(self.data)


class ExtractionContext(BaseModel):
    """situational context sent alongside a clip"""
    location: str
    timestamp: str


@dataclass(frozen=True)
class LocationContext:
    """user-chosen context tag plus the resolved coarse location label"""
    tag: str
    label: str
    coordinates: Optional[Coordinates] = None

    @property
    def composite(self) -> str:
        return f"{self.tag} ({self.label})"


class HistoryQuery(BaseModel):
    """natural language question about the entry history"""
    query: str = Field(..., min_length=1, max_length=2000)


class HistoryAnswer(BaseModel):
    answer: str
