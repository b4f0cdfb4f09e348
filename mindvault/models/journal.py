# journal models — entries, psychometrics and the accumulated user profile
# wire form uses camelCase aliases, python attributes are snake_case

import time
from typing import Literal, Optional
from pydantic import BaseModel, Field

Sentiment = Literal["Positive", "Neutral", "Negative", "Anxious", "Excited", "Stressed"]
MaslowLevel = Literal["Physiological", "Safety", "Belonging", "Esteem", "Self-Actualization"]
ContextTag = Literal["Home", "Work", "Social", "Private"]

SENTIMENTS: tuple[str, ...] = ("Positive", "Neutral", "Negative", "Anxious", "Excited", "Stressed")
MASLOW_LEVELS: tuple[str, ...] = ("Physiological", "Safety", "Belonging", "Esteem", "Self-Actualization")
CONTEXT_TAGS: tuple[str, ...] = ("Home", "Work", "Social", "Private")


def now_ms() -> int:
    """current wall-clock time in epoch milliseconds"""
    return int(time.time() * 1000)


class Coordinates(BaseModel):
    """gps fix attached to an entry when geolocation was available"""
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)

    model_config = {"frozen": True}


class PsychMetrics(BaseModel):
    """affect (russell circumplex), cbt distortions (beck) and dominant need (maslow)"""
    valence: float = Field(..., ge=-1.0, le=1.0, description="-1.0 unpleasant to 1.0 pleasant")
    arousal: float = Field(..., ge=0.0, le=1.0, description="0.0 deactivated to 1.0 activated")
    cbt_distortions: list[str] = Field(..., alias="cbtDistortions")
    maslow_level: MaslowLevel = Field(..., alias="maslowLevel")

    model_config = {"populate_by_name": True, "frozen": True}


class ProcessedMetadata(BaseModel):
    """one extraction result for a recorded clip"""
    transcript: str
    summary: str
    sentiment: Sentiment
    tags: list[str]
    key_events: list[str] = Field(..., alias="keyEvents")
    extracted_facts: list[str] = Field(..., alias="extractedFacts")
    psychometrics: PsychMetrics

    model_config = {"populate_by_name": True, "frozen": True}


class JournalEntry(BaseModel):
    """one recorded session. immutable once created"""
    id: str
    timestamp: int = Field(..., description="epoch milliseconds")
    date_str: str = Field(..., alias="dateStr")
    location_name: str = Field(..., alias="locationName")
    coordinates: Optional[Coordinates] = None
    metadata: ProcessedMetadata

    model_config = {"populate_by_name": True, "frozen": True}


class UserProfile(BaseModel):
    """deduplicated core memories accumulated across entries"""
    core_memories: list[str] = Field(default_factory=list, alias="coreMemories")
    last_updated: int = Field(default_factory=now_ms, alias="lastUpdated")

    model_config = {"populate_by_name": True}


class EntryCreate(BaseModel):
    """payload for creating an entry from an uploaded clip"""
    audio: str = Field(..., min_length=1, description="base64 encoded audio clip")
    mime_type: str = Field("audio/webm", alias="mimeType")
    context_tag: ContextTag = Field("Home", alias="contextTag")
    coordinates: Optional[Coordinates] = None
    place_name: Optional[str] = Field(None, alias="placeName", description="label from a geolocation fix")

    model_config = {"populate_by_name": True}
