# location context — coarse place label from a geolocation fix or the time of day
# combined with the user's context tag into "{tag} ({label})"

import logging
from datetime import datetime
from typing import Optional

from mindvault.models.analysis import LocationContext
from mindvault.models.journal import CONTEXT_TAGS, Coordinates

logger = logging.getLogger(__name__)

WORK_LABEL = "Office/Work"
HOME_LABEL = "Home"
TRANSIT_LABEL = "Outdoors/Transit"


def contextual_location(hour: int) -> str:
    """guess a coarse location from the local hour (0-23)"""
    if 9 <= hour < 17:
        return WORK_LABEL
    if hour > 22 or hour < 7:
        return HOME_LABEL
    return TRANSIT_LABEL


def resolve_location(
    tag: str,
    coordinates: Optional[Coordinates] = None,
    place_name: Optional[str] = None,
    now: Optional[datetime] = None,
) -> LocationContext:
    """build the location context for a recording.

    a place name coming from a geolocation fix wins. without one the label
    falls back to the time-of-day heuristic. coordinates are carried through
    untouched whenever they are known.
    """
    if tag not in CONTEXT_TAGS:
        raise ValueError(f"Unknown context tag: {tag}. Expected one of {', '.join(CONTEXT_TAGS)}")

    label = place_name.strip() if place_name and place_name.strip() else None
    if label is None:
        hour = (now or datetime.now()).hour
        label = contextual_location(hour)
        logger.debug(f"No geolocation label, using time heuristic for hour {hour}: {label}")

    return LocationContext(tag=tag, label=label, coordinates=coordinates)
