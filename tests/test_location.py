# tests for the location context — time heuristic and composite label

from datetime import datetime

import pytest

from mindvault.models.journal import Coordinates
from mindvault.services.location import (
    HOME_LABEL,
    TRANSIT_LABEL,
    WORK_LABEL,
    contextual_location,
    resolve_location,
)


class TestContextualLocation:

    @pytest.mark.parametrize("hour", [9, 12, 16])
    def test_working_hours(self, hour):
        assert contextual_location(hour) == WORK_LABEL

    @pytest.mark.parametrize("hour", [23, 0, 3, 6])
    def test_night_is_home(self, hour):
        assert contextual_location(hour) == HOME_LABEL

    @pytest.mark.parametrize("hour", [7, 8, 17, 20, 22])
    def test_in_between_is_transit(self, hour):
        assert contextual_location(hour) == TRANSIT_LABEL


class TestResolveLocation:

    def test_heuristic_when_no_place_name(self):
        ctx = resolve_location("Private", now=datetime(2026, 10, 19, 10, 30))
        assert ctx.label == "Office/Work"
        assert ctx.composite == "Private (Office/Work)"

    def test_place_name_from_geolocation_wins(self):
        coords = Coordinates(latitude=27.7172, longitude=85.3240)
        ctx = resolve_location("Social", coordinates=coords, place_name="Thamel", now=datetime(2026, 10, 19, 23, 0))
        assert ctx.composite == "Social (Thamel)"
        assert ctx.coordinates == coords

    def test_blank_place_name_falls_back(self):
        ctx = resolve_location("Home", place_name="   ", now=datetime(2026, 10, 19, 23, 30))
        assert ctx.composite == "Home (Home)"

    def test_coordinates_kept_with_heuristic(self):
        coords = Coordinates(latitude=1.0, longitude=2.0)
        ctx = resolve_location("Work", coordinates=coords, now=datetime(2026, 10, 19, 18, 0))
        assert ctx.label == "Outdoors/Transit"
        assert ctx.coordinates == coords

    def test_unknown_tag_rejected(self):
        with pytest.raises(ValueError, match="Unknown context tag"):
            resolve_location("Gym")
