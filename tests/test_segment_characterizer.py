"""
Tests de la caracterisation des segments candidats.
"""
import pytest

from segmentiq.domain.services.boundary_finder import calculate_gradients, find_boundaries
from segmentiq.domain.services.segment_characterizer import (
    calculate_quality,
    characterize_segment,
    characterize_segments,
    classify_terrain,
    count_sharp_turns,
    sample_std,
)
from segmentiq.domain.services.stream_preprocessor import build_enriched_points, detect_stops
from tests.synthetic_rides import (
    climb_ride_streams,
    flat_ride_streams,
    make_streams,
    north_then_east,
    stop_ride_streams,
)


def _climb_candidates():
    points = build_enriched_points(climb_ride_streams())
    boundaries = find_boundaries(points, calculate_gradients(points), [])
    return characterize_segments(points, boundaries, [])


# ============================================================
# Fonctions pures
# ============================================================

class TestSampleStd:
    def test_less_than_two_values(self):
        assert sample_std([]) == 0.0
        assert sample_std([4.2]) == 0.0

    def test_n_minus_one_denominator(self):
        assert sample_std([2, 4, 4, 4, 5, 5, 7, 9]) == pytest.approx(2.138, abs=0.001)


class TestClassifyTerrain:
    """Ordre des regles : rolling, climb, descent, flat, rolling."""

    def test_rolling_high_variability(self):
        assert classify_terrain(1.0, 3.5, 10, 1000) == "rolling"

    def test_climb_by_gradient(self):
        assert classify_terrain(5.0, 1.0, 50, 1000) == "climb"

    def test_climb_by_elevation_per_km(self):
        assert classify_terrain(2.5, 1.0, 40, 1000) == "climb"

    def test_steep_irregular_climb(self):
        """Variabilite > 3 mais gradient >= 4 : montee, pas rolling."""
        assert classify_terrain(6.0, 4.0, 60, 1000) == "climb"

    def test_descent(self):
        assert classify_terrain(-5.0, 1.0, 0, 1000) == "descent"

    def test_flat(self):
        assert classify_terrain(0.5, 0.5, 2, 1000) == "flat"

    def test_rolling_fallback(self):
        assert classify_terrain(2.5, 1.0, 10, 1000) == "rolling"


class TestCalculateQuality:
    def test_clean_long_segment(self):
        assert calculate_quality(2500, 400, 1.0, 0, 0) == 100

    def test_short_segment(self):
        """< 1000 m (-15), < 180 s (-15)."""
        assert calculate_quality(800, 120, 1.0, 0, 0) == 70

    def test_penalties_accumulate(self):
        """-15 distance, -15 duree, -10 variabilite, -25 arrets (2.5/km)."""
        assert calculate_quality(800, 120, 4.0, 2, 0) == 35

    def test_turn_density(self):
        """1000 m (-5), 4 virages sur 1 km (-15)."""
        assert calculate_quality(1000, 300, 0.0, 0, 4) == 80

    def test_worst_case(self):
        """Toutes les penalites maximales cumulees."""
        assert calculate_quality(600, 60, 6.0, 5, 10) == 10


class TestCountSharpTurns:
    def test_straight_line(self):
        points = build_enriched_points(flat_ride_streams(1000))
        assert count_sharp_turns(points) == 0

    def test_right_angle(self):
        points = build_enriched_points(make_streams(north_then_east(500, 500)))
        assert count_sharp_turns(points) == 1


# ============================================================
# characterize_segment
# ============================================================

class TestCharacterizeSegment:
    """Metriques d'une tranche de points."""

    def test_too_short_discarded(self):
        points = build_enriched_points(flat_ride_streams(3000))
        # 20 pas de 20 m = 400 m
        assert characterize_segment(points, 0, 20, []) is None

    def test_too_few_points_discarded(self):
        points = build_enriched_points(flat_ride_streams(3000))
        assert characterize_segment(points, 0, 1, []) is None

    def test_climb_scenario(self):
        """Plat 1000 m / montee 6% 600 m / plat 1000 m -> 3 candidats."""
        candidates = _climb_candidates()
        assert [c.terrain_type for c in candidates] == ["flat", "climb", "flat"]
        climb = candidates[1]
        assert 5.0 <= climb.avg_gradient <= 7.0
        assert climb.elevation_gain > 25
        assert climb.elevation_loss == 0.0

    def test_sensor_averages(self):
        climb = _climb_candidates()[1]
        assert climb.avg_power == 230
        assert climb.normalized_power == climb.avg_power
        assert climb.max_power == 230.0
        assert climb.avg_hr == 150
        assert climb.avg_cadence == 88
        assert climb.avg_speed_kmh == pytest.approx(28.8)

    def test_geometry(self):
        candidates = _climb_candidates()
        for c in candidates:
            assert c.coordinates[0] == [c.start_lng, c.start_lat]
            assert c.coordinates[-1] == [c.end_lng, c.end_lat]
            assert c.distance_meters >= 500
        # Segments contigus
        assert candidates[0].end_idx == candidates[1].start_idx
        assert candidates[1].end_idx == candidates[2].start_idx

    def test_stops_counted_per_segment(self):
        points = build_enriched_points(stop_ride_streams())
        stops = detect_stops(points)
        boundaries = find_boundaries(points, calculate_gradients(points), stops)
        candidates = characterize_segments(points, boundaries, stops)
        assert len(candidates) == 2
        # L'arret est sur la frontiere commune : compte des deux cotes
        assert candidates[0].stop_count == 1
        assert candidates[1].stop_count == 1
        assert candidates[0].stop_duration_seconds == stops[0].duration_seconds
        assert candidates[0].stops_per_km == pytest.approx(1 / 1.5, abs=0.01)

    def test_deterministic(self):
        assert _climb_candidates() == _climb_candidates()
