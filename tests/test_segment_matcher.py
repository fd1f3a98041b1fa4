"""
Tests de la correspondance candidat / segments existants.
"""
from uuid import uuid4

import pytest

from segmentiq.domain.entities.training_segment import TrainingSegment
from segmentiq.domain.entities.user import User
from segmentiq.domain.services.segment_matcher import (
    calculate_overlap,
    compute_bbox,
    find_matching_segment,
    select_best_match,
)
from tests.synthetic_rides import BASE_LAT, BASE_LNG, make_candidate, offset, straight_north


def _segment(coords, distance: float, user_id=None) -> TrainingSegment:
    return TrainingSegment(
        id=uuid4(),
        user_id=user_id or uuid4(),
        start_lat=coords[0][1],
        start_lng=coords[0][0],
        end_lat=coords[-1][1],
        end_lng=coords[-1][0],
        geojson={"type": "LineString", "coordinates": coords},
        distance_meters=distance,
    )


def _u_detour_path():
    """Meme depart et meme arrivee que straight_north(2000), par 400 m a l'est (2800 m)."""
    east_leg = [offset(BASE_LAT, BASE_LNG, 0, i * 20) for i in range(21)]
    north_leg = [offset(BASE_LAT, BASE_LNG, i * 20, 400) for i in range(1, 101)]
    west_leg = [offset(BASE_LAT, BASE_LNG, 2000, 400 - i * 20) for i in range(1, 21)]
    return east_leg + north_leg + west_leg


def _detour_path():
    """2000 m vers le nord, decale de 100 m a l'est entre 600 et 1200 m."""
    return [
        offset(BASE_LAT, BASE_LNG, i * 20, 100 if 600 <= i * 20 <= 1200 else 0)
        for i in range(101)
    ]


# ============================================================
# Fonctions geometriques
# ============================================================

class TestComputeBbox:
    def test_expanded_bounds(self):
        coords = [[5.0, 45.0], [5.01, 45.02]]
        min_lat, max_lat, min_lng, max_lng = compute_bbox(coords)
        assert min_lat == pytest.approx(44.995)
        assert max_lat == pytest.approx(45.025)
        assert min_lng == pytest.approx(4.995)
        assert max_lng == pytest.approx(5.015)


class TestCalculateOverlap:
    """Part des echantillons de A a moins de 50 m de B."""

    def test_identical_paths(self):
        coords = straight_north(2000)
        assert calculate_overlap(coords, coords) == pytest.approx(1.0)

    def test_parallel_offset_within_radius(self):
        assert calculate_overlap(straight_north(1000), straight_north(1000, east_m=20)) == pytest.approx(1.0)

    def test_diverging_paths(self):
        """Meme depart, puis virage a l'est apres 300 m."""
        turning = straight_north(300) + [offset(BASE_LAT, BASE_LNG, 300, i * 20) for i in range(1, 86)]
        assert calculate_overlap(straight_north(2000), turning) < 0.6

    def test_partial_detour(self):
        overlap = calculate_overlap(straight_north(2000), _detour_path())
        assert 0.6 <= overlap < 1.0

    def test_empty(self):
        assert calculate_overlap([], straight_north(100)) == 0.0
        assert calculate_overlap(straight_north(100), []) == 0.0


# ============================================================
# select_best_match
# ============================================================

class TestSelectBestMatch:
    """Filtres ratio de distance, extremites et recouvrement."""

    def test_forward_match(self):
        candidate = make_candidate()
        segment = _segment(straight_north(2000, east_m=20), 2000)
        match = select_best_match(candidate, [segment])
        assert match is not None
        assert match.segment is segment
        assert match.reversed is False
        assert match.overlap == pytest.approx(1.0)

    def test_reverse_match(self):
        candidate = make_candidate()
        segment = _segment(list(reversed(straight_north(2000))), 2000)
        match = select_best_match(candidate, [segment])
        assert match is not None
        assert match.reversed is True

    def test_distance_ratio_too_low(self):
        candidate = make_candidate()
        segment = _segment(straight_north(1000), 1000)
        assert select_best_match(candidate, [segment]) is None

    def test_same_endpoints_different_route(self):
        """Extremites et rapport de distance acceptes : seul le recouvrement rejette."""
        candidate = make_candidate()
        segment = _segment(_u_detour_path(), 2800)
        assert calculate_overlap(candidate.coordinates, segment.coordinates) < 0.6
        assert select_best_match(candidate, [segment]) is None

    def test_excluded_segment_skipped(self):
        candidate = make_candidate()
        excluded = _segment(straight_north(2000), 2000)
        other = _segment(list(reversed(straight_north(2000))), 2000)
        assert select_best_match(candidate, [excluded, other], exclude_ids={excluded.id}).segment is other
        assert select_best_match(candidate, [excluded], exclude_ids={excluded.id}) is None

    def test_endpoints_too_far(self):
        candidate = make_candidate()
        segment = _segment(straight_north(2000, east_m=300), 2000)
        assert select_best_match(candidate, [segment]) is None

    def test_best_overlap_wins(self):
        candidate = make_candidate()
        detour = _segment(_detour_path(), 2000)
        exact = _segment(straight_north(2000, east_m=20), 2000)
        match = select_best_match(candidate, [detour, exact])
        assert match.segment is exact

    def test_tie_keeps_first(self):
        candidate = make_candidate()
        first = _segment(straight_north(2000), 2000)
        second = _segment(straight_north(2000), 2000)
        assert select_best_match(candidate, [first, second]).segment is first

    def test_no_segments(self):
        assert select_best_match(make_candidate(), []) is None


# ============================================================
# find_matching_segment (base)
# ============================================================

class TestFindMatchingSegment:
    """Prefiltre par boite englobante et isolation par utilisateur."""

    def test_match_in_user_library(self, session, user):
        segment = _segment(straight_north(2000), 2000, user_id=user.id)
        session.add(segment)
        session.commit()

        match = find_matching_segment(session, user.id, make_candidate())
        assert match is not None
        assert match.segment.id == segment.id

    def test_other_user_segments_ignored(self, session, user):
        other = User(email="other@example.com", full_name="Other Rider")
        session.add(other)
        session.commit()
        session.add(_segment(straight_north(2000), 2000, user_id=other.id))
        session.commit()

        assert find_matching_segment(session, user.id, make_candidate()) is None

    def test_segment_outside_bbox(self, session, user):
        far_start = offset(BASE_LAT, BASE_LNG, 0, 5000)
        coords = [offset(far_start[1], far_start[0], i * 20) for i in range(101)]
        session.add(_segment(coords, 2000, user_id=user.id))
        session.commit()

        assert find_matching_segment(session, user.id, make_candidate()) is None
