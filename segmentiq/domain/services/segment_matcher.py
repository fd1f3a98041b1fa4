"""
Deduplication des segments candidats contre la bibliotheque existante.

Un segment existant correspond au candidat si, apres un prefiltre par boite
englobante sur son point de depart :
- le rapport des distances est >= 0.6
- depart et arrivee sont a moins de 200 m (sens direct ou inverse)
- au moins 60% des echantillons du candidat (tous les 50 m) ont un
  echantillon du segment existant a 50 m ou moins
Le meilleur recouvrement l'emporte ; a egalite, le premier rencontre.
Les segments deja rattaches a l'activite en cours sont exclus : un aller-retour
donne deux segments, pas un passage ecrase par le retour.
"""
import logging
from dataclasses import dataclass
from typing import Collection, Iterable, Optional, Sequence, Tuple
from uuid import UUID

from sqlmodel import Session

from segmentiq.domain.entities.training_segment import TrainingSegment
from segmentiq.domain.services import segment_store
from segmentiq.domain.services.geo import haversine_m, pairwise_distances_m, sample_path
from segmentiq.domain.services.segment_characterizer import SegmentCandidate

logger = logging.getLogger(__name__)

BBOX_EXPANSION_DEG = 0.005  # ~500 m aux latitudes moyennes
MIN_DISTANCE_RATIO = 0.6
ENDPOINT_PROXIMITY_M = 200
MIN_OVERLAP = 0.60
OVERLAP_SAMPLE_INTERVAL_M = 50
OVERLAP_RADIUS_M = 50


@dataclass
class MatchResult:
    segment: TrainingSegment
    overlap: float
    reversed: bool


def compute_bbox(coords: Sequence[Sequence[float]], expansion: float = BBOX_EXPANSION_DEG) -> Tuple[float, float, float, float]:
    """(min_lat, max_lat, min_lng, max_lng) de la polyligne [lng, lat], elargie."""
    lats = [c[1] for c in coords]
    lngs = [c[0] for c in coords]
    return (
        min(lats) - expansion,
        max(lats) + expansion,
        min(lngs) - expansion,
        max(lngs) + expansion,
    )


def calculate_overlap(coords_a: Sequence[Sequence[float]], coords_b: Sequence[Sequence[float]]) -> float:
    """Part des echantillons de A ayant un echantillon de B a 50 m ou moins."""
    if not coords_a or not coords_b:
        return 0.0
    sampled_a = sample_path(coords_a, OVERLAP_SAMPLE_INTERVAL_M)
    sampled_b = sample_path(coords_b, OVERLAP_SAMPLE_INTERVAL_M)
    if not sampled_a or not sampled_b:
        return 0.0

    distances = pairwise_distances_m(sampled_a, sampled_b)
    matches = int((distances.min(axis=1) <= OVERLAP_RADIUS_M).sum())
    return matches / len(sampled_a)


def _endpoints_close(candidate: SegmentCandidate, segment: TrainingSegment) -> Tuple[bool, bool]:
    """(sens direct ok, sens inverse ok)"""
    start_dist = haversine_m(candidate.start_lat, candidate.start_lng, segment.start_lat, segment.start_lng)
    end_dist = haversine_m(candidate.end_lat, candidate.end_lng, segment.end_lat, segment.end_lng)
    start_dist_rev = haversine_m(candidate.start_lat, candidate.start_lng, segment.end_lat, segment.end_lng)
    end_dist_rev = haversine_m(candidate.end_lat, candidate.end_lng, segment.start_lat, segment.start_lng)

    forward_ok = start_dist <= ENDPOINT_PROXIMITY_M and end_dist <= ENDPOINT_PROXIMITY_M
    reverse_ok = start_dist_rev <= ENDPOINT_PROXIMITY_M and end_dist_rev <= ENDPOINT_PROXIMITY_M
    return forward_ok, reverse_ok


def select_best_match(
    candidate: SegmentCandidate,
    segments: Iterable[TrainingSegment],
    exclude_ids: Collection[UUID] = (),
) -> Optional[MatchResult]:
    """Applique les filtres ratio / extremites / recouvrement et garde le meilleur."""
    best: Optional[MatchResult] = None

    for segment in segments:
        if segment.id in exclude_ids:
            continue
        longest = max(candidate.distance_meters, segment.distance_meters)
        if longest <= 0:
            continue
        dist_ratio = min(candidate.distance_meters, segment.distance_meters) / longest
        if dist_ratio < MIN_DISTANCE_RATIO:
            continue

        forward_ok, reverse_ok = _endpoints_close(candidate, segment)
        if not forward_ok and not reverse_ok:
            continue

        overlap = calculate_overlap(candidate.coordinates, segment.coordinates)
        logger.debug(f"Candidat vs segment {segment.id}: ratio={dist_ratio:.2f}, overlap={overlap:.2f}")
        if overlap >= MIN_OVERLAP and (best is None or overlap > best.overlap):
            best = MatchResult(segment=segment, overlap=overlap, reversed=not forward_ok)

    return best


def find_matching_segment(
    session: Session,
    user_id: UUID,
    candidate: SegmentCandidate,
    exclude_ids: Collection[UUID] = (),
) -> Optional[MatchResult]:
    """Cherche dans la bibliotheque de l'utilisateur un segment equivalent au candidat.

    exclude_ids : segments deja rattaches a l'activite en cours.
    Retourne None si le candidat est un nouveau segment.
    """
    nearby = segment_store.query_segments_in_bbox(session, user_id, compute_bbox(candidate.coordinates))
    if not nearby:
        return None
    return select_best_match(candidate, nearby, exclude_ids)
