"""
Persistance de la bibliotheque de segments : creation d'un TrainingSegment
(topologie, obstruction, nom et description generes), upsert des passages,
profil, marqueur d'analyse des activites et requetes de consultation.

Toute erreur SQLAlchemy est convertie en StorageFailure. Les ecritures du
pipeline sont flushees, jamais commitees : le commit appartient a l'appelant.
Seul update_segment_name, operation autonome de la bibliotheque, commite lui-meme.
"""
import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, func, select

from segmentiq.domain.entities.activity import Activity
from segmentiq.domain.entities.segment_profile import SegmentProfile
from segmentiq.domain.entities.segment_ride import SegmentRide
from segmentiq.domain.entities.training_segment import TerrainType, Topology, TrainingSegment
from segmentiq.domain.entities.user import User
from segmentiq.domain.exceptions import SegmentNotFound, StorageFailure
from segmentiq.domain.services.geo import haversine_m
from segmentiq.domain.services.segment_characterizer import SegmentCandidate
from segmentiq.domain.services.zones import classify_hr_zone, classify_power_zone

logger = logging.getLogger(__name__)

LOOP_MAX_GAP_M = 200
OUT_AND_BACK_MAX_GAP_M = 500
OUT_AND_BACK_MIN_POINTS = 4
OUT_AND_BACK_MIDPOINT_FACTOR = 1.5

INITIAL_CONFIDENCE = 20
ANALYSIS_VERSION = 1

SORT_COLUMNS = {
    "relevance": TrainingSegment.last_ridden_at,
    "ride_count": TrainingSegment.ride_count,
    "distance": TrainingSegment.distance_meters,
    "obstruction": TrainingSegment.obstruction_score,
    "confidence": TrainingSegment.confidence_score,
}


@contextmanager
def _storage_guard(operation: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as e:
        logger.error(f"Echec persistance ({operation}): {e}")
        raise StorageFailure(f"{operation}: {e}") from e


# ──────────────────────────────────────────────
# Classification d'un nouveau segment
# ──────────────────────────────────────────────


def classify_topology(candidate: SegmentCandidate) -> Tuple[str, bool]:
    """(topologie, repetable). Boucles et allers-retours sont repetables."""
    start_end = haversine_m(candidate.start_lat, candidate.start_lng, candidate.end_lat, candidate.end_lng)
    if start_end < LOOP_MAX_GAP_M:
        return Topology.LOOP.value, True

    coords = candidate.coordinates
    if start_end < OUT_AND_BACK_MAX_GAP_M and len(coords) > OUT_AND_BACK_MIN_POINTS:
        mid = coords[len(coords) // 2]
        mid_to_start = haversine_m(mid[1], mid[0], candidate.start_lat, candidate.start_lng)
        if mid_to_start > start_end * OUT_AND_BACK_MIDPOINT_FACTOR:
            return Topology.OUT_AND_BACK.value, True

    return Topology.POINT_TO_POINT.value, False


def _sub_score(penalty: float) -> int:
    return max(0, min(100, round(100 - penalty)))


def compute_obstruction(candidate: SegmentCandidate) -> Tuple[int, int]:
    """(score d'obstruction global, duree ininterrompue maximale estimee en s)."""
    dist_km = candidate.distance_meters / 1000
    turns_per_km = candidate.sharp_turn_count / dist_km if dist_km > 0 else 0

    stop_score = _sub_score(candidate.stops_per_km * 30)
    turn_score = _sub_score(turns_per_km * 20)
    surface_score = _sub_score(candidate.gradient_variability * 5)
    overall = round(stop_score * 0.4 + turn_score * 0.25 + surface_score * 0.35)

    # Distance repartie egalement entre les arrets, parcourue a vitesse moyenne
    max_uninterrupted = candidate.duration_seconds
    if candidate.stop_count > 0 and candidate.duration_seconds > 0:
        avg_speed = candidate.distance_meters / candidate.duration_seconds
        if avg_speed > 0:
            gap_dist = candidate.distance_meters / (candidate.stop_count + 1)
            max_uninterrupted = round(gap_dist / avg_speed)

    return overall, max_uninterrupted


def generate_auto_name(candidate: SegmentCandidate) -> str:
    """Ex : '6 min Climb 5.8%' ou 'Flat 2.4km'."""
    if candidate.terrain_type == TerrainType.CLIMB.value:
        duration_min = round(candidate.duration_seconds / 60)
        return f"{duration_min} min Climb {candidate.avg_gradient:.1f}%"

    suffix = {
        TerrainType.DESCENT.value: "Descent",
        TerrainType.ROLLING.value: "Rolling",
    }.get(candidate.terrain_type, "Flat")
    return f"{suffix} {candidate.distance_meters / 1000:.1f}km"


def generate_description(candidate: SegmentCandidate) -> str:
    """Ex : '6 min sustained climb, 5.8% avg, no stops'."""
    if candidate.duration_seconds < 60:
        duration = f"{round(candidate.duration_seconds)}s"
    else:
        duration = f"{round(candidate.duration_seconds / 60)} min"

    terrain = candidate.terrain_type
    if terrain == TerrainType.CLIMB.value:
        if candidate.avg_gradient >= 8:
            terrain = "steep climb"
        elif candidate.avg_gradient >= 5:
            terrain = "sustained climb"
        else:
            terrain = "gradual climb"

    parts = [f"{duration} {terrain}"]
    if candidate.terrain_type in (TerrainType.CLIMB.value, TerrainType.ROLLING.value):
        parts.append(f"{candidate.avg_gradient:.1f}% avg")

    if candidate.stop_count == 0:
        parts.append("no stops")
    elif candidate.stop_count == 1:
        parts.append("1 stop")
    else:
        parts.append(f"{candidate.stop_count} stops")
    return ", ".join(parts)


# ──────────────────────────────────────────────
# Ecritures du pipeline
# ──────────────────────────────────────────────


def create_segment(session: Session, user_id: UUID, candidate: SegmentCandidate, ridden_at: datetime) -> TrainingSegment:
    """Cree un TrainingSegment a partir d'un candidat sans correspondance."""
    topology, is_repeatable = classify_topology(candidate)
    obstruction, max_uninterrupted = compute_obstruction(candidate)

    segment = TrainingSegment(
        user_id=user_id,
        start_lat=candidate.start_lat,
        start_lng=candidate.start_lng,
        end_lat=candidate.end_lat,
        end_lng=candidate.end_lng,
        geojson={"type": "LineString", "coordinates": candidate.coordinates},
        distance_meters=candidate.distance_meters,
        auto_name=generate_auto_name(candidate),
        description=generate_description(candidate),
        avg_gradient=candidate.avg_gradient,
        max_gradient=candidate.max_gradient,
        min_gradient=candidate.min_gradient,
        gradient_variability=candidate.gradient_variability,
        elevation_gain_meters=candidate.elevation_gain,
        elevation_loss_meters=candidate.elevation_loss,
        terrain_type=candidate.terrain_type,
        obstruction_score=obstruction,
        stop_count=candidate.stop_count,
        stops_per_km=candidate.stops_per_km,
        traffic_signal_count=0,
        sharp_turn_count=candidate.sharp_turn_count,
        max_uninterrupted_seconds=max_uninterrupted,
        topology=topology,
        is_repeatable=is_repeatable,
        ride_count=1,
        first_ridden_at=ridden_at,
        last_ridden_at=ridden_at,
        confidence_score=INITIAL_CONFIDENCE,
        analysis_version=ANALYSIS_VERSION,
    )
    with _storage_guard("create_segment"):
        session.add(segment)
        session.flush()
    logger.debug(f"Segment cree {segment.id}: {segment.auto_name} ({topology})")
    return segment


def upsert_segment_ride(
    session: Session,
    segment: TrainingSegment,
    activity: Activity,
    candidate: SegmentCandidate,
    ftp: Optional[float],
    max_heartrate: Optional[float],
) -> SegmentRide:
    """Cree ou met a jour le passage (segment, activite) ; jamais de doublon."""
    values: Dict[str, Any] = {
        "user_id": activity.user_id,
        "ridden_at": activity.start_date,
        "avg_power": candidate.avg_power or None,
        "normalized_power": candidate.normalized_power or None,
        "max_power": candidate.max_power or None,
        "power_zone": classify_power_zone(candidate.avg_power, ftp),
        "avg_hr": candidate.avg_hr or None,
        "max_hr": round(candidate.max_hr) or None,
        "hr_zone": classify_hr_zone(candidate.avg_hr, max_heartrate),
        "duration_seconds": candidate.duration_seconds,
        "avg_speed": candidate.avg_speed_kmh,
        "avg_cadence": candidate.avg_cadence or None,
        "stop_count": candidate.stop_count,
        "stop_duration_seconds": candidate.stop_duration_seconds,
    }

    with _storage_guard("upsert_segment_ride"):
        ride = session.exec(
            select(SegmentRide).where(
                SegmentRide.segment_id == segment.id,
                SegmentRide.activity_id == activity.id,
            )
        ).first()
        if ride is None:
            ride = SegmentRide(segment_id=segment.id, activity_id=activity.id, **values)
        else:
            for key, value in values.items():
                setattr(ride, key, value)
        session.add(ride)
        session.flush()
    return ride


def refresh_segment_ride_stats(session: Session, segment: TrainingSegment) -> TrainingSegment:
    """Realigne ride_count et first/last_ridden_at sur les passages existants."""
    with _storage_guard("refresh_segment_ride_stats"):
        count, first_ridden, last_ridden = session.exec(
            select(
                func.count(SegmentRide.id),
                func.min(SegmentRide.ridden_at),
                func.max(SegmentRide.ridden_at),
            ).where(SegmentRide.segment_id == segment.id)
        ).one()
        segment.ride_count = count
        segment.first_ridden_at = first_ridden
        segment.last_ridden_at = last_ridden
        segment.updated_at = datetime.utcnow()
        session.add(segment)
        session.flush()
    return segment


def upsert_profile(session: Session, segment_id: UUID, values: Dict[str, Any]) -> SegmentProfile:
    with _storage_guard("upsert_profile"):
        profile = session.get(SegmentProfile, segment_id)
        if profile is None:
            profile = SegmentProfile(segment_id=segment_id)
        for key, value in values.items():
            setattr(profile, key, value)
        profile.updated_at = datetime.utcnow()
        session.add(profile)
        session.flush()
    return profile


def mark_activity_analyzed(session: Session, activity: Activity) -> None:
    with _storage_guard("mark_activity_analyzed"):
        activity.training_segments_analyzed_at = datetime.utcnow()
        session.add(activity)
        session.flush()


def commit(session: Session) -> None:
    with _storage_guard("commit"):
        session.commit()


# ──────────────────────────────────────────────
# Lectures
# ──────────────────────────────────────────────


def get_activity(session: Session, activity_id: UUID, user_id: UUID) -> Optional[Activity]:
    """Activite de l'utilisateur, None si absente ou etrangere."""
    with _storage_guard("get_activity"):
        return session.exec(
            select(Activity).where(Activity.id == activity_id, Activity.user_id == user_id)
        ).first()


def get_user_physiology(session: Session, user_id: UUID) -> Tuple[Optional[float], Optional[float]]:
    """(FTP, FC max) de l'utilisateur ; None si inconnus."""
    with _storage_guard("get_user_physiology"):
        user = session.get(User, user_id)
    if user is None:
        return None, None
    return user.ftp, user.max_heartrate


def list_unanalyzed_activities(session: Session, user_id: UUID, limit: int) -> List[Activity]:
    """Activites avec streams jamais analysees, les plus recentes d'abord."""
    with _storage_guard("list_unanalyzed_activities"):
        return list(session.exec(
            select(Activity)
            .where(
                Activity.user_id == user_id,
                Activity.training_segments_analyzed_at.is_(None),
                Activity.streams_data.is_not(None),
            )
            .order_by(Activity.start_date.desc())
            .limit(limit)
        ).all())


def query_segments_in_bbox(
    session: Session,
    user_id: UUID,
    bbox: Tuple[float, float, float, float],
) -> List[TrainingSegment]:
    """Segments de l'utilisateur dont le depart tombe dans (min_lat, max_lat, min_lng, max_lng)."""
    min_lat, max_lat, min_lng, max_lng = bbox
    with _storage_guard("query_segments_in_bbox"):
        return list(session.exec(
            select(TrainingSegment)
            .where(
                TrainingSegment.user_id == user_id,
                TrainingSegment.start_lat >= min_lat,
                TrainingSegment.start_lat <= max_lat,
                TrainingSegment.start_lng >= min_lng,
                TrainingSegment.start_lng <= max_lng,
            )
            .order_by(TrainingSegment.created_at, TrainingSegment.id)
        ).all())


def list_segment_rides(session: Session, segment_id: UUID) -> List[SegmentRide]:
    """Passages d'un segment, le plus recent d'abord."""
    with _storage_guard("list_segment_rides"):
        return list(session.exec(
            select(SegmentRide)
            .where(SegmentRide.segment_id == segment_id)
            .order_by(SegmentRide.ridden_at.desc())
        ).all())


def list_segments(
    session: Session,
    user_id: UUID,
    terrain_type: Optional[str] = None,
    min_confidence: Optional[int] = None,
    sort_by: str = "relevance",
    limit: int = 50,
    offset: int = 0,
) -> List[Tuple[TrainingSegment, Optional[SegmentProfile]]]:
    """Bibliotheque de l'utilisateur, chaque segment avec son profil.

    sort_by : relevance (dernier passage), ride_count, distance, obstruction,
    confidence ; toujours decroissant. Cle inconnue -> relevance.
    """
    sort_column = SORT_COLUMNS.get(sort_by, SORT_COLUMNS["relevance"])
    query = (
        select(TrainingSegment, SegmentProfile)
        .join(SegmentProfile, SegmentProfile.segment_id == TrainingSegment.id, isouter=True)
        .where(TrainingSegment.user_id == user_id)
    )
    if terrain_type:
        query = query.where(TrainingSegment.terrain_type == terrain_type)
    if min_confidence is not None:
        query = query.where(TrainingSegment.confidence_score >= min_confidence)
    query = query.order_by(sort_column.desc(), TrainingSegment.id).offset(offset).limit(limit)

    with _storage_guard("list_segments"):
        return [(segment, profile) for segment, profile in session.exec(query).all()]


def get_segment(session: Session, user_id: UUID, segment_id: UUID) -> TrainingSegment:
    with _storage_guard("get_segment"):
        segment = session.get(TrainingSegment, segment_id)
    if segment is None or segment.user_id != user_id:
        raise SegmentNotFound(f"Segment {segment_id} introuvable")
    return segment


def get_segment_detail(session: Session, user_id: UUID, segment_id: UUID) -> Dict[str, Any]:
    """Segment, profil et passages (plus recent d'abord)."""
    segment = get_segment(session, user_id, segment_id)
    with _storage_guard("get_segment_detail"):
        profile = session.get(SegmentProfile, segment.id)
    return {
        "segment": segment,
        "profile": profile,
        "rides": list_segment_rides(session, segment.id),
    }


def update_segment_name(session: Session, user_id: UUID, segment_id: UUID, custom_name: Optional[str]) -> TrainingSegment:
    """Renomme un segment ; un nom vide retablit le nom automatique."""
    segment = get_segment(session, user_id, segment_id)
    name = (custom_name or "").strip()
    with _storage_guard("update_segment_name"):
        segment.custom_name = name or None
        segment.updated_at = datetime.utcnow()
        session.add(segment)
        session.commit()
        session.refresh(segment)
    return segment
