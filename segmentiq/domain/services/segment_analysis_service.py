"""
Orchestrateur du pipeline de segments d'entrainement.

analyze_activity() : streams -> points enrichis -> frontieres -> candidats,
puis pour chaque candidat : correspondance, creation ou mise a jour du
segment, passage, recalcul du profil. L'activite est ensuite marquee analysee.
analyze_backlog() : meme traitement sur les activites jamais analysees.
"""
import logging
import threading
import weakref
from typing import Any, Collection, Dict, List, Optional, Set, Tuple
from uuid import UUID

from sqlmodel import Session

from segmentiq.domain.entities.activity import Activity
from segmentiq.domain.entities.training_segment import TrainingSegment
from segmentiq.domain.exceptions import (
    ActivityNotFound,
    ActivityTooShort,
    InsufficientStreamData,
    StorageFailure,
)
from segmentiq.domain.services import profile_aggregator, segment_matcher, segment_store
from segmentiq.domain.services.boundary_finder import calculate_gradients, find_boundaries
from segmentiq.domain.services.segment_characterizer import SegmentCandidate, characterize_segments
from segmentiq.domain.services.stream_preprocessor import (
    build_enriched_points,
    detect_stops,
    get_stream,
    parse_streams,
)

logger = logging.getLogger(__name__)

MIN_STREAM_POINTS = 20
MIN_DISTANCE_M = 2000
MIN_DURATION_S = 600

# Un verrou par utilisateur : correspondance + ecriture + profil ne doivent
# pas s'entrelacer entre deux analyses du meme utilisateur. L'entree disparait
# quand plus personne ne tient le verrou.
_user_locks: "weakref.WeakValueDictionary[UUID, threading.Lock]" = weakref.WeakValueDictionary()
_user_locks_guard = threading.Lock()


def _lock_for(user_id: UUID) -> threading.Lock:
    with _user_locks_guard:
        lock = _user_locks.get(user_id)
        if lock is None:
            lock = threading.Lock()
            _user_locks[user_id] = lock
        return lock


def detect_candidates(streams: Dict[str, Any]) -> List[SegmentCandidate]:
    """Detecte les segments candidats d'une activite (sans acces base)."""
    points = build_enriched_points(streams)
    # Sans stream de vitesse, chaque point paraitrait a l'arret
    stops = detect_stops(points) if get_stream(streams, "speed") else []
    gradients = calculate_gradients(points)
    boundaries = find_boundaries(points, gradients, stops)
    return characterize_segments(points, boundaries, stops)


def _check_requirements(activity: Activity, streams: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    coords = get_stream(streams, "coords") if streams else None
    if not coords or len(coords) < MIN_STREAM_POINTS:
        raise InsufficientStreamData(f"Activite {activity.id}: {len(coords or [])} points GPS")
    if (activity.distance or 0) < MIN_DISTANCE_M or (activity.moving_time or 0) < MIN_DURATION_S:
        raise ActivityTooShort(
            f"Activite {activity.id}: {activity.distance or 0:.0f} m, {activity.moving_time or 0} s"
        )
    return streams


def _load_activity(session: Session, activity_id: UUID, user_id: UUID) -> Activity:
    activity = segment_store.get_activity(session, activity_id, user_id)
    if activity is None:
        raise ActivityNotFound(f"Activite {activity_id} introuvable pour user {user_id}")
    return activity


def _failure(reason: str) -> Dict[str, Any]:
    return {"success": False, "error": reason, "segments": 0}


def process_candidate(
    session: Session,
    activity: Activity,
    candidate: SegmentCandidate,
    ftp: Optional[float],
    max_heartrate: Optional[float],
    exclude_ids: Collection[UUID] = (),
) -> Tuple[TrainingSegment, bool]:
    """Rattache le candidat a un segment existant ou en cree un.

    exclude_ids : segments deja rattaches a cette activite, jamais reutilises.
    Retourne (segment, True si le segment vient d'etre cree).
    """
    match = segment_matcher.find_matching_segment(session, activity.user_id, candidate, exclude_ids)

    if match is not None:
        segment = match.segment
        segment_store.upsert_segment_ride(session, segment, activity, candidate, ftp, max_heartrate)
        segment_store.refresh_segment_ride_stats(session, segment)
        profile_aggregator.recompute_segment_profile(session, segment)
        logger.debug(
            f"Candidat {candidate.start_idx}-{candidate.end_idx} -> segment {segment.id} "
            f"(overlap {match.overlap:.2f}{', inverse' if match.reversed else ''})"
        )
        return segment, False

    segment = segment_store.create_segment(session, activity.user_id, candidate, activity.start_date)
    segment_store.upsert_segment_ride(session, segment, activity, candidate, ftp, max_heartrate)
    # Confiance initiale conservee pour un segment a un seul passage
    profile_aggregator.recompute_segment_profile(session, segment, update_confidence=False)
    return segment, True


def analyze_activity(session: Session, activity_id: UUID, user_id: UUID) -> Dict[str, Any]:
    """Analyse une activite et alimente la bibliotheque de segments de l'utilisateur.

    Retourne {success, new_segments, updated_segments, total_segments} ou,
    pour une activite inanalysable, {success: False, error, segments: 0}.
    Leve StorageFailure si la persistance echoue (la session est annulee).
    """
    try:
        activity = _load_activity(session, activity_id, user_id)
    except ActivityNotFound as e:
        # Rien a marquer : l'activite peut appartenir a un autre utilisateur
        logger.info(f"Analyse segments: {e}")
        return _failure(e.reason)

    if activity.training_segments_analyzed_at is not None:
        logger.info(f"Activite {activity.id} deja analysee, skip")
        return {
            "success": True,
            "new_segments": 0,
            "updated_segments": 0,
            "total_segments": 0,
            "message": "Activity already analyzed",
        }

    try:
        streams = _check_requirements(activity, parse_streams(activity.streams_data))
        candidates = detect_candidates(streams)
    except (InsufficientStreamData, ActivityTooShort) as e:
        logger.info(f"Activite {activity.id} non analysable: {e}")
        _mark_analyzed(session, activity)
        return _failure(e.reason)

    if not candidates:
        _mark_analyzed(session, activity)
        logger.info(f"Activite {activity.id}: aucun segment exploitable")
        return {
            "success": True,
            "new_segments": 0,
            "updated_segments": 0,
            "total_segments": 0,
            "message": "No trainable segments detected",
        }

    ftp, user_max_hr = segment_store.get_user_physiology(session, user_id)
    max_heartrate = activity.max_heartrate or user_max_hr

    new_segments = 0
    updated_segments = 0
    touched: Set[UUID] = set()
    with _lock_for(user_id):
        try:
            for candidate in candidates:
                segment, created = process_candidate(session, activity, candidate, ftp, max_heartrate, touched)
                touched.add(segment.id)
                if created:
                    new_segments += 1
                else:
                    updated_segments += 1
            segment_store.mark_activity_analyzed(session, activity)
            segment_store.commit(session)
        except StorageFailure:
            session.rollback()
            raise

    logger.info(
        f"Activite {activity.id}: {len(candidates)} segments "
        f"({new_segments} nouveaux, {updated_segments} mis a jour)"
    )
    return {
        "success": True,
        "new_segments": new_segments,
        "updated_segments": updated_segments,
        "total_segments": len(candidates),
    }


def _mark_analyzed(session: Session, activity: Activity) -> None:
    try:
        segment_store.mark_activity_analyzed(session, activity)
        segment_store.commit(session)
    except StorageFailure:
        session.rollback()
        raise


def analyze_backlog(session: Session, user_id: UUID, limit: int = 20) -> Dict[str, Any]:
    """Analyse les activites de l'utilisateur jamais analysees (plus recentes d'abord).

    Une activite en echec est journalisee puis ignoree ; le lot continue.
    """
    activities = segment_store.list_unanalyzed_activities(session, user_id, limit)
    activity_ids = [a.id for a in activities]

    processed = 0
    new_segments = 0
    updated_segments = 0
    errors = 0

    for activity_id in activity_ids:
        try:
            result = analyze_activity(session, activity_id, user_id)
        except Exception as e:
            logger.warning(f"Erreur analyse segments activite {activity_id}: {e}")
            session.rollback()
            errors += 1
            continue
        if result["success"]:
            processed += 1
            new_segments += result.get("new_segments", 0)
            updated_segments += result.get("updated_segments", 0)

    logger.info(
        f"Backlog segments user {user_id}: {processed}/{len(activity_ids)} activites, "
        f"{new_segments} nouveaux segments, {updated_segments} mis a jour, {errors} erreurs"
    )
    return {
        "success": True,
        "processed": processed,
        "total_activities": len(activity_ids),
        "new_segments": new_segments,
        "updated_segments": updated_segments,
        "errors": errors,
    }
