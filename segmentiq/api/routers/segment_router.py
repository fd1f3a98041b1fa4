"""
Routes d'analyse des segments d'entrainement et de consultation de la bibliotheque.
Routes = validation + delegation au service. Pas de logique metier ici.
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from pydantic import BaseModel, Field
from sqlmodel import Session
from typing import Optional
from uuid import UUID

from segmentiq.core.database import get_session
from segmentiq.core.settings import get_settings
from segmentiq.auth.jwt import get_current_user_id
from segmentiq.domain.entities.segment_profile import SegmentProfileRead
from segmentiq.domain.entities.segment_ride import SegmentRideRead
from segmentiq.domain.entities.training_segment import TrainingSegmentRead
from segmentiq.domain.exceptions import ActivityNotFound, SegmentNotFound, StorageFailure
from segmentiq.domain.services import segment_analysis_service, segment_store
from segmentiq.api.routers._shared import security, limiter

logger = logging.getLogger(__name__)

router = APIRouter()


class SegmentRenameRequest(BaseModel):
    custom_name: Optional[str] = Field(default=None, max_length=120)


def _segment_payload(segment, profile) -> dict:
    payload = TrainingSegmentRead.model_validate(segment).model_dump(mode="json")
    payload["profile"] = SegmentProfileRead.model_validate(profile).model_dump(mode="json") if profile else None
    return payload


@router.post("/segments/analyze/{activity_id}")
async def analyze_activity_segments(
    activity_id: UUID,
    token: str = Depends(security),
    session: Session = Depends(get_session),
):
    """Analyse une activite et met a jour la bibliotheque de segments."""
    user_id = get_current_user_id(token.credentials)
    try:
        result = segment_analysis_service.analyze_activity(session, activity_id, user_id)
    except StorageFailure as e:
        logger.error(f"Erreur analyse segments activite {activity_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Erreur lors de l'analyse des segments",
        )

    if not result["success"] and result["error"] == ActivityNotFound.reason:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Activite non trouvee",
        )
    return {"activity_id": str(activity_id), **result}


@router.post("/segments/analyze")
@limiter.limit("10/minute")
async def analyze_segment_backlog(
    request: Request,
    response: Response,
    limit: Optional[int] = Query(default=None, ge=1),
    token: str = Depends(security),
    session: Session = Depends(get_session),
):
    """Analyse les activites pas encore traitees de l'utilisateur."""
    user_id = get_current_user_id(token.credentials)
    settings = get_settings()
    effective_limit = min(limit or settings.BACKLOG_DEFAULT_LIMIT, settings.BACKLOG_MAX_LIMIT)
    try:
        return segment_analysis_service.analyze_backlog(session, user_id, effective_limit)
    except StorageFailure as e:
        logger.error(f"Erreur backlog segments user {user_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Erreur lors de l'analyse des segments",
        )


@router.get("/segments")
async def list_training_segments(
    terrain_type: Optional[str] = Query(default=None),
    min_confidence: Optional[int] = Query(default=None, ge=0, le=100),
    sort_by: str = Query(default="relevance"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    token: str = Depends(security),
    session: Session = Depends(get_session),
):
    """Liste la bibliotheque de segments de l'utilisateur avec leurs profils."""
    user_id = get_current_user_id(token.credentials)
    try:
        rows = segment_store.list_segments(
            session,
            user_id,
            terrain_type=terrain_type,
            min_confidence=min_confidence,
            sort_by=sort_by,
            limit=limit,
            offset=offset,
        )
    except StorageFailure as e:
        logger.error(f"Erreur liste segments user {user_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Erreur lors de la lecture des segments",
        )

    segments = [_segment_payload(segment, profile) for segment, profile in rows]
    return {"segments": segments, "count": len(segments)}


@router.get("/segments/{segment_id}")
async def get_training_segment(
    segment_id: UUID,
    token: str = Depends(security),
    session: Session = Depends(get_session),
):
    """Detail d'un segment : profil et historique des passages."""
    user_id = get_current_user_id(token.credentials)
    try:
        detail = segment_store.get_segment_detail(session, user_id, segment_id)
    except SegmentNotFound:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Segment non trouve",
        )
    except StorageFailure as e:
        logger.error(f"Erreur lecture segment {segment_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Erreur lors de la lecture du segment",
        )

    payload = _segment_payload(detail["segment"], detail["profile"])
    payload["geojson"] = detail["segment"].geojson
    payload["rides"] = [SegmentRideRead.model_validate(r).model_dump(mode="json") for r in detail["rides"]]
    return payload


@router.patch("/segments/{segment_id}/name")
async def rename_training_segment(
    segment_id: UUID,
    body: SegmentRenameRequest,
    token: str = Depends(security),
    session: Session = Depends(get_session),
):
    """Renomme un segment (nom vide = retour au nom automatique)."""
    user_id = get_current_user_id(token.credentials)
    try:
        segment = segment_store.update_segment_name(session, user_id, segment_id, body.custom_name)
    except SegmentNotFound:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Segment non trouve",
        )
    except StorageFailure as e:
        logger.error(f"Erreur renommage segment {segment_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Erreur lors du renommage du segment",
        )

    return TrainingSegmentRead.model_validate(segment)
