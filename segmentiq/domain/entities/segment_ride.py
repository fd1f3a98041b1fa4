"""
Entité SegmentRide - Domain Layer
Passage d'une activite sur un TrainingSegment, avec ses metriques propres.
Unique par (segment_id, activity_id) : re-traiter une activite met a jour la ligne.
"""
from sqlmodel import SQLModel, Field, UniqueConstraint
from typing import Optional
from uuid import UUID, uuid4
from datetime import datetime


class SegmentRide(SQLModel, table=True):
    """Metriques d'un passage sur un segment."""
    __tablename__ = "segment_ride"
    __table_args__ = (
        UniqueConstraint("segment_id", "activity_id", name="uq_segment_ride_segment_activity"),
    )

    id: Optional[UUID] = Field(default_factory=uuid4, primary_key=True)
    segment_id: UUID = Field(foreign_key="training_segment.id", index=True)
    activity_id: UUID = Field(foreign_key="activity.id", index=True)
    user_id: UUID = Field(foreign_key="user.id", index=True)
    ridden_at: datetime = Field(index=True)

    # Puissance
    avg_power: Optional[float] = None
    normalized_power: Optional[float] = None
    max_power: Optional[float] = None
    power_zone: Optional[str] = None

    # Frequence cardiaque
    avg_hr: Optional[int] = None
    max_hr: Optional[int] = None
    hr_zone: Optional[str] = None

    # Performance
    duration_seconds: int
    avg_speed: Optional[float] = None  # km/h
    avg_cadence: Optional[int] = None

    # Arrets pendant ce passage
    stop_count: int = 0
    stop_duration_seconds: int = 0

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow)


class SegmentRideRead(SQLModel):
    """Schéma pour lire un passage (réponse API)."""
    id: UUID
    activity_id: UUID
    ridden_at: datetime
    avg_power: Optional[float]
    normalized_power: Optional[float]
    max_power: Optional[float]
    power_zone: Optional[str]
    avg_hr: Optional[int]
    max_hr: Optional[int]
    hr_zone: Optional[str]
    duration_seconds: int
    avg_speed: Optional[float]
    avg_cadence: Optional[int]
    stop_count: int
    stop_duration_seconds: int
