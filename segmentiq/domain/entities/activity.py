"""
Entité Activity - Domain Layer
Représente une sortie enregistrée avec ses streams (coords, altitude, vitesse...).
L'ingestion est externe : le pipeline ne fait que lire l'activité et poser
le marqueur training_segments_analyzed_at.
"""
from sqlmodel import SQLModel, Field, Relationship, JSON, Column
from typing import Optional, Dict, Any, TYPE_CHECKING
from datetime import datetime
from uuid import UUID, uuid4

if TYPE_CHECKING:
    from .user import User


class ActivityBase(SQLModel):
    """Modèle de base pour Activity"""
    name: str
    start_date: datetime
    distance: float  # en mètres
    moving_time: int  # en secondes
    average_watts: Optional[float] = None
    average_heartrate: Optional[float] = None
    max_heartrate: Optional[float] = None


class Activity(ActivityBase, table=True):
    """Entité Activity complète pour la base de données"""
    id: Optional[UUID] = Field(default_factory=uuid4, primary_key=True)
    user_id: UUID = Field(foreign_key="user.id", index=True)

    # Streams : {"coords": [[lng, lat], ...], "elevation": [...], "speed": [...],
    #            "power": [...], "heartRate": [...], "cadence": [...]}
    streams_data: Optional[Dict[str, Any]] = Field(
        default=None,
        sa_column=Column(JSON(none_as_null=True)),
        description="Streams de la sortie, tous de meme longueur"
    )

    # Marqueur d'idempotence du pipeline de segments
    training_segments_analyzed_at: Optional[datetime] = Field(default=None, index=True)

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    # Relations
    user: "User" = Relationship(back_populates="activities")

