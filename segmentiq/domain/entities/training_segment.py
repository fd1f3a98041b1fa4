"""
Entité TrainingSegment - Domain Layer
Troncon de route recurrent (montee, effort, boucle) detecte dans l'historique
d'un utilisateur et identifie par sa geometrie approchee.
Invariant : ride_count == nombre de SegmentRide qui le referencent.
"""
from sqlmodel import SQLModel, Field, JSON, Column
from typing import Optional, Dict, Any
from uuid import UUID, uuid4
from datetime import datetime
from enum import Enum


class TerrainType(str, Enum):
    """Classification du relief d'un segment"""
    FLAT = "flat"
    CLIMB = "climb"
    DESCENT = "descent"
    ROLLING = "rolling"


class Topology(str, Enum):
    """Forme du segment : depart et arrivee confondus ou non"""
    LOOP = "loop"
    OUT_AND_BACK = "out_and_back"
    POINT_TO_POINT = "point_to_point"


class TrainingSegment(SQLModel, table=True):
    """Segment persistant de la bibliotheque d'un utilisateur."""
    __tablename__ = "training_segment"

    id: Optional[UUID] = Field(default_factory=uuid4, primary_key=True)
    user_id: UUID = Field(foreign_key="user.id", index=True)

    # Geographie
    start_lat: float = Field(index=True)
    start_lng: float = Field(index=True)
    end_lat: float
    end_lng: float
    geojson: Dict[str, Any] = Field(sa_column=Column(JSON, nullable=False))
    distance_meters: float

    # Identite generee
    auto_name: Optional[str] = None
    custom_name: Optional[str] = None
    description: Optional[str] = None

    # Terrain
    avg_gradient: float = 0.0
    max_gradient: float = 0.0
    min_gradient: float = 0.0
    gradient_variability: float = 0.0
    elevation_gain_meters: float = 0.0
    elevation_loss_meters: float = 0.0
    terrain_type: str = Field(default=TerrainType.FLAT.value, index=True)

    # Obstruction
    obstruction_score: int = 0
    stop_count: int = 0
    stops_per_km: float = 0.0
    traffic_signal_count: int = 0
    sharp_turn_count: int = 0
    max_uninterrupted_seconds: int = 0

    # Topologie
    topology: str = Field(default=Topology.POINT_TO_POINT.value)
    is_repeatable: bool = False

    # Metadonnees d'analyse
    ride_count: int = 0
    first_ridden_at: Optional[datetime] = None
    last_ridden_at: Optional[datetime] = Field(default=None, index=True)
    confidence_score: int = 0
    analysis_version: int = 1

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def display_name(self) -> Optional[str]:
        return self.custom_name or self.auto_name

    @property
    def coordinates(self) -> list:
        """Coordonnees [lng, lat] de la LineString."""
        return (self.geojson or {}).get("coordinates") or []


class TrainingSegmentRead(SQLModel):
    """Schéma pour lire un segment de la bibliotheque (réponse API)."""
    id: UUID
    display_name: Optional[str]
    auto_name: Optional[str]
    custom_name: Optional[str]
    description: Optional[str]
    start_lat: float
    start_lng: float
    end_lat: float
    end_lng: float
    distance_meters: float
    avg_gradient: float
    max_gradient: float
    min_gradient: float
    gradient_variability: float
    elevation_gain_meters: float
    elevation_loss_meters: float
    terrain_type: str
    obstruction_score: int
    stop_count: int
    stops_per_km: float
    sharp_turn_count: int
    max_uninterrupted_seconds: int
    topology: str
    is_repeatable: bool
    ride_count: int
    first_ridden_at: Optional[datetime]
    last_ridden_at: Optional[datetime]
    confidence_score: int
