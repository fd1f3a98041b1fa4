"""
Entité SegmentProfile - Domain Layer
Agregats glissants d'un segment (1:1 avec TrainingSegment), recalcules en
entier a partir de tous ses SegmentRide a chaque nouveau passage.
"""
from sqlmodel import SQLModel, Field, JSON, Column
from typing import Optional, Dict, List
from uuid import UUID
from datetime import datetime
from enum import Enum


class FrequencyTier(str, Enum):
    """Palier de frequence de passage"""
    PRIMARY = "primary"
    REGULAR = "regular"
    OCCASIONAL = "occasional"
    RARE = "rare"


class SegmentProfile(SQLModel, table=True):
    """Profil agrege d'un segment."""
    __tablename__ = "segment_profile"

    segment_id: UUID = Field(foreign_key="training_segment.id", primary_key=True)

    # Puissance
    mean_avg_power: Optional[float] = None
    std_dev_power: Optional[float] = None
    min_avg_power: Optional[float] = None
    max_avg_power: Optional[float] = None
    mean_normalized_power: Optional[float] = None
    typical_power_zone: Optional[str] = None
    zone_distribution: Dict[str, float] = Field(default_factory=dict, sa_column=Column(JSON))
    consistency_score: int = 0

    # Frequence cardiaque et cadence
    mean_avg_hr: Optional[int] = None
    typical_hr_zone: Optional[str] = None
    mean_cadence: Optional[int] = None

    # Aptitudes d'entrainement
    suitable_for_steady_state: bool = False
    suitable_for_short_intervals: bool = False
    suitable_for_sprints: bool = False
    suitable_for_recovery: bool = False

    # Frequence et recence
    rides_last_30_days: int = 0
    rides_last_90_days: int = 0
    avg_rides_per_month: float = 0.0
    frequency_tier: str = Field(default=FrequencyTier.RARE.value)
    typical_days: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    relevance_score: int = 0

    updated_at: datetime = Field(default_factory=datetime.utcnow)


class SegmentProfileRead(SQLModel):
    """Schéma pour lire le profil d'un segment (réponse API)."""
    mean_avg_power: Optional[float]
    std_dev_power: Optional[float]
    min_avg_power: Optional[float]
    max_avg_power: Optional[float]
    mean_normalized_power: Optional[float]
    typical_power_zone: Optional[str]
    zone_distribution: Dict[str, float]
    consistency_score: int
    mean_avg_hr: Optional[int]
    typical_hr_zone: Optional[str]
    mean_cadence: Optional[int]
    suitable_for_steady_state: bool
    suitable_for_short_intervals: bool
    suitable_for_sprints: bool
    suitable_for_recovery: bool
    rides_last_30_days: int
    rides_last_90_days: int
    avg_rides_per_month: float
    frequency_tier: str
    typical_days: List[str]
    relevance_score: int
