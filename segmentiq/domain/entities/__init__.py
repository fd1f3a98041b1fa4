"""
Initialisation des entités du domaine
Résout les imports circulaires entre les modèles
"""

# Import des modèles dans l'ordre correct pour éviter les imports circulaires
from .user import User
from .activity import Activity
from .training_segment import TrainingSegment, TrainingSegmentRead, TerrainType, Topology
from .segment_ride import SegmentRide, SegmentRideRead
from .segment_profile import SegmentProfile, SegmentProfileRead, FrequencyTier

__all__ = [
    "User",
    "Activity",
    "TrainingSegment", "TrainingSegmentRead", "TerrainType", "Topology",
    "SegmentRide", "SegmentRideRead",
    "SegmentProfile", "SegmentProfileRead", "FrequencyTier",
]
