"""
Recalcul complet du SegmentProfile a partir de tous les passages du segment,
et score de confiance du segment.

Le profil n'est jamais fusionne incrementalement : chaque nouveau passage
relance le calcul sur l'historique entier.
"""
import logging
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence

from sqlmodel import Session

from segmentiq.domain.entities.segment_profile import FrequencyTier, SegmentProfile
from segmentiq.domain.entities.segment_ride import SegmentRide
from segmentiq.domain.entities.training_segment import TerrainType, TrainingSegment
from segmentiq.domain.services import segment_store
from segmentiq.domain.services.segment_characterizer import sample_std

logger = logging.getLogger(__name__)

NORMALIZED_POWER_FACTOR = 1.02  # approximation, pas une vraie NP 30 s
HR_NOISE_FLOOR_BPM = 30
DAYS_PER_MONTH = 30
WEEKDAY_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
TYPICAL_DAYS_COUNT = 3

RECOVERY_TERRAINS = (TerrainType.FLAT.value, TerrainType.DESCENT.value)


def _round1(value: Optional[float]) -> Optional[float]:
    return round(value, 1) if value is not None else None


def _mode(values: List[str]) -> Optional[str]:
    """Valeur la plus frequente ; a egalite, la premiere rencontree."""
    if not values:
        return None
    return Counter(values).most_common(1)[0][0]


def _frequency_tier(rides_per_month: float) -> str:
    if rides_per_month >= 4:
        return FrequencyTier.PRIMARY.value
    if rides_per_month >= 2:
        return FrequencyTier.REGULAR.value
    if rides_per_month >= 1:
        return FrequencyTier.OCCASIONAL.value
    return FrequencyTier.RARE.value


def compute_profile_values(
    rides: Sequence[SegmentRide],
    segment: TrainingSegment,
    now: datetime,
) -> Dict[str, Any]:
    """Valeurs du profil pour des passages tries du plus recent au plus ancien."""
    if not rides:
        return {}

    # Puissance
    power_rides = [r for r in rides if r.avg_power and r.avg_power > 0]
    power_values = [r.avg_power for r in power_rides]
    mean_power = sum(power_values) / len(power_values) if power_values else None
    sd_power = sample_std(power_values) if len(power_values) >= 2 else None

    consistency = 0
    if mean_power and sd_power is not None:
        consistency = max(0, min(100, round(100 - (sd_power / mean_power) * 200)))

    zones = [r.power_zone for r in power_rides if r.power_zone]
    zone_counts = Counter(zones)
    zone_distribution = {zone: round(count / len(zones), 2) for zone, count in zone_counts.items()}

    # Frequence cardiaque et cadence
    hr_rides = [r for r in rides if r.avg_hr and r.avg_hr > HR_NOISE_FLOOR_BPM]
    mean_hr = round(sum(r.avg_hr for r in hr_rides) / len(hr_rides)) if hr_rides else None
    cadences = [r.avg_cadence for r in rides if r.avg_cadence and r.avg_cadence > 0]
    mean_cadence = round(sum(cadences) / len(cadences)) if cadences else None

    # Frequence et recence
    rides_last_30 = sum(1 for r in rides if r.ridden_at >= now - timedelta(days=30))
    rides_last_90 = sum(1 for r in rides if r.ridden_at >= now - timedelta(days=90))
    first_ride = rides[-1].ridden_at
    months_span = max(1.0, (now - first_ride).total_seconds() / timedelta(days=DAYS_PER_MONTH).total_seconds())
    rides_per_month = round(len(rides) / months_span, 1)

    base_score = min(50, len(rides) * 5)
    recency_score = (rides_last_30 / len(rides)) * 30
    freq_score = min(20, rides_per_month * 10)
    relevance = min(100, round(base_score + recency_score + freq_score))

    day_counts = Counter(WEEKDAY_NAMES[r.ridden_at.weekday()] for r in rides)
    typical_days = [day for day, _ in day_counts.most_common(TYPICAL_DAYS_COUNT)]

    # Aptitudes, d'apres la geometrie du segment
    obstruction = segment.obstruction_score or 0
    max_uninterrupted = segment.max_uninterrupted_seconds or 0

    return {
        "mean_avg_power": _round1(mean_power) if mean_power else None,
        "std_dev_power": _round1(sd_power),
        "min_avg_power": _round1(min(power_values)) if power_values else None,
        "max_avg_power": _round1(max(power_values)) if power_values else None,
        "mean_normalized_power": _round1(mean_power * NORMALIZED_POWER_FACTOR) if mean_power else None,
        "typical_power_zone": _mode(zones),
        "zone_distribution": zone_distribution,
        "consistency_score": consistency,
        "mean_avg_hr": mean_hr,
        "typical_hr_zone": _mode([r.hr_zone for r in hr_rides if r.hr_zone]),
        "mean_cadence": mean_cadence,
        "suitable_for_steady_state": obstruction >= 75 and max_uninterrupted >= 300,
        "suitable_for_short_intervals": obstruction >= 60 and max_uninterrupted >= 60,
        "suitable_for_sprints": obstruction >= 50 and max_uninterrupted >= 15,
        "suitable_for_recovery": segment.terrain_type in RECOVERY_TERRAINS,
        "rides_last_30_days": rides_last_30,
        "rides_last_90_days": rides_last_90,
        "avg_rides_per_month": rides_per_month,
        "frequency_tier": _frequency_tier(rides_per_month),
        "typical_days": typical_days,
        "relevance_score": relevance,
    }


def compute_confidence(ride_count: int, last_ridden_at: Optional[datetime], now: datetime) -> int:
    """Confiance 0-100 : palier selon le nombre de passages, corrige par la fraicheur."""
    if ride_count >= 15:
        confidence = 95
    elif ride_count >= 8:
        confidence = 85
    elif ride_count >= 5:
        confidence = 70
    elif ride_count >= 3:
        confidence = 50
    elif ride_count >= 2:
        confidence = 35
    else:
        confidence = 20

    days_since = (now - last_ridden_at).total_seconds() / 86400 if last_ridden_at else 999
    if days_since < 14:
        confidence += 5
    elif 30 <= days_since < 90:
        confidence -= 10
    elif days_since >= 90:
        confidence -= 20

    return max(0, min(100, confidence))


def recompute_segment_profile(
    session: Session,
    segment: TrainingSegment,
    update_confidence: bool = True,
    now: Optional[datetime] = None,
) -> Optional[SegmentProfile]:
    """Recalcule et persiste le profil du segment a partir de tous ses passages.

    Avec update_confidence, realigne aussi ride_count et confidence_score
    du segment. Retourne None si le segment n'a aucun passage.
    """
    now = now or datetime.utcnow()
    rides = segment_store.list_segment_rides(session, segment.id)
    if not rides:
        return None

    profile = segment_store.upsert_profile(session, segment.id, compute_profile_values(rides, segment, now))

    if update_confidence:
        segment.ride_count = len(rides)
        segment.confidence_score = compute_confidence(len(rides), rides[0].ridden_at, now)
        session.add(segment)

    logger.debug(
        f"Profil segment {segment.id}: {len(rides)} passages, "
        f"relevance={profile.relevance_score}, confidence={segment.confidence_score}"
    )
    return profile
