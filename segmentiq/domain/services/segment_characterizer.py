"""
Caracterisation des segments candidats : chaque paire de frontieres adjacentes
donne une tranche de points dont on derive distance, relief, arrets, virages,
capteurs et score de qualite.
"""
import statistics
from dataclasses import dataclass, field
from typing import List, Optional

from segmentiq.domain.entities.training_segment import TerrainType
from segmentiq.domain.services.geo import bearing_change_deg, bearing_deg
from segmentiq.domain.services.stream_preprocessor import EnrichedPoint, Stop

MIN_SEGMENT_POINTS = 3
MIN_SEGMENT_DISTANCE_M = 500

ELEVATION_NOISE_M = 1.0
MIN_GRADIENT_STEP_M = 5
SHARP_TURN_DEGREES = 45

HR_NOISE_FLOOR_BPM = 30
SPEED_NOISE_FLOOR_MS = 0.5
MS_TO_KMH = 3.6


@dataclass
class SegmentCandidate:
    """Segment detecte dans une seule activite, en attente de deduplication."""
    start_idx: int
    end_idx: int
    start_lat: float
    start_lng: float
    end_lat: float
    end_lng: float
    coordinates: List[List[float]]  # [lng, lat]
    distance_meters: int
    duration_seconds: int
    elevation_gain: float
    elevation_loss: float
    avg_gradient: float
    max_gradient: float
    min_gradient: float
    gradient_variability: float
    terrain_type: str
    avg_speed_kmh: float
    avg_power: int
    max_power: float
    normalized_power: int
    avg_hr: int
    max_hr: float
    avg_cadence: int
    stops: List[Stop] = field(default_factory=list)
    stops_per_km: float = 0.0
    sharp_turn_count: int = 0
    quality_score: int = 100

    @property
    def stop_count(self) -> int:
        return len(self.stops)

    @property
    def stop_duration_seconds(self) -> int:
        return sum(s.duration_seconds for s in self.stops)


def sample_std(values: List[float]) -> float:
    """Ecart-type d'echantillon (denominateur n-1), 0 si moins de 2 valeurs."""
    if len(values) < 2:
        return 0.0
    return statistics.stdev(values)


def classify_terrain(avg_grad: float, grad_var: float, elev_gain: float, dist_meters: float) -> str:
    abs_grad = abs(avg_grad)
    elev_per_km = elev_gain / (dist_meters / 1000) if dist_meters > 0 else 0

    if grad_var > 3 and abs_grad < 4:
        return TerrainType.ROLLING.value
    if avg_grad >= 4 or elev_per_km > 30:
        return TerrainType.CLIMB.value
    if avg_grad <= -4:
        return TerrainType.DESCENT.value
    if abs_grad < 2 and grad_var < 2:
        return TerrainType.FLAT.value
    return TerrainType.ROLLING.value


def count_sharp_turns(points: List[EnrichedPoint]) -> int:
    """Nombre de changements de cap >= 45 degres entre pas successifs."""
    sharp_turns = 0
    for i in range(1, len(points) - 1):
        b1 = bearing_deg(points[i - 1].lat, points[i - 1].lng, points[i].lat, points[i].lng)
        b2 = bearing_deg(points[i].lat, points[i].lng, points[i + 1].lat, points[i + 1].lng)
        if bearing_change_deg(b1, b2) >= SHARP_TURN_DEGREES:
            sharp_turns += 1
    return sharp_turns


def calculate_quality(dist_m: float, dur_s: float, grad_var: float, stops: int, turns: int) -> int:
    """Score de qualite 0-100 : penalites pour segment court, irregulier ou encombre."""
    score = 100
    if dist_m < 1000:
        score -= 15
    elif dist_m < 2000:
        score -= 5
    if dur_s < 180:
        score -= 15
    elif dur_s < 300:
        score -= 5
    if grad_var > 5:
        score -= 20
    elif grad_var > 3:
        score -= 10

    dist_km = dist_m / 1000
    stops_per_km = stops / dist_km if dist_km > 0 else 0
    if stops_per_km > 2:
        score -= 25
    elif stops_per_km > 1:
        score -= 15
    elif stops_per_km > 0.5:
        score -= 5

    turns_per_km = turns / dist_km if dist_km > 0 else 0
    if turns_per_km > 3:
        score -= 15
    elif turns_per_km > 1:
        score -= 5

    return max(0, min(100, score))


def _mean(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def characterize_segment(
    points: List[EnrichedPoint],
    start_idx: int,
    end_idx: int,
    all_stops: List[Stop],
) -> Optional[SegmentCandidate]:
    """Construit le candidat de la tranche [start_idx, end_idx] (inclus).

    Retourne None si la tranche a moins de 3 points ou fait moins de 500 m.
    """
    seg_points = points[start_idx:end_idx + 1]
    if len(seg_points) < MIN_SEGMENT_POINTS:
        return None

    first, last = seg_points[0], seg_points[-1]
    dist_meters = last.distance - first.distance
    if dist_meters < MIN_SEGMENT_DISTANCE_M:
        return None
    dur_seconds = last.timestamp - first.timestamp

    # Relief
    elev_gain = 0.0
    elev_loss = 0.0
    grad_samples: List[float] = []
    for prev, cur in zip(seg_points, seg_points[1:]):
        elev_diff = cur.elevation - prev.elevation
        dist_diff = cur.distance - prev.distance
        if abs(elev_diff) >= ELEVATION_NOISE_M:
            if elev_diff > 0:
                elev_gain += elev_diff
            else:
                elev_loss += abs(elev_diff)
        if dist_diff > MIN_GRADIENT_STEP_M:
            grad_samples.append(elev_diff / dist_diff * 100)

    avg_grad = _mean(grad_samples)
    max_grad = max(grad_samples) if grad_samples else 0.0
    min_grad = min(grad_samples) if grad_samples else 0.0
    grad_var = sample_std(grad_samples)

    terrain_type = classify_terrain(avg_grad, grad_var, elev_gain, dist_meters)

    seg_stops = [s for s in all_stops if first.distance <= s.distance <= last.distance]
    sharp_turns = count_sharp_turns(seg_points)

    # Capteurs, au-dessus du seuil de bruit
    power_samples = [p.power for p in seg_points if p.power > 0]
    hr_samples = [p.heart_rate for p in seg_points if p.heart_rate > HR_NOISE_FLOOR_BPM]
    cad_samples = [p.cadence for p in seg_points if p.cadence > 0]
    speed_samples = [p.speed for p in seg_points if p.speed > SPEED_NOISE_FLOOR_MS]

    avg_power = round(_mean(power_samples))
    dist_km = dist_meters / 1000

    return SegmentCandidate(
        start_idx=start_idx,
        end_idx=end_idx,
        start_lat=first.lat,
        start_lng=first.lng,
        end_lat=last.lat,
        end_lng=last.lng,
        coordinates=[[p.lng, p.lat] for p in seg_points],
        distance_meters=round(dist_meters),
        duration_seconds=round(dur_seconds),
        elevation_gain=round(elev_gain, 1),
        elevation_loss=round(elev_loss, 1),
        avg_gradient=round(avg_grad, 2),
        max_gradient=round(max_grad, 2),
        min_gradient=round(min_grad, 2),
        gradient_variability=round(grad_var, 2),
        terrain_type=terrain_type,
        avg_speed_kmh=round(_mean(speed_samples) * MS_TO_KMH, 1),
        avg_power=avg_power,
        max_power=max(power_samples) if power_samples else 0,
        # Simplification : pas de NP glissante 30 s cote serveur
        normalized_power=avg_power,
        avg_hr=round(_mean(hr_samples)),
        max_hr=max(hr_samples) if hr_samples else 0,
        avg_cadence=round(_mean(cad_samples)),
        stops=seg_stops,
        stops_per_km=round(len(seg_stops) / dist_km, 2) if dist_km > 0 else 0.0,
        sharp_turn_count=sharp_turns,
        quality_score=calculate_quality(dist_meters, dur_seconds, grad_var, len(seg_stops), sharp_turns),
    )


def characterize_segments(
    points: List[EnrichedPoint],
    boundaries: List[int],
    stops: List[Stop],
) -> List[SegmentCandidate]:
    """Caracterise chaque paire de frontieres adjacentes, en ecartant les tranches trop courtes."""
    candidates = []
    for start_idx, end_idx in zip(boundaries, boundaries[1:]):
        candidate = characterize_segment(points, start_idx, end_idx, stops)
        if candidate is not None:
            candidates.append(candidate)
    return candidates
