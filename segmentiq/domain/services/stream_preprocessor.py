"""
Pretraitement des streams d'une activite : points enrichis (distance et temps
cumules, altitude lissee) et detection des arrets.
"""
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from segmentiq.domain.exceptions import InsufficientStreamData
from segmentiq.domain.services.geo import haversine_m

logger = logging.getLogger(__name__)

MIN_PREPROCESS_POINTS = 10
ELEVATION_SMOOTHING_WINDOW = 5
# En dessous, la vitesse n'est pas fiable pour deduire le temps du pas
MIN_RELIABLE_SPEED_MS = 0.1
FALLBACK_SPEED_MS = 1.4  # allure de marche

STOPPED_SPEED_MS = 0.6  # ~2 km/h
MIN_STOP_DURATION_S = 3


@dataclass
class EnrichedPoint:
    """Point de stream enrichi (ephemere, jamais persiste)."""
    lat: float
    lng: float
    elevation: float
    speed: float
    power: float
    heart_rate: float
    cadence: float
    distance: float  # cumulee, mètres
    timestamp: float  # cumule, secondes


@dataclass
class Stop:
    """Arret detecte : suite maximale de points a l'arret d'au moins 3 s."""
    point_index: int
    lat: float
    lng: float
    distance: float
    duration_seconds: int
    type: str = "unknown"


def parse_streams(raw: Any) -> Optional[Dict[str, Any]]:
    """Extrait streams_data en gerant le bug connu 'null' string."""
    if raw is None:
        return None
    # Bug connu : streams_data stocke comme la string "null"
    if isinstance(raw, str):
        if raw.strip().lower() == "null":
            return None
        try:
            raw = json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            return None
    if not isinstance(raw, dict):
        return None
    return raw


def get_stream(streams: Dict[str, Any], key: str) -> Optional[List]:
    """Recupere streams[key] (liste brute ou {'data': [...]}) si present."""
    entry = streams.get(key)
    if entry is None:
        return None
    if isinstance(entry, dict):
        return entry.get("data")
    if isinstance(entry, list):
        return entry
    return None


def _value_at(values: Optional[List], index: int) -> float:
    """Valeur numerique a l'index, 0 si absente ou nulle."""
    if not values or index >= len(values):
        return 0.0
    value = values[index]
    if value is None:
        return 0.0
    return float(value)


def build_enriched_points(streams: Dict[str, Any]) -> List[EnrichedPoint]:
    """Construit les points enrichis a partir des streams bruts.

    - distance cumulee par haversine entre coordonnees successives
    - temps cumule = distance du pas / vitesse du point (1.4 m/s si vitesse <= 0.1)
    - altitude lissee par moyenne mobile centree (fenetre 5, bornee aux extremites)

    Leve InsufficientStreamData si moins de 10 coordonnees exploitables.
    """
    coords = get_stream(streams, "coords") or []
    if len(coords) < MIN_PREPROCESS_POINTS:
        raise InsufficientStreamData(
            f"{len(coords)} points GPS, minimum {MIN_PREPROCESS_POINTS}"
        )

    elevation = get_stream(streams, "elevation")
    speed = get_stream(streams, "speed")
    power = get_stream(streams, "power")
    heart_rate = get_stream(streams, "heartRate")
    cadence = get_stream(streams, "cadence")

    points: List[EnrichedPoint] = []
    cum_dist = 0.0
    cum_time = 0.0

    for i, coord in enumerate(coords):
        if not isinstance(coord, (list, tuple)) or len(coord) < 2 or coord[0] is None or coord[1] is None:
            raise InsufficientStreamData(f"Coordonnee invalide a l'index {i}")
        lng, lat = float(coord[0]), float(coord[1])
        point_speed = _value_at(speed, i)

        if i > 0:
            prev = points[i - 1]
            step = haversine_m(prev.lat, prev.lng, lat, lng)
            cum_dist += step
            step_speed = point_speed if point_speed > MIN_RELIABLE_SPEED_MS else FALLBACK_SPEED_MS
            cum_time += step / step_speed

        points.append(EnrichedPoint(
            lat=lat,
            lng=lng,
            elevation=_value_at(elevation, i),
            speed=point_speed,
            power=_value_at(power, i),
            heart_rate=_value_at(heart_rate, i),
            cadence=_value_at(cadence, i),
            distance=cum_dist,
            timestamp=cum_time,
        ))

    smooth_elevation(points)
    logger.debug(f"Streams pretraites: {len(points)} points, {cum_dist:.0f} m, {cum_time:.0f} s")
    return points


def smooth_elevation(points: List[EnrichedPoint], window: int = ELEVATION_SMOOTHING_WINDOW) -> None:
    """Lisse l'altitude en place (moyenne mobile centree, fenetre bornee)."""
    half = window // 2
    n = len(points)
    raw = [p.elevation for p in points]

    for i in range(n):
        start = max(0, i - half)
        end = min(n - 1, i + half)
        points[i].elevation = sum(raw[start:end + 1]) / (end - start + 1)


def detect_stops(points: List[EnrichedPoint]) -> List[Stop]:
    """Detecte les arrets (vitesse < 0.6 m/s pendant au moins 3 s).

    Une suite d'arret encore ouverte en fin de stream est close sur le
    dernier point.
    """
    stops: List[Stop] = []
    stop_start = -1

    for i, point in enumerate(points):
        is_stopped = point.speed < STOPPED_SPEED_MS
        if is_stopped and stop_start == -1:
            stop_start = i
        elif not is_stopped and stop_start != -1:
            _append_stop(stops, points, stop_start, i)
            stop_start = -1

    if stop_start != -1:
        _append_stop(stops, points, stop_start, len(points) - 1)

    return stops


def _append_stop(stops: List[Stop], points: List[EnrichedPoint], start: int, end: int) -> None:
    duration = points[end].timestamp - points[start].timestamp
    if duration < MIN_STOP_DURATION_S:
        return
    origin = points[start]
    stops.append(Stop(
        point_index=start,
        lat=origin.lat,
        lng=origin.lng,
        distance=origin.distance,
        duration_seconds=round(duration),
    ))
