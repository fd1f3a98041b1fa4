"""
Outils geographiques : distance haversine, cap, echantillonnage d'une polyligne.
Les coordonnees de polyligne suivent l'ordre GeoJSON [lng, lat].
"""
import math
from typing import List, Sequence

import numpy as np

EARTH_RADIUS_M = 6371000  # Rayon de la Terre en mètres


def haversine_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Distance grand-cercle entre deux points GPS, en mètres."""
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lat = math.radians(lat2 - lat1)
    delta_lng = math.radians(lng2 - lng1)

    a = (math.sin(delta_lat / 2) ** 2
         + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(delta_lng / 2) ** 2)
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def bearing_deg(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Cap initial (forward azimuth) de 1 vers 2, normalise dans [0, 360)."""
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lng = math.radians(lng2 - lng1)

    y = math.sin(delta_lng) * math.cos(lat2_rad)
    x = (math.cos(lat1_rad) * math.sin(lat2_rad)
         - math.sin(lat1_rad) * math.cos(lat2_rad) * math.cos(delta_lng))
    return (math.degrees(math.atan2(y, x)) + 360) % 360


def bearing_change_deg(first: float, second: float) -> float:
    """Plus petit ecart angulaire entre deux caps (0..180)."""
    diff = abs(second - first)
    if diff > 180:
        diff = 360 - diff
    return diff


def sample_path(coords: Sequence[Sequence[float]], interval_m: float) -> List[List[float]]:
    """Echantillonne une polyligne [lng, lat] tous les interval_m mètres.

    Le premier et le dernier point sont toujours inclus ; les points
    intermediaires sont interpoles lineairement sur chaque troncon.
    Retourne une liste vide si la polyligne a moins de 2 points.
    """
    if len(coords) < 2:
        return []

    samples = [list(coords[0])]
    cum_dist = 0.0
    next_dist = interval_m

    for i in range(1, len(coords)):
        prev_lng, prev_lat = coords[i - 1][0], coords[i - 1][1]
        lng, lat = coords[i][0], coords[i][1]
        step = haversine_m(prev_lat, prev_lng, lat, lng)
        cum_dist += step
        while cum_dist >= next_dist:
            frac = 1 - (cum_dist - next_dist) / step if step > 0 else 0
            samples.append([
                prev_lng + frac * (lng - prev_lng),
                prev_lat + frac * (lat - prev_lat),
            ])
            next_dist += interval_m

    samples.append(list(coords[-1]))
    return samples


def pairwise_distances_m(points_a: Sequence[Sequence[float]], points_b: Sequence[Sequence[float]]) -> np.ndarray:
    """Matrice (len(a), len(b)) des distances haversine entre points [lng, lat]."""
    a = np.radians(np.asarray(points_a, dtype=float))
    b = np.radians(np.asarray(points_b, dtype=float))

    lat_a = a[:, 1][:, np.newaxis]
    lat_b = b[:, 1][np.newaxis, :]
    delta_lat = lat_b - lat_a
    delta_lng = b[:, 0][np.newaxis, :] - a[:, 0][:, np.newaxis]

    h = np.sin(delta_lat / 2) ** 2 + np.cos(lat_a) * np.cos(lat_b) * np.sin(delta_lng / 2) ** 2
    h = np.clip(h, 0.0, 1.0)
    return EARTH_RADIUS_M * 2 * np.arctan2(np.sqrt(h), np.sqrt(1 - h))
