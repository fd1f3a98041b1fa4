"""
Calcul du gradient et recherche des frontieres de segments.

Une frontiere est posee quand le gradient s'ecarte durablement (>= 3 points
sur >= 200 m) de sa moyenne glissante, ou sur un arret long (>= 30 s).
"""
import math
from typing import List

from segmentiq.domain.services.stream_preprocessor import EnrichedPoint, Stop

GRADIENT_WINDOW_M = 100
MIN_GRADIENT_SPAN_M = 10

GRADIENT_CHANGE_THRESHOLD = 3.0  # points de pourcentage
SUSTAINED_CHANGE_DISTANCE_M = 200
RUNNING_GRADIENT_WEIGHT = 0.1  # poids du gradient courant dans la moyenne glissante
# Ecart minimal (en points) entre deux frontieres de gradient
MIN_BOUNDARY_SPACING_POINTS = 5

LONG_STOP_SECONDS = 30
STOP_BOUNDARY_CLEARANCE_M = 100


def calculate_gradients(points: List[EnrichedPoint]) -> List[float]:
    """Gradient (%) de chaque point sur une fenetre symetrique d'environ 100 m.

    Les bornes s'elargissent jusqu'a 50 m de chaque cote ; si la fenetre
    obtenue fait 10 m ou moins, le gradient reste a 0.
    """
    n = len(points)
    gradients = [0.0] * n
    half_window = GRADIENT_WINDOW_M / 2

    for i in range(n):
        look_back = i
        look_forward = i
        while look_back > 0 and points[i].distance - points[look_back].distance < half_window:
            look_back -= 1
        while look_forward < n - 1 and points[look_forward].distance - points[i].distance < half_window:
            look_forward += 1

        dist_diff = points[look_forward].distance - points[look_back].distance
        elev_diff = points[look_forward].elevation - points[look_back].elevation
        if dist_diff > MIN_GRADIENT_SPAN_M:
            gradients[i] = elev_diff / dist_diff * 100

    return gradients


def find_boundaries(points: List[EnrichedPoint], gradients: List[float], stops: List[Stop]) -> List[int]:
    """Indices de frontiere tries et dedupliques, incluant 0 et le dernier index."""
    if not points:
        return []

    boundaries = [0]
    prev_avg_grad = 0.0
    sustained_dist = 0.0

    for i in range(1, len(points)):
        dist_step = points[i].distance - points[i - 1].distance
        grad_diff = abs(gradients[i] - prev_avg_grad)

        if grad_diff >= GRADIENT_CHANGE_THRESHOLD:
            sustained_dist += dist_step
            if sustained_dist >= SUSTAINED_CHANGE_DISTANCE_M:
                # Recule d'autant de pas que la distance soutenue en represente
                lookback = math.ceil(sustained_dist / max(dist_step, 1))
                boundary_idx = max(0, i - lookback)
                if boundary_idx > boundaries[-1] + MIN_BOUNDARY_SPACING_POINTS:
                    boundaries.append(boundary_idx)
                prev_avg_grad = gradients[i]
                sustained_dist = 0.0
        else:
            prev_avg_grad = prev_avg_grad * (1 - RUNNING_GRADIENT_WEIGHT) + gradients[i] * RUNNING_GRADIENT_WEIGHT
            sustained_dist = 0.0

    for stop in stops:
        if stop.duration_seconds < LONG_STOP_SECONDS:
            continue
        idx = stop.point_index
        too_close = any(
            abs(points[idx].distance - points[b].distance) < STOP_BOUNDARY_CLEARANCE_M
            for b in boundaries
        )
        if not too_close:
            boundaries.append(idx)

    boundaries.append(len(points) - 1)
    return sorted(set(boundaries))
