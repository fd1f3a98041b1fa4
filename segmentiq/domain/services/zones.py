"""
Tables de zones d'intensite (puissance en %FTP, frequence cardiaque en %FC max).
Bornes [min, max) ; un ratio au-dela de la derniere borne tombe en anaerobie.
"""
from typing import Optional, Tuple

ZoneTable = Tuple[Tuple[str, float, float], ...]

POWER_ZONES: ZoneTable = (
    ("recovery", 0.0, 0.55),
    ("endurance", 0.55, 0.75),
    ("tempo", 0.75, 0.87),
    ("sweet_spot", 0.87, 0.95),
    ("threshold", 0.95, 1.05),
    ("vo2max", 1.05, 1.20),
    ("anaerobic", 1.20, float("inf")),
)

HR_ZONES: ZoneTable = (
    ("recovery", 0.0, 0.60),
    ("endurance", 0.60, 0.70),
    ("tempo", 0.70, 0.80),
    ("threshold", 0.80, 0.90),
    ("vo2max", 0.90, 0.95),
    ("anaerobic", 0.95, float("inf")),
)

FALLBACK_ZONE = "anaerobic"


def _classify(value: Optional[float], reference: Optional[float], table: ZoneTable) -> Optional[str]:
    if not value or not reference or value <= 0 or reference <= 0:
        return None
    ratio = value / reference
    for name, low, high in table:
        if low <= ratio < high:
            return name
    return FALLBACK_ZONE


def classify_power_zone(avg_power: Optional[float], ftp: Optional[float]) -> Optional[str]:
    """Zone de puissance, None si FTP inconnue ou puissance absente."""
    return _classify(avg_power, ftp, POWER_ZONES)


def classify_hr_zone(avg_hr: Optional[float], max_hr: Optional[float]) -> Optional[str]:
    """Zone cardiaque, None si FC max inconnue ou FC absente."""
    return _classify(avg_hr, max_hr, HR_ZONES)
