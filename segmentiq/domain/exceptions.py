"""
Erreurs du pipeline d'analyse des segments.

Les trois premieres sont des issues attendues : un resultat structure est
renvoye (avec `reason`) et l'activite, si elle existe, est marquee analysee.
StorageFailure remonte a l'appelant.
"""


class SegmentAnalysisError(RuntimeError):
    """Erreur de base du pipeline."""


class ActivityNotFound(SegmentAnalysisError):
    """L'activite n'existe pas ou n'appartient pas a l'utilisateur."""
    reason = "Activity not found"


class InsufficientStreamData(SegmentAnalysisError):
    """Streams absents ou trop courts pour etre analyses."""
    reason = "Insufficient stream data"


class ActivityTooShort(SegmentAnalysisError):
    """Distance ou duree sous les minimums d'analyse."""
    reason = "Activity too short"


class StorageFailure(SegmentAnalysisError):
    """Un appel de persistance a echoue."""


class SegmentNotFound(SegmentAnalysisError):
    """Le segment n'existe pas dans la bibliotheque de l'utilisateur."""


__all__ = [
    "SegmentAnalysisError",
    "ActivityNotFound",
    "InsufficientStreamData",
    "ActivityTooShort",
    "StorageFailure",
    "SegmentNotFound",
]
