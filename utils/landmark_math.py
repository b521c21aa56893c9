"""
Landmark Math Utility
Planar geometry helpers on normalized pose landmarks.
"""

import numpy as np
from typing import Tuple


def midpoint(a, b) -> Tuple[float, float]:
    """Midpoint (x, y) of two landmarks."""
    return ((a.x + b.x) / 2, (a.y + b.y) / 2)


def planar_distance(a, b) -> float:
    """
    Euclidean distance between two landmarks in the image plane.

    Depth (z) is ignored, coordinates stay normalized.
    """
    return float(np.hypot(a.x - b.x, a.y - b.y))


def is_finite_point(landmark) -> bool:
    """True if the landmark exists and has finite x/y."""
    if landmark is None:
        return False
    try:
        return bool(np.isfinite(landmark.x) and np.isfinite(landmark.y))
    except (AttributeError, TypeError):
        return False
