"""Geometry utilities - great-circle distance and sample centroids."""

import math
from typing import Sequence, Tuple

import numpy as np

from presence_guard.common.constants import GeoConstants


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in meters between two points in degrees.

    Symmetric, and exactly 0.0 for identical points.
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    # Rounding can push `a` slightly above 1 for antipodal points
    a = min(1.0, a)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return GeoConstants.EARTH_RADIUS_M * c


def centroid(points: Sequence[Tuple[float, float]]) -> Tuple[float, float]:
    """Arithmetic mean of (latitude, longitude) pairs.

    Adequate for the tight clusters of a single trajectory; not meant for
    points spread across the antimeridian.
    """
    if not points:
        raise ValueError("centroid requires at least one point")
    coords = np.asarray(points, dtype=float)
    lat, lon = coords.mean(axis=0)
    return float(lat), float(lon)


def implied_speed_mps(distance_m: float, elapsed_seconds: float) -> float:
    """Speed implied by covering a distance in elapsed time.

    Zero elapsed time with movement counts as infinitely fast.
    """
    if elapsed_seconds <= 0:
        return math.inf if distance_m > 0 else 0.0
    return distance_m / elapsed_seconds
