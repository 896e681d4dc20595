"""Geometry utilities."""

from presence_guard.geo.distance import centroid, haversine_m, implied_speed_mps

__all__ = ["centroid", "haversine_m", "implied_speed_mps"]
