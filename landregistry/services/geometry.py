"""
Land Registry API - Geometry Validator
Structural validation of single-ring GeoJSON polygons
"""

import json
import math
from typing import Any, List, Tuple

from landregistry.exceptions import GeometryError

MIN_RING_POSITIONS = 4


def _parse(raw: Any) -> dict:
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except ValueError as e:
            raise GeometryError(f"Invalid GeoJSON Polygon format: geometry is not valid JSON ({e})") from e
    if not isinstance(raw, dict):
        raise GeometryError("Invalid GeoJSON Polygon format: geometry must be an object")
    return raw


def _position(value: Any, index: int) -> List[float]:
    if not isinstance(value, (list, tuple)) or len(value) < 2:
        raise GeometryError(f"Invalid GeoJSON Polygon format: position {index} must be a [longitude, latitude] pair")
    pair = []
    for ordinate in value[:2]:
        if isinstance(ordinate, bool) or not isinstance(ordinate, (int, float)):
            raise GeometryError(f"Invalid GeoJSON Polygon format: position {index} holds a non-numeric coordinate")
        try:
            ordinate = float(ordinate)
        except OverflowError:
            ordinate = math.inf
        if not math.isfinite(ordinate):
            raise GeometryError(f"Invalid GeoJSON Polygon format: position {index} holds a non-finite coordinate")
        pair.append(ordinate)
    return pair


def validate_polygon(raw: Any) -> List[List[float]]:
    """
    Validates a GeoJSON Polygon given as a dict or a JSON string.

    Returns the exterior ring as ``[[lon, lat], ...]``. Only ring 0 is
    consumed; interior rings are ignored, not validated.

    Raises GeometryError when the type is not Polygon, the ring is missing or
    has fewer than 4 positions, or the ring is not closed (exact match of the
    first and last position).
    """
    geojson = _parse(raw)

    if geojson.get("type") != "Polygon":
        raise GeometryError("Invalid GeoJSON Polygon format: geometry type must be 'Polygon'")

    coordinates = geojson.get("coordinates")
    if not isinstance(coordinates, list) or len(coordinates) == 0:
        raise GeometryError("Invalid GeoJSON Polygon format: geometry must have coordinates")

    outer_ring = coordinates[0]
    if not isinstance(outer_ring, list) or len(outer_ring) < MIN_RING_POSITIONS:
        raise GeometryError(
            f"Invalid GeoJSON Polygon format: exterior ring must have at least {MIN_RING_POSITIONS} coordinate pairs"
        )

    ring = [_position(value, index) for index, value in enumerate(outer_ring)]

    if ring[0] != ring[-1]:
        raise GeometryError(
            "Invalid GeoJSON Polygon format: exterior ring must be closed "
            "(first and last coordinate must be identical)"
        )

    return ring


def polygon_geojson(ring: List[List[float]]) -> dict:
    """GeoJSON Polygon stored for a validated ring"""
    return {"type": "Polygon", "coordinates": [ring]}


def ring_bounds(ring: List[List[float]]) -> Tuple[float, float, float, float]:
    """Envelope of a ring as (min_lon, min_lat, max_lon, max_lat)"""
    lons = [lon for lon, _ in ring]
    lats = [lat for _, lat in ring]
    return min(lons), min(lats), max(lons), max(lats)
