"""Geospatial helpers."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Optional

EARTH_RADIUS_KM = 6371.0


@dataclass(frozen=True)
class Coordinate:
    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        validate_coordinate(self.latitude, self.longitude)

    def as_params(self) -> Dict[str, str]:
        return {"lat": repr(float(self.latitude)), "lng": repr(float(self.longitude))}

    def to_dict(self) -> Dict[str, float]:
        return {"lat": self.latitude, "lng": self.longitude}


def validate_coordinate(lat: Any, lon: Any) -> None:
    try:
        lat_f = float(lat)
        lon_f = float(lon)
    except (TypeError, ValueError):
        raise ValueError(f"Coordinate is not numeric: ({lat!r}, {lon!r})")
    if math.isnan(lat_f) or math.isnan(lon_f):
        raise ValueError("Coordinate contains NaN")
    if not -90.0 <= lat_f <= 90.0:
        raise ValueError(f"Latitude out of range: {lat_f}")
    if not -180.0 <= lon_f <= 180.0:
        raise ValueError(f"Longitude out of range: {lon_f}")


def coordinate_from_dict(data: Optional[Dict[str, Any]]) -> Optional[Coordinate]:
    """Accepts {lat, lng}, {lat, lon} or {latitude, longitude} shapes."""
    if not data or not isinstance(data, dict):
        return None
    lat = data.get("lat", data.get("latitude"))
    lon = data.get("lng", data.get("lon", data.get("longitude")))
    if lat is None or lon is None:
        return None
    return Coordinate(float(lat), float(lon))


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    validate_coordinate(lat1, lon1)
    validate_coordinate(lat2, lon2)
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)

    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    # rounding can push a a hair outside [0, 1] for antipodal points
    a = min(1.0, max(0.0, a))
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def great_circle_km(a: Coordinate, b: Coordinate) -> float:
    return haversine_km(a.latitude, a.longitude, b.latitude, b.longitude)


def format_distance(distance_km: Optional[float]) -> str:
    if not distance_km:
        return ""
    if distance_km < 1:
        return f"{round(distance_km * 1000)}m away"
    return f"{distance_km:.1f}km away"
