from dataclasses import dataclass
from typing import Iterable, Tuple

from geopy.distance import great_circle


@dataclass(frozen=True)
class GeoPoint:
    """A WGS84 coordinate in degrees"""

    lat: float
    lng: float

    @classmethod
    def from_any(cls, value) -> "GeoPoint":
        """
        Build a GeoPoint from the shapes providers hand back:
        a GeoPoint, a {lat, lng} / {latitude, longitude} dict or a (lat, lng) pair.
        """
        if isinstance(value, GeoPoint):
            return value
        if isinstance(value, dict):
            if 'lat' in value and 'lng' in value:
                return cls(float(value['lat']), float(value['lng']))
            if 'latitude' in value and 'longitude' in value:
                return cls(float(value['latitude']), float(value['longitude']))
            raise ValueError(f"Cannot read coordinates from {value!r}")
        lat, lng = value
        return cls(float(lat), float(lng))

    def as_tuple(self) -> Tuple[float, float]:
        return (self.lat, self.lng)

    def to_dict(self) -> dict:
        return {'lat': self.lat, 'lng': self.lng}


def distance(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle distance in meters on the mean Earth radius."""
    if a == b:
        return 0.0
    return great_circle(a.as_tuple(), b.as_tuple()).meters


def bounds(points: Iterable[GeoPoint]) -> Tuple[GeoPoint, GeoPoint]:
    """Return (south_west, north_east) of the box enclosing the points."""
    points = list(points)
    if not points:
        raise ValueError("bounds() needs at least one point")
    south = min(p.lat for p in points)
    north = max(p.lat for p in points)
    west = min(p.lng for p in points)
    east = max(p.lng for p in points)
    return GeoPoint(south, west), GeoPoint(north, east)
