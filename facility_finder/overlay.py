"""
Map overlay lifecycle.

OverlayManager is the only owner of marker and polyline handles. Every
"show"/"draw" call removes what it replaces before creating anything new,
so repeated searches never leave orphaned features on the surface.
"""

import itertools
import logging
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from .geo import GeoPoint, bounds
from .models import Candidate

logger = logging.getLogger(__name__)

Handle = Any


class MapSurface(Protocol):
    """What a rendering surface has to offer the overlay manager"""

    def add_marker(self, point: GeoPoint, *, title: str, role: str) -> Handle: ...

    def add_polyline(self, path: Sequence[GeoPoint]) -> Handle: ...

    def remove(self, handle: Handle) -> None: ...

    def fit_bounds(self, south_west: GeoPoint, north_east: GeoPoint) -> None: ...

    def set_view(self, center: GeoPoint, zoom: int) -> None: ...


class FeatureCollectionSurface:
    """In-memory surface that keeps live features and renders them as GeoJSON"""

    def __init__(self, center: Optional[GeoPoint] = None, zoom: int = 13):
        self._ids = itertools.count(1)
        self.features: Dict[int, Dict] = {}
        self.center = center
        self.zoom = zoom
        self.viewport: Optional[Tuple[GeoPoint, GeoPoint]] = None

    def add_marker(self, point: GeoPoint, *, title: str, role: str) -> int:
        handle = next(self._ids)
        self.features[handle] = {
            'type': 'Feature',
            'id': handle,
            'geometry': {'type': 'Point', 'coordinates': [point.lng, point.lat]},
            'properties': {'role': role, 'title': title},
        }
        return handle

    def add_polyline(self, path: Sequence[GeoPoint]) -> int:
        handle = next(self._ids)
        self.features[handle] = {
            'type': 'Feature',
            'id': handle,
            'geometry': {'type': 'LineString', 'coordinates': [[p.lng, p.lat] for p in path]},
            'properties': {'role': 'route'},
        }
        return handle

    def remove(self, handle: int) -> None:
        if self.features.pop(handle, None) is None:
            logger.warning(f"Tried to remove unknown overlay handle {handle}")

    def fit_bounds(self, south_west: GeoPoint, north_east: GeoPoint) -> None:
        self.viewport = (south_west, north_east)

    def set_view(self, center: GeoPoint, zoom: int) -> None:
        self.center = center
        self.zoom = zoom
        self.viewport = None

    def roles(self) -> List[str]:
        return [f['properties']['role'] for f in self.features.values()]

    def to_geojson(self) -> Dict:
        return {
            'type': 'FeatureCollection',
            'features': list(self.features.values()),
            'view': {
                'center': self.center.to_dict() if self.center else None,
                'zoom': self.zoom,
                'bounds': [p.to_dict() for p in self.viewport] if self.viewport else None,
            },
        }


class OverlayManager:
    """Owns the user marker, selected marker, alternate markers and route line"""

    def __init__(self, surface: MapSurface):
        self.surface = surface
        self._user_marker: Optional[Handle] = None
        self._selected_marker: Optional[Handle] = None
        self._alternate_markers: List[Handle] = []
        self._route_line: Optional[Handle] = None

    @property
    def has_user_marker(self) -> bool:
        return self._user_marker is not None

    @property
    def has_selected(self) -> bool:
        return self._selected_marker is not None

    @property
    def has_route(self) -> bool:
        return self._route_line is not None

    @property
    def alternate_count(self) -> int:
        return len(self._alternate_markers)

    def _dispose(self, handle: Optional[Handle]) -> None:
        if handle is not None:
            self.surface.remove(handle)

    def show_user_marker(self, point: GeoPoint) -> None:
        self._dispose(self._user_marker)
        self._user_marker = None
        self._user_marker = self.surface.add_marker(point, title='Your Location', role='user')

    def show_alternate_markers(self, candidates: Iterable[Candidate]) -> None:
        for handle in self._alternate_markers:
            self.surface.remove(handle)
        self._alternate_markers = []
        for candidate in candidates:
            if candidate.location is None:
                continue
            self._alternate_markers.append(
                self.surface.add_marker(candidate.location, title=candidate.name, role='alternate')
            )

    def show_selected_marker(self, candidate: Candidate) -> None:
        self._dispose(self._selected_marker)
        self._selected_marker = None
        if candidate.location is not None:
            self._selected_marker = self.surface.add_marker(
                candidate.location, title=candidate.name or 'Destination', role='selected'
            )

    def draw_route(self, path: Sequence[GeoPoint]) -> None:
        self.clear_route()
        if path:
            self._route_line = self.surface.add_polyline(path)

    def clear_route(self) -> None:
        self._dispose(self._route_line)
        self._route_line = None

    def fit_bounds(self, points: Iterable[GeoPoint]) -> None:
        south_west, north_east = bounds(points)
        self.surface.fit_bounds(south_west, north_east)

    def center_on(self, point: GeoPoint, zoom: int = 15) -> None:
        self.surface.set_view(point, zoom)

    def clear_all(self) -> None:
        self.clear_route()
        self._dispose(self._selected_marker)
        self._selected_marker = None
        self.show_alternate_markers([])
        self._dispose(self._user_marker)
        self._user_marker = None
