"""
Provider interfaces consumed by the orchestrator, plus the location providers
that do not need a maps backend of their own.
"""

import logging
from typing import Dict, List, Optional, Protocol

from .errors import LocationUnavailableError
from .geo import GeoPoint

logger = logging.getLogger(__name__)


class LocationProvider(Protocol):
    async def get_current_location(self) -> GeoPoint: ...


class SearchProvider(Protocol):
    async def search_nearby(
        self, origin: GeoPoint, category: str, radius_meters: int, max_results: int
    ) -> List[Dict]: ...


class RoutingProvider(Protocol):
    async def compute_route(self, origin: GeoPoint, destination: GeoPoint, mode: str = "driving") -> Dict: ...


class Geocoder(Protocol):
    async def geocode_address_async(self, address: str) -> Optional[Dict]: ...


class StaticLocationProvider:
    """Always reports the same position"""

    def __init__(self, point: GeoPoint):
        self.point = point

    async def get_current_location(self) -> GeoPoint:
        return self.point


class ClientLocationProvider:
    """
    Reports the position last handed in by the client (typically the browser's
    geolocation fix). When the client only knows an address, it is geocoded
    on demand.
    """

    def __init__(self, geocoder: Optional[Geocoder] = None):
        self.geocoder = geocoder
        self._point: Optional[GeoPoint] = None
        self._address: Optional[str] = None

    def report(self, point: GeoPoint) -> None:
        self._point = point
        self._address = None

    def report_address(self, address: str) -> None:
        self._address = address
        self._point = None

    async def get_current_location(self) -> GeoPoint:
        if self._point is not None:
            return self._point
        if self._address:
            if self.geocoder is None:
                raise LocationUnavailableError("Address lookup is not configured")
            result = await self.geocoder.geocode_address_async(self._address)
            if not result:
                raise LocationUnavailableError(f"Could not geocode address: {self._address}")
            logger.info(f"Geocoded '{self._address}' to {result.get('formatted_address')}")
            return GeoPoint(result['lat'], result['lng'])
        raise LocationUnavailableError("No position has been reported by the client")
