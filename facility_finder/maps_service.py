import googlemaps
from googlemaps.convert import decode_polyline
from googlemaps.exceptions import ApiError, HTTPError, Timeout, TransportError
from typing import Dict, List, Optional
import asyncio
import concurrent.futures
import logging
import re

from .errors import RoutingProviderError, SearchProviderError
from .geo import GeoPoint

logger = logging.getLogger(__name__)

# --- Module-level constants ---
PLACES_PAGE_SIZE = 20           # Nearby Search returns at most 20 results per page
_TAG_RE = re.compile(r'<[^>]+>')
_GOOGLE_ERRORS = (ApiError, HTTPError, Timeout, TransportError)


def strip_html(text: Optional[str]) -> str:
    """Directions instructions come back as HTML fragments ("Turn <b>left</b>")"""
    if not text:
        return ''
    return ' '.join(_TAG_RE.sub(' ', text).split())


class GoogleMapsService:
    """Search, routing and geocoding backed by the Google Maps web services"""

    def __init__(self, api_key: str, client: Optional[googlemaps.Client] = None):
        if client is None:
            if not api_key or api_key == "your_api_key_here":
                raise ValueError("Valid Google Maps API key is required")
            client = googlemaps.Client(key=api_key)
        self.client = client
        self.executor = concurrent.futures.ThreadPoolExecutor(max_workers=4)

    def cleanup(self):
        """Clean up resources"""
        if hasattr(self, 'executor'):
            self.executor.shutdown(wait=True)

    def geocode_address(self, address: str) -> Optional[Dict]:
        """
        Geocode an address using Google Maps Geocoding API
        Returns formatted address and coordinates, or None when nothing matched
        """
        try:
            result = self.client.geocode(address)
        except _GOOGLE_ERRORS as e:
            logger.error(f"Geocoding error: {e}")
            return None
        if result:
            location = result[0]
            return {
                'formatted_address': location['formatted_address'],
                'lat': location['geometry']['location']['lat'],
                'lng': location['geometry']['location']['lng']
            }
        return None

    def find_places_nearby(self, location: GeoPoint, category: str, radius: int = 5000,
                           max_results: int = PLACES_PAGE_SIZE) -> List[Dict]:
        """
        Find places of one type around a location.
        Returns raw candidate records (id, name, address, location, primaryType,
        types, businessStatus, ratingCount); fields Google omits are left out.
        """
        try:
            places_result = self.client.places_nearby(
                location=location.as_tuple(),
                radius=radius,
                type=category,
                keyword=category.replace('_', ' '),
            )
        except _GOOGLE_ERRORS as e:
            logger.error(f"Places search error: {e}")
            raise SearchProviderError(f"Nearby search failed: {e}") from e

        records = []
        for place in places_result.get('results', [])[:max_results]:
            record = {
                'id': place.get('place_id'),
                'name': place.get('name'),
                'address': place.get('vicinity') or place.get('formatted_address'),
                'types': place.get('types', []),
            }
            geometry_location = place.get('geometry', {}).get('location')
            if geometry_location:
                record['location'] = {'lat': geometry_location['lat'], 'lng': geometry_location['lng']}
            if record['types']:
                record['primaryType'] = record['types'][0]
            if 'business_status' in place:
                record['businessStatus'] = place['business_status']
            if 'user_ratings_total' in place:
                record['ratingCount'] = place['user_ratings_total']
            records.append(record)

        logger.info(f"Nearby search for {category} within {radius}m returned {len(records)} places")
        return records

    def get_route(self, origin: GeoPoint, destination: GeoPoint, mode: str = "driving") -> Dict:
        """
        Get the route between two points using Google Maps Directions API.
        Returns a raw route record: distanceMeters, durationMillis, path, legs[].steps[].
        """
        try:
            directions_result = self.client.directions(
                origin=origin.as_tuple(),
                destination=destination.as_tuple(),
                mode=mode,
                alternatives=False
            )
        except _GOOGLE_ERRORS as e:
            logger.error(f"Directions error: {e}")
            raise RoutingProviderError(f"Directions request failed: {e}") from e

        if not directions_result:
            raise RoutingProviderError("Directions returned no route")

        route = directions_result[0]
        # Distance/duration across all legs (usually 1)
        total_distance = 0
        total_duration = 0
        legs = []
        for leg in route.get('legs', []):
            total_distance += leg.get('distance', {}).get('value', 0)
            total_duration += leg.get('duration', {}).get('value', 0)
            legs.append({
                'steps': [
                    {
                        'instructions': strip_html(step.get('html_instructions')),
                        'distanceMeters': step.get('distance', {}).get('value'),
                        'durationMillis': step.get('duration', {}).get('value', 0) * 1000,
                    }
                    for step in leg.get('steps', [])
                ]
            })

        overview_polyline = route.get('overview_polyline', {}).get('points')
        return {
            'distanceMeters': total_distance,
            'durationMillis': total_duration * 1000,
            'path': decode_polyline(overview_polyline) if overview_polyline else [],
            'legs': legs,
        }

    # Async wrappers: these are the provider methods the orchestrator awaits
    async def geocode_address_async(self, address: str) -> Optional[Dict]:
        """Async wrapper for geocode_address"""
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(self.executor, self.geocode_address, address)

    async def search_nearby(self, origin: GeoPoint, category: str, radius_meters: int,
                            max_results: int) -> List[Dict]:
        """Async wrapper for find_places_nearby"""
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(
            self.executor, self.find_places_nearby, origin, category, radius_meters, max_results
        )

    async def compute_route(self, origin: GeoPoint, destination: GeoPoint, mode: str = "driving") -> Dict:
        """Async wrapper for get_route"""
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(self.executor, self.get_route, origin, destination, mode)
