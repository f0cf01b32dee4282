"""Tests for GoogleMapsService: mapping Google responses onto raw provider records."""

import asyncio
from unittest.mock import MagicMock

import pytest
from googlemaps.convert import encode_polyline
from googlemaps.exceptions import ApiError, Timeout

from facility_finder.errors import RoutingProviderError, SearchProviderError
from facility_finder.geo import GeoPoint
from facility_finder.maps_service import GoogleMapsService, strip_html

ORIGIN = GeoPoint(37.7749, -122.4194)
DESTINATION = GeoPoint(37.7767, -122.4194)


@pytest.fixture
def service():
    svc = GoogleMapsService("", client=MagicMock())
    yield svc
    svc.cleanup()


def _place(place_id, **extra):
    place = {
        'place_id': place_id,
        'name': f"{place_id} Hospital",
        'vicinity': "1 Main St",
        'geometry': {'location': {'lat': 37.78, 'lng': -122.41}},
        'types': ['hospital', 'health', 'point_of_interest'],
    }
    place.update(extra)
    return place


def _directions(legs, polyline_points=((37.7749, -122.4194), (37.7767, -122.4194))):
    return [{
        'legs': legs,
        'overview_polyline': {'points': encode_polyline(list(polyline_points))},
    }]


def _leg(*steps, meters=1000, seconds=120):
    return {
        'distance': {'value': meters},
        'duration': {'value': seconds},
        'steps': [
            {'html_instructions': text, 'distance': {'value': 100}, 'duration': {'value': 30}}
            for text in steps
        ],
    }


def test_requires_api_key_without_client():
    with pytest.raises(ValueError):
        GoogleMapsService("your_api_key_here")


def test_places_are_mapped_to_records(service):
    service.client.places_nearby.return_value = {'results': [
        _place("a", business_status="OPERATIONAL", user_ratings_total=120),
        _place("b"),
    ]}
    records = service.find_places_nearby(ORIGIN, "hospital", radius=5000, max_results=20)

    service.client.places_nearby.assert_called_once_with(
        location=(37.7749, -122.4194), radius=5000, type="hospital", keyword="hospital"
    )
    assert records[0] == {
        'id': 'a',
        'name': 'a Hospital',
        'address': '1 Main St',
        'types': ['hospital', 'health', 'point_of_interest'],
        'location': {'lat': 37.78, 'lng': -122.41},
        'primaryType': 'hospital',
        'businessStatus': 'OPERATIONAL',
        'ratingCount': 120,
    }
    assert 'businessStatus' not in records[1]
    assert 'ratingCount' not in records[1]


def test_places_are_capped_at_max_results(service):
    service.client.places_nearby.return_value = {'results': [_place(str(i)) for i in range(20)]}
    assert len(service.find_places_nearby(ORIGIN, "hospital", max_results=3)) == 3


def test_places_without_geometry_have_no_location(service):
    service.client.places_nearby.return_value = {'results': [_place("a", geometry={})]}
    assert 'location' not in service.find_places_nearby(ORIGIN, "hospital")[0]


@pytest.mark.parametrize("error", [ApiError("REQUEST_DENIED"), Timeout()])
def test_places_errors_become_search_provider_errors(service, error):
    service.client.places_nearby.side_effect = error
    with pytest.raises(SearchProviderError):
        service.find_places_nearby(ORIGIN, "hospital")


def test_route_is_mapped_to_record(service):
    service.client.directions.return_value = _directions([
        _leg("Head <b>north</b>", "Turn <b>left</b> onto <b>Market St</b>", meters=1000, seconds=120),
        _leg("Arrive", meters=1350, seconds=300),
    ])
    route = service.get_route(ORIGIN, DESTINATION)

    service.client.directions.assert_called_once_with(
        origin=ORIGIN.as_tuple(), destination=DESTINATION.as_tuple(), mode="driving", alternatives=False
    )
    assert route['distanceMeters'] == 2350
    assert route['durationMillis'] == 420000
    assert len(route['path']) == 2
    assert route['path'][0]['lat'] == pytest.approx(37.7749)
    assert [s['instructions'] for leg in route['legs'] for s in leg['steps']] == [
        "Head north", "Turn left onto Market St", "Arrive"
    ]
    assert route['legs'][0]['steps'][0]['durationMillis'] == 30000


def test_no_route_is_a_routing_error(service):
    service.client.directions.return_value = []
    with pytest.raises(RoutingProviderError):
        service.get_route(ORIGIN, DESTINATION)


def test_directions_api_error_is_a_routing_error(service):
    service.client.directions.side_effect = ApiError("ZERO_RESULTS")
    with pytest.raises(RoutingProviderError):
        service.get_route(ORIGIN, DESTINATION)


def test_geocode(service):
    service.client.geocode.return_value = [{
        'formatted_address': "1 Dr Carlton B Goodlett Pl, San Francisco",
        'geometry': {'location': {'lat': 37.779, 'lng': -122.419}},
    }]
    assert service.geocode_address("City Hall SF") == {
        'formatted_address': "1 Dr Carlton B Goodlett Pl, San Francisco",
        'lat': 37.779,
        'lng': -122.419,
    }


def test_geocode_miss_and_error_return_none(service):
    service.client.geocode.return_value = []
    assert service.geocode_address("nowhere") is None
    service.client.geocode.side_effect = ApiError("OVER_QUERY_LIMIT")
    assert service.geocode_address("nowhere") is None


def test_async_wrappers_delegate(service):
    service.client.places_nearby.return_value = {'results': [_place("a")]}
    service.client.directions.return_value = _directions([_leg("Go")])

    async def scenario():
        records = await service.search_nearby(ORIGIN, "hospital", 5000, 20)
        route = await service.compute_route(ORIGIN, DESTINATION, "driving")
        return records, route

    records, route = asyncio.run(scenario())
    assert records[0]['id'] == "a"
    assert route['legs'][0]['steps'][0]['instructions'] == "Go"


def test_strip_html():
    assert strip_html('Turn <b>right</b><div style="x">Destination will be on the left</div>') == \
        "Turn right Destination will be on the left"
    assert strip_html(None) == ""
