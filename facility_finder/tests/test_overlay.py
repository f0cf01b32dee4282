from facility_finder.geo import GeoPoint
from facility_finder.models import Candidate


def candidates(n, lat=37.78):
    return [Candidate(id=str(i), name=f"Hospital {i}", location=GeoPoint(lat + i * 0.001, -122.41))
            for i in range(n)]


def test_alternates_replace_instead_of_accumulating(overlay, surface):
    overlay.show_alternate_markers(candidates(5))
    overlay.show_alternate_markers(candidates(3))
    assert overlay.alternate_count == 3
    assert surface.roles().count('alternate') == 3
    overlay.show_alternate_markers([])
    assert surface.features == {}


def test_old_alternate_handles_are_removed_before_new_ones_exist(overlay, surface):
    events = []
    original_add, original_remove = surface.add_marker, surface.remove

    def add_marker(point, *, title, role):
        events.append('add')
        return original_add(point, title=title, role=role)

    def remove(handle):
        events.append('remove')
        original_remove(handle)

    surface.add_marker, surface.remove = add_marker, remove
    overlay.show_alternate_markers(candidates(2))
    overlay.show_alternate_markers(candidates(2))
    assert events == ['add', 'add', 'remove', 'remove', 'add', 'add']


def test_single_selected_marker_and_route_line(overlay, surface):
    first, second = candidates(2)
    overlay.show_selected_marker(first)
    overlay.show_selected_marker(second)
    overlay.draw_route([GeoPoint(0, 0), GeoPoint(1, 1)])
    overlay.draw_route([GeoPoint(0, 0), GeoPoint(2, 2)])
    assert surface.roles().count('selected') == 1
    assert surface.roles().count('route') == 1
    route = next(f for f in surface.features.values() if f['properties']['role'] == 'route')
    assert route['geometry']['coordinates'] == [[0, 0], [2, 2]]


def test_user_marker_is_replaced(overlay, surface):
    overlay.show_user_marker(GeoPoint(1, 1))
    overlay.show_user_marker(GeoPoint(2, 2))
    assert surface.roles() == ['user']
    marker = next(iter(surface.features.values()))
    assert marker['geometry']['coordinates'] == [2, 2]


def test_clear_route_keeps_markers(overlay, surface):
    overlay.show_user_marker(GeoPoint(1, 1))
    overlay.draw_route([GeoPoint(0, 0), GeoPoint(1, 1)])
    overlay.clear_route()
    assert not overlay.has_route
    assert surface.roles() == ['user']


def test_clear_all_disposes_everything(overlay, surface):
    overlay.show_user_marker(GeoPoint(1, 1))
    overlay.show_alternate_markers(candidates(4))
    overlay.show_selected_marker(candidates(1)[0])
    overlay.draw_route([GeoPoint(0, 0), GeoPoint(1, 1)])
    overlay.clear_all()
    assert surface.features == {}
    assert not (overlay.has_user_marker or overlay.has_selected or overlay.has_route)
    assert overlay.alternate_count == 0


def test_view_helpers(overlay, surface):
    overlay.center_on(GeoPoint(37.7749, -122.4194))
    assert surface.center == GeoPoint(37.7749, -122.4194)
    assert surface.zoom == 15
    overlay.fit_bounds([GeoPoint(1, 5), GeoPoint(-2, 7)])
    view = surface.to_geojson()['view']
    assert view['bounds'] == [{'lat': -2, 'lng': 5}, {'lat': 1, 'lng': 7}]


def test_geojson_uses_lng_lat_order(overlay, surface):
    overlay.show_user_marker(GeoPoint(37.0, -122.0))
    collection = surface.to_geojson()
    assert collection['type'] == 'FeatureCollection'
    assert collection['features'][0]['geometry'] == {'type': 'Point', 'coordinates': [-122.0, 37.0]}
