import pytest

from facility_finder.errors import LocationUnavailableError
from facility_finder.orchestrator import ResolutionOrchestrator
from facility_finder.overlay import FeatureCollectionSurface, OverlayManager
from facility_finder.tests.fakes import FakeLocationProvider, FakeRoutingProvider, FakeSearchProvider


@pytest.fixture
def surface():
    return FeatureCollectionSurface()


@pytest.fixture
def overlay(surface):
    return OverlayManager(surface)


@pytest.fixture
def make_orchestrator(overlay):
    def _make(records=None, location=None, search=None, routing=None, **kwargs):
        return ResolutionOrchestrator(
            location or FakeLocationProvider(),
            search or FakeSearchProvider(records),
            routing or FakeRoutingProvider(),
            overlay,
            **kwargs,
        )
    return _make


@pytest.fixture
def unavailable_location():
    return FakeLocationProvider(error=LocationUnavailableError("User denied Geolocation"))
