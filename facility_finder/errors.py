"""Error taxonomy shared by the providers and the orchestrator."""


class FacilityFinderError(Exception):
    """Base class for every error raised by the facility finder."""


class LocationUnavailableError(FacilityFinderError):
    """The user's position could not be obtained (no permission, no fix, timeout)."""


class SearchProviderError(FacilityFinderError):
    """The nearby search call failed."""


class RoutingProviderError(FacilityFinderError):
    """The directions call failed."""


class RouteExtractionError(FacilityFinderError):
    """A provider route could not be turned into a RoutePlan."""


class InvalidSelectionError(FacilityFinderError):
    """A candidate was selected that is not part of the current ranked list."""


class NoCandidatesFound(FacilityFinderError):
    """The search succeeded but produced nothing to route to."""
