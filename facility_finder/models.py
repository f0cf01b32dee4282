import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple

from .geo import GeoPoint

logger = logging.getLogger(__name__)


class BusinessStatus(str, Enum):
    OPERATIONAL = 'OPERATIONAL'
    CLOSED_TEMPORARILY = 'CLOSED_TEMPORARILY'
    CLOSED_PERMANENTLY = 'CLOSED_PERMANENTLY'
    UNKNOWN = 'UNKNOWN'

    @classmethod
    def parse(cls, value) -> "BusinessStatus":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).upper())
        except ValueError:
            return cls.UNKNOWN


def _read_types(value) -> FrozenSet[str]:
    if not value:
        return frozenset()
    if isinstance(value, str):
        return frozenset([value])
    try:
        return frozenset(str(t) for t in value if t)
    except TypeError:
        return frozenset()


@dataclass(frozen=True)
class Candidate:
    """A place returned by the search provider, before or after classification"""

    id: str
    name: str
    formatted_address: Optional[str] = None
    location: Optional[GeoPoint] = None
    primary_type: Optional[str] = None
    types: FrozenSet[str] = field(default_factory=frozenset)
    business_status: BusinessStatus = BusinessStatus.UNKNOWN
    rating_count: Optional[int] = None

    @classmethod
    def from_record(cls, record: Dict) -> Optional["Candidate"]:
        """
        Normalize a raw search record. Any field may be missing.
        Returns None for records without an id, since they can never be selected.
        """
        if not isinstance(record, dict):
            logger.warning(f"Skipping search record that is not a mapping: {record!r}")
            return None

        candidate_id = record.get('id')
        if not candidate_id:
            logger.warning(f"Skipping search record without an id: {record.get('name')!r}")
            return None

        location = None
        if record.get('location') is not None:
            try:
                location = GeoPoint.from_any(record['location'])
            except (TypeError, ValueError) as e:
                logger.warning(f"Ignoring unreadable location for {candidate_id}: {e}")

        rating_count = record.get('ratingCount')
        if rating_count is not None:
            try:
                rating_count = int(rating_count)
            except (TypeError, ValueError, OverflowError):
                rating_count = None
            if rating_count is not None and rating_count < 0:
                rating_count = None

        return cls(
            id=str(candidate_id),
            name=record.get('name') or '',
            formatted_address=record.get('address') or None,
            location=location,
            primary_type=record.get('primaryType') or None,
            types=_read_types(record.get('types')),
            business_status=BusinessStatus.parse(record.get('businessStatus')),
            rating_count=rating_count,
        )


@dataclass(frozen=True)
class RouteStep:
    instruction: str
    distance_text: str
    duration_text: str


@dataclass(frozen=True)
class RoutePlan:
    distance_meters: float
    duration_millis: float
    distance_text: str
    duration_text: str
    path: Tuple[GeoPoint, ...]
    steps: Tuple[RouteStep, ...]


class Phase(str, Enum):
    IDLE = 'idle'
    LOCATING = 'locating'
    SEARCHING = 'searching'
    EMPTY = 'empty'
    RANKED = 'ranked'
    ROUTING = 'routing'
    ROUTE_READY = 'route_ready'
    ROUTE_ERROR = 'route_error'
    FATAL_ERROR = 'fatal_error'


class Stage(str, Enum):
    LOCATION = 'location'
    SEARCH = 'search'
    ROUTING = 'routing'
    SELECTION = 'selection'


@dataclass(frozen=True)
class StageFailure:
    stage: Stage
    error_type: str
    message: str

    @classmethod
    def from_exception(cls, stage: Stage, exc: BaseException) -> "StageFailure":
        return cls(stage=stage, error_type=type(exc).__name__, message=str(exc))


@dataclass(frozen=True)
class SelectionState:
    """Snapshot of everything the orchestrator knows about the current run"""

    phase: Phase = Phase.IDLE
    category: Optional[str] = None
    origin: Optional[GeoPoint] = None
    ranked: Tuple[Candidate, ...] = ()
    selected: Optional[Candidate] = None
    route: Optional[RoutePlan] = None
    error: Optional[StageFailure] = None
    used_fallback: bool = False

    def find(self, candidate_id: str) -> Optional[Candidate]:
        for candidate in self.ranked:
            if candidate.id == candidate_id:
                return candidate
        return None
