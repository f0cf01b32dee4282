import logging
from typing import Sequence, Tuple

from .geo import GeoPoint, distance
from .models import Candidate

logger = logging.getLogger(__name__)


def rank(origin: GeoPoint, candidates: Sequence[Candidate]) -> Tuple[Candidate, ...]:
    """
    Order candidates by great-circle distance from origin, nearest first.

    Nearby search blends relevance into its ordering, so results are always
    re-sorted here. Candidates without a location are dropped. The sort is
    stable: equal distances keep the provider's order.
    """
    located = []
    for candidate in candidates:
        if candidate.location is None:
            logger.debug(f"Dropping {candidate.id} ({candidate.name!r}) from ranking: no location")
            continue
        located.append((distance(origin, candidate.location), candidate))

    located.sort(key=lambda pair: pair[0])
    return tuple(candidate for _, candidate in located)
