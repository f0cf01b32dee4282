"""
Resolution orchestrator: location -> search -> classify/rank -> select -> route.

    IDLE -> LOCATING -> SEARCHING -> EMPTY
                                  -> RANKED -> ROUTING -> ROUTE_READY | ROUTE_ERROR
    (any) -> FATAL_ERROR   when the location or search provider fails

All state lives in one immutable SelectionState that is swapped, never
edited. Every search() and select_candidate() bumps a generation counter and
each provider completion checks it before touching state or the overlay, so
a superseded request can finish in any order without effect.
"""

import logging
from dataclasses import replace
from enum import Enum
from typing import Callable, List, Optional, Type

from .classifier import CandidateClassifier
from .errors import (
    InvalidSelectionError,
    LocationUnavailableError,
    NoCandidatesFound,
    RouteExtractionError,
    RoutingProviderError,
    SearchProviderError,
)
from .models import Candidate, Phase, SelectionState, Stage, StageFailure
from .overlay import OverlayManager
from .providers import LocationProvider, RoutingProvider, SearchProvider
from .ranking import rank
from .routes import extract_plan

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "hospital"
DEFAULT_RADIUS_METERS = 5000
DEFAULT_MAX_RESULTS = 20
USER_ZOOM = 15

SELECTABLE_PHASES = frozenset({Phase.RANKED, Phase.ROUTING, Phase.ROUTE_READY, Phase.ROUTE_ERROR})


class StateEvent(str, Enum):
    PHASE_CHANGED = 'phase_changed'
    RANKED = 'ranked'
    ROUTE_READY = 'route_ready'
    ERROR = 'error'


Listener = Callable[[StateEvent, SelectionState], None]


class ResolutionOrchestrator:
    """Finds the nearest facility of one category and keeps a route to the chosen one"""

    def __init__(
        self,
        location_provider: LocationProvider,
        search_provider: SearchProvider,
        routing_provider: RoutingProvider,
        overlay: OverlayManager,
        *,
        category: str = DEFAULT_CATEGORY,
        radius_meters: int = DEFAULT_RADIUS_METERS,
        max_results: int = DEFAULT_MAX_RESULTS,
        travel_mode: str = "driving",
        classifier: Optional[CandidateClassifier] = None,
    ):
        self.location_provider = location_provider
        self.search_provider = search_provider
        self.routing_provider = routing_provider
        self.overlay = overlay
        self.category = category
        self.radius_meters = radius_meters
        self.max_results = max_results
        self.travel_mode = travel_mode
        self.classifier = classifier or CandidateClassifier()

        self._state = SelectionState(category=category)
        self._generation = 0
        self._listeners: List[Listener] = []

    # --- Caller surface ---
    def current_state(self) -> SelectionState:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a state-change listener; returns a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def search(self) -> SelectionState:
        """
        Start a fresh run. Accepted from every phase; a run still in flight is
        superseded and its late results are ignored.
        """
        self._generation += 1
        generation = self._generation
        logger.info(f"Search #{generation}: looking for the nearest {self.category}")

        self.overlay.clear_all()
        self._publish(SelectionState(phase=Phase.LOCATING, category=self.category))

        try:
            origin = await self._await_provider(
                LocationUnavailableError, self.location_provider.get_current_location()
            )
        except LocationUnavailableError as e:
            return self._fail(generation, Stage.LOCATION, e)
        if self._is_stale(generation, "location"):
            return self._state

        self.overlay.center_on(origin, USER_ZOOM)
        self.overlay.show_user_marker(origin)
        self._publish(replace(self._state, phase=Phase.SEARCHING, origin=origin))

        try:
            records = await self._await_provider(
                SearchProviderError,
                self.search_provider.search_nearby(origin, self.category, self.radius_meters, self.max_results),
            )
        except SearchProviderError as e:
            return self._fail(generation, Stage.SEARCH, e)
        if self._is_stale(generation, "search"):
            return self._state

        candidates = [c for c in (Candidate.from_record(r) for r in records or []) if c is not None]
        accepted, used_fallback = self.classifier.filter(candidates, self.category)
        ranked = rank(origin, accepted)

        if not ranked:
            empty = NoCandidatesFound(f"No {self.category.replace('_', ' ')} found nearby")
            logger.info(f"Search #{generation}: {empty} ({len(candidates)} raw results)")
            self._publish(replace(
                self._state,
                phase=Phase.EMPTY,
                used_fallback=used_fallback,
                error=StageFailure.from_exception(Stage.SEARCH, empty),
            ))
            return self._state

        logger.info(f"Search #{generation}: ranked {len(ranked)} candidates, nearest is {ranked[0].name!r}")
        self._publish(
            replace(self._state, phase=Phase.RANKED, ranked=ranked, used_fallback=used_fallback),
            StateEvent.RANKED,
        )
        return await self._route_to(generation, ranked[0])

    async def select_candidate(self, candidate_id: str) -> SelectionState:
        """
        Route to another candidate from the current ranked list, reusing the
        last origin. Raises InvalidSelectionError without touching state when
        the id is unknown or there is no ranked list to choose from.
        """
        state = self._state
        if state.phase not in SELECTABLE_PHASES:
            raise InvalidSelectionError(f"Nothing to select while {state.phase.value}")
        candidate = state.find(candidate_id)
        if candidate is None:
            raise InvalidSelectionError(f"{candidate_id!r} is not one of the current results")

        self._generation += 1
        logger.info(f"Selection #{self._generation}: switching to {candidate.name!r}")
        return await self._route_to(self._generation, candidate)

    # --- Internals ---
    async def _route_to(self, generation: int, candidate: Candidate) -> SelectionState:
        state = self._state
        self.overlay.show_alternate_markers([c for c in state.ranked if c.id != candidate.id])
        self.overlay.show_selected_marker(candidate)
        self.overlay.clear_route()
        self._publish(replace(state, phase=Phase.ROUTING, selected=candidate, route=None, error=None))

        try:
            raw_route = await self._await_provider(
                RoutingProviderError,
                self.routing_provider.compute_route(state.origin, candidate.location, self.travel_mode),
            )
            if self._is_stale(generation, "routing"):
                return self._state
            plan = extract_plan(raw_route)
        except (RoutingProviderError, RouteExtractionError) as e:
            if self._is_stale(generation, "routing"):
                return self._state
            logger.warning(f"Routing to {candidate.name!r} failed: {e}")
            self.overlay.clear_route()
            self._publish(
                replace(self._state, phase=Phase.ROUTE_ERROR, route=None,
                        error=StageFailure.from_exception(Stage.ROUTING, e)),
                StateEvent.ERROR,
            )
            return self._state

        self.overlay.draw_route(plan.path)
        self.overlay.fit_bounds((state.origin, candidate.location) + plan.path)
        logger.info(f"Route to {candidate.name!r}: {plan.distance_text}, {plan.duration_text}")
        self._publish(replace(self._state, phase=Phase.ROUTE_READY, route=plan), StateEvent.ROUTE_READY)
        return self._state

    @staticmethod
    async def _await_provider(error_type: Type[Exception], awaitable):
        """Await a provider call, folding unexpected exceptions into the stage's error type."""
        try:
            return await awaitable
        except error_type:
            raise
        except Exception as e:
            raise error_type(f"{type(e).__name__}: {e}") from e

    def _fail(self, generation: int, stage: Stage, exc: Exception) -> SelectionState:
        if self._is_stale(generation, stage.value):
            return self._state
        logger.error(f"{stage.value} stage failed: {exc}")
        self.overlay.clear_all()
        self._publish(
            SelectionState(
                phase=Phase.FATAL_ERROR,
                category=self.category,
                error=StageFailure.from_exception(stage, exc),
            ),
            StateEvent.ERROR,
        )
        return self._state

    def _is_stale(self, generation: int, what: str) -> bool:
        if generation != self._generation:
            logger.debug(f"Discarding stale {what} result from request #{generation} (now #{self._generation})")
            return True
        return False

    def _publish(self, state: SelectionState, *events: StateEvent) -> None:
        previous = self._state
        self._state = state
        if state.phase != previous.phase:
            logger.info(f"{previous.phase.value} -> {state.phase.value}")
            events = (StateEvent.PHASE_CHANGED,) + events
        for event in events:
            for listener in list(self._listeners):
                try:
                    listener(event, state)
                except Exception:
                    logger.exception(f"State listener failed on {event.value}")
