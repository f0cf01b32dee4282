"""Normalize a routing provider's route record into a RoutePlan."""

import logging
import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, Optional

from .errors import RouteExtractionError
from .geo import GeoPoint
from .models import RoutePlan, RouteStep

logger = logging.getLogger(__name__)

DEFAULT_INSTRUCTION = "Continue"


def _half_up(value: Decimal, exponent: str) -> Decimal:
    return value.quantize(Decimal(exponent), rounding=ROUND_HALF_UP)


def format_kilometers(meters: float) -> str:
    """2350 -> '2.4 km'"""
    return f"{_half_up(Decimal(str(meters)) / 1000, '0.1')} km"


def format_minutes(millis: float) -> str:
    """420000 -> '7 min'"""
    return f"{_half_up(Decimal(str(millis)) / 60000, '1')} min"


def format_meters(meters: float) -> str:
    return f"{_half_up(Decimal(str(meters)), '1')} m"


def format_seconds(millis: float) -> str:
    return f"{_half_up(Decimal(str(millis)) / 1000, '1')} s"


def _number(value) -> Optional[float]:
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def extract_plan(raw_route: Dict) -> RoutePlan:
    """
    Build a RoutePlan from a raw route record
    (distanceMeters, durationMillis, path, legs[].steps[]).

    Legs are flattened front to back, keeping step order exactly as returned.
    Raises RouteExtractionError when there is no drawable path.
    """
    if not isinstance(raw_route, dict):
        raise RouteExtractionError(f"Route record must be a mapping, got {type(raw_route).__name__}")

    raw_path = raw_route.get('path')
    if not raw_path:
        raise RouteExtractionError("Route has no path")
    try:
        path = tuple(GeoPoint.from_any(p) for p in raw_path)
    except (TypeError, ValueError) as e:
        raise RouteExtractionError(f"Route path is unreadable: {e}") from e

    steps: List[RouteStep] = []
    step_distance_total = 0.0
    step_duration_total = 0.0
    for leg_index, leg in enumerate(raw_route.get('legs') or []):
        if not isinstance(leg, dict):
            raise RouteExtractionError(f"Route leg {leg_index} is unreadable: {leg!r}")
        for step_index, step in enumerate(leg.get('steps') or []):
            if not isinstance(step, dict):
                raise RouteExtractionError(f"Route leg {leg_index} step {step_index} is unreadable: {step!r}")
            instruction = step.get('instructions')
            if not isinstance(instruction, str):
                instruction = ''
            step_distance = _number(step.get('distanceMeters')) or 0.0
            step_duration = _number(step.get('durationMillis')) or 0.0
            step_distance_total += step_distance
            step_duration_total += step_duration
            steps.append(RouteStep(
                instruction=instruction.strip() or DEFAULT_INSTRUCTION,
                distance_text=format_meters(step_distance),
                duration_text=format_seconds(step_duration),
            ))

    distance_meters = _number(raw_route.get('distanceMeters'))
    if distance_meters is None:
        logger.warning("Route has no distanceMeters; summing step distances")
        distance_meters = step_distance_total
    duration_millis = _number(raw_route.get('durationMillis'))
    if duration_millis is None:
        logger.warning("Route has no durationMillis; summing step durations")
        duration_millis = step_duration_total

    return RoutePlan(
        distance_meters=distance_meters,
        duration_millis=duration_millis,
        distance_text=format_kilometers(distance_meters),
        duration_text=format_minutes(duration_millis),
        path=path,
        steps=tuple(steps),
    )
