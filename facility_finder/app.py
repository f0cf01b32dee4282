from flask import Flask, request, jsonify, g
from flask_cors import CORS
from typing import Dict, Optional
import asyncio
import logging
import json
import threading
from time import perf_counter

from .classifier import CandidateClassifier
from .config import get_settings
from .errors import InvalidSelectionError
from .geo import GeoPoint, distance
from .maps_service import GoogleMapsService
from .models import Candidate, RoutePlan, SelectionState
from .orchestrator import ResolutionOrchestrator
from .overlay import FeatureCollectionSurface, OverlayManager
from .providers import ClientLocationProvider
from .routes import format_kilometers

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler('app.log'),
        logging.StreamHandler()
    ]
)
logger = logging.getLogger(__name__)

app = Flask(__name__)
CORS(app)  # Enable CORS for all routes


# Per-request timing: record start time and log duration on completion
@app.before_request
def _start_timer():
    g._start_time = perf_counter()


@app.after_request
def _log_request_duration(response):
    start = getattr(g, '_start_time', None)
    if start is not None:
        duration_ms = (perf_counter() - start) * 1000.0
        response.headers['X-Process-Time-ms'] = f"{duration_ms:.1f}"
        logger.info(
            "request completed: method=%s path=%s status=%s duration_ms=%.1f remote_addr=%s",
            request.method,
            request.path,
            response.status_code,
            duration_ms,
            request.remote_addr,
        )
    return response


def build_orchestrator(settings) -> Optional[ResolutionOrchestrator]:
    """Wire the Google-backed providers into one orchestrator, or None without an API key."""
    if not settings.maps_configured:
        return None
    try:
        logger.info("Initializing Google Maps service...")
        maps_service = GoogleMapsService(settings.google_maps_api_key)
    except ValueError as e:
        logger.error(f"Error initializing Google Maps service: {e}")
        return None

    surface = FeatureCollectionSurface(center=GeoPoint(settings.default_lat, settings.default_lng))
    return ResolutionOrchestrator(
        ClientLocationProvider(maps_service),
        maps_service,
        maps_service,
        OverlayManager(surface),
        category=settings.category,
        radius_meters=settings.search_radius_meters,
        max_results=settings.max_results,
        travel_mode=settings.travel_mode,
        classifier=CandidateClassifier(settings.classifier_config()),
    )


# Initialize services
settings = get_settings()
logger.info(f"API Key found: {'Yes' if settings.maps_configured else 'No'}")
orchestrator = build_orchestrator(settings)

# Requests share one orchestrator; only one may drive it at a time
orchestrator_lock = threading.Lock()


def _run(coro):
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


# --- Serialization ---
def _candidate_to_dict(candidate: Candidate, origin: Optional[GeoPoint], selected_id: Optional[str]) -> Dict:
    meters = distance(origin, candidate.location) if origin and candidate.location else None
    return {
        'id': candidate.id,
        'name': candidate.name,
        'address': candidate.formatted_address,
        'location': candidate.location.to_dict() if candidate.location else None,
        'business_status': candidate.business_status.value,
        'rating_count': candidate.rating_count,
        'distance_meters': round(meters, 1) if meters is not None else None,
        'distance_text': format_kilometers(meters) if meters is not None else None,
        'selected': candidate.id == selected_id,
    }


def _route_to_dict(route: RoutePlan) -> Dict:
    return {
        'distance': route.distance_text,
        'duration': route.duration_text,
        'distance_meters': route.distance_meters,
        'duration_seconds': round(route.duration_millis / 1000),
        'path': [p.to_dict() for p in route.path],
        'steps': [
            {'instruction': s.instruction, 'distance': s.distance_text, 'duration': s.duration_text}
            for s in route.steps
        ],
    }


def state_to_dict(state: SelectionState) -> Dict:
    selected_id = state.selected.id if state.selected else None
    return {
        'phase': state.phase.value,
        'category': state.category,
        'origin': state.origin.to_dict() if state.origin else None,
        'candidates': [_candidate_to_dict(c, state.origin, selected_id) for c in state.ranked],
        'selected_id': selected_id,
        'route': _route_to_dict(state.route) if state.route else None,
        'error': {
            'stage': state.error.stage.value,
            'type': state.error.error_type,
            'message': state.error.message,
        } if state.error else None,
        'used_fallback': state.used_fallback,
    }


def _not_configured():
    logger.error("Google Maps API key not configured - cannot process request")
    return jsonify({'error': 'Google Maps API key not configured'}), 500


@app.route('/', methods=['GET'])
def health_check():
    """Health check endpoint"""
    return jsonify({
        'message': 'Nearest Facility Finder API is running!',
        'endpoints': {
            'search': '/api/search',
            'select': '/api/select',
            'state': '/api/state',
            'overlay': '/api/overlay',
            'config': '/api/config',
            'health': '/'
        },
        'maps_configured': orchestrator is not None,
        'phase': orchestrator.current_state().phase.value if orchestrator else None,
        'status': 'healthy'
    })


@app.route('/api/search', methods=['POST'])
def search():
    """
    Find the nearest facility and route to it
    Expected JSON: {"lat": 37.77, "lng": -122.41} or {"address": "Market St, San Francisco"}
    """
    logger.info("=== SEARCH REQUEST ===")
    if not orchestrator:
        return _not_configured()

    data = request.get_json(silent=True)
    logger.info(f"Search request data: {json.dumps(data) if data else 'None'}")
    if not data:
        return jsonify({'error': 'JSON data is required'}), 400

    point = address = None
    if 'lat' in data and 'lng' in data:
        try:
            point = GeoPoint.from_any(data)
        except (TypeError, ValueError):
            return jsonify({'error': 'lat and lng must be numbers'}), 400
        if not (-90 <= point.lat <= 90 and -180 <= point.lng <= 180):
            return jsonify({'error': 'lat/lng out of range'}), 400
    elif data.get('address'):
        address = str(data['address'])
    else:
        return jsonify({'error': 'Either lat/lng or address is required'}), 400

    location_provider = orchestrator.location_provider
    with orchestrator_lock:
        if point is not None:
            location_provider.report(point)
        else:
            location_provider.report_address(address)
        state = _run(orchestrator.search())
    logger.info(f"Search finished in phase {state.phase.value}")
    return jsonify({'success': state.error is None, 'data': state_to_dict(state)})


@app.route('/api/select', methods=['POST'])
def select_candidate():
    """
    Route to one of the alternates from the last search
    Expected JSON: {"candidate_id": "ChIJ..."}
    """
    if not orchestrator:
        return _not_configured()

    data = request.get_json(silent=True)
    if not data or not data.get('candidate_id'):
        return jsonify({'error': 'candidate_id is required'}), 400

    try:
        with orchestrator_lock:
            state = _run(orchestrator.select_candidate(str(data['candidate_id'])))
    except InvalidSelectionError as e:
        logger.warning(f"Rejected selection: {e}")
        return jsonify({'success': False, 'error': str(e)}), 409
    return jsonify({'success': state.error is None, 'data': state_to_dict(state)})


@app.route('/api/state', methods=['GET'])
def get_state():
    if not orchestrator:
        return _not_configured()
    return jsonify({'success': True, 'data': state_to_dict(orchestrator.current_state())})


@app.route('/api/overlay', methods=['GET'])
def get_overlay():
    """Markers and route line currently on the map, as GeoJSON"""
    if not orchestrator:
        return _not_configured()
    with orchestrator_lock:
        collection = orchestrator.overlay.surface.to_geojson()
    return jsonify(collection)


@app.route('/api/config', methods=['GET'])
def get_config():
    """
    Get frontend configuration including Google Maps API key
    """
    return jsonify({
        'success': True,
        'data': {
            'googleMapsApiKey': settings.google_maps_api_key,
            'category': settings.category,
            'defaultCenter': {'lat': settings.default_lat, 'lng': settings.default_lng},
            'apiBaseUrl': request.host_url.rstrip('/')
        }
    })


@app.errorhandler(404)
def not_found(error):
    return jsonify({'error': 'Endpoint not found'}), 404


@app.errorhandler(500)
def internal_error(error):
    return jsonify({'error': 'Internal server error'}), 500
