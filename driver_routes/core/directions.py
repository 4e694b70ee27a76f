"""
Turn-by-turn directions and map links for an ordered list of stops.
"""
import logging
from abc import ABC, abstractmethod
import re
from typing import Any, Dict, List, Optional, Sequence

from driver_routes.core.constants import GOOGLE_MAPS_DIR_URL, MAX_DIRECTIONS_WAYPOINTS
from driver_routes.core.exceptions import DirectionsError, InputError
from driver_routes.core.maps_client import GoogleMapsClient
from driver_routes.core.route_types import Coordinate
from driver_routes.settings import (
    GOOGLE_DIRECTIONS_API_URL,
    GOOGLE_MAPS_LANGUAGE,
    GOOGLE_MAPS_REGION,
)

logger = logging.getLogger(__name__)

_HTML_TAG = re.compile(r'<[^>]+>')


def strip_html(text: str) -> str:
    return _HTML_TAG.sub('', text or '')


def build_map_url(points: Sequence[Coordinate]) -> Optional[str]:
    """Google Maps directions link visiting the points in order."""
    resolved = [point for point in points if point is not None and point.is_resolved]
    if len(resolved) < 2:
        return None
    return GOOGLE_MAPS_DIR_URL + '/'.join(point.as_param() for point in resolved)


class DirectionsProvider(ABC):
    @abstractmethod
    def get_directions(self, points: Sequence[Coordinate]) -> Dict[str, Any]:
        """
        Directions through the points in the given order.

        Returns a dict with 'segments' (one per leg) and 'overview_polyline'.
        Raises DirectionsError when the provider cannot answer.
        """


class GoogleDirectionsProvider(DirectionsProvider):
    def __init__(
        self,
        client: Optional[GoogleMapsClient] = None,
        url: str = GOOGLE_DIRECTIONS_API_URL,
        region: str = GOOGLE_MAPS_REGION,
        language: str = GOOGLE_MAPS_LANGUAGE,
    ):
        self.client = client or GoogleMapsClient()
        self.url = url
        self.region = region
        self.language = language

    def get_directions(self, points: Sequence[Coordinate]) -> Dict[str, Any]:
        points = list(points)
        if len(points) < 2:
            raise InputError("Directions need at least two points")
        if len(points) - 2 > MAX_DIRECTIONS_WAYPOINTS:
            raise DirectionsError(f"Too many waypoints for directions: {len(points) - 2}", status='MAX_WAYPOINTS_EXCEEDED')

        params = {
            'origin': points[0].as_param(),
            'destination': points[-1].as_param(),
            'mode': 'driving',
            'language': self.language,
            'region': self.region,
        }
        if len(points) > 2:
            # Keep our sequence; Google must not reorder the stops
            params['waypoints'] = 'optimize:false|' + '|'.join(point.as_param() for point in points[1:-1])

        data = self.client.get_json(self.url, params, error_cls=DirectionsError)
        status = data.get('status')
        if status != 'OK' or not data.get('routes'):
            raise DirectionsError(data.get('error_message') or f"Directions API error: {status}", status=status)
        return process_directions_response(data)


def process_directions_response(data: Dict[str, Any]) -> Dict[str, Any]:
    route = data['routes'][0]
    segments: List[Dict[str, Any]] = []
    for index, leg in enumerate(route.get('legs', [])):
        segments.append({
            'segment_index': index,
            'from_stop': index + 1,
            'to_stop': index + 2,
            'start_address': leg.get('start_address'),
            'end_address': leg.get('end_address'),
            'distance': leg.get('distance', {}),
            'duration': leg.get('duration', {}),
            'steps': [
                {
                    'instruction': strip_html(step.get('html_instructions', '')),
                    'distance': step.get('distance', {}),
                    'duration': step.get('duration', {}),
                    'maneuver': step.get('maneuver') or 'straight',
                }
                for step in leg.get('steps', [])
            ],
        })
    return {
        'segments': segments,
        'overview_polyline': route.get('overview_polyline', {}).get('points'),
        'summary': route.get('summary', ''),
    }
