"""
Travel distance and duration between delivery points.

The Google Distance Matrix API limits a single request to 25 origins, 25
destinations and 100 elements, so larger matrices are requested block by
block and stitched back together. Every cell keeps its own status: a matrix
with some failed cells is still a usable matrix.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple
import logging
import math

import numpy as np

from driver_routes.core.constants import MAX_MATRIX_DIMENSION, MAX_MATRIX_ELEMENTS_PER_REQUEST
from driver_routes.core.exceptions import DistanceMatrixError, InputError
from driver_routes.core.maps_client import GoogleMapsClient
from driver_routes.core.route_types import Coordinate, DeliveryOrder, DistanceEdge
from driver_routes.settings import (
    GOOGLE_DISTANCE_MATRIX_API_URL,
    GOOGLE_MAPS_LANGUAGE,
    GOOGLE_MAPS_REGION,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MatrixCell:
    status: str
    distance_meters: Optional[int] = None
    duration_seconds: Optional[int] = None
    duration_in_traffic_seconds: Optional[int] = None
    distance_text: str = ''
    duration_text: str = ''
    duration_in_traffic_text: str = ''
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == 'OK'

    def to_edge(self) -> DistanceEdge:
        """Convert an OK cell to an edge; traffic duration falls back to plain duration."""
        traffic_seconds = self.duration_in_traffic_seconds
        traffic_text = self.duration_in_traffic_text
        if traffic_seconds is None:
            traffic_seconds = self.duration_seconds
            traffic_text = self.duration_text
        return DistanceEdge(
            distance_meters=self.distance_meters,
            duration_seconds=self.duration_seconds,
            duration_in_traffic_seconds=traffic_seconds,
            distance_text=self.distance_text,
            duration_text=self.duration_text,
            duration_in_traffic_text=traffic_text,
        )

    @classmethod
    def from_element(cls, element: Dict) -> 'MatrixCell':
        status = element.get('status', 'UNKNOWN_ERROR')
        if status != 'OK':
            return cls(status=status, error=f"Element status: {status}")
        distance = element.get('distance', {})
        duration = element.get('duration', {})
        traffic = element.get('duration_in_traffic')
        return cls(
            status='OK',
            distance_meters=distance.get('value', 0),
            duration_seconds=duration.get('value', 0),
            duration_in_traffic_seconds=traffic.get('value') if traffic else None,
            distance_text=distance.get('text', ''),
            duration_text=duration.get('text', ''),
            duration_in_traffic_text=traffic.get('text', '') if traffic else '',
        )


@dataclass
class DistanceMatrixResult:
    origins: List[Coordinate]
    destinations: List[Coordinate]
    rows: List[List[MatrixCell]]
    origin_addresses: List[str] = field(default_factory=list)
    destination_addresses: List[str] = field(default_factory=list)

    @property
    def total_calculations(self) -> int:
        return len(self.origins) * len(self.destinations)

    @property
    def successful_calculations(self) -> int:
        return int(np.count_nonzero(~np.isnan(self.as_arrays()[0])))

    def cell(self, i: int, j: int) -> MatrixCell:
        return self.rows[i][j]

    def as_arrays(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Distance (meters), duration and traffic duration (seconds) arrays.

        Failed cells are NaN.
        """
        shape = (len(self.origins), len(self.destinations))
        distances = np.full(shape, np.nan)
        durations = np.full(shape, np.nan)
        traffic = np.full(shape, np.nan)
        for i, row in enumerate(self.rows):
            for j, cell in enumerate(row):
                if not cell.ok:
                    continue
                edge = cell.to_edge()
                distances[i, j] = edge.distance_meters
                durations[i, j] = edge.duration_seconds
                traffic[i, j] = edge.duration_in_traffic_seconds
        return distances, durations, traffic


@dataclass
class DeliveryDistances:
    """Off-diagonal OK edges between geocoded orders, keyed by (from_id, to_id)."""
    order_ids: List[str]
    edges: Dict[Tuple[str, str], DistanceEdge]
    total_calculations: int = 0

    @property
    def successful_calculations(self) -> int:
        return len(self.edges)

    def get(self, from_id: str, to_id: str) -> Optional[DistanceEdge]:
        return self.edges.get((from_id, to_id))

    def summary(self) -> Dict[str, int]:
        return {
            'total_orders': len(self.order_ids),
            'total_calculations': self.total_calculations,
            'successful_calculations': self.successful_calculations,
        }


@dataclass
class RouteTotals:
    distance_meters: int = 0
    duration_seconds: int = 0
    duration_in_traffic_seconds: int = 0
    segments_found: int = 0

    @property
    def distance_km(self) -> str:
        return f"{self.distance_meters / 1000:.2f}"

    @property
    def duration_minutes(self) -> int:
        return math.ceil(self.duration_seconds / 60)

    @property
    def duration_in_traffic_minutes(self) -> int:
        return math.ceil(self.duration_in_traffic_seconds / 60)

    def to_dict(self) -> Dict[str, object]:
        return {
            'total_distance_meters': self.distance_meters,
            'total_duration_seconds': self.duration_seconds,
            'total_duration_in_traffic_seconds': self.duration_in_traffic_seconds,
            'total_distance_km': self.distance_km,
            'total_duration_minutes': self.duration_minutes,
            'total_duration_in_traffic_minutes': self.duration_in_traffic_minutes,
            'total_distance_text': f"{self.distance_km} km",
            'total_duration_text': format_duration(self.duration_minutes),
            'total_duration_in_traffic_text': format_duration(self.duration_in_traffic_minutes),
            'segments_found': self.segments_found,
        }


def format_duration(minutes: int) -> str:
    hours, remainder = divmod(int(minutes), 60)
    if hours > 0:
        return f"{hours}h {remainder}m"
    return f"{remainder}m"


class DistanceMatrixProvider(ABC):
    """Interface for travel-time providers."""

    @abstractmethod
    def get_matrix(
        self,
        origins: Sequence[Coordinate],
        destinations: Sequence[Coordinate],
        include_traffic: bool = False,
        avoid_tolls: bool = False,
        avoid_highways: bool = False,
    ) -> DistanceMatrixResult:
        """Matrix of travel between every origin and destination, one cell per pair."""


class GoogleDistanceMatrixProvider(DistanceMatrixProvider):
    def __init__(
        self,
        client: Optional[GoogleMapsClient] = None,
        url: str = GOOGLE_DISTANCE_MATRIX_API_URL,
        region: str = GOOGLE_MAPS_REGION,
        language: str = GOOGLE_MAPS_LANGUAGE,
        mode: str = 'driving',
    ):
        self.client = client or GoogleMapsClient()
        self.url = url
        self.region = region
        self.language = language
        self.mode = mode

    def _build_params(self, origins, destinations, include_traffic, avoid_tolls, avoid_highways) -> Dict[str, str]:
        params = {
            'origins': '|'.join(point.as_param() for point in origins),
            'destinations': '|'.join(point.as_param() for point in destinations),
            'mode': self.mode,
            'units': 'metric',
            'language': self.language,
            'region': self.region,
        }
        avoid = []
        if avoid_tolls:
            avoid.append('tolls')
        if avoid_highways:
            avoid.append('highways')
        if avoid:
            params['avoid'] = '|'.join(avoid)
        if include_traffic and self.mode == 'driving':
            params['departure_time'] = 'now'
            params['traffic_model'] = 'best_guess'
        return params

    def _fetch_block(self, origins, destinations, include_traffic, avoid_tolls, avoid_highways) -> Dict:
        params = self._build_params(origins, destinations, include_traffic, avoid_tolls, avoid_highways)
        data = self.client.get_json(self.url, params, error_cls=DistanceMatrixError)
        status = data.get('status')
        if status != 'OK':
            message = data.get('error_message') or f"Distance Matrix API error: {status}"
            raise DistanceMatrixError(message, status=status)
        return data

    def get_matrix(
        self,
        origins: Sequence[Coordinate],
        destinations: Sequence[Coordinate],
        include_traffic: bool = False,
        avoid_tolls: bool = False,
        avoid_highways: bool = False,
    ) -> DistanceMatrixResult:
        origins = list(origins)
        destinations = list(destinations)
        if not origins or not destinations:
            raise InputError("Distance matrix needs at least one origin and one destination")

        cols_per_block = min(len(destinations), MAX_MATRIX_DIMENSION, MAX_MATRIX_ELEMENTS_PER_REQUEST)
        rows_per_block = max(1, min(MAX_MATRIX_DIMENSION, MAX_MATRIX_ELEMENTS_PER_REQUEST // cols_per_block))

        rows: List[List[Optional[MatrixCell]]] = [[None] * len(destinations) for _ in origins]
        origin_addresses = [''] * len(origins)
        destination_addresses = [''] * len(destinations)
        requests_made = 0

        for row_start in range(0, len(origins), rows_per_block):
            origin_block = origins[row_start:row_start + rows_per_block]
            for col_start in range(0, len(destinations), cols_per_block):
                destination_block = destinations[col_start:col_start + cols_per_block]
                data = self._fetch_block(origin_block, destination_block, include_traffic, avoid_tolls, avoid_highways)
                requests_made += 1

                for offset, address in enumerate(data.get('origin_addresses', [])[:len(origin_block)]):
                    origin_addresses[row_start + offset] = address
                for offset, address in enumerate(data.get('destination_addresses', [])[:len(destination_block)]):
                    destination_addresses[col_start + offset] = address

                api_rows = data.get('rows', [])
                for i in range(len(origin_block)):
                    elements = api_rows[i].get('elements', []) if i < len(api_rows) else []
                    for j in range(len(destination_block)):
                        element = elements[j] if j < len(elements) else {'status': 'MISSING_ELEMENT'}
                        rows[row_start + i][col_start + j] = MatrixCell.from_element(element)

        logger.info(f"Distance matrix {len(origins)}x{len(destinations)} fetched in {requests_made} request(s)")
        return DistanceMatrixResult(
            origins=origins,
            destinations=destinations,
            rows=rows,
            origin_addresses=origin_addresses,
            destination_addresses=destination_addresses,
        )


class DistanceMatrixClient:
    """Order-level view over a DistanceMatrixProvider."""

    def __init__(self, provider: Optional[DistanceMatrixProvider] = None):
        self.provider = provider or GoogleDistanceMatrixProvider()

    def compute_matrix(
        self,
        points: Sequence[Coordinate],
        include_traffic: bool = False,
        avoid_tolls: bool = False,
        avoid_highways: bool = False,
    ) -> DistanceMatrixResult:
        return self.provider.get_matrix(
            points, points,
            include_traffic=include_traffic,
            avoid_tolls=avoid_tolls,
            avoid_highways=avoid_highways,
        )

    def compute_delivery_distances(
        self,
        orders: Sequence[DeliveryOrder],
        include_traffic: bool = False,
    ) -> DeliveryDistances:
        """
        Pairwise edges between geocoded orders.

        Orders without coordinates are skipped. The diagonal and failed cells
        are left out, so callers must treat a missing key as "no edge".

        Raises:
            InputError: fewer than two orders have coordinates.
            DistanceMatrixError: the provider failed as a whole.
        """
        geocoded = [order for order in orders if order.geocoded]
        if len(geocoded) < 2:
            raise InputError("At least two geocoded orders are required for distance calculation")

        result = self.compute_matrix([order.coordinates for order in geocoded], include_traffic=include_traffic)

        edges: Dict[Tuple[str, str], DistanceEdge] = {}
        for i, origin in enumerate(geocoded):
            for j, destination in enumerate(geocoded):
                if i == j:
                    continue
                cell = result.cell(i, j)
                if cell.ok:
                    edges[(origin.id, destination.id)] = cell.to_edge()
                else:
                    logger.debug(f"No distance from {origin.id} to {destination.id}: {cell.status}")

        distances = DeliveryDistances(
            order_ids=[order.id for order in geocoded],
            edges=edges,
            total_calculations=len(geocoded) * (len(geocoded) - 1),
        )
        logger.info(
            f"Distance calculation: {distances.successful_calculations}/{distances.total_calculations} "
            f"successful for {len(geocoded)} orders"
        )
        return distances

    def get_direct_distance(
        self,
        origin: Coordinate,
        destination: Coordinate,
        include_traffic: bool = False,
    ) -> Optional[DistanceEdge]:
        result = self.provider.get_matrix([origin], [destination], include_traffic=include_traffic)
        cell = result.cell(0, 0)
        return cell.to_edge() if cell.ok else None

    @staticmethod
    def route_totals(order_ids: Sequence[str], distances: DeliveryDistances) -> RouteTotals:
        """Sum consecutive edges along order_ids; missing edges contribute nothing."""
        totals = RouteTotals()
        for from_id, to_id in zip(order_ids, order_ids[1:]):
            edge = distances.get(from_id, to_id)
            if edge is None:
                continue
            totals.distance_meters += edge.distance_meters
            totals.duration_seconds += edge.duration_seconds
            totals.duration_in_traffic_seconds += edge.duration_in_traffic_seconds
            totals.segments_found += 1
        return totals
