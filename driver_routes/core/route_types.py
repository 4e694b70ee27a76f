"""
Core data types for driver route optimization.
"""
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Dict, List, Optional, Any
import logging

from driver_routes.core.constants import (
    DEFAULT_DELIVERY_PRIORITY,
    PRIORITY_RANKS,
)

logger = logging.getLogger(__name__)


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass(frozen=True)
class Coordinate:
    """
    Result of resolving an address.

    An unresolvable address is still a Coordinate: latitude/longitude are None,
    is_valid is False and error carries the provider status.
    """
    latitude: Optional[float]
    longitude: Optional[float]
    formatted_address: Optional[str] = None
    is_valid: bool = True
    error: Optional[str] = None

    @classmethod
    def unresolved(cls, address: str, error: str) -> 'Coordinate':
        return cls(latitude=None, longitude=None, formatted_address=address, is_valid=False, error=error)

    @property
    def is_resolved(self) -> bool:
        return self.is_valid and self.latitude is not None and self.longitude is not None

    def as_param(self) -> str:
        """Format as the 'lat,lng' string Google APIs expect."""
        return f"{self.latitude},{self.longitude}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'lat': self.latitude,
            'lng': self.longitude,
            'formatted_address': self.formatted_address,
            'is_valid': self.is_valid,
            'error': self.error,
        }


@dataclass
class DeliveryOrder:
    """A delivery currently held by a driver."""
    id: str
    delivery_address: str
    priority: str = DEFAULT_DELIVERY_PRIORITY
    created_at: Optional[datetime] = None
    order_number: Optional[str] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    area: Optional[str] = None
    governorate: Optional[str] = None
    notes: Optional[str] = None
    route_sequence: Optional[int] = None
    coordinates: Optional[Coordinate] = None
    geocoding_error: Optional[str] = None

    def __post_init__(self):
        self.id = str(self.id)
        if self.priority:
            self.priority = self.priority.upper()
        if self.priority not in PRIORITY_RANKS:
            logger.warning(f"Unknown priority '{self.priority}' on order {self.id}; treating as {DEFAULT_DELIVERY_PRIORITY}")
            self.priority = DEFAULT_DELIVERY_PRIORITY

    @property
    def priority_rank(self) -> int:
        return PRIORITY_RANKS[self.priority]

    @property
    def geocoded(self) -> bool:
        return self.coordinates is not None and self.coordinates.is_resolved

    def priority_sort_key(self):
        """Highest rank first, then oldest first; undated orders go last within a rank."""
        created = self.created_at.timestamp() if self.created_at else float('inf')
        return (-self.priority_rank, created)

    def with_coordinates(self, coordinate: Optional[Coordinate]) -> 'DeliveryOrder':
        if coordinate is None:
            return replace(self, coordinates=None, geocoding_error='Geocoding failed')
        if not coordinate.is_resolved:
            return replace(self, coordinates=None, geocoding_error=coordinate.error or 'Geocoding failed')
        return replace(self, coordinates=coordinate, geocoding_error=None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'order_number': self.order_number,
            'customer_name': self.customer_name,
            'customer_phone': self.customer_phone,
            'delivery_address': self.delivery_address,
            'area': self.area,
            'governorate': self.governorate,
            'priority': self.priority,
            'notes': self.notes,
            'created_at': _isoformat(self.created_at),
            'route_sequence': self.route_sequence,
            'coordinates': self.coordinates.to_dict() if self.coordinates else None,
            'geocoding_error': self.geocoding_error,
        }


@dataclass(frozen=True)
class DistanceEdge:
    """Travel between two orders as reported by the distance matrix."""
    distance_meters: int
    duration_seconds: int
    duration_in_traffic_seconds: int
    distance_text: str = ''
    duration_text: str = ''
    duration_in_traffic_text: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return {
            'distance': {'value': self.distance_meters, 'text': self.distance_text},
            'duration': {'value': self.duration_seconds, 'text': self.duration_text},
            'duration_in_traffic': {
                'value': self.duration_in_traffic_seconds,
                'text': self.duration_in_traffic_text,
            },
        }


@dataclass
class SequencedOrder:
    """An order placed at a position in the optimized route."""
    order: DeliveryOrder
    sequence_number: int
    estimated_delivery_time: str

    def to_dict(self) -> Dict[str, Any]:
        data = self.order.to_dict()
        data['sequence_number'] = self.sequence_number
        data['estimated_delivery_time'] = self.estimated_delivery_time
        return data


@dataclass
class OptimizedSequence:
    """Data Transfer Object describing an optimized visitation order."""
    algorithm: str
    orders: List[SequencedOrder] = field(default_factory=list)
    estimated_duration: str = ''
    estimated_distance: str = ''
    total_distance_meters: int = 0
    total_duration_seconds: int = 0
    total_duration_in_traffic_seconds: int = 0
    real_distance_calculated: bool = False
    include_traffic: bool = False
    estimated_improvement: str = '0%'
    metadata: Dict[str, Any] = field(default_factory=dict)
    optimized_at: Optional[datetime] = None
    # Pairwise edges the sequence was built from; not serialized
    distances: Optional[Any] = field(default=None, repr=False, compare=False)

    @property
    def order_ids(self) -> List[str]:
        return [item.order.id for item in self.orders]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'algorithm': self.algorithm,
            'optimized_orders': [item.to_dict() for item in self.orders],
            'estimated_duration': self.estimated_duration,
            'estimated_distance': self.estimated_distance,
            'total_distance_meters': self.total_distance_meters,
            'total_duration_seconds': self.total_duration_seconds,
            'total_duration_in_traffic_seconds': self.total_duration_in_traffic_seconds,
            'real_distance_calculated': self.real_distance_calculated,
            'include_traffic': self.include_traffic,
            'estimated_improvement': self.estimated_improvement,
            'metadata': self.metadata,
            'optimized_at': _isoformat(self.optimized_at),
        }


@dataclass
class GeocodeCacheEntry:
    """One memoized geocoding answer, keyed by the normalized address hash."""
    address_hash: str
    full_address: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    formatted_address: Optional[str] = None
    is_valid: bool = False
    is_geocoded: bool = False
    area: Optional[str] = None
    governorate: Optional[str] = None
    geocode_attempts: int = 0
    geocoded_at: Optional[datetime] = None
    error: Optional[str] = None

    def to_coordinate(self) -> Coordinate:
        if not self.is_valid:
            return Coordinate.unresolved(self.formatted_address or self.full_address, self.error or 'INVALID_ADDRESS')
        return Coordinate(
            latitude=self.latitude,
            longitude=self.longitude,
            formatted_address=self.formatted_address,
            is_valid=True,
        )


@dataclass
class OptimizationState:
    """Persisted outcome of the last optimization for a driver."""
    driver_id: str
    route_optimized: bool = False
    optimized_at: Optional[datetime] = None
    estimated_duration: Optional[str] = None
    estimated_distance: Optional[str] = None
    optimization_data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'driver_id': str(self.driver_id),
            'route_optimized': self.route_optimized,
            'optimized_at': _isoformat(self.optimized_at),
            'estimated_duration': self.estimated_duration,
            'estimated_distance': self.estimated_distance,
            'optimization_data': self.optimization_data,
        }
