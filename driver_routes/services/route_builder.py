"""
Navigable route assembly.

RouteBuilder takes an optimized sequence and turns it into what a driver app
needs: stops with cumulative arrival estimates, per-leg distances, optional
turn-by-turn directions and a Google Maps link.
"""
import logging
import math
from collections import Counter
from dataclasses import asdict, dataclass
from datetime import timedelta
from typing import Any, Dict, List, Optional, Sequence

from django.utils import timezone

from driver_routes.core.constants import (
    ESTIMATED_KM_PER_ORDER,
    ESTIMATED_MINUTES_PER_ORDER,
    PRIORITY_RANKS,
    TRAFFIC_ESTIMATE_MULTIPLIER,
)
from driver_routes.core.directions import DirectionsProvider, GoogleDirectionsProvider, build_map_url
from driver_routes.core.distance_matrix import DeliveryDistances, DistanceMatrixClient, format_duration
from driver_routes.core.exceptions import ExternalServiceError, InputError
from driver_routes.core.route_types import DeliveryOrder, OptimizedSequence
from driver_routes.services.route_optimizer import OptimizationOptions, RouteOptimizer
from driver_routes.settings import DELIVERY_DWELL_MINUTES, USE_GOOGLE_MAPS_BY_DEFAULT

logger = logging.getLogger(__name__)


@dataclass
class RouteBuildOptions:
    algorithm: Optional[str] = None
    include_traffic: bool = True
    include_directions: bool = True
    generate_map_url: bool = True
    use_google_maps: bool = USE_GOOGLE_MAPS_BY_DEFAULT


class RouteBuilder:
    def __init__(
        self,
        optimizer: Optional[RouteOptimizer] = None,
        distance_client: Optional[DistanceMatrixClient] = None,
        directions_provider: Optional[DirectionsProvider] = None,
        dwell_minutes: int = DELIVERY_DWELL_MINUTES,
    ):
        self.optimizer = optimizer or RouteOptimizer(distance_client=distance_client)
        self.distance_client = distance_client or self.optimizer.distance_client
        self.directions_provider = directions_provider or GoogleDirectionsProvider()
        self.dwell_minutes = dwell_minutes

    def build_route(
        self,
        driver_id: str,
        orders: Sequence[DeliveryOrder],
        options: Optional[RouteBuildOptions] = None,
    ) -> Dict[str, Any]:
        """
        Optimize the orders and assemble the full route structure.

        Provider failures only reduce the level of detail: without distances
        the metrics are estimates, without directions the navigation block
        says why.
        """
        options = options or RouteBuildOptions()
        optimized = self.optimizer.optimize_orders(orders, OptimizationOptions(
            algorithm=options.algorithm,
            include_traffic=options.include_traffic,
            use_google_maps=options.use_google_maps,
        ))

        route_orders = [item.order for item in optimized.orders]
        if options.use_google_maps:
            route_orders = self.optimizer.geocode_orders(route_orders)

        details = self.calculate_route_details(route_orders, optimized, options)
        logger.info(
            f"Built route for driver {driver_id}: {len(route_orders)} stops, "
            f"estimated data: {details['metrics']['estimated_data']}"
        )

        return {
            'route_info': {
                'driver_id': str(driver_id),
                'total_orders': len(route_orders),
                'geocoded_orders': sum(1 for order in route_orders if order.geocoded),
                'algorithm': optimized.algorithm,
                'real_distance_calculated': not details['metrics']['estimated_data'],
            },
            'route_metrics': details['metrics'],
            'delivery_stops': details['stops'],
            'navigation': details['navigation'],
            'optimization': {
                'algorithm': optimized.algorithm,
                'estimated_improvement': optimized.estimated_improvement,
                'metadata': optimized.metadata,
                'original_sequence': [order.route_sequence for order in route_orders],
                'priority_distribution': priority_distribution(route_orders),
            },
            'generated_at': timezone.now().isoformat(),
            'options': asdict(options),
        }

    def calculate_route_details(
        self,
        route_orders: List[DeliveryOrder],
        optimized: OptimizedSequence,
        options: RouteBuildOptions,
    ) -> Dict[str, Any]:
        valid_orders = [order for order in route_orders if order.geocoded]
        if not options.use_google_maps or len(valid_orders) < 2:
            return self.basic_route_details(route_orders, reason='Insufficient geocoded addresses')

        distances = optimized.distances
        if distances is None:
            try:
                distances = self.distance_client.compute_delivery_distances(
                    valid_orders, include_traffic=options.include_traffic)
            except (ExternalServiceError, InputError) as e:
                logger.warning(f"Distance data unavailable for route details: {e}")
                return self.basic_route_details(route_orders, reason=str(e))

        valid_ids = [order.id for order in valid_orders]
        totals = self.distance_client.route_totals(valid_ids, distances)
        traffic_minutes = totals.duration_in_traffic_minutes

        metrics = totals.to_dict()
        metrics.update({
            'estimated_delivery_time_minutes': math.ceil(traffic_minutes + len(route_orders) * self.dwell_minutes),
            'geocoding_success_rate': f"{len(valid_orders) / len(route_orders) * 100:.1f}%",
            'estimated_data': False,
        })
        metrics['estimated_delivery_time_text'] = format_duration(metrics['estimated_delivery_time_minutes'])

        navigation = self._navigation(valid_orders, options)
        navigation['segments'] = self._segments(valid_orders, distances)

        return {
            'metrics': metrics,
            'stops': self._detailed_stops(route_orders, distances),
            'navigation': navigation,
        }

    def _segments(self, valid_orders: List[DeliveryOrder], distances: DeliveryDistances) -> List[Dict[str, Any]]:
        segments = []
        for index, (origin, destination) in enumerate(zip(valid_orders, valid_orders[1:])):
            edge = distances.get(origin.id, destination.id)
            segment = {
                'segment_index': index,
                'from_order_id': origin.id,
                'to_order_id': destination.id,
                'available': edge is not None,
            }
            if edge is not None:
                segment.update(edge.to_dict())
            segments.append(segment)
        return segments

    def _detailed_stops(self, route_orders: List[DeliveryOrder], distances: DeliveryDistances) -> List[Dict[str, Any]]:
        """
        Stops with cumulative arrival times.

        Travel time to a geocoded stop is the traffic-aware duration from the
        last geocoded stop, rounded up to whole minutes, so the stops walk the
        same legs as the route totals. Unresolved stops carry no travel time.
        The dwell time is added after every stop.
        """
        start = timezone.now()
        cumulative_minutes = 0
        stops = []
        last_geocoded: Optional[DeliveryOrder] = None

        for index, order in enumerate(route_orders):
            travel_minutes = None
            edge = None
            if order.geocoded:
                if last_geocoded is not None:
                    edge = distances.get(last_geocoded.id, order.id)
                    if edge is not None:
                        travel_minutes = math.ceil(edge.duration_in_traffic_seconds / 60)
                last_geocoded = order
            cumulative_minutes += travel_minutes or 0

            stops.append(self._stop(index, order, cumulative_minutes, start, {
                'travel_time_minutes': travel_minutes,
                'distance_from_previous_meters': edge.distance_meters if edge else None,
                'distance_from_previous_text': edge.distance_text if edge else None,
            }))
            cumulative_minutes += self.dwell_minutes
        return stops

    def _stop(self, index, order, arrival_minutes, start, travel: Dict[str, Any]) -> Dict[str, Any]:
        stop = {
            'stop_number': index + 1,
            'order': order.to_dict(),
            'coordinates': order.coordinates.to_dict() if order.coordinates else None,
            'geocoded': order.geocoded,
            'estimated_arrival_minutes': arrival_minutes,
            'estimated_arrival_time': (start + timedelta(minutes=arrival_minutes)).isoformat(),
            'dwell_time_minutes': self.dwell_minutes,
        }
        stop.update(travel)
        return stop

    def _navigation(self, valid_orders: List[DeliveryOrder], options: RouteBuildOptions) -> Dict[str, Any]:
        navigation: Dict[str, Any] = {}
        points = [order.coordinates for order in valid_orders]

        if options.include_directions:
            try:
                directions = self.directions_provider.get_directions(points)
                navigation['directions'] = {'available': True, **directions}
            except ExternalServiceError as e:
                logger.warning(f"Directions unavailable: {e}")
                navigation['directions'] = {'available': False, 'reason': str(e), 'error': True}
        else:
            navigation['directions'] = {'available': False, 'reason': 'Directions not requested'}

        if options.generate_map_url:
            map_url = build_map_url(points)
            if map_url:
                navigation['map_url'] = map_url
        return navigation

    def basic_route_details(self, route_orders: List[DeliveryOrder], reason: Optional[str] = None) -> Dict[str, Any]:
        """Estimated metrics from fixed per-order constants when map data is missing."""
        count = len(route_orders)
        duration_minutes = count * ESTIMATED_MINUTES_PER_ORDER
        traffic_minutes = math.ceil(duration_minutes * TRAFFIC_ESTIMATE_MULTIPLIER)
        distance_km = count * ESTIMATED_KM_PER_ORDER
        geocoded = sum(1 for order in route_orders if order.geocoded)

        start = timezone.now()
        stops = []
        cumulative_minutes = 0
        for index, order in enumerate(route_orders):
            cumulative_minutes += ESTIMATED_MINUTES_PER_ORDER
            stops.append(self._stop(index, order, cumulative_minutes, start, {
                'travel_time_minutes': ESTIMATED_MINUTES_PER_ORDER,
                'distance_from_previous_meters': None,
                'distance_from_previous_text': None,
            }))
            cumulative_minutes += self.dwell_minutes

        delivery_minutes = math.ceil(traffic_minutes + count * self.dwell_minutes)
        return {
            'metrics': {
                'total_distance_km': f"{distance_km:.2f}",
                'total_distance_text': f"{distance_km:.2f} km",
                'total_duration_minutes': duration_minutes,
                'total_duration_in_traffic_minutes': traffic_minutes,
                'total_duration_text': format_duration(duration_minutes),
                'total_duration_in_traffic_text': format_duration(traffic_minutes),
                'estimated_delivery_time_minutes': delivery_minutes,
                'estimated_delivery_time_text': format_duration(delivery_minutes),
                'geocoding_success_rate': f"{geocoded / count * 100:.1f}%" if count else '0.0%',
                'estimated_data': True,
            },
            'stops': stops,
            'navigation': {
                'directions': {'available': False, 'reason': reason or 'Insufficient geocoded addresses'},
                'segments': [],
            },
        }


def priority_distribution(orders: Sequence[DeliveryOrder]) -> Dict[str, int]:
    counts = Counter(order.priority for order in orders)
    return {priority: counts.get(priority, 0) for priority in PRIORITY_RANKS}
