import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from django.utils import timezone

from driver_routes.core.algorithm_selector import normalize_algorithm, select_algorithm
from driver_routes.core.constants import (
    ALGORITHM_MULTI_START_NEAREST_NEIGHBOR,
    ALGORITHM_NEAREST_NEIGHBOR,
    ALGORITHM_PRIORITY_BASED,
    ALGORITHM_PRIORITY_WITH_DISTANCE,
    ALGORITHM_SINGLE_ORDER,
    ESTIMATED_IMPROVEMENTS,
    ESTIMATED_KM_PER_ORDER,
    ESTIMATED_MINUTES_PER_ORDER,
    OPTIMIZATION_VERSION,
)
from driver_routes.core.distance_matrix import DeliveryDistances, DistanceMatrixClient
from driver_routes.core.exceptions import ExternalServiceError, NoOrdersError
from driver_routes.core.geocoder import GeocodeCache, normalize_address, unique_addresses
from driver_routes.core.heuristics import (
    multi_start_nearest_neighbor,
    priority_only,
    priority_with_distance,
    weighted_nearest_neighbor,
)
from driver_routes.core.route_types import DeliveryOrder, OptimizedSequence, SequencedOrder
from driver_routes.settings import USE_GOOGLE_MAPS_BY_DEFAULT

logger = logging.getLogger(__name__)


@dataclass
class OptimizationOptions:
    algorithm: Optional[str] = None  # None or HYBRID lets the selector decide
    include_traffic: bool = False
    use_coordinates: bool = False
    use_google_maps: bool = USE_GOOGLE_MAPS_BY_DEFAULT


class RouteOptimizer:
    """
    Turns a driver's orders into an OptimizedSequence.

    Distance-aware heuristics degrade step by step: a failing multi-start run
    falls back to the weighted nearest neighbour, and any provider failure or
    lack of coordinates falls back to plain priority ordering.
    """

    def __init__(self, geocode_cache: Optional[GeocodeCache] = None, distance_client: Optional[DistanceMatrixClient] = None):
        self.geocode_cache = geocode_cache or GeocodeCache()
        self.distance_client = distance_client or DistanceMatrixClient()

    def geocode_orders(self, orders: Sequence[DeliveryOrder]) -> List[DeliveryOrder]:
        """Attach coordinates to every order that lacks them, best effort."""
        pending = [order for order in orders if not order.geocoded]
        if not pending:
            return list(orders)

        resolved = self.geocode_cache.resolve_many(
            unique_addresses(order.delivery_address for order in pending))
        by_key = {normalize_address(address): coordinate for address, coordinate in resolved.items()}

        result = []
        for order in orders:
            if order.geocoded:
                result.append(order)
            else:
                result.append(order.with_coordinates(by_key.get(normalize_address(order.delivery_address))))
        geocoded_count = sum(1 for order in result if order.geocoded)
        logger.info(f"Geocoded {geocoded_count}/{len(result)} orders")
        return result

    def optimize_orders(self, orders: Sequence[DeliveryOrder], options: Optional[OptimizationOptions] = None) -> OptimizedSequence:
        """
        Sequence the orders.

        Raises:
            NoOrdersError: orders is empty.
            InputError: options.algorithm is not a known name.
        """
        options = options or OptimizationOptions()
        if not orders:
            raise NoOrdersError("No orders to optimize")

        requested = normalize_algorithm(options.algorithm)
        algorithm = select_algorithm(
            len(orders), requested, prefer_distance=options.include_traffic or options.use_coordinates)

        if algorithm == ALGORITHM_SINGLE_ORDER:
            return self.single_order_sequence(orders[0], options)

        if algorithm == ALGORITHM_PRIORITY_BASED:
            return self.basic_priority_sequence(orders, options)

        if not options.use_google_maps:
            return self.basic_priority_sequence(
                orders, options, fallback_from=algorithm, reason='Google Maps disabled for this request')

        geocoded_orders = self.geocode_orders(orders)
        if sum(1 for order in geocoded_orders if order.geocoded) < 2:
            logger.warning(f"Fewer than two orders could be geocoded; {algorithm} falls back to priority ordering")
            return self.basic_priority_sequence(
                geocoded_orders, options, fallback_from=algorithm, reason='Insufficient geocoded addresses')

        try:
            distances = self.distance_client.compute_delivery_distances(
                geocoded_orders, include_traffic=options.include_traffic)
        except ExternalServiceError as e:
            logger.warning(f"Distance matrix unavailable, falling back to priority ordering: {e}")
            return self.basic_priority_sequence(
                geocoded_orders, options, fallback_from=algorithm, reason=f"Distance calculation failed: {e}")

        return self._run_distance_heuristic(algorithm, geocoded_orders, distances, options)

    def _run_distance_heuristic(
        self,
        algorithm: str,
        orders: List[DeliveryOrder],
        distances: DeliveryDistances,
        options: OptimizationOptions,
    ) -> OptimizedSequence:
        extra: Dict[str, Any] = {}

        if algorithm == ALGORITHM_MULTI_START_NEAREST_NEIGHBOR:
            try:
                route, params = multi_start_nearest_neighbor(orders, distances)
                extra['optimization_params'] = params
            except Exception as e:
                logger.error(f"Multi-start optimization failed, using nearest neighbour: {e}", exc_info=True)
                extra.update({'fallback': True, 'fallback_from': algorithm, 'fallback_reason': str(e)})
                algorithm = ALGORITHM_NEAREST_NEIGHBOR

        if algorithm == ALGORITHM_NEAREST_NEIGHBOR:
            try:
                route = weighted_nearest_neighbor(orders, distances)
            except Exception as e:
                logger.error(f"Nearest neighbour optimization failed, using priority order: {e}", exc_info=True)
                return self.basic_priority_sequence(orders, options, fallback_from=algorithm, reason=str(e))

        if algorithm == ALGORITHM_PRIORITY_WITH_DISTANCE:
            route = priority_with_distance(orders, distances)
            extra['priority_groups'] = len({order.priority for order in orders})

        return self._format(algorithm, route, options, distances=distances, extra=extra)

    def single_order_sequence(self, order: DeliveryOrder, options: Optional[OptimizationOptions] = None) -> OptimizedSequence:
        """One stop: nothing to optimize and nothing to travel between."""
        options = options or OptimizationOptions()
        result = self._format(ALGORITHM_SINGLE_ORDER, [order], options)
        result.estimated_distance = '0.00 km'
        return result

    def basic_priority_sequence(
        self,
        orders: Sequence[DeliveryOrder],
        options: Optional[OptimizationOptions] = None,
        fallback_from: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> OptimizedSequence:
        options = options or OptimizationOptions()
        if not orders:
            raise NoOrdersError("No orders to optimize")
        extra: Dict[str, Any] = {}
        if fallback_from:
            extra.update({'fallback': True, 'fallback_from': fallback_from, 'fallback_reason': reason})
        return self._format(ALGORITHM_PRIORITY_BASED, priority_only(orders), options, extra=extra)

    def _format(
        self,
        algorithm: str,
        route: Sequence[DeliveryOrder],
        options: OptimizationOptions,
        distances: Optional[DeliveryDistances] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> OptimizedSequence:
        count = len(route)
        result = OptimizedSequence(
            algorithm=algorithm,
            orders=[
                SequencedOrder(
                    order=order,
                    sequence_number=index + 1,
                    estimated_delivery_time=f"{(index + 1) * ESTIMATED_MINUTES_PER_ORDER} minutes",
                )
                for index, order in enumerate(route)
            ],
            estimated_duration=f"{count * ESTIMATED_MINUTES_PER_ORDER} minutes",
            estimated_distance=f"{count * ESTIMATED_KM_PER_ORDER} km",
            include_traffic=options.include_traffic,
            estimated_improvement=ESTIMATED_IMPROVEMENTS.get(algorithm, '0%'),
            optimized_at=timezone.now(),
        )
        result.metadata = {
            'algorithm': algorithm,
            'include_traffic': options.include_traffic,
            'estimated_improvement': result.estimated_improvement,
            'optimization_version': OPTIMIZATION_VERSION,
            'total_orders': count,
        }

        if distances is not None:
            # Unresolved stops are skipped so the legs around them still count
            totals = self.distance_client.route_totals(
                [order.id for order in route if order.geocoded], distances)
            summary = totals.to_dict()
            result.total_distance_meters = totals.distance_meters
            result.total_duration_seconds = totals.duration_seconds
            result.total_duration_in_traffic_seconds = totals.duration_in_traffic_seconds
            result.estimated_distance = summary['total_distance_text']
            result.estimated_duration = summary['total_duration_in_traffic_text']
            result.real_distance_calculated = True
            result.distances = distances
            result.metadata['distance_summary'] = distances.summary()
            result.metadata['route_totals'] = summary

        result.metadata['real_distance_calculated'] = result.real_distance_calculated
        if extra:
            result.metadata.update(extra)
        logger.info(f"Optimized {count} orders with {algorithm} (real distances: {result.real_distance_calculated})")
        return result
