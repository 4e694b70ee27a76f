"""
Driver route operations.

DriverRouteService is the entry point used by the API layer. It loads a
driver's picked-up orders, runs the optimizer, persists the outcome and
serves the stored result on repeated requests.
"""
import logging
from typing import Any, Dict, List, Optional

import numpy as np

from driver_routes.clients.order_client import OrderClient
from driver_routes.core.directions import DirectionsProvider, GoogleDirectionsProvider
from driver_routes.core.distance_matrix import DistanceMatrixClient
from driver_routes.core.exceptions import ExternalServiceError, InputError, NoPickedUpOrdersError
from driver_routes.core.geocoder import GeocodeCache
from driver_routes.core.route_types import Coordinate, DeliveryOrder, OptimizationState
from driver_routes.services.optimization_state_store import OptimizationStateStore
from driver_routes.services.route_builder import RouteBuilder, RouteBuildOptions, priority_distribution
from driver_routes.services.route_optimizer import OptimizationOptions, RouteOptimizer
from driver_routes.settings import USE_GOOGLE_MAPS_BY_DEFAULT

logger = logging.getLogger(__name__)

# Fixed probe points for configuration checks
_PROBE_ORIGIN = Coordinate(latitude=30.0444, longitude=31.2357, formatted_address='Cairo')
_PROBE_DESTINATION = Coordinate(latitude=30.0131, longitude=31.2089, formatted_address='Giza')


class DriverRouteService:
    def __init__(
        self,
        order_client=None,
        geocode_cache: Optional[GeocodeCache] = None,
        distance_client: Optional[DistanceMatrixClient] = None,
        directions_provider: Optional[DirectionsProvider] = None,
        state_store: Optional[OptimizationStateStore] = None,
        optimizer: Optional[RouteOptimizer] = None,
        route_builder: Optional[RouteBuilder] = None,
    ):
        """
        Initialize the driver route service.

        Args:
            order_client: Source of picked-up orders. Defaults to OrderClient.
            geocode_cache: Address resolver. Defaults to a Google-backed GeocodeCache.
            distance_client: Travel-time source. Defaults to the Google Distance Matrix.
            directions_provider: Turn-by-turn source. Defaults to Google Directions.
            state_store: Persisted optimization state. Defaults to the Django store.
            optimizer: Overrides the optimizer built from the collaborators above.
            route_builder: Overrides the route builder built from the collaborators above.
        """
        self.order_client = order_client or OrderClient()
        self.geocode_cache = geocode_cache or GeocodeCache()
        self.distance_client = distance_client or DistanceMatrixClient()
        self.directions_provider = directions_provider or GoogleDirectionsProvider()
        self.state_store = state_store or OptimizationStateStore()
        self.optimizer = optimizer or RouteOptimizer(self.geocode_cache, self.distance_client)
        self.route_builder = route_builder or RouteBuilder(
            self.optimizer, self.distance_client, self.directions_provider)

    def _require_orders(self, driver_id: str) -> List[DeliveryOrder]:
        orders = self.order_client.get_picked_up_orders(driver_id)
        if not orders:
            raise NoPickedUpOrdersError(driver_id)
        return orders

    def get_driver_orders(self, driver_id: str) -> Dict[str, Any]:
        orders = self.order_client.get_picked_up_orders(driver_id)
        return {
            'driver_id': str(driver_id),
            'total_orders': len(orders),
            'orders': [order.to_dict() for order in orders],
        }

    def optimize(
        self,
        driver_id: str,
        force_recalculate: bool = False,
        include_traffic: bool = False,
        algorithm: Optional[str] = None,
        use_google_maps: Optional[bool] = None,
    ) -> Dict[str, Any]:
        """
        Optimize the delivery sequence for a driver.

        Unless force_recalculate is set, a driver whose route is already
        optimized gets the stored result back with from_cache=True and no
        heuristic or provider is called.

        Raises:
            NoPickedUpOrdersError: the driver holds no picked-up orders.
            InputError: algorithm is not a known name.
        """
        orders = self._require_orders(driver_id)
        if use_google_maps is None:
            use_google_maps = USE_GOOGLE_MAPS_BY_DEFAULT

        if not force_recalculate:
            state = self.state_store.get(driver_id)
            if state is not None and state.route_optimized:
                logger.info(f"Returning stored optimization for driver {driver_id}")
                return self._optimization_response(state, orders, from_cache=True)

        options = OptimizationOptions(
            algorithm=algorithm,
            include_traffic=include_traffic,
            use_google_maps=use_google_maps and len(orders) > 1,
        )
        result = self.optimizer.optimize_orders(orders, options)

        state = OptimizationStateStore.state_from_sequence(driver_id, result, {
            'force_recalculate': force_recalculate,
            'include_traffic': include_traffic,
            'use_google_maps': use_google_maps,
        })
        state = self.state_store.upsert(driver_id, state)
        return self._optimization_response(state, orders, from_cache=False)

    def _optimization_response(self, state: OptimizationState, orders: List[DeliveryOrder], from_cache: bool) -> Dict[str, Any]:
        data = state.optimization_data or {}
        sequence = data.get('optimized_sequence') or []
        position = {order_id: index for index, order_id in enumerate(sequence)}
        # Orders picked up after the last optimization go to the end
        ordered = sorted(orders, key=lambda order: (position.get(order.id, len(position)), order.priority_sort_key()))

        optimized_orders = []
        for index, order in enumerate(ordered):
            item = order.to_dict()
            item['sequence_number'] = index + 1
            optimized_orders.append(item)

        return {
            'driver_id': str(state.driver_id),
            'from_cache': from_cache,
            'algorithm': data.get('method'),
            'optimized_orders': optimized_orders,
            'estimated_duration': state.estimated_duration,
            'estimated_distance': state.estimated_distance,
            'optimized_at': state.optimized_at.isoformat() if state.optimized_at else None,
            'real_distance_calculated': data.get('real_distance_calculated', False),
            'estimated_improvement': data.get('estimated_improvement'),
            'optimization_data': data,
        }

    def get_current_route(self, driver_id: str) -> Dict[str, Any]:
        orders = self.order_client.get_picked_up_orders(driver_id)
        state = self.state_store.get(driver_id)
        return {
            'driver_id': str(driver_id),
            'total_orders': len(orders),
            'orders': [order.to_dict() for order in orders],
            'route_optimized': bool(state and state.route_optimized),
            'optimization': state.to_dict() if state else None,
        }

    def build_route(self, driver_id: str, options: Optional[RouteBuildOptions] = None) -> Dict[str, Any]:
        orders = self._require_orders(driver_id)
        return self.route_builder.build_route(driver_id, orders, options)

    def get_driver_map_data(self, driver_id: str, include_traffic: bool = True) -> Dict[str, Any]:
        """Geocoded markers, optional distance data and the viewport for a driver's orders."""
        orders = self.optimizer.geocode_orders(self._require_orders(driver_id))
        geocoded = [order for order in orders if order.geocoded]

        distance_data = None
        if len(geocoded) >= 2:
            try:
                distances = self.distance_client.compute_delivery_distances(geocoded, include_traffic=include_traffic)
                distance_data = distances.summary()
                distance_data['edges'] = {
                    f"{from_id}->{to_id}": edge.to_dict() for (from_id, to_id), edge in distances.edges.items()
                }
            except (ExternalServiceError, InputError) as e:
                logger.warning(f"Distance data unavailable for map of driver {driver_id}: {e}")

        return {
            'driver_id': str(driver_id),
            'orders': [order.to_dict() for order in orders],
            'geocoded_orders': len(geocoded),
            'distance_data': distance_data,
            **map_viewport([order.coordinates for order in geocoded]),
        }

    def clear_route_optimization(self, driver_id: str) -> Dict[str, Any]:
        """Drop the stored optimization. Clearing a driver that has none is not an error."""
        cleared = self.state_store.clear(driver_id)
        return {'driver_id': str(driver_id), 'cleared': cleared}

    def get_all_driver_routes(self) -> Dict[str, Any]:
        driver_ids = self.order_client.get_drivers_with_picked_up_orders()
        states = self.state_store.list_for_drivers(driver_ids)

        routes = []
        for driver_id in driver_ids:
            orders = self.order_client.get_picked_up_orders(driver_id)
            state = states.get(str(driver_id))
            routes.append({
                'driver_id': str(driver_id),
                'total_orders': len(orders),
                'priority_distribution': priority_distribution(orders),
                'route_optimized': bool(state and state.route_optimized),
                'optimized_at': state.optimized_at.isoformat() if state and state.optimized_at else None,
                'estimated_duration': state.estimated_duration if state else None,
                'estimated_distance': state.estimated_distance if state else None,
                'algorithm': state.optimization_data.get('method') if state else None,
            })

        optimized = sum(1 for route in routes if route['route_optimized'])
        return {
            'routes': routes,
            'summary': {
                'total_drivers': len(routes),
                'optimized_routes': optimized,
                'unoptimized_routes': len(routes) - optimized,
                'total_orders': sum(route['total_orders'] for route in routes),
            },
        }

    def get_geocache_stats(self) -> Dict[str, Any]:
        return self.geocode_cache.stats()

    def clear_geocache(self) -> Dict[str, Any]:
        return {'deleted_count': self.geocode_cache.clear()}

    def validate_google_maps_config(self) -> Dict[str, Any]:
        """Probe each Google Maps API the engine depends on."""
        report: Dict[str, Any] = {
            'geocoding': self.geocode_cache.provider.validate_api_key(),
        }

        try:
            edge = self.distance_client.get_direct_distance(_PROBE_ORIGIN, _PROBE_DESTINATION)
            report['distance_matrix'] = {'valid': edge is not None}
        except ExternalServiceError as e:
            report['distance_matrix'] = {'valid': False, 'error': str(e), 'status': e.status}

        try:
            self.directions_provider.get_directions([_PROBE_ORIGIN, _PROBE_DESTINATION])
            report['directions'] = {'valid': True}
        except ExternalServiceError as e:
            report['directions'] = {'valid': False, 'error': str(e), 'status': e.status}

        report['valid'] = all(report[name]['valid'] for name in ('geocoding', 'distance_matrix', 'directions'))
        report['features'] = {
            'geocoding_enabled': report['geocoding']['valid'],
            'distance_calculation_enabled': report['distance_matrix']['valid'],
            'directions_enabled': report['directions']['valid'],
        }
        return report


def map_viewport(points: List[Coordinate]) -> Dict[str, Any]:
    """Bounding box and centre of the points, or None for both when there are none."""
    if not points:
        return {'bounds': None, 'center': None}
    coords = np.array([[point.latitude, point.longitude] for point in points], dtype=float)
    north, east = coords.max(axis=0)
    south, west = coords.min(axis=0)
    center_lat, center_lng = coords.mean(axis=0)
    return {
        'bounds': {'north': float(north), 'south': float(south), 'east': float(east), 'west': float(west)},
        'center': {'lat': float(center_lat), 'lng': float(center_lng)},
    }
