import logging
import unittest
from unittest.mock import patch

from driver_routes.core.constants import ALGORITHM_NEAREST_NEIGHBOR, ALGORITHM_PRIORITY_BASED
from driver_routes.core.distance_matrix import DistanceMatrixClient
from driver_routes.core.exceptions import NoPickedUpOrdersError
from driver_routes.core.geocoder import GeocodeCache
from driver_routes.services.driver_route_service import DriverRouteService, map_viewport
from driver_routes.services.optimization_state_store import OptimizationStateStore
from driver_routes.tests.fakes import (
    FakeDirectionsProvider,
    FakeDistanceMatrixProvider,
    FakeGeocodingProvider,
    FakeOrderClient,
    InMemoryGeocodeCacheRepository,
    InMemoryOptimizationStateRepository,
    build_scenario,
    new_driver_id,
    point,
)


class DriverRouteServiceTestCase(unittest.TestCase):
    def setUp(self):
        logging.disable(logging.CRITICAL)
        self.driver_id = new_driver_id()
        self.orders, table, matrix = build_scenario(5)
        self.geocoder = FakeGeocodingProvider(table)
        self.matrix = FakeDistanceMatrixProvider(matrix)
        self.directions = FakeDirectionsProvider()
        self.state_repository = InMemoryOptimizationStateRepository()
        self.geocode_repository = InMemoryGeocodeCacheRepository()
        self.service = DriverRouteService(
            order_client=FakeOrderClient({self.driver_id: self.orders}),
            geocode_cache=GeocodeCache(self.geocoder, self.geocode_repository, batch_delay_seconds=0),
            distance_client=DistanceMatrixClient(self.matrix),
            directions_provider=self.directions,
            state_store=OptimizationStateStore(self.state_repository),
        )

    def tearDown(self):
        logging.disable(logging.NOTSET)


class TestOptimize(DriverRouteServiceTestCase):
    def test_fresh_optimization_is_stored(self):
        result = self.service.optimize(self.driver_id, include_traffic=True)

        self.assertFalse(result['from_cache'])
        self.assertEqual(result['algorithm'], ALGORITHM_NEAREST_NEIGHBOR)
        self.assertTrue(result['real_distance_calculated'])
        self.assertEqual([o['sequence_number'] for o in result['optimized_orders']], [1, 2, 3, 4, 5])

        state = self.state_repository.get(self.driver_id)
        self.assertTrue(state.route_optimized)
        self.assertEqual(state.optimization_data['method'], ALGORITHM_NEAREST_NEIGHBOR)
        self.assertEqual(state.optimization_data['total_orders'], 5)
        self.assertTrue(state.optimization_data['include_traffic'])
        self.assertFalse(state.optimization_data['force_recalculate'])
        self.assertTrue(state.optimization_data['use_google_maps'])

    def test_second_call_returns_stored_result_without_providers(self):
        first = self.service.optimize(self.driver_id)
        geocode_calls, matrix_calls = len(self.geocoder.calls), self.matrix.calls

        second = self.service.optimize(self.driver_id)

        self.assertTrue(second['from_cache'])
        self.assertEqual(len(self.geocoder.calls), geocode_calls)
        self.assertEqual(self.matrix.calls, matrix_calls)
        self.assertEqual(self.state_repository.upsert_calls, 1)
        first.pop('from_cache')
        second.pop('from_cache')
        self.assertEqual(first, second)

    def test_cached_path_runs_no_heuristic(self):
        self.service.optimize(self.driver_id)

        with patch.object(self.service.optimizer, 'optimize_orders') as mock_optimize:
            self.service.optimize(self.driver_id)
        mock_optimize.assert_not_called()

    def test_force_recalculate_recomputes(self):
        self.service.optimize(self.driver_id)

        result = self.service.optimize(self.driver_id, force_recalculate=True, algorithm='PRIORITY_BASED')

        self.assertFalse(result['from_cache'])
        self.assertEqual(result['algorithm'], ALGORITHM_PRIORITY_BASED)
        self.assertEqual(self.state_repository.upsert_calls, 2)

    def test_driver_without_orders(self):
        with self.assertRaises(NoPickedUpOrdersError):
            self.service.optimize(new_driver_id())

    def test_provider_outage_degrades_to_priority(self):
        self.matrix.fail = True

        result = self.service.optimize(self.driver_id)

        self.assertEqual(result['algorithm'], ALGORITHM_PRIORITY_BASED)
        self.assertFalse(result['real_distance_calculated'])
        self.assertTrue(result['optimization_data']['fallback'])
        self.assertEqual(result['optimization_data']['fallback_from'], ALGORITHM_NEAREST_NEIGHBOR)

    def test_geocoding_outage_degrades_to_priority(self):
        self.geocoder.failing.update(order.delivery_address for order in self.orders)

        result = self.service.optimize(self.driver_id)

        self.assertEqual(result['algorithm'], ALGORITHM_PRIORITY_BASED)
        self.assertEqual(result['optimization_data']['fallback_from'], ALGORITHM_NEAREST_NEIGHBOR)
        self.assertEqual(self.geocode_repository.entries, {})

    def test_new_orders_are_appended_to_cached_sequence(self):
        self.service.optimize(self.driver_id)
        extra_orders, _, _ = build_scenario(6)
        self.service.order_client.orders_by_driver[self.driver_id] = extra_orders

        result = self.service.optimize(self.driver_id)

        self.assertTrue(result['from_cache'])
        self.assertEqual(result['optimized_orders'][-1]['id'], 'O6')


class TestRouteQueries(DriverRouteServiceTestCase):
    def test_current_route_before_and_after_optimization(self):
        before = self.service.get_current_route(self.driver_id)
        self.assertFalse(before['route_optimized'])
        self.assertIsNone(before['optimization'])
        self.assertEqual(before['total_orders'], 5)

        self.service.optimize(self.driver_id)
        after = self.service.get_current_route(self.driver_id)
        self.assertTrue(after['route_optimized'])
        self.assertEqual(after['optimization']['driver_id'], self.driver_id)

    def test_clear_route_optimization(self):
        self.service.optimize(self.driver_id)

        self.assertTrue(self.service.clear_route_optimization(self.driver_id)['cleared'])
        self.assertFalse(self.service.clear_route_optimization(self.driver_id)['cleared'])
        self.assertFalse(self.service.optimize(self.driver_id)['from_cache'])

    def test_get_driver_orders(self):
        result = self.service.get_driver_orders(self.driver_id)

        self.assertEqual(result['total_orders'], 5)
        self.assertEqual(result['orders'][0]['priority'], 'URGENT')

    def test_build_route(self):
        route = self.service.build_route(self.driver_id)

        self.assertEqual(route['route_info']['total_orders'], 5)
        self.assertEqual(self.directions.calls, 1)

    def test_map_data(self):
        data = self.service.get_driver_map_data(self.driver_id)

        self.assertEqual(data['geocoded_orders'], 5)
        self.assertEqual(data['distance_data']['successful_calculations'], 20)
        self.assertAlmostEqual(data['bounds']['south'], 30.0)
        self.assertAlmostEqual(data['bounds']['north'], 30.04)
        self.assertAlmostEqual(data['center']['lat'], 30.02)

    def test_all_driver_routes(self):
        self.service.optimize(self.driver_id)
        other = new_driver_id()
        other_orders, _, _ = build_scenario(2)
        self.service.order_client.orders_by_driver[other] = other_orders

        overview = self.service.get_all_driver_routes()

        self.assertEqual(overview['summary'], {
            'total_drivers': 2,
            'optimized_routes': 1,
            'unoptimized_routes': 1,
            'total_orders': 7,
        })

    def test_geocache_stats_and_clear(self):
        self.service.optimize(self.driver_id)

        self.assertEqual(self.service.get_geocache_stats()['total_addresses'], 5)
        self.assertEqual(self.service.clear_geocache(), {'deleted_count': 5})

    def test_validate_google_maps_config(self):
        report = self.service.validate_google_maps_config()

        self.assertTrue(report['geocoding']['valid'])
        self.assertTrue(report['directions']['valid'])
        # The fake matrix has no entry for the probe points
        self.assertFalse(report['distance_matrix']['valid'])
        self.assertFalse(report['valid'])
        self.assertFalse(report['features']['distance_calculation_enabled'])

    def test_validate_reports_provider_errors(self):
        self.directions.fail = True

        report = self.service.validate_google_maps_config()

        self.assertEqual(report['directions']['status'], 'REQUEST_DENIED')


class TestMapViewport(unittest.TestCase):
    def test_bounds_and_center(self):
        viewport = map_viewport([point(30.0, 31.0), point(30.2, 31.4)])

        self.assertEqual(viewport['bounds'], {'north': 30.2, 'south': 30.0, 'east': 31.4, 'west': 31.0})
        self.assertAlmostEqual(viewport['center']['lat'], 30.1)
        self.assertAlmostEqual(viewport['center']['lng'], 31.2)

    def test_no_points(self):
        self.assertEqual(map_viewport([]), {'bounds': None, 'center': None})


if __name__ == '__main__':
    unittest.main()
