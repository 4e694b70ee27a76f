import unittest
from datetime import datetime, timezone

from driver_routes.core.route_types import (
    Coordinate,
    DeliveryOrder,
    GeocodeCacheEntry,
    OptimizationState,
)
from driver_routes.tests.fakes import make_order, point


class TestDeliveryOrder(unittest.TestCase):
    def test_unknown_priority_becomes_normal(self):
        order = DeliveryOrder(id=7, delivery_address='x', priority='CRITICAL')

        self.assertEqual(order.priority, 'NORMAL')
        self.assertEqual(order.id, '7')

    def test_undated_orders_sort_last_within_priority(self):
        dated = make_order('A', 'HIGH')
        undated = DeliveryOrder(id='B', delivery_address='y', priority='HIGH')

        self.assertLess(dated.priority_sort_key(), undated.priority_sort_key())

    def test_with_coordinates(self):
        order = make_order('A')

        resolved = order.with_coordinates(point(30.0, 31.0))
        unresolved = order.with_coordinates(Coordinate.unresolved('x', 'ZERO_RESULTS'))

        self.assertTrue(resolved.geocoded)
        self.assertFalse(unresolved.geocoded)
        self.assertIsNone(unresolved.coordinates)
        self.assertEqual(unresolved.geocoding_error, 'ZERO_RESULTS')
        self.assertFalse(order.geocoded)

    def test_to_dict(self):
        data = make_order('A', coordinates=point(30.0, 31.0)).to_dict()

        self.assertEqual(data['coordinates']['lat'], 30.0)
        self.assertEqual(data['created_at'], '2024-01-01T09:00:00+00:00')


class TestGeocodeCacheEntry(unittest.TestCase):
    def test_invalid_entry_gives_unresolved_coordinate(self):
        entry = GeocodeCacheEntry(address_hash='h', full_address='Nowhere', is_valid=False, error='ZERO_RESULTS')

        coordinate = entry.to_coordinate()

        self.assertFalse(coordinate.is_resolved)
        self.assertEqual(coordinate.error, 'ZERO_RESULTS')

    def test_valid_entry(self):
        entry = GeocodeCacheEntry(address_hash='h', full_address='Zamalek', latitude=30.06, longitude=31.22,
                                  formatted_address='Zamalek, Cairo', is_valid=True)

        self.assertEqual(entry.to_coordinate().as_param(), '30.06,31.22')


class TestOptimizationState(unittest.TestCase):
    def test_to_dict(self):
        state = OptimizationState(driver_id='d1', route_optimized=True,
                                  optimized_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
                                  optimization_data={'method': 'NEAREST_NEIGHBOR'})

        data = state.to_dict()

        self.assertEqual(data['optimized_at'], '2024-01-01T00:00:00+00:00')
        self.assertEqual(data['optimization_data']['method'], 'NEAREST_NEIGHBOR')


if __name__ == '__main__':
    unittest.main()
