import unittest
from unittest.mock import patch, MagicMock

import numpy as np
from requests import Response as RequestsResponse

from driver_routes.core.distance_matrix import (
    DeliveryDistances,
    DistanceMatrixClient,
    DistanceMatrixProvider,
    GoogleDistanceMatrixProvider,
    MatrixCell,
    format_duration,
)
from driver_routes.core.exceptions import DistanceMatrixError, InputError
from driver_routes.core.maps_client import GoogleMapsClient
from driver_routes.core.route_types import DistanceEdge
from driver_routes.tests.fakes import FakeDistanceMatrixProvider, make_order, point


def _element(meters, seconds, traffic=None):
    element = {
        'status': 'OK',
        'distance': {'value': meters, 'text': f"{meters / 1000:.1f} km"},
        'duration': {'value': seconds, 'text': f"{seconds // 60} mins"},
    }
    if traffic is not None:
        element['duration_in_traffic'] = {'value': traffic, 'text': f"{traffic // 60} mins"}
    return element


def _matrix_payload(n_rows, n_cols, element=None):
    return {
        'status': 'OK',
        'origin_addresses': [f"origin {i}" for i in range(n_rows)],
        'destination_addresses': [f"destination {j}" for j in range(n_cols)],
        'rows': [{'elements': [element or _element(1000, 120) for _ in range(n_cols)]} for _ in range(n_rows)],
    }


class TestMatrixCell(unittest.TestCase):
    def test_traffic_duration_falls_back_to_duration(self):
        edge = MatrixCell.from_element(_element(2500, 300)).to_edge()

        self.assertEqual(edge.duration_in_traffic_seconds, 300)
        self.assertEqual(edge.duration_in_traffic_text, "5 mins")

    def test_failed_element_keeps_status(self):
        cell = MatrixCell.from_element({'status': 'ZERO_RESULTS'})

        self.assertFalse(cell.ok)
        self.assertEqual(cell.status, 'ZERO_RESULTS')
        self.assertIn('ZERO_RESULTS', cell.error)


class TestGoogleDistanceMatrixProvider(unittest.TestCase):
    def setUp(self):
        self.provider = GoogleDistanceMatrixProvider(
            client=GoogleMapsClient(api_key="test_key", timeout=5, max_retries=1),
            url="http://fakeapi.com/distancematrix",
        )
        self.points = [point(30.0 + i / 100, 31.2) for i in range(3)]

    def test_provider_interface_is_abstract(self):
        with self.assertRaises(TypeError):
            DistanceMatrixProvider()

    @patch('requests.get')
    def test_request_parameters_with_traffic(self, mock_get):
        mock_get.return_value = MagicMock(spec=RequestsResponse, status_code=200)
        mock_get.return_value.json.return_value = _matrix_payload(3, 3, _element(1000, 120, 180))

        result = self.provider.get_matrix(self.points, self.points, include_traffic=True, avoid_tolls=True)

        params = mock_get.call_args[1]['params']
        self.assertEqual(params['origins'], "30.0,31.2|30.01,31.2|30.02,31.2")
        self.assertEqual(params['mode'], 'driving')
        self.assertEqual(params['units'], 'metric')
        self.assertEqual(params['departure_time'], 'now')
        self.assertEqual(params['traffic_model'], 'best_guess')
        self.assertEqual(params['avoid'], 'tolls')
        self.assertEqual(result.cell(0, 1).duration_in_traffic_seconds, 180)
        self.assertEqual(result.origin_addresses[2], "origin 2")

    @patch('requests.get')
    def test_no_traffic_params_without_traffic(self, mock_get):
        mock_get.return_value = MagicMock(spec=RequestsResponse, status_code=200)
        mock_get.return_value.json.return_value = _matrix_payload(3, 3)

        self.provider.get_matrix(self.points, self.points)

        params = mock_get.call_args[1]['params']
        self.assertNotIn('departure_time', params)
        self.assertNotIn('traffic_model', params)
        self.assertNotIn('avoid', params)

    @patch('requests.get')
    def test_large_matrix_is_requested_in_blocks(self, mock_get):
        points = [point(30.0 + i / 1000, 31.2) for i in range(12)]

        def respond(url, params, timeout):
            rows = len(params['origins'].split('|'))
            cols = len(params['destinations'].split('|'))
            self.assertLessEqual(rows * cols, 100)
            response = MagicMock(spec=RequestsResponse, status_code=200)
            response.json.return_value = _matrix_payload(rows, cols)
            return response

        mock_get.side_effect = respond
        result = self.provider.get_matrix(points, points)

        # 12 columns fit in one block; 100 // 12 = 8 rows per block
        self.assertEqual(mock_get.call_count, 2)
        self.assertEqual(len(result.rows), 12)
        self.assertTrue(all(len(row) == 12 for row in result.rows))
        self.assertTrue(all(cell is not None and cell.ok for row in result.rows for cell in row))

    @patch('requests.get')
    def test_top_level_error_raises(self, mock_get):
        mock_get.return_value = MagicMock(spec=RequestsResponse, status_code=200)
        mock_get.return_value.json.return_value = {'status': 'REQUEST_DENIED', 'error_message': 'bad key'}

        with self.assertRaises(DistanceMatrixError) as cm:
            self.provider.get_matrix(self.points, self.points)
        self.assertEqual(cm.exception.status, 'REQUEST_DENIED')

    def test_empty_points_rejected(self):
        with self.assertRaises(InputError):
            self.provider.get_matrix([], self.points)


class TestDistanceMatrixClient(unittest.TestCase):
    def setUp(self):
        self.a, self.b, self.c = point(30.00, 31.20), point(30.01, 31.21), point(30.02, 31.22)
        table = {
            (self.a.as_param(), self.b.as_param()): (1000, 100, 150),
            (self.b.as_param(), self.a.as_param()): (1000, 110, 160),
            (self.b.as_param(), self.c.as_param()): (2000, 200, 260),
            (self.a.as_param(), self.c.as_param()): (3000, 300, 390),
            # c -> a and c -> b are missing
        }
        self.provider = FakeDistanceMatrixProvider(table)
        self.client = DistanceMatrixClient(self.provider)
        self.orders = [
            make_order('A', coordinates=self.a),
            make_order('B', coordinates=self.b),
            make_order('C', coordinates=self.c),
        ]

    def test_partial_matrix_keeps_successful_edges(self):
        distances = self.client.compute_delivery_distances(self.orders, include_traffic=True)

        self.assertEqual(distances.total_calculations, 6)
        self.assertEqual(distances.successful_calculations, 4)
        self.assertIsNone(distances.get('C', 'A'))
        self.assertEqual(distances.get('B', 'C').duration_in_traffic_seconds, 260)
        self.assertNotIn(('A', 'A'), distances.edges)

    def test_matrix_arrays_mark_failures_as_nan(self):
        result = self.client.compute_matrix([self.a, self.b, self.c])
        distances, durations, traffic = result.as_arrays()

        self.assertEqual(distances.shape, (3, 3))
        self.assertTrue(np.isnan(distances[2, 0]))
        self.assertEqual(durations[0, 1], 100)
        self.assertEqual(traffic[0, 1], 100)  # no traffic requested: falls back to duration
        self.assertEqual(result.successful_calculations, 7)

    def test_ungeocoded_orders_are_skipped(self):
        orders = self.orders[:2] + [make_order('D')]

        distances = self.client.compute_delivery_distances(orders)

        self.assertEqual(distances.order_ids, ['A', 'B'])

    def test_requires_two_geocoded_orders(self):
        with self.assertRaises(InputError):
            self.client.compute_delivery_distances([self.orders[0], make_order('D')])
        self.assertEqual(self.provider.calls, 0)

    def test_route_totals_sum_consecutive_edges(self):
        distances = self.client.compute_delivery_distances(self.orders, include_traffic=True)

        totals = self.client.route_totals(['A', 'B', 'C'], distances)

        self.assertEqual(totals.distance_meters, 3000)
        self.assertEqual(totals.duration_seconds, 300)
        self.assertEqual(totals.duration_in_traffic_seconds, 410)
        self.assertEqual(totals.segments_found, 2)
        self.assertEqual(totals.distance_km, "3.00")
        self.assertEqual(totals.duration_in_traffic_minutes, 7)

    def test_route_totals_skip_missing_edges(self):
        distances = DeliveryDistances(order_ids=['A', 'B'], edges={('A', 'B'): DistanceEdge(500, 60, 90)})

        totals = DistanceMatrixClient.route_totals(['B', 'A', 'B'], distances)

        self.assertEqual(totals.segments_found, 1)
        self.assertEqual(totals.duration_in_traffic_seconds, 90)

    def test_direct_distance(self):
        edge = self.client.get_direct_distance(self.a, self.b)
        self.assertEqual(edge.distance_meters, 1000)
        self.assertIsNone(self.client.get_direct_distance(self.c, self.a))

    def test_format_duration(self):
        self.assertEqual(format_duration(45), "45m")
        self.assertEqual(format_duration(60), "1h 0m")
        self.assertEqual(format_duration(135), "2h 15m")


if __name__ == '__main__':
    unittest.main()
