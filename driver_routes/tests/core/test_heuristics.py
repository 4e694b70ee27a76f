import unittest

from driver_routes.core.constants import MULTI_START_WEIGHT_SETS
from driver_routes.core.distance_matrix import DeliveryDistances
from driver_routes.core.heuristics import (
    multi_start_nearest_neighbor,
    priority_only,
    priority_with_distance,
    route_cost,
    simple_nearest_neighbor,
    weighted_nearest_neighbor,
    weighted_score,
)
from driver_routes.core.route_types import DistanceEdge
from driver_routes.tests.fakes import make_order


def _distances(pairs, order_ids=()):
    """pairs: {(from, to): traffic_seconds}"""
    edges = {key: DistanceEdge(distance_meters=seconds * 10, duration_seconds=seconds,
                               duration_in_traffic_seconds=seconds)
             for key, seconds in pairs.items()}
    return DeliveryDistances(order_ids=list(order_ids), edges=edges)


def _ids(orders):
    return [order.id for order in orders]


class TestPriorityOnly(unittest.TestCase):
    def test_rank_then_creation_time(self):
        a = make_order('A', 'LOW', minutes=1)
        b = make_order('B', 'URGENT', minutes=2)
        c = make_order('C', 'NORMAL', minutes=3)

        self.assertEqual(_ids(priority_only([a, b, c])), ['B', 'C', 'A'])

    def test_older_order_first_within_priority(self):
        newer = make_order('NEW', 'HIGH', minutes=30)
        older = make_order('OLD', 'HIGH', minutes=5)

        self.assertEqual(_ids(priority_only([newer, older])), ['OLD', 'NEW'])

    def test_lowercase_priority_is_accepted(self):
        self.assertEqual(make_order('X', 'urgent').priority_rank, 4)


class TestSimpleNearestNeighbor(unittest.TestCase):
    def test_follows_shortest_edges(self):
        orders = [make_order(i) for i in ('A', 'B', 'C')]
        distances = _distances({('A', 'B'): 900, ('A', 'C'): 100, ('C', 'B'): 100})

        self.assertEqual(_ids(simple_nearest_neighbor(orders, distances)), ['A', 'C', 'B'])

    def test_takes_next_in_input_order_without_edges(self):
        orders = [make_order(i) for i in ('A', 'B', 'C')]

        self.assertEqual(_ids(simple_nearest_neighbor(orders, _distances({}))), ['A', 'B', 'C'])


class TestPriorityWithDistance(unittest.TestCase):
    def test_distance_only_reorders_inside_priority_groups(self):
        u1 = make_order('U1', 'URGENT', minutes=0)
        u2 = make_order('U2', 'URGENT', minutes=1)
        n1 = make_order('N1', 'NORMAL', minutes=2)
        n2 = make_order('N2', 'NORMAL', minutes=3)
        n3 = make_order('N3', 'NORMAL', minutes=4)
        distances = _distances({
            ('U1', 'N1'): 10,     # very close but lower priority
            ('U1', 'U2'): 5000,
            ('N1', 'N2'): 3000,
            ('N1', 'N3'): 200,
            ('N3', 'N2'): 200,
        })

        route = priority_with_distance([n3, n2, u2, n1, u1], distances)

        self.assertEqual(_ids(route), ['U1', 'U2', 'N1', 'N3', 'N2'])


class TestWeightedNearestNeighbor(unittest.TestCase):
    def test_starts_at_highest_priority(self):
        orders = [make_order('L', 'LOW'), make_order('H', 'HIGH', minutes=5)]

        self.assertEqual(_ids(weighted_nearest_neighbor(orders, _distances({('H', 'L'): 60})))[0], 'H')

    def test_picks_lowest_weighted_score(self):
        h = make_order('H', 'HIGH', minutes=0)
        near_low = make_order('L', 'LOW', minutes=1)
        far_urgent = make_order('U', 'URGENT', minutes=2)
        # U outranks H, so the route starts at U; from U, H is an hour away and L two minutes
        distances = _distances({('U', 'H'): 3600, ('U', 'L'): 120, ('L', 'H'): 60})

        route = weighted_nearest_neighbor([h, near_low, far_urgent], distances)

        score_h = weighted_score(3600, 3, 0.7, 0.3)
        score_l = weighted_score(120, 1, 0.7, 0.3)
        self.assertLess(score_l, score_h)
        self.assertEqual(_ids(route), ['U', 'L', 'H'])

    def test_priority_dominates_with_heavy_priority_weight(self):
        u = make_order('U', 'URGENT', minutes=0)
        h = make_order('H', 'HIGH', minutes=1)
        low = make_order('L', 'LOW', minutes=2)
        distances = _distances({('U', 'H'): 1800, ('U', 'L'): 120, ('H', 'L'): 60, ('L', 'H'): 60})

        route = weighted_nearest_neighbor([u, h, low], distances, distance_weight=0.1, priority_weight=0.9)

        self.assertEqual(_ids(route), ['U', 'H', 'L'])

    def test_unreachable_candidates_fall_back_to_priority(self):
        orders = [make_order('H', 'HIGH'), make_order('N', 'NORMAL', minutes=1), make_order('L', 'LOW', minutes=2)]

        route = weighted_nearest_neighbor(orders, _distances({('N', 'L'): 60}))

        self.assertEqual(_ids(route), ['H', 'N', 'L'])

    def test_single_and_empty(self):
        self.assertEqual(weighted_nearest_neighbor([], _distances({})), [])
        self.assertEqual(_ids(weighted_nearest_neighbor([make_order('A')], _distances({}))), ['A'])


class TestMultiStartNearestNeighbor(unittest.TestCase):
    def setUp(self):
        self.orders = [
            make_order('U', 'URGENT', minutes=0),
            make_order('H', 'HIGH', minutes=1),
            make_order('N', 'NORMAL', minutes=2),
            make_order('L', 'LOW', minutes=3),
        ]
        self.distances = _distances({
            ('U', 'H'): 2400, ('U', 'N'): 1500, ('U', 'L'): 300,
            ('H', 'U'): 2400, ('H', 'N'): 300, ('H', 'L'): 2000,
            ('N', 'U'): 1500, ('N', 'H'): 300, ('N', 'L'): 900,
            ('L', 'U'): 300, ('L', 'H'): 2000, ('L', 'N'): 900,
        })

    def test_keeps_the_cheapest_weighted_route(self):
        route, params = multi_start_nearest_neighbor(self.orders, self.distances)

        costs = [
            route_cost(_ids(weighted_nearest_neighbor(self.orders, self.distances, dw, pw)), self.distances)
            for dw, pw in MULTI_START_WEIGHT_SETS
        ]
        self.assertEqual(route_cost(_ids(route), self.distances), min(costs))
        self.assertEqual(params['cost_seconds'], min(costs))
        self.assertIn((params['distance_weight'], params['priority_weight']), MULTI_START_WEIGHT_SETS)
        self.assertEqual(route[0].id, 'U')
        self.assertEqual(sorted(_ids(route)), ['H', 'L', 'N', 'U'])

    def test_route_cost_penalizes_missing_edges(self):
        self.assertEqual(route_cost(['U', 'L', 'N'], self.distances), 1200)
        sparse = _distances({('A', 'B'): 100, ('B', 'C'): 700})
        self.assertEqual(route_cost(['A', 'C', 'B'], sparse), 1400)


if __name__ == '__main__':
    unittest.main()
