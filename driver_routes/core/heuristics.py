"""
Sequencing heuristics for a single driver's deliveries.

All functions are pure: they take orders (and, where needed, the pairwise
edges between them) and return a new list in visiting order. Missing edges
are expected and never raise.
"""
import logging
from itertools import groupby
from typing import Dict, List, Optional, Sequence, Tuple

from driver_routes.core.constants import (
    DEFAULT_DISTANCE_WEIGHT,
    DEFAULT_PRIORITY_WEIGHT,
    MAX_PRIORITY_RANK,
    MULTI_START_WEIGHT_SETS,
)
from driver_routes.core.distance_matrix import DeliveryDistances
from driver_routes.core.route_types import DeliveryOrder

logger = logging.getLogger(__name__)


def priority_only(orders: Sequence[DeliveryOrder]) -> List[DeliveryOrder]:
    """URGENT first, LOW last; within a priority the oldest order goes first."""
    return sorted(orders, key=lambda order: order.priority_sort_key())


def simple_nearest_neighbor(
    orders: Sequence[DeliveryOrder],
    distances: DeliveryDistances,
) -> List[DeliveryOrder]:
    """
    Greedy nearest neighbour by traffic-aware duration, starting from orders[0].

    When the current stop has no edge to any remaining order, the next
    remaining order in input order is taken.
    """
    if len(orders) <= 1:
        return list(orders)

    remaining = list(orders[1:])
    route = [orders[0]]
    while remaining:
        current = route[-1]
        best_index: Optional[int] = None
        best_duration = None
        for index, candidate in enumerate(remaining):
            edge = distances.get(current.id, candidate.id)
            if edge is None:
                continue
            if best_duration is None or edge.duration_in_traffic_seconds < best_duration:
                best_duration = edge.duration_in_traffic_seconds
                best_index = index
        route.append(remaining.pop(best_index if best_index is not None else 0))
    return route


def priority_with_distance(
    orders: Sequence[DeliveryOrder],
    distances: DeliveryDistances,
) -> List[DeliveryOrder]:
    """
    Priority groups in descending order, nearest neighbour inside each group.

    Travel time never moves an order ahead of a higher-priority one.
    """
    route: List[DeliveryOrder] = []
    for _, group in groupby(priority_only(orders), key=lambda order: order.priority_rank):
        route.extend(simple_nearest_neighbor(list(group), distances))
    return route


def weighted_score(travel_seconds: float, priority_rank: int, distance_weight: float, priority_weight: float) -> float:
    """Lower is better: short trips to high-priority orders score lowest."""
    travel_hours = travel_seconds / 3600
    priority_penalty = (MAX_PRIORITY_RANK + 1 - priority_rank) / MAX_PRIORITY_RANK
    return distance_weight * travel_hours + priority_weight * priority_penalty


def weighted_nearest_neighbor(
    orders: Sequence[DeliveryOrder],
    distances: DeliveryDistances,
    distance_weight: float = DEFAULT_DISTANCE_WEIGHT,
    priority_weight: float = DEFAULT_PRIORITY_WEIGHT,
) -> List[DeliveryOrder]:
    """
    Priority-weighted nearest neighbour.

    Starts at the highest-priority order. At every step each remaining order
    reachable from the current stop is scored with weighted_score and the
    lowest score wins, ties going to the higher priority. If no remaining
    order is reachable, the next order by priority is taken.
    """
    by_priority = priority_only(orders)
    if len(by_priority) <= 1:
        return by_priority

    route = [by_priority[0]]
    remaining = by_priority[1:]
    while remaining:
        current = route[-1]
        best_index: Optional[int] = None
        best_score = None
        for index, candidate in enumerate(remaining):
            edge = distances.get(current.id, candidate.id)
            if edge is None:
                continue
            score = weighted_score(
                edge.duration_in_traffic_seconds, candidate.priority_rank, distance_weight, priority_weight)
            if best_score is None or score < best_score:
                best_score = score
                best_index = index
        if best_index is None:
            logger.debug(f"No reachable order from {current.id}; falling back to priority order")
            best_index = 0
        route.append(remaining.pop(best_index))
    return route


def route_cost(order_ids: Sequence[str], distances: DeliveryDistances) -> float:
    """
    Sum of traffic-aware durations along the route, in seconds.

    A missing edge costs as much as the slowest known edge.
    """
    missing_penalty = max(
        (edge.duration_in_traffic_seconds for edge in distances.edges.values()),
        default=0,
    )
    cost = 0.0
    for from_id, to_id in zip(order_ids, order_ids[1:]):
        edge = distances.get(from_id, to_id)
        cost += edge.duration_in_traffic_seconds if edge is not None else missing_penalty
    return cost


def multi_start_nearest_neighbor(
    orders: Sequence[DeliveryOrder],
    distances: DeliveryDistances,
    weight_sets: Sequence[Tuple[float, float]] = MULTI_START_WEIGHT_SETS,
) -> Tuple[List[DeliveryOrder], Dict[str, float]]:
    """
    Run the weighted nearest neighbour once per (distance, priority) weight
    pair and keep the cheapest route. The first pair wins ties.

    Returns:
        The best route and the parameters that produced it.
    """
    best_route: List[DeliveryOrder] = priority_only(orders)
    best_params: Dict[str, float] = {}
    best_cost = None

    for distance_weight, priority_weight in weight_sets:
        candidate = weighted_nearest_neighbor(orders, distances, distance_weight, priority_weight)
        cost = route_cost([order.id for order in candidate], distances)
        logger.debug(f"Weights distance={distance_weight} priority={priority_weight}: cost {cost:.0f}s")
        if best_cost is None or cost < best_cost:
            best_cost = cost
            best_route = candidate
            best_params = {
                'distance_weight': distance_weight,
                'priority_weight': priority_weight,
                'cost_seconds': cost,
            }

    return best_route, best_params
