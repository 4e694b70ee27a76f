"""
Choice of sequencing heuristic for a given batch of orders.
"""
import logging
from typing import Optional

from driver_routes.core.constants import (
    ALGORITHM_ALIASES,
    ALGORITHM_HYBRID,
    ALGORITHM_MULTI_START_NEAREST_NEIGHBOR,
    ALGORITHM_NEAREST_NEIGHBOR,
    ALGORITHM_PRIORITY_BASED,
    ALGORITHM_PRIORITY_WITH_DISTANCE,
    ALGORITHM_SINGLE_ORDER,
    NEAREST_NEIGHBOR_MAX_ORDERS,
    PRIORITY_ONLY_MAX_ORDERS,
    SELECTABLE_ALGORITHMS,
)
from driver_routes.core.exceptions import InputError

logger = logging.getLogger(__name__)


def normalize_algorithm(name: Optional[str]) -> str:
    """
    Canonical algorithm name for user input.

    Accepts any case, legacy aliases and None (meaning HYBRID).

    Raises:
        InputError: the name is not a known algorithm.
    """
    if not name:
        return ALGORITHM_HYBRID
    key = str(name).strip().upper().replace('-', '_').replace(' ', '_')
    key = ALGORITHM_ALIASES.get(key, key)
    if key != ALGORITHM_HYBRID and key not in SELECTABLE_ALGORITHMS:
        raise InputError(f"Unknown optimization algorithm: {name}")
    return key


def select_algorithm(order_count: int, requested: Optional[str] = None, prefer_distance: bool = False) -> str:
    """
    Pick the heuristic for order_count orders.

    A single order always gets the trivial route. Otherwise an explicitly
    requested algorithm wins (PRIORITY_BASED becomes PRIORITY_WITH_DISTANCE
    when prefer_distance is set), and HYBRID falls through to the size table:
    up to 3 orders are sorted by priority (with distance inside priority
    groups when prefer_distance is set), up to 10 use the weighted nearest
    neighbour, anything larger uses the multi-start variant.
    """
    if order_count <= 0:
        raise InputError("No orders to optimize")
    if order_count == 1:
        return ALGORITHM_SINGLE_ORDER

    algorithm = normalize_algorithm(requested)
    if algorithm == ALGORITHM_PRIORITY_BASED and prefer_distance:
        algorithm = ALGORITHM_PRIORITY_WITH_DISTANCE
    if algorithm != ALGORITHM_HYBRID:
        logger.info(f"Using requested algorithm {algorithm} for {order_count} orders")
        return algorithm

    if order_count <= PRIORITY_ONLY_MAX_ORDERS:
        selected = ALGORITHM_PRIORITY_WITH_DISTANCE if prefer_distance else ALGORITHM_PRIORITY_BASED
    elif order_count <= NEAREST_NEIGHBOR_MAX_ORDERS:
        selected = ALGORITHM_NEAREST_NEIGHBOR
    else:
        selected = ALGORITHM_MULTI_START_NEAREST_NEIGHBOR

    logger.info(f"Selected {selected} for {order_count} orders")
    return selected
