import logging
from typing import Dict, Iterable, Optional

from driver_routes.core.route_types import OptimizationState, OptimizedSequence

logger = logging.getLogger(__name__)


class OptimizationStateStore:
    """Per-driver optimization state. One record per driver, last writer wins."""

    def __init__(self, repository=None):
        if repository is None:
            from driver_routes.repositories import DjangoOptimizationStateRepository
            repository = DjangoOptimizationStateRepository()
        self.repository = repository

    def get(self, driver_id: str) -> Optional[OptimizationState]:
        return self.repository.get(str(driver_id))

    def upsert(self, driver_id: str, state: OptimizationState) -> OptimizationState:
        state.driver_id = str(driver_id)
        stored = self.repository.upsert(state)
        logger.info(f"Stored optimization state for driver {driver_id}")
        return stored

    def clear(self, driver_id: str) -> bool:
        removed = self.repository.clear(str(driver_id))
        if removed:
            logger.info(f"Cleared optimization state for driver {driver_id}")
        return removed

    def list_for_drivers(self, driver_ids: Iterable[str]) -> Dict[str, OptimizationState]:
        return self.repository.list_for_drivers([str(driver_id) for driver_id in driver_ids])

    @staticmethod
    def state_from_sequence(driver_id: str, result: OptimizedSequence, request_flags: Dict[str, object]) -> OptimizationState:
        """Build the persisted record for a fresh optimization."""
        optimization_data = dict(result.metadata)
        optimization_data.update(request_flags)
        optimization_data.update({
            'method': result.algorithm,
            'total_orders': len(result.orders),
            'optimization_timestamp': result.optimized_at.isoformat() if result.optimized_at else None,
            'real_distance_calculated': result.real_distance_calculated,
            'optimized_sequence': result.order_ids,
        })
        return OptimizationState(
            driver_id=str(driver_id),
            route_optimized=True,
            optimized_at=result.optimized_at,
            estimated_duration=result.estimated_duration,
            estimated_distance=result.estimated_distance,
            optimization_data=optimization_data,
        )
