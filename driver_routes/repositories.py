"""
Storage interfaces used by the optimization services.

Services depend only on the abstract repositories so that tests can swap in
in-memory versions; the Django implementations below are the defaults.
"""
import logging
import uuid
from abc import ABC, abstractmethod
from typing import Dict, Iterable, Optional

from django.db import DatabaseError, transaction
from django.db.models import F

from driver_routes.core.route_types import GeocodeCacheEntry, OptimizationState
from driver_routes.models import AddressGeocache, RouteOptimization

logger = logging.getLogger(__name__)


class GeocodeCacheRepository(ABC):
    @abstractmethod
    def get(self, address_hash: str) -> Optional[GeocodeCacheEntry]:
        ...

    @abstractmethod
    def put(self, entry: GeocodeCacheEntry) -> GeocodeCacheEntry:
        """Create or update the entry for entry.address_hash, counting the attempt."""

    @abstractmethod
    def stats(self) -> Dict[str, int]:
        """Return counts under the keys 'total', 'valid' and 'geocoded'."""

    @abstractmethod
    def clear(self) -> int:
        """Delete every entry and return how many were removed."""


class OptimizationStateRepository(ABC):
    @abstractmethod
    def get(self, driver_id: str) -> Optional[OptimizationState]:
        ...

    @abstractmethod
    def upsert(self, state: OptimizationState) -> OptimizationState:
        ...

    @abstractmethod
    def clear(self, driver_id: str) -> bool:
        """Remove the driver's state. Returns False when there was none."""

    @abstractmethod
    def list_for_drivers(self, driver_ids: Iterable[str]) -> Dict[str, OptimizationState]:
        ...


def _entry_from_row(row: AddressGeocache) -> GeocodeCacheEntry:
    return GeocodeCacheEntry(
        address_hash=row.address_hash,
        full_address=row.full_address,
        latitude=row.latitude,
        longitude=row.longitude,
        formatted_address=row.formatted_address,
        is_valid=row.is_valid,
        is_geocoded=row.is_geocoded,
        area=row.area,
        governorate=row.governorate,
        geocode_attempts=row.geocode_attempts,
        geocoded_at=row.geocoded_at,
        error=row.error,
    )


def _state_from_row(row: RouteOptimization) -> OptimizationState:
    return OptimizationState(
        driver_id=str(row.driver_id),
        route_optimized=row.route_optimized,
        optimized_at=row.optimized_at,
        estimated_duration=row.estimated_duration,
        estimated_distance=row.estimated_distance,
        optimization_data=row.optimization_data or {},
    )


class DjangoGeocodeCacheRepository(GeocodeCacheRepository):
    """
    Geocode cache backed by the address_geocache table.

    Database failures on read or write are logged and treated as a miss or a
    skipped write; a cache outage must not stop a route from being built.
    """

    def get(self, address_hash: str) -> Optional[GeocodeCacheEntry]:
        try:
            row = AddressGeocache.objects.filter(address_hash=address_hash).first()
        except DatabaseError as e:
            logger.error(f"Geocode cache lookup failed for {address_hash}: {e}", exc_info=True)
            return None
        return _entry_from_row(row) if row else None

    def put(self, entry: GeocodeCacheEntry) -> GeocodeCacheEntry:
        defaults = {
            'full_address': entry.full_address,
            'latitude': entry.latitude,
            'longitude': entry.longitude,
            'formatted_address': entry.formatted_address,
            'is_valid': entry.is_valid,
            'is_geocoded': entry.is_geocoded,
            'area': entry.area,
            'governorate': entry.governorate,
            'geocoded_at': entry.geocoded_at,
            'error': entry.error,
        }
        try:
            with transaction.atomic():
                row, created = AddressGeocache.objects.update_or_create(
                    address_hash=entry.address_hash,
                    defaults=defaults,
                )
                AddressGeocache.objects.filter(pk=row.pk).update(geocode_attempts=F('geocode_attempts') + 1)
                row.refresh_from_db(fields=['geocode_attempts'])
        except DatabaseError as e:
            logger.error(f"Failed to store geocode cache entry for '{entry.full_address}': {e}", exc_info=True)
            return entry
        if created:
            logger.debug(f"Created geocode cache entry for '{entry.full_address}'")
        return _entry_from_row(row)

    def stats(self) -> Dict[str, int]:
        return {
            'total': AddressGeocache.objects.count(),
            'valid': AddressGeocache.objects.filter(is_valid=True).count(),
            'geocoded': AddressGeocache.objects.filter(is_geocoded=True).count(),
        }

    def clear(self) -> int:
        deleted_count, _ = AddressGeocache.objects.all().delete()
        return deleted_count


class DjangoOptimizationStateRepository(OptimizationStateRepository):
    """Optimization state backed by the route_optimizations table, one row per driver."""

    def get(self, driver_id: str) -> Optional[OptimizationState]:
        row = RouteOptimization.objects.filter(driver_id=driver_id).first()
        return _state_from_row(row) if row else None

    def upsert(self, state: OptimizationState) -> OptimizationState:
        row, created = RouteOptimization.objects.update_or_create(
            driver_id=state.driver_id,
            defaults={
                'route_optimized': state.route_optimized,
                'optimized_at': state.optimized_at,
                'estimated_duration': state.estimated_duration,
                'estimated_distance': state.estimated_distance,
                'optimization_data': state.optimization_data,
            },
        )
        logger.debug(f"{'Created' if created else 'Updated'} optimization state for driver {state.driver_id}")
        return _state_from_row(row)

    def clear(self, driver_id: str) -> bool:
        deleted_count, _ = RouteOptimization.objects.filter(driver_id=driver_id).delete()
        return deleted_count > 0

    def list_for_drivers(self, driver_ids: Iterable[str]) -> Dict[str, OptimizationState]:
        ids = [uuid.UUID(str(driver_id)) for driver_id in driver_ids]
        rows = RouteOptimization.objects.filter(driver_id__in=ids)
        return {str(row.driver_id): _state_from_row(row) for row in rows}
