"""
Address geocoding with a persistent cache.

GeocodeCache is the only component that talks to the geocoding provider.
Every answer the provider gives, including "no match" and error statuses
such as REQUEST_DENIED, is stored under the md5 of the normalized address
so the same address is never resolved twice. Transport failures (no JSON
body, connection errors, timeouts) are raised and never cached.
"""
import hashlib
import logging
import time
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional

from django.utils import timezone

from driver_routes.core.constants import (
    DEFAULT_AREA,
    DEFAULT_GOVERNORATE,
    KNOWN_AREAS,
    KNOWN_GOVERNORATES,
)
from driver_routes.core.exceptions import GeocodeProviderError
from driver_routes.core.maps_client import GoogleMapsClient
from driver_routes.core.route_types import Coordinate, GeocodeCacheEntry
from driver_routes.settings import (
    GEOCODE_BATCH_DELAY_SECONDS,
    GOOGLE_GEOCODE_API_URL,
    GOOGLE_MAPS_LANGUAGE,
    GOOGLE_MAPS_REGION,
)

logger = logging.getLogger(__name__)


def normalize_address(address: str) -> str:
    return (address or '').strip().lower()


def address_hash(address: str) -> str:
    return hashlib.md5(normalize_address(address).encode('utf-8')).hexdigest()


def extract_area(address: str) -> str:
    lowered = (address or '').lower()
    for area in KNOWN_AREAS:
        if area.lower() in lowered:
            return area
    return DEFAULT_AREA


def extract_governorate(address: str) -> str:
    lowered = (address or '').lower()
    for governorate in KNOWN_GOVERNORATES:
        if governorate.lower() in lowered:
            return governorate
    return DEFAULT_GOVERNORATE


class GeocodingProvider(ABC):
    @abstractmethod
    def geocode(self, address: str) -> Coordinate:
        """
        Resolve an address.

        Returns an unresolved Coordinate whenever the provider answers without
        a match, whatever the status. Raises GeocodeProviderError only when no
        answer came back at all.
        """

    def validate_api_key(self) -> Dict[str, object]:
        return {'valid': True}


class GoogleGeocodingProvider(GeocodingProvider):
    """Geocoding backed by the Google Geocoding API."""

    def __init__(
        self,
        client: Optional[GoogleMapsClient] = None,
        url: str = GOOGLE_GEOCODE_API_URL,
        region: str = GOOGLE_MAPS_REGION,
        language: str = GOOGLE_MAPS_LANGUAGE,
    ):
        self.client = client or GoogleMapsClient()
        self.url = url
        self.region = region
        self.language = language

    def geocode(self, address: str) -> Coordinate:
        try:
            data = self.client.get_json(
                self.url,
                {'address': address, 'region': self.region, 'language': self.language},
                error_cls=GeocodeProviderError,
            )
        except GeocodeProviderError as e:
            # The provider did answer, just not with a result; retries are exhausted
            if e.status != 'OVER_QUERY_LIMIT':
                raise
            data = {'status': e.status, 'error_message': str(e)}
        status = data.get('status')

        if status == 'OK' and data.get('results'):
            result = data['results'][0]
            location = result.get('geometry', {}).get('location', {})
            return Coordinate(
                latitude=location.get('lat'),
                longitude=location.get('lng'),
                formatted_address=result.get('formatted_address', address),
                is_valid=True,
            )

        if status == 'OK':
            status = 'ZERO_RESULTS'
        message = data.get('error_message')
        if message:
            logger.warning(f"Geocoding failed for '{address}': {status} - {message}")
        else:
            logger.warning(f"No geocoding match for '{address}': {status}")
        return Coordinate.unresolved(address, status or 'UNKNOWN_ERROR')

    def validate_api_key(self) -> Dict[str, object]:
        """Probe the API with a known address."""
        try:
            coordinate = self.geocode('Cairo, Egypt')
        except GeocodeProviderError as e:
            return {'valid': False, 'error': str(e), 'status': e.status}
        if not coordinate.is_resolved:
            return {'valid': False, 'error': f"Geocoding probe failed: {coordinate.error}", 'status': coordinate.error}
        return {'valid': True, 'message': 'Google Maps API key is valid'}


class GeocodeCache:
    def __init__(
        self,
        provider: Optional[GeocodingProvider] = None,
        repository=None,
        batch_delay_seconds: float = GEOCODE_BATCH_DELAY_SECONDS,
    ):
        if repository is None:
            from driver_routes.repositories import DjangoGeocodeCacheRepository
            repository = DjangoGeocodeCacheRepository()
        self.provider = provider or GoogleGeocodingProvider()
        self.repository = repository
        self.batch_delay_seconds = batch_delay_seconds

    def lookup(self, address: str) -> Optional[Coordinate]:
        """Return the cached coordinate for the address without calling the provider."""
        entry = self.repository.get(address_hash(address))
        return entry.to_coordinate() if entry else None

    def _resolve(self, address: str):
        """Resolve an address; the second value is True when the provider was called."""
        key = address_hash(address)
        entry = self.repository.get(key)
        if entry is not None:
            logger.debug(f"Geocode cache hit for '{address}'")
            return entry.to_coordinate(), False

        logger.info(f"Geocoding address: {address}")
        coordinate = self.provider.geocode(address)

        self.repository.put(GeocodeCacheEntry(
            address_hash=key,
            full_address=address.strip(),
            latitude=coordinate.latitude,
            longitude=coordinate.longitude,
            formatted_address=coordinate.formatted_address,
            is_valid=coordinate.is_resolved,
            is_geocoded=True,
            area=extract_area(address),
            governorate=extract_governorate(address),
            geocoded_at=timezone.now(),
            error=coordinate.error,
        ))
        return coordinate, True

    def resolve(self, address: str) -> Coordinate:
        """
        Resolve an address to a coordinate, consulting the cache first.

        Raises:
            GeocodeProviderError: the provider failed; nothing is cached.
        """
        coordinate, _ = self._resolve(address)
        return coordinate

    def resolve_many(self, addresses: Iterable[str]) -> Dict[str, Coordinate]:
        """
        Resolve addresses one after another, pausing between provider calls.

        Provider failures are logged and reported as unresolved coordinates so
        one bad lookup does not sink the batch.
        """
        results: Dict[str, Coordinate] = {}
        called_provider = False
        for address in addresses:
            if address in results:
                continue
            if called_provider and self.batch_delay_seconds:
                time.sleep(self.batch_delay_seconds)
            try:
                results[address], called_provider = self._resolve(address)
            except GeocodeProviderError as e:
                logger.warning(f"Geocoding failed for '{address}': {e}")
                results[address] = Coordinate.unresolved(address, e.status or 'GEOCODING_FAILED')
                called_provider = True
        return results

    def stats(self) -> Dict[str, object]:
        counts = self.repository.stats()
        total = counts.get('total', 0)
        geocoded = counts.get('geocoded', 0)
        return {
            'total_addresses': total,
            'valid_addresses': counts.get('valid', 0),
            'geocoded_addresses': geocoded,
            'cache_hit_rate': f"{geocoded / total * 100:.2f}" if total > 0 else '0',
        }

    def clear(self) -> int:
        deleted_count = self.repository.clear()
        logger.info(f"Cleared {deleted_count} geocode cache entries")
        return deleted_count


def unique_addresses(addresses: Iterable[str]) -> List[str]:
    seen = set()
    ordered = []
    for address in addresses:
        key = normalize_address(address)
        if key and key not in seen:
            seen.add(key)
            ordered.append(address)
    return ordered
