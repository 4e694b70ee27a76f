"""
Thin HTTP gateway to the Google Maps web services.

All provider calls share the same retry policy: connection problems, HTTP 429
and OVER_QUERY_LIMIT answers are retried with exponential backoff, auth
problems are not. When the retries run out the caller's ExternalServiceError
subclass is raised.
"""
import logging
import time
from typing import Any, Dict, Optional, Type

import requests
from requests.exceptions import HTTPError, RequestException

from driver_routes.core.exceptions import ExternalServiceError
from driver_routes.settings import (
    BACKOFF_FACTOR,
    GOOGLE_API_REQUEST_TIMEOUT,
    GOOGLE_MAPS_API_KEY,
    MAX_RETRIES,
    RETRY_DELAY_SECONDS,
)

logger = logging.getLogger(__name__)


class GoogleMapsClient:
    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
    ):
        self.api_key = api_key if api_key is not None else GOOGLE_MAPS_API_KEY
        self.timeout = timeout if timeout is not None else GOOGLE_API_REQUEST_TIMEOUT
        self.max_retries = max(1, max_retries if max_retries is not None else MAX_RETRIES)

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _backoff(self, attempt: int, reason: str) -> bool:
        """Sleep before the next attempt. Returns False when no attempts are left."""
        if attempt >= self.max_retries - 1:
            return False
        sleep_time = RETRY_DELAY_SECONDS * (BACKOFF_FACTOR ** attempt)
        logger.info(f"{reason}. Retrying in {sleep_time:.2f} seconds...")
        time.sleep(sleep_time)
        return True

    def get_json(
        self,
        url: str,
        params: Dict[str, Any],
        error_cls: Type[ExternalServiceError] = ExternalServiceError,
    ) -> Dict[str, Any]:
        """
        Perform a GET against a Google Maps endpoint and return the decoded body.

        Args:
            url: Endpoint URL.
            params: Query parameters, without the API key.
            error_cls: Exception type raised on failure.

        Returns:
            The JSON body. Its 'status' field is left for the caller to interpret,
            except OVER_QUERY_LIMIT which is retried here.

        Raises:
            error_cls: when the key is missing, the request keeps failing or the
                body is not JSON.
        """
        if not self.api_key:
            raise error_cls("Google Maps API key is not configured", status='NO_API_KEY')

        request_params = dict(params)
        request_params['key'] = self.api_key

        for attempt in range(self.max_retries):
            try:
                response = requests.get(url, params=request_params, timeout=self.timeout)
                response.raise_for_status()
                data = response.json()
            except HTTPError as http_err:
                status_code = http_err.response.status_code if http_err.response is not None else None
                logger.error(f"HTTP error from {url}: {http_err} - Status: {status_code}")
                if status_code == 429 and self._backoff(attempt, "Rate limit exceeded"):
                    continue
                if status_code in (401, 403):
                    raise error_cls("Google Maps rejected the API key", status='REQUEST_DENIED') from http_err
                raise error_cls(f"Google Maps request failed with HTTP {status_code}", status='HTTP_ERROR') from http_err
            except ValueError as json_err:
                logger.error(f"Failed to decode JSON response from {url}: {json_err}")
                raise error_cls("Malformed response from Google Maps", status='INVALID_RESPONSE') from json_err
            except RequestException as req_err:
                logger.error(f"Request exception calling {url}: {req_err}")
                if self._backoff(attempt, "Request failed"):
                    continue
                raise error_cls(f"Google Maps request failed: {req_err}", status='REQUEST_FAILED') from req_err

            if data.get('status') == 'OVER_QUERY_LIMIT':
                logger.warning(f"OVER_QUERY_LIMIT from {url} (attempt {attempt + 1}/{self.max_retries})")
                if self._backoff(attempt, "Query limit exceeded"):
                    continue
                raise error_cls("Google Maps query limit exceeded", status='OVER_QUERY_LIMIT')

            return data

        raise error_cls(f"Failed to fetch data from {url} after {self.max_retries} attempts.", status='REQUEST_FAILED')
