"""
Exception hierarchy for driver route optimization.

Provider failures are never fatal to an optimization request: callers catch
ExternalServiceError and degrade to a cheaper strategy.
"""


class RouteOptimizationError(Exception):
    """Base class for all driver route errors."""


class InputError(RouteOptimizationError):
    """The request cannot be served with the data supplied."""


class NoOrdersError(InputError):
    """There is nothing to sequence."""


class NotFoundError(RouteOptimizationError):
    """The driver or its orders do not exist."""


class NoPickedUpOrdersError(NotFoundError):
    def __init__(self, driver_id):
        self.driver_id = driver_id
        super().__init__(f"No picked up orders found for driver {driver_id}")


class ExternalServiceError(RouteOptimizationError):
    """A mapping provider failed, timed out or refused the request."""

    def __init__(self, message, status=None):
        self.status = status
        super().__init__(message)


class GeocodeProviderError(ExternalServiceError):
    pass


class DistanceMatrixError(ExternalServiceError):
    pass


class DirectionsError(ExternalServiceError):
    pass
