from .base import AddressGeocache, RouteOptimization
from .orders import DriverOrder
