"""
URL configuration for the driver routes API.
"""
from django.urls import path
from driver_routes.api.views import (
    AllDriverRoutesView,
    BuildRouteView,
    ClearGeocacheView,
    ClearOptimizationView,
    CurrentRouteView,
    DriverMapDataView,
    DriverOrdersView,
    GeocacheStatsView,
    OptimizeRouteView,
    ValidateMapsConfigView,
    health_check,
)

app_name = 'driver_routes'

urlpatterns = [
    path('health/', health_check, name='health_check_get'),

    # Per-driver endpoints
    path('driver/<uuid:driver_id>/orders/', DriverOrdersView.as_view(), name='driver_orders'),
    path('driver/<uuid:driver_id>/optimize/', OptimizeRouteView.as_view(), name='driver_route_optimize'),
    path('driver/<uuid:driver_id>/current/', CurrentRouteView.as_view(), name='driver_route_current'),
    path('driver/<uuid:driver_id>/build/', BuildRouteView.as_view(), name='driver_route_build'),
    path('driver/<uuid:driver_id>/map/', DriverMapDataView.as_view(), name='driver_route_map'),
    path('driver/<uuid:driver_id>/optimization/', ClearOptimizationView.as_view(), name='driver_route_optimization_clear'),

    # Administration
    path('admin/all-routes/', AllDriverRoutesView.as_view(), name='driver_routes_overview'),
    path('admin/geocache/stats/', GeocacheStatsView.as_view(), name='geocache_stats'),
    path('admin/geocache/clear/', ClearGeocacheView.as_view(), name='geocache_clear'),
    path('admin/maps/validate/', ValidateMapsConfigView.as_view(), name='maps_config_validate'),
]
