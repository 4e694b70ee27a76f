"""
API views for driver route optimization.

Views are thin: they validate input, call DriverRouteService and map the
service's exceptions onto HTTP status codes.
"""
import logging

from drf_yasg import openapi
from drf_yasg.utils import swagger_auto_schema
from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.response import Response
from rest_framework.views import APIView

from driver_routes.api.serializers import (
    BuildRouteRequestSerializer,
    GeocacheStatsSerializer,
    MapDataQuerySerializer,
    OptimizationResponseSerializer,
    OptimizeRouteRequestSerializer,
)
from driver_routes.core.exceptions import InputError, NotFoundError
from driver_routes.services.driver_route_service import DriverRouteService
from driver_routes.services.route_builder import RouteBuildOptions
from driver_routes.settings import USE_GOOGLE_MAPS_BY_DEFAULT

logger = logging.getLogger(__name__)


def _error_response(error, action):
    if isinstance(error, NotFoundError):
        return Response({"error": str(error)}, status=status.HTTP_404_NOT_FOUND)
    if isinstance(error, InputError):
        return Response({"error": str(error)}, status=status.HTTP_400_BAD_REQUEST)
    logger.exception("Unexpected error while %s: %s", action, str(error))
    return Response(
        {"error": f"An unexpected error occurred while {action}. Please try again later."},
        status=status.HTTP_500_INTERNAL_SERVER_ERROR
    )


class DriverOrdersView(APIView):
    @swagger_auto_schema(
        operation_id="driver_orders_list",
        operation_description="Lists the driver's picked-up orders, highest priority first.",
        tags=['Driver Routes']
    )
    def get(self, request, driver_id, format=None):
        try:
            return Response(DriverRouteService().get_driver_orders(driver_id), status=status.HTTP_200_OK)
        except Exception as e:
            return _error_response(e, "loading driver orders")


class OptimizeRouteView(APIView):
    @swagger_auto_schema(
        request_body=OptimizeRouteRequestSerializer,
        responses={
            200: OptimizationResponseSerializer,
            400: "Bad Request - Invalid options",
            404: "Driver has no picked-up orders",
            500: "Internal Server Error - Optimization failed"
        },
        operation_id="driver_route_optimize",
        operation_description="""Optimizes the delivery sequence of the driver's picked-up orders.
        A stored optimization is returned with from_cache=true unless force_recalculate is set.""",
        tags=['Driver Routes']
    )
    def post(self, request, driver_id, format=None):
        serializer = OptimizeRouteRequestSerializer(data=request.data)
        if not serializer.is_valid():
            logger.error(f"OptimizeRouteView validation error: {serializer.errors}")
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        data = serializer.validated_data
        try:
            result = DriverRouteService().optimize(
                driver_id,
                force_recalculate=data['force_recalculate'],
                include_traffic=data['include_traffic'],
                algorithm=data['algorithm'],
                use_google_maps=data.get('use_google_maps'),
            )
        except Exception as e:
            return _error_response(e, "optimizing the route")
        return Response(result, status=status.HTTP_200_OK)


class CurrentRouteView(APIView):
    @swagger_auto_schema(
        operation_id="driver_route_current",
        operation_description="Returns the driver's orders together with the stored optimization, if any.",
        tags=['Driver Routes']
    )
    def get(self, request, driver_id, format=None):
        try:
            return Response(DriverRouteService().get_current_route(driver_id), status=status.HTTP_200_OK)
        except Exception as e:
            return _error_response(e, "loading the current route")


class BuildRouteView(APIView):
    @swagger_auto_schema(
        request_body=BuildRouteRequestSerializer,
        responses={
            200: "Navigable route with stops, metrics and navigation data",
            400: "Bad Request - Invalid options",
            404: "Driver has no picked-up orders",
        },
        operation_id="driver_route_build",
        operation_description="""Builds a navigable route: optimized stops with cumulative arrival times,
        distance and duration totals, optional turn-by-turn directions and a Google Maps link.""",
        tags=['Driver Routes']
    )
    def post(self, request, driver_id, format=None):
        serializer = BuildRouteRequestSerializer(data=request.data)
        if not serializer.is_valid():
            logger.error(f"BuildRouteView validation error: {serializer.errors}")
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        data = serializer.validated_data
        use_google_maps = data.get('use_google_maps')
        options = RouteBuildOptions(
            algorithm=data['algorithm'],
            include_traffic=data['include_traffic'],
            include_directions=data['include_directions'],
            generate_map_url=data['generate_map_url'],
            use_google_maps=USE_GOOGLE_MAPS_BY_DEFAULT if use_google_maps is None else use_google_maps,
        )
        try:
            return Response(DriverRouteService().build_route(driver_id, options), status=status.HTTP_200_OK)
        except Exception as e:
            return _error_response(e, "building the route")


class DriverMapDataView(APIView):
    @swagger_auto_schema(
        query_serializer=MapDataQuerySerializer,
        operation_id="driver_route_map",
        operation_description="Geocoded order markers, distance data, map bounds and centre for the driver.",
        tags=['Driver Routes']
    )
    def get(self, request, driver_id, format=None):
        serializer = MapDataQuerySerializer(data=request.query_params)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        try:
            result = DriverRouteService().get_driver_map_data(
                driver_id, include_traffic=serializer.validated_data['include_traffic'])
        except Exception as e:
            return _error_response(e, "loading map data")
        return Response(result, status=status.HTTP_200_OK)


class ClearOptimizationView(APIView):
    @swagger_auto_schema(
        operation_id="driver_route_optimization_clear",
        operation_description="Deletes the stored optimization so the next request recomputes it.",
        tags=['Driver Routes']
    )
    def delete(self, request, driver_id, format=None):
        try:
            return Response(DriverRouteService().clear_route_optimization(driver_id), status=status.HTTP_200_OK)
        except Exception as e:
            return _error_response(e, "clearing the route optimization")


class AllDriverRoutesView(APIView):
    @swagger_auto_schema(
        operation_id="driver_routes_overview",
        operation_description="Route overview for every driver holding picked-up orders.",
        tags=['Driver Routes Admin']
    )
    def get(self, request, format=None):
        try:
            return Response(DriverRouteService().get_all_driver_routes(), status=status.HTTP_200_OK)
        except Exception as e:
            return _error_response(e, "loading driver routes")


class GeocacheStatsView(APIView):
    @swagger_auto_schema(
        responses={200: GeocacheStatsSerializer},
        operation_id="geocache_stats",
        tags=['Driver Routes Admin']
    )
    def get(self, request, format=None):
        try:
            return Response(DriverRouteService().get_geocache_stats(), status=status.HTTP_200_OK)
        except Exception as e:
            return _error_response(e, "loading geocache statistics")


class ClearGeocacheView(APIView):
    @swagger_auto_schema(
        responses={200: openapi.Response("Number of deleted cache entries",
                                         examples={"application/json": {"deleted_count": 42}})},
        operation_id="geocache_clear",
        tags=['Driver Routes Admin']
    )
    def delete(self, request, format=None):
        try:
            return Response(DriverRouteService().clear_geocache(), status=status.HTTP_200_OK)
        except Exception as e:
            return _error_response(e, "clearing the geocache")


class ValidateMapsConfigView(APIView):
    @swagger_auto_schema(
        operation_id="maps_config_validate",
        operation_description="Probes the Geocoding, Distance Matrix and Directions APIs with the configured key.",
        tags=['Driver Routes Admin']
    )
    def get(self, request, format=None):
        try:
            return Response(DriverRouteService().validate_google_maps_config(), status=status.HTTP_200_OK)
        except Exception as e:
            return _error_response(e, "validating the Google Maps configuration")


@swagger_auto_schema(
    method='get',
    operation_id="health_check_get",
    responses={
        200: openapi.Response(
            description="API is healthy.",
            examples={"application/json": {"status": "healthy"}}
        ),
    },
    tags=['Health Check']
)
@api_view(['GET'])
def health_check(request):
    return Response({"status": "healthy"}, status=status.HTTP_200_OK)
