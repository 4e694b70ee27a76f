"""
Serializers for the driver routes API.

Request serializers validate the options accepted by the optimization and
route-building endpoints; response serializers document the payloads.
"""
import logging
from rest_framework import serializers

from driver_routes.core.algorithm_selector import normalize_algorithm
from driver_routes.core.constants import ALGORITHM_HYBRID
from driver_routes.core.exceptions import InputError

logger = logging.getLogger(__name__)


class AlgorithmField(serializers.CharField):
    """Algorithm name; any case and the legacy aliases are accepted."""

    def to_internal_value(self, data):
        value = super().to_internal_value(data)
        try:
            return normalize_algorithm(value)
        except InputError as e:
            raise serializers.ValidationError(str(e))


class OptimizeRouteRequestSerializer(serializers.Serializer):
    force_recalculate = serializers.BooleanField(default=False, help_text="Ignore a stored optimization and recompute the sequence.")
    include_traffic = serializers.BooleanField(default=False, help_text="Use traffic-aware travel times (departure time 'now').")
    algorithm = AlgorithmField(required=False, default=ALGORITHM_HYBRID,
                               help_text="HYBRID (automatic), PRIORITY_BASED, PRIORITY_WITH_DISTANCE, NEAREST_NEIGHBOR or MULTI_START_NEAREST_NEIGHBOR. 'genetic' and 'or_tools' are accepted as aliases of the multi-start heuristic.")
    use_google_maps = serializers.BooleanField(required=False, allow_null=True, default=None,
                                               help_text="Use geocoding and the distance matrix. Defaults to the server setting.")


class BuildRouteRequestSerializer(serializers.Serializer):
    algorithm = AlgorithmField(required=False, default=ALGORITHM_HYBRID, help_text="Sequencing algorithm, as for the optimize endpoint.")
    include_traffic = serializers.BooleanField(default=True, help_text="Use traffic-aware travel times.")
    include_directions = serializers.BooleanField(default=True, help_text="Fetch turn-by-turn directions between stops.")
    generate_map_url = serializers.BooleanField(default=True, help_text="Include a Google Maps directions link.")
    use_google_maps = serializers.BooleanField(required=False, allow_null=True, default=None,
                                               help_text="Use Google Maps data. Defaults to the server setting.")


class MapDataQuerySerializer(serializers.Serializer):
    include_traffic = serializers.BooleanField(default=True, help_text="Use traffic-aware travel times for distance data.")


class OptimizedOrderSerializer(serializers.Serializer):
    id = serializers.CharField(help_text="Order identifier.")
    order_number = serializers.CharField(allow_null=True, required=False)
    delivery_address = serializers.CharField()
    priority = serializers.CharField(help_text="LOW, NORMAL, HIGH or URGENT.")
    sequence_number = serializers.IntegerField(help_text="1-based position in the optimized route.")


class OptimizationResponseSerializer(serializers.Serializer):
    driver_id = serializers.CharField()
    from_cache = serializers.BooleanField(help_text="True when the stored optimization was returned without recomputing.")
    algorithm = serializers.CharField(allow_null=True, help_text="Heuristic that produced the sequence.")
    optimized_orders = OptimizedOrderSerializer(many=True)
    estimated_duration = serializers.CharField(allow_null=True)
    estimated_distance = serializers.CharField(allow_null=True)
    optimized_at = serializers.CharField(allow_null=True)
    real_distance_calculated = serializers.BooleanField(help_text="True when real travel data from Google Maps was used.")
    estimated_improvement = serializers.CharField(allow_null=True, required=False)
    optimization_data = serializers.DictField()

    class Meta:
        ref_name = 'DriverRouteOptimization'


class GeocacheStatsSerializer(serializers.Serializer):
    total_addresses = serializers.IntegerField()
    valid_addresses = serializers.IntegerField()
    geocoded_addresses = serializers.IntegerField()
    cache_hit_rate = serializers.CharField(help_text="Percentage of cached addresses that were geocoded, two decimals.")
