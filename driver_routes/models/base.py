from django.db import models


class AddressGeocache(models.Model):
    """Memoized geocoding answers, one row per normalized address."""
    address_hash = models.CharField(max_length=32, unique=True)  # md5 of the normalized address
    full_address = models.TextField()
    area = models.CharField(max_length=100, null=True, blank=True)
    governorate = models.CharField(max_length=100, null=True, blank=True)
    latitude = models.FloatField(null=True, blank=True)
    longitude = models.FloatField(null=True, blank=True)
    formatted_address = models.TextField(null=True, blank=True)
    is_valid = models.BooleanField(default=False)
    is_geocoded = models.BooleanField(default=False)
    error = models.CharField(max_length=64, null=True, blank=True)  # Provider status for invalid answers
    geocode_attempts = models.PositiveIntegerField(default=0)
    geocoded_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'address_geocache'
        verbose_name = "Address Geocache Entry"
        verbose_name_plural = "Address Geocache"
        indexes = [
            models.Index(fields=['area']),
            models.Index(fields=['governorate']),
            models.Index(fields=['is_valid']),
        ]

    def __str__(self):
        return f"{self.full_address} ({'valid' if self.is_valid else 'invalid'})"


class RouteOptimization(models.Model):
    """Last optimization result per driver. Absence means never optimized."""
    driver_id = models.UUIDField(unique=True)
    route_optimized = models.BooleanField(default=False)
    optimized_at = models.DateTimeField(null=True, blank=True)
    estimated_duration = models.CharField(max_length=64, null=True, blank=True)
    estimated_distance = models.CharField(max_length=64, null=True, blank=True)
    optimization_data = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'route_optimizations'
        verbose_name = "Route Optimization"
        verbose_name_plural = "Route Optimizations"
        indexes = [
            models.Index(fields=['route_optimized']),
            models.Index(fields=['optimized_at']),
        ]

    def __str__(self):
        return f"Route optimization for driver {self.driver_id}"
