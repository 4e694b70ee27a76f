from django.apps import AppConfig


class DriverRoutesConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'driver_routes'
    verbose_name = 'Driver Route Optimization'
