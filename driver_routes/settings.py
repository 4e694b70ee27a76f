import os
import sys
import logging

from driver_routes.utils.env_loader import load_env_from_file, env_flag

logger = logging.getLogger(__name__)

# Try different possible locations for the env file
env_paths = [
    os.path.join(os.path.dirname(os.path.dirname(__file__)), 'env_var.env'),  # Project root
    os.path.join(os.path.dirname(__file__), 'env_var.env'),  # App directory
]

for path in env_paths:
    if load_env_from_file(path, override=False):
        break

# Determine if we're in test mode
TESTING = 'test' in sys.argv or 'pytest' in sys.modules

# Google Maps API configuration
GOOGLE_MAPS_API_KEY = os.getenv('GOOGLE_MAPS_API_KEY')
if not GOOGLE_MAPS_API_KEY:
    if TESTING:
        GOOGLE_MAPS_API_KEY = "test_dummy_key_for_unit_tests"
    else:
        # Provider calls fail fast and the engine falls back to priority ordering
        logger.warning("GOOGLE_MAPS_API_KEY is not set; route optimization will run without map data.")

GOOGLE_GEOCODE_API_URL = os.getenv(
    'GOOGLE_GEOCODE_API_URL', 'https://maps.googleapis.com/maps/api/geocode/json')
GOOGLE_DISTANCE_MATRIX_API_URL = os.getenv(
    'GOOGLE_DISTANCE_MATRIX_API_URL', 'https://maps.googleapis.com/maps/api/distancematrix/json')
GOOGLE_DIRECTIONS_API_URL = os.getenv(
    'GOOGLE_DIRECTIONS_API_URL', 'https://maps.googleapis.com/maps/api/directions/json')
GOOGLE_MAPS_REGION = os.getenv('GOOGLE_MAPS_REGION', 'EG')
GOOGLE_MAPS_LANGUAGE = os.getenv('GOOGLE_MAPS_LANGUAGE', 'ar')
USE_GOOGLE_MAPS_BY_DEFAULT = env_flag('USE_GOOGLE_MAPS_BY_DEFAULT', True)

# Provider timeout is configured in milliseconds
GOOGLE_API_REQUEST_TIMEOUT = int(os.getenv('GOOGLE_API_REQUEST_TIMEOUT', '5000')) / 1000.0

# API request settings
MAX_RETRIES = int(os.getenv('GOOGLE_API_MAX_RETRIES', '3'))
BACKOFF_FACTOR = 2  # Exponential backoff
RETRY_DELAY_SECONDS = 1

# Pause between consecutive geocoding calls in a batch
GEOCODE_BATCH_DELAY_SECONDS = float(os.getenv('GEOCODE_BATCH_DELAY_SECONDS', '0.1'))

# Time spent at each stop before driving on
DELIVERY_DWELL_MINUTES = int(os.getenv('DELIVERY_DWELL_MINUTES', '10'))
