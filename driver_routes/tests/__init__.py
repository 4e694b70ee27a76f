import os
import django

# Configure Django settings before any tests are run
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'driver_routes.tests.test_settings')
django.setup()

# python -m pytest driver_routes/tests/
# python manage.py test driver_routes --settings=driver_routes.tests.test_settings
