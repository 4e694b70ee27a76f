from driver_routes.core.constants import ORDER_STATUS_PICKED_UP
from driver_routes.models import DriverOrder


class OrderClient:
    @staticmethod
    def get_picked_up_orders(driver_id):
        """Orders currently in the driver's vehicle, highest priority first."""
        rows = DriverOrder.objects.filter(driver_id=driver_id, status=ORDER_STATUS_PICKED_UP)
        orders = [row.to_delivery_order() for row in rows]
        return sorted(orders, key=lambda order: order.priority_sort_key())

    @staticmethod
    def get_drivers_with_picked_up_orders():
        driver_ids = (
            DriverOrder.objects
            .filter(status=ORDER_STATUS_PICKED_UP, driver_id__isnull=False)
            .values_list('driver_id', flat=True)
            .distinct()
        )
        return sorted(str(driver_id) for driver_id in driver_ids)
