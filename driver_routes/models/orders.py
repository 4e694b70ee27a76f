import uuid

from django.db import models
from django.utils import timezone

from driver_routes.core.constants import (
    DEFAULT_DELIVERY_PRIORITY,
    ORDER_STATUS_PICKED_UP,
    PRIORITY_CHOICES,
)
from driver_routes.core.route_types import DeliveryOrder


class DriverOrder(models.Model):
    """
    Read projection of the order system: the orders assigned to a driver.

    Order lifecycle and validation belong to the order service; this app only
    reads the rows that are in a driver's hands.
    """
    STATUS_CHOICES = [
        ('PENDING', 'Pending'),
        ('ASSIGNED', 'Assigned'),
        (ORDER_STATUS_PICKED_UP, 'Picked Up'),
        ('DELIVERED', 'Delivered'),
        ('CANCELLED', 'Cancelled'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order_number = models.CharField(max_length=32, unique=True)
    driver_id = models.UUIDField(null=True, blank=True, db_index=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='PENDING')
    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default=DEFAULT_DELIVERY_PRIORITY)

    customer_name = models.CharField(max_length=255, blank=True, default='')
    customer_phone = models.CharField(max_length=32, blank=True, default='')
    delivery_address = models.TextField()
    area = models.CharField(max_length=100, null=True, blank=True)
    governorate = models.CharField(max_length=100, null=True, blank=True)
    notes = models.TextField(null=True, blank=True)
    route_sequence = models.PositiveIntegerField(null=True, blank=True)

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'driver_orders'
        indexes = [
            models.Index(fields=['driver_id', 'status']),
        ]

    def __str__(self):
        return f"Order {self.order_number} ({self.status})"

    def to_delivery_order(self) -> DeliveryOrder:
        return DeliveryOrder(
            id=str(self.id),
            delivery_address=self.delivery_address,
            priority=self.priority,
            created_at=self.created_at,
            order_number=self.order_number,
            customer_name=self.customer_name,
            customer_phone=self.customer_phone,
            area=self.area,
            governorate=self.governorate,
            notes=self.notes,
            route_sequence=self.route_sequence,
        )
