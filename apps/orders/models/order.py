import uuid
from django.conf import settings
from django.db import models
from django.utils import timezone

__all__ = ["Order", "OrderStatus"]


class OrderStatus(models.TextChoices):
    PENDING_PAYMENT = "pending_payment", "Pending Payment"
    PAID = "paid", "Paid"
    PREPARING = "preparing", "Preparing"
    READY = "ready", "Ready for Pickup"
    PICKED_UP = "picked_up", "Picked Up"
    CANCELLED_EXPIRED = "cancelled_expired", "Cancelled (Expired)"


class Order(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order_number = models.CharField(max_length=40, unique=True, db_index=True)

    # Guest checkout leaves this empty
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='orders',
    )
    customer_name = models.CharField(max_length=150)
    customer_phone = models.CharField(max_length=32)
    customer_email = models.EmailField(blank=True, default="")

    pickup_slot = models.ForeignKey(
        "orders.PickupSlot",
        on_delete=models.PROTECT,
        related_name="orders",
    )

    status = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING_PAYMENT,
        db_index=True,
    )
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    currency = models.CharField(max_length=3, default="XAF")
    payment_method = models.CharField(max_length=20, blank=True, default="")
    notes = models.TextField(blank=True, default="")

    temp_pickup_code = models.CharField(max_length=12, blank=True, default="")
    final_pickup_code = models.CharField(max_length=12, blank=True, default="")

    expires_at = models.DateTimeField(null=True, blank=True, db_index=True)
    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "expires_at"], name="order_status_expiry_idx"),
        ]

    def __str__(self):
        return f"{self.order_number} [{self.status}]"
