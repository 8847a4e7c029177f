import uuid

from django.conf import settings
from django.db import models
from django.utils import timezone

__all__ = ["CartItem"]


class CartItem(models.Model):
    """
    Cart line owned either by a user or by an anonymous session id.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        related_name="cart_items",
        on_delete=models.CASCADE,
        null=True,
        blank=True,
    )
    session_id = models.CharField(max_length=64, blank=True, default="", db_index=True)

    product = models.ForeignKey(
        "catalog.Product",
        related_name="cart_items",
        on_delete=models.CASCADE,
    )
    quantity = models.PositiveIntegerField(default=1)

    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = "cart_items"
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["user"], name="cart_item_user_idx"),
            models.Index(fields=["session_id"], name="cart_item_session_idx"),
        ]

    def __str__(self):
        owner = self.user_id or self.session_id
        return f"{owner} -> {self.product_id} x {self.quantity}"
