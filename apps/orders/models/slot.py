import uuid
from django.db import models

__all__ = ["PickupSlot"]


class PickupSlot(models.Model):
    """
    Time window customers can collect their order in.
    `remaining` only moves through conditional updates (book / release).
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    date = models.DateField(db_index=True)
    time_from = models.TimeField()
    time_to = models.TimeField()

    capacity = models.PositiveIntegerField(default=50)
    remaining = models.PositiveIntegerField(default=50)
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = "pickup_slots"
        ordering = ["date", "time_from"]

    def __str__(self):
        return f"{self.date} {self.time_from:%H:%M}-{self.time_to:%H:%M} ({self.remaining}/{self.capacity})"
