"""Reservation models."""
from django.db import models

from core.models import User
from trains.models import Train


class BerthType(models.TextChoices):
    LOWER = 'LOWER', 'Lower'
    UPPER = 'UPPER', 'Upper'
    MIDDLE = 'MIDDLE', 'Middle'
    SIDE = 'SIDE', 'Side'

    @classmethod
    def normalize(cls, value):
        """Map 'lower', 'Lower', BerthType.LOWER... onto the stored value."""
        normalized = str(value).strip().upper()
        if normalized not in cls.values:
            raise ValueError(f"Unknown berth type: {value!r}")
        return cls(normalized)


class Reservation(models.Model):
    """
    One booked seat. Existing rows are always counted against their train's
    ``seats_available``; rows are created and deleted only by the
    reservation engine.
    """
    user = models.ForeignKey(User, on_delete=models.PROTECT, related_name='reservations')
    train = models.ForeignKey(Train, on_delete=models.PROTECT, related_name='reservations')
    berth_type = models.CharField(max_length=10, choices=BerthType.choices)
    meals_required = models.BooleanField(default=False)
    travel_date = models.DateField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'reservations'
        ordering = ['travel_date', 'id']
        indexes = [
            models.Index(fields=['user', 'travel_date'], name='reservations_user_date_idx'),
            models.Index(fields=['user', 'train', 'travel_date'], name='reservations_ticket_idx'),
        ]

    def __str__(self):
        return f"Reservation {self.pk} - {self.user_id} on {self.train_id} ({self.travel_date})"
