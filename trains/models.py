"""
Train inventory models.
"""
from django.db import models


class Train(models.Model):
    """
    A train and its remaining bookable capacity.
    Maps to the 'trains' table.

    ``seats_available`` is written only by the reservation engine once the
    train exists; it never drops below zero.
    """
    train_number = models.PositiveIntegerField(primary_key=True)
    train_name = models.CharField(max_length=255)
    origin = models.CharField(max_length=255)
    destination = models.CharField(max_length=255)
    specification = models.CharField(max_length=255, blank=True, null=True)
    seats_available = models.PositiveIntegerField()
    created_at = models.DateTimeField(auto_now_add=True)

    # Fields inventory management may edit after creation
    EDITABLE_FIELDS = ('train_name', 'origin', 'destination', 'specification')

    class Meta:
        db_table = 'trains'
        ordering = ['train_number']
        constraints = [
            models.CheckConstraint(
                condition=models.Q(seats_available__gte=0),
                name='train_seats_available_non_negative',
            ),
        ]
        indexes = [
            models.Index(fields=['origin', 'destination'], name='trains_route_idx'),
        ]

    def __str__(self):
        return f"{self.train_number} - {self.train_name}"

    def can_book(self):
        """Check if at least one seat is left."""
        return self.seats_available > 0
