"""
Serializers for reservations and tickets.
"""
from django.utils import timezone
from rest_framework import serializers

from .models import BerthType, Reservation


class BookingSerializer(serializers.ModelSerializer):
    """Serializer for viewing reservations."""
    train_number = serializers.IntegerField(source='train_id', read_only=True)
    train_name = serializers.CharField(source='train.train_name', read_only=True)

    class Meta:
        model = Reservation
        fields = ['id', 'train_number', 'train_name', 'berth_type', 'meals_required',
                  'travel_date', 'created_at']
        read_only_fields = fields


class BookingCreateSerializer(serializers.Serializer):
    """Serializer for creating a reservation."""
    train_number = serializers.IntegerField(min_value=1)
    berth_type = serializers.CharField()
    meals_required = serializers.BooleanField(default=False)
    travel_date = serializers.DateField()

    def validate_berth_type(self, value):
        try:
            return BerthType.normalize(value)
        except ValueError:
            raise serializers.ValidationError(
                f"Berth type must be one of: {', '.join(BerthType.labels)}."
            )

    def validate_travel_date(self, value):
        if value < timezone.localdate():
            raise serializers.ValidationError("Cannot book for past dates.")
        return value


class TicketQuerySerializer(serializers.Serializer):
    train_number = serializers.IntegerField(min_value=1)
    travel_date = serializers.DateField()


class TicketSerializer(serializers.Serializer):
    reservation_id = serializers.IntegerField()
    passenger_name = serializers.CharField()
    train_number = serializers.IntegerField()
    train_name = serializers.CharField()
    berth_type = serializers.CharField()
    meals_required = serializers.BooleanField()
    travel_date = serializers.DateField()
    booked_at = serializers.DateTimeField()
