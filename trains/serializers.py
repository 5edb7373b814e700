"""
Serializers for train management.
"""
from rest_framework import serializers
from .models import Train


class TrainSerializer(serializers.ModelSerializer):
    """Serializer for Train model."""

    class Meta:
        model = Train
        fields = ['train_number', 'train_name', 'origin', 'destination',
                  'specification', 'seats_available', 'created_at']
        read_only_fields = fields


class TrainCreateSerializer(serializers.Serializer):
    """Validated input for adding a train."""
    train_number = serializers.IntegerField(min_value=1)
    train_name = serializers.CharField(max_length=255)
    origin = serializers.CharField(max_length=255)
    destination = serializers.CharField(max_length=255)
    seats_available = serializers.IntegerField(min_value=1)
    specification = serializers.CharField(max_length=255, required=False, allow_blank=True)

    def validate(self, attrs):
        for field in ('train_name', 'origin', 'destination'):
            attrs[field] = attrs[field].strip()
            if not attrs[field]:
                raise serializers.ValidationError({field: "This field cannot be empty."})
        return attrs


class TrainUpdateSerializer(serializers.Serializer):
    """Partial update of the descriptive train fields."""
    train_name = serializers.CharField(max_length=255, required=False)
    origin = serializers.CharField(max_length=255, required=False)
    destination = serializers.CharField(max_length=255, required=False)
    specification = serializers.CharField(max_length=255, required=False, allow_blank=True)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("Provide at least one field to update.")
        return attrs
