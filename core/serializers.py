"""Serializers for user registration, login and profile maintenance."""
from django.core.validators import RegexValidator
from rest_framework import serializers

from .auth import RegistrationProfile
from .models import User

name_validator = RegexValidator(r'^[A-Za-z ]+$', 'Invalid name format.')
phone_validator = RegexValidator(r'^\d{10}$', 'Phone number must be 10 digits.')
national_id_validator = RegexValidator(r'^\d{12}$', 'National ID number must be 12 digits.')
postal_code_validator = RegexValidator(r'^\d{6}$', 'Postal code must be 6 digits.')
username_validator = RegexValidator(r'^[A-Za-z0-9_]+$', 'Username may contain letters, digits and underscores only.')


class UserSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ['id', 'username', 'full_name', 'phone', 'national_id', 'address',
                  'postal_code', 'age', 'is_admin', 'created_at']
        read_only_fields = fields


class UserRegistrationSerializer(serializers.Serializer):
    username = serializers.CharField(max_length=30, validators=[username_validator])
    full_name = serializers.CharField(max_length=50, validators=[name_validator])
    age = serializers.IntegerField(min_value=15, max_value=120)
    phone = serializers.CharField(validators=[phone_validator])
    national_id = serializers.CharField(required=False, allow_blank=True, validators=[national_id_validator])
    address = serializers.CharField(max_length=100)
    postal_code = serializers.CharField(validators=[postal_code_validator])
    password = serializers.CharField(write_only=True, min_length=8)
    password_confirm = serializers.CharField(write_only=True)

    def validate_address(self, value):
        if not value.strip():
            raise serializers.ValidationError("Address cannot be empty.")
        return value.strip()

    def validate(self, attrs):
        if attrs['password'] != attrs['password_confirm']:
            raise serializers.ValidationError({'password_confirm': "Password fields didn't match."})
        return attrs

    def to_profile(self):
        data = self.validated_data
        return RegistrationProfile(
            username=data['username'],
            full_name=data['full_name'],
            phone=data['phone'],
            address=data['address'],
            postal_code=data['postal_code'],
            age=data['age'],
            national_id=data.get('national_id') or None,
        )


class UserLoginSerializer(serializers.Serializer):
    username = serializers.CharField()
    password = serializers.CharField(write_only=True)


class ProfileUpdateSerializer(serializers.Serializer):
    full_name = serializers.CharField(max_length=50, required=False, validators=[name_validator])
    phone = serializers.CharField(required=False, validators=[phone_validator])
    address = serializers.CharField(max_length=100, required=False)
    postal_code = serializers.CharField(required=False, validators=[postal_code_validator])

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("Provide at least one field to update.")
        return attrs


class PasswordChangeSerializer(serializers.Serializer):
    current_password = serializers.CharField(write_only=True)
    new_password = serializers.CharField(write_only=True, min_length=8)
    new_password_confirm = serializers.CharField(write_only=True)

    def validate(self, attrs):
        if attrs['new_password'] != attrs['new_password_confirm']:
            raise serializers.ValidationError({'new_password_confirm': "Passwords don't match."})
        return attrs
