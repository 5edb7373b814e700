"""
Custom User model for username/password authentication.
"""
import uuid

from django.db import models
from django.contrib.auth.models import AbstractBaseUser, BaseUserManager, PermissionsMixin
from django.utils import timezone


def generate_user_id():
    return f"USER{uuid.uuid4().hex[:16].upper()}"


class UserManager(BaseUserManager):
    """Custom user manager for username-based authentication."""
    use_in_migrations = True

    def create_user(self, username, password=None, **extra_fields):
        """Create and save a regular user."""
        if not username:
            raise ValueError('The Username field must be set')

        # Unique but optional: an empty value must not collide with other empty values
        extra_fields['national_id'] = extra_fields.get('national_id') or None

        user = self.model(username=username, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, username, password=None, **extra_fields):
        """Create and save a superuser."""
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('is_admin', True)

        if extra_fields.get('is_staff') is not True:
            raise ValueError('Superuser must have is_staff=True.')
        if extra_fields.get('is_superuser') is not True:
            raise ValueError('Superuser must have is_superuser=True.')

        return self.create_user(username, password, **extra_fields)


class User(AbstractBaseUser, PermissionsMixin):
    """
    Registered passenger. ``password`` holds the salted one-way hash.
    Maps to the 'users' table.
    """
    id = models.CharField(primary_key=True, max_length=30, default=generate_user_id, editable=False)
    username = models.CharField(unique=True, max_length=30)
    full_name = models.CharField(max_length=50)
    phone = models.CharField(max_length=15)
    national_id = models.CharField(max_length=12, unique=True, blank=True, null=True)
    address = models.CharField(max_length=100)
    postal_code = models.CharField(max_length=6)
    age = models.PositiveSmallIntegerField()
    is_admin = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)
    is_staff = models.BooleanField(default=False)
    created_at = models.DateTimeField(default=timezone.now)

    objects = UserManager()

    USERNAME_FIELD = 'username'
    REQUIRED_FIELDS = ['full_name', 'phone', 'address', 'postal_code', 'age']

    # Fields a user may change on their own profile
    PROFILE_FIELDS = ('full_name', 'phone', 'address', 'postal_code')

    class Meta:
        db_table = 'users'

    def __str__(self):
        return self.username

    def get_full_name(self):
        return self.full_name

    def get_short_name(self):
        return self.full_name.split()[0] if self.full_name else self.username

    def backup_record(self):
        """Flat record handed to the user backup sink."""
        return {
            'user_id': self.pk,
            'username': self.username,
            'full_name': self.full_name,
            'age': self.age,
            'phone': self.phone,
            'national_id': self.national_id or '',
            'address': self.address,
            'postal_code': self.postal_code,
        }
