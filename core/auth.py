"""
Authentication gate: registration, credential checks, bounded login attempts
and profile maintenance.
"""
import logging
from dataclasses import asdict, dataclass
from typing import Optional

from django.conf import settings
from django.db import DEFAULT_DB_ALIAS, DatabaseError, IntegrityError, transaction

from utils.backup import get_user_backup
from utils.exceptions import (
    DuplicateNationalId,
    DuplicateUsername,
    IncorrectPassword,
    InvalidCredentials,
    LockedOut,
    RegistrationFailed,
    UserNotFound,
)
from .models import User

logger = logging.getLogger(__name__)


@dataclass
class RegistrationProfile:
    """Already validated registration input."""
    username: str
    full_name: str
    phone: str
    address: str
    postal_code: str
    age: int
    national_id: Optional[str] = None


class AuthenticationGate:
    """
    Verifies credentials against the user store.

    All queries go through the ``using`` database alias. ``backup`` receives a
    flat copy of every registered user; its failures never undo a registration.
    """

    def __init__(self, using=DEFAULT_DB_ALIAS, backup=None):
        self.using = using
        self.backup = backup if backup is not None else get_user_backup()

    @property
    def users(self):
        return User.objects.db_manager(self.using)

    def has_users(self):
        return self.users.exists()

    def register(self, profile: RegistrationProfile, password: str) -> User:
        """
        Create a user with a fresh identity and a salted hash of ``password``.

        Raises DuplicateUsername / DuplicateNationalId on uniqueness
        violations, RegistrationFailed when the store rolls back.
        """
        fields = asdict(profile)
        username = fields.pop('username')
        fields['national_id'] = fields['national_id'] or None

        self._check_unique(username, fields['national_id'])
        try:
            with transaction.atomic(using=self.using):
                user = self.users.create_user(username=username, password=password, **fields)
        except IntegrityError as exc:
            # A concurrent registration took the username or national ID first
            self._check_unique(username, fields['national_id'])
            logger.exception("Registration of %s rolled back", username)
            raise RegistrationFailed(cause=exc) from exc
        except DatabaseError as exc:
            logger.exception("Registration of %s rolled back", username)
            raise RegistrationFailed(cause=exc) from exc

        logger.info("Registered user %s (%s)", user.pk, user.username)
        self._backup(user)
        return user

    def authenticate(self, username: str, password: str) -> User:
        """
        Return the user whose stored hash verifies ``password``.

        Unknown usernames and wrong passwords raise the same
        InvalidCredentials error.
        """
        try:
            user = self.users.get_by_natural_key(username)
        except User.DoesNotExist:
            # Hash anyway so an unknown username costs as much as a wrong password
            User().set_password(password)
            raise InvalidCredentials()

        if not user.check_password(password) or not user.is_active:
            raise InvalidCredentials()
        return user

    def get_profile(self, user_id) -> User:
        try:
            return self.users.get(pk=user_id)
        except User.DoesNotExist:
            raise UserNotFound()

    def update_profile(self, user_id, **changes) -> User:
        """Field-level update of full_name, phone, address and postal_code."""
        unknown = set(changes) - set(User.PROFILE_FIELDS)
        if unknown:
            raise ValueError(f"Profile fields not editable: {', '.join(sorted(unknown))}")

        with transaction.atomic(using=self.using):
            try:
                user = self.users.select_for_update().get(pk=user_id)
            except User.DoesNotExist:
                raise UserNotFound()
            for field, value in changes.items():
                setattr(user, field, value)
            user.save(update_fields=list(changes))

        logger.info("Updated profile of %s: %s", user_id, ', '.join(changes))
        return user

    def change_password(self, user_id, current_password: str, new_password: str) -> None:
        user = self.get_profile(user_id)
        if not user.check_password(current_password):
            raise IncorrectPassword()
        user.set_password(new_password)
        user.save(update_fields=['password'])
        logger.info("Password changed for %s", user_id)

    def _check_unique(self, username, national_id):
        if self.users.filter(username=username).exists():
            raise DuplicateUsername()
        if national_id and self.users.filter(national_id=national_id).exists():
            raise DuplicateNationalId()

    def _backup(self, user):
        try:
            self.backup.write(user.backup_record())
        except Exception:
            logger.warning("Failed to back up user %s", user.pk, exc_info=True)


class LoginSession:
    """
    One interactive login attempt sequence.

    After ``max_attempts`` consecutive failures the session raises LockedOut
    and refuses further attempts. The counter lives only in this object.
    """

    def __init__(self, gate: AuthenticationGate, max_attempts: Optional[int] = None):
        self.gate = gate
        self.max_attempts = settings.LOGIN_MAX_ATTEMPTS if max_attempts is None else max_attempts
        self.failures = 0

    @property
    def locked_out(self):
        return self.failures >= self.max_attempts

    @property
    def attempts_remaining(self):
        return max(self.max_attempts - self.failures, 0)

    def attempt(self, username: str, password: str) -> User:
        if self.locked_out:
            raise LockedOut()

        try:
            user = self.gate.authenticate(username, password)
        except InvalidCredentials:
            self.failures += 1
            if self.locked_out:
                logger.warning("Login locked out after %d failed attempts", self.failures)
                raise LockedOut()
            raise

        self.failures = 0
        return user
