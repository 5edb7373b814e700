"""
Tests for core app - users and the authentication gate.
Tests cover: Model constraints, Registration, Credential checks, Login lockout,
Profile maintenance, REST auth flow, Terminal front end.
"""
from datetime import date
from io import StringIO

from django.core.management import call_command
from django.db import IntegrityError, transaction
from django.test import TestCase, override_settings
from rest_framework import status
from rest_framework.test import APITestCase

from bookings.models import Reservation
from core.auth import AuthenticationGate, LoginSession, RegistrationProfile
from core.models import User
from trains.models import Train
from utils.exceptions import (
    DuplicateNationalId,
    DuplicateUsername,
    IncorrectPassword,
    InvalidCredentials,
    LockedOut,
    Unauthorized,
    Conflict,
    UserNotFound,
)


class RecordingBackup:
    def __init__(self):
        self.records = []

    def write(self, record):
        self.records.append(record)


class FailingBackup:
    def write(self, record):
        raise OSError('disk full')


def make_profile(**overrides):
    data = {
        'username': 'ravi_k',
        'full_name': 'Ravi Kumar',
        'phone': '9876543210',
        'national_id': '123412341234',
        'address': '12 MG Road',
        'postal_code': '560001',
        'age': 34,
    }
    data.update(overrides)
    return RegistrationProfile(**data)


def create_user(username='testuser', password='TestPass123', **extra):
    fields = {
        'full_name': 'Test User',
        'phone': '9999999999',
        'address': 'Somewhere',
        'postal_code': '110001',
        'age': 30,
    }
    fields.update(extra)
    return User.objects.create_user(username=username, password=password, **fields)


# =============================================================================
# UNIT TESTS - Models
# =============================================================================

class UserModelTests(TestCase):
    """Test User model constraints and methods."""

    def test_create_user_hashes_password(self):
        user = create_user(password='plaintext1')

        self.assertNotEqual(user.password, 'plaintext1')
        self.assertTrue(user.check_password('plaintext1'))
        self.assertFalse(user.is_admin)
        self.assertTrue(user.is_active)

    def test_user_id_is_generated(self):
        user = create_user()
        self.assertTrue(user.pk.startswith('USER'))
        self.assertNotEqual(user.pk, create_user(username='other').pk)

    def test_username_is_unique(self):
        create_user(username='taken')

        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                create_user(username='taken')

    def test_blank_national_ids_do_not_collide(self):
        first = create_user(username='first', national_id='')
        second = create_user(username='second', national_id='')

        self.assertIsNone(first.national_id)
        self.assertIsNone(second.national_id)

    def test_create_user_without_username_raises_error(self):
        with self.assertRaises(ValueError):
            create_user(username='')

    def test_create_superuser(self):
        user = User.objects.create_superuser(
            username='root', password='admin1234', full_name='Admin',
            phone='9000000000', address='HQ', postal_code='110001', age=40,
        )

        self.assertTrue(user.is_superuser)
        self.assertTrue(user.is_staff)
        self.assertTrue(user.is_admin)

    def test_user_string_representation(self):
        self.assertEqual(str(create_user(username='someone')), 'someone')

    def test_backup_record_is_flat(self):
        user = create_user(national_id='123412341234')
        record = user.backup_record()

        self.assertEqual(record['user_id'], user.pk)
        self.assertEqual(record['national_id'], '123412341234')
        self.assertNotIn('password', record)


# =============================================================================
# UNIT TESTS - Authentication gate
# =============================================================================

class RegistrationTests(TestCase):

    def setUp(self):
        self.backup = RecordingBackup()
        self.gate = AuthenticationGate(backup=self.backup)

    def test_register_creates_user_with_hash(self):
        user = self.gate.register(make_profile(), 'SecretPass1')

        stored = User.objects.get(username='ravi_k')
        self.assertEqual(stored.pk, user.pk)
        self.assertEqual(stored.full_name, 'Ravi Kumar')
        self.assertNotIn('SecretPass1', stored.password)
        self.assertTrue(stored.check_password('SecretPass1'))

    def test_equal_passwords_produce_different_hashes(self):
        first = self.gate.register(make_profile(username='a', national_id='111111111111'), 'SamePass99')
        second = self.gate.register(make_profile(username='b', national_id='222222222222'), 'SamePass99')

        self.assertNotEqual(first.password, second.password)

    def test_duplicate_username_is_conflict(self):
        original = self.gate.register(make_profile(), 'SecretPass1')

        with self.assertRaises(DuplicateUsername) as ctx:
            self.gate.register(make_profile(full_name='Someone Else', national_id='999999999999'), 'OtherPass1')

        self.assertIsInstance(ctx.exception, Conflict)
        stored = User.objects.get(username='ravi_k')
        self.assertEqual(stored.pk, original.pk)
        self.assertEqual(stored.full_name, 'Ravi Kumar')
        self.assertTrue(stored.check_password('SecretPass1'))
        self.assertEqual(User.objects.count(), 1)

    def test_duplicate_national_id_is_conflict(self):
        self.gate.register(make_profile(), 'SecretPass1')

        with self.assertRaises(DuplicateNationalId):
            self.gate.register(make_profile(username='another'), 'SecretPass1')
        self.assertEqual(User.objects.count(), 1)

    def test_missing_national_id_is_allowed_twice(self):
        self.gate.register(make_profile(username='a', national_id=None), 'SecretPass1')
        self.gate.register(make_profile(username='b', national_id=''), 'SecretPass1')

        self.assertEqual(User.objects.filter(national_id__isnull=True).count(), 2)

    def test_backup_receives_record(self):
        user = self.gate.register(make_profile(), 'SecretPass1')

        self.assertEqual(len(self.backup.records), 1)
        self.assertEqual(self.backup.records[0]['user_id'], user.pk)
        self.assertEqual(self.backup.records[0]['username'], 'ravi_k')

    def test_backup_failure_does_not_undo_registration(self):
        gate = AuthenticationGate(backup=FailingBackup())

        with self.assertLogs('core.auth', level='WARNING'):
            user = gate.register(make_profile(), 'SecretPass1')

        self.assertTrue(User.objects.filter(pk=user.pk).exists())

    def test_has_users(self):
        self.assertFalse(self.gate.has_users())
        self.gate.register(make_profile(), 'SecretPass1')
        self.assertTrue(self.gate.has_users())


class AuthenticateTests(TestCase):

    def setUp(self):
        self.gate = AuthenticationGate(backup=RecordingBackup())
        self.user = self.gate.register(make_profile(), 'SecretPass1')

    def test_correct_credentials_return_user(self):
        user = self.gate.authenticate('ravi_k', 'SecretPass1')

        self.assertEqual(user.pk, self.user.pk)
        self.assertEqual(user.get_full_name(), 'Ravi Kumar')

    def test_wrong_password_is_unauthorized(self):
        with self.assertRaises(InvalidCredentials) as ctx:
            self.gate.authenticate('ravi_k', 'wrong-password')
        self.assertIsInstance(ctx.exception, Unauthorized)

    def test_unknown_user_and_wrong_password_look_the_same(self):
        with self.assertRaises(InvalidCredentials) as unknown:
            self.gate.authenticate('nobody', 'SecretPass1')
        with self.assertRaises(InvalidCredentials) as wrong:
            self.gate.authenticate('ravi_k', 'nope-nope')

        self.assertEqual(str(unknown.exception), str(wrong.exception))
        self.assertEqual(unknown.exception.code, wrong.exception.code)

    def test_inactive_user_cannot_authenticate(self):
        User.objects.filter(pk=self.user.pk).update(is_active=False)

        with self.assertRaises(InvalidCredentials):
            self.gate.authenticate('ravi_k', 'SecretPass1')


class LoginSessionTests(TestCase):

    def setUp(self):
        self.gate = AuthenticationGate(backup=RecordingBackup())
        self.gate.register(make_profile(), 'SecretPass1')

    def test_third_failure_locks_out(self):
        session = LoginSession(self.gate, max_attempts=3)

        with self.assertRaises(InvalidCredentials):
            session.attempt('ravi_k', 'bad1')
        self.assertEqual(session.attempts_remaining, 2)
        with self.assertRaises(InvalidCredentials):
            session.attempt('ravi_k', 'bad2')
        self.assertEqual(session.attempts_remaining, 1)
        with self.assertRaises(LockedOut) as ctx:
            session.attempt('ravi_k', 'bad3')

        self.assertIsInstance(ctx.exception, Unauthorized)
        self.assertTrue(session.locked_out)

    def test_locked_session_refuses_correct_password(self):
        session = LoginSession(self.gate, max_attempts=1)
        with self.assertRaises(LockedOut):
            session.attempt('ravi_k', 'bad')

        with self.assertRaises(LockedOut):
            session.attempt('ravi_k', 'SecretPass1')

    def test_success_resets_counter(self):
        session = LoginSession(self.gate, max_attempts=3)
        with self.assertRaises(InvalidCredentials):
            session.attempt('ravi_k', 'bad')

        user = session.attempt('ravi_k', 'SecretPass1')

        self.assertEqual(user.username, 'ravi_k')
        self.assertEqual(session.failures, 0)

    @override_settings(LOGIN_MAX_ATTEMPTS=5)
    def test_default_limit_comes_from_settings(self):
        self.assertEqual(LoginSession(self.gate).max_attempts, 5)

    @override_settings(LOGIN_MAX_ATTEMPTS=5)
    def test_zero_attempts_is_not_replaced_by_default(self):
        session = LoginSession(self.gate, max_attempts=0)

        self.assertEqual(session.max_attempts, 0)
        self.assertTrue(session.locked_out)
        with self.assertRaises(LockedOut):
            session.attempt('ravi_k', 'SecretPass1')

    def test_failed_logins_touch_no_inventory(self):
        train = Train.objects.create(train_number=12, train_name='Test Express', origin='A',
                                     destination='B', seats_available=1)
        session = LoginSession(self.gate, max_attempts=3)

        for _ in range(2):
            with self.assertRaises(InvalidCredentials):
                session.attempt('ravi_k', 'bad')
        with self.assertRaises(LockedOut):
            session.attempt('ravi_k', 'bad')

        train.refresh_from_db()
        self.assertEqual(train.seats_available, 1)
        self.assertEqual(Reservation.objects.count(), 0)


class ProfileTests(TestCase):

    def setUp(self):
        self.gate = AuthenticationGate(backup=RecordingBackup())
        self.user = self.gate.register(make_profile(), 'SecretPass1')

    def test_get_profile(self):
        self.assertEqual(self.gate.get_profile(self.user.pk).username, 'ravi_k')

    def test_get_profile_unknown_user(self):
        with self.assertRaises(UserNotFound):
            self.gate.get_profile('USERMISSING')

    def test_update_profile_fields(self):
        self.gate.update_profile(self.user.pk, phone='9123456780', address='New Address')

        stored = User.objects.get(pk=self.user.pk)
        self.assertEqual(stored.phone, '9123456780')
        self.assertEqual(stored.address, 'New Address')
        self.assertEqual(stored.full_name, 'Ravi Kumar')

    def test_update_profile_rejects_other_fields(self):
        with self.assertRaises(ValueError):
            self.gate.update_profile(self.user.pk, username='hijack')

    def test_update_profile_unknown_user(self):
        with self.assertRaises(UserNotFound):
            self.gate.update_profile('USERMISSING', phone='9123456780')

    def test_change_password(self):
        self.gate.change_password(self.user.pk, 'SecretPass1', 'BrandNew22')

        self.gate.authenticate('ravi_k', 'BrandNew22')
        with self.assertRaises(InvalidCredentials):
            self.gate.authenticate('ravi_k', 'SecretPass1')

    def test_change_password_requires_current(self):
        with self.assertRaises(IncorrectPassword):
            self.gate.change_password(self.user.pk, 'wrong', 'BrandNew22')
        self.gate.authenticate('ravi_k', 'SecretPass1')


# =============================================================================
# INTEGRATION TESTS - API Flow
# =============================================================================

REGISTER_DATA = {
    'username': 'flow_user',
    'full_name': 'Flow Test',
    'age': 29,
    'phone': '9876501234',
    'national_id': '123456789012',
    'address': '1 Station Road',
    'postal_code': '400001',
    'password': 'FlowPass123!',
    'password_confirm': 'FlowPass123!'
}


@override_settings(USER_BACKUP_BACKEND='none')
class AuthenticationAPITests(APITestCase):
    """Integration tests for authentication flow."""

    def test_register_returns_jwt_tokens(self):
        response = self.client.post('/api/register/', REGISTER_DATA, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIn('access', response.data['tokens'])
        self.assertIn('refresh', response.data['tokens'])
        self.assertEqual(response.data['user']['username'], 'flow_user')
        self.assertNotIn('password', response.data['user'])

    def test_register_validation(self):
        data = {**REGISTER_DATA, 'phone': '12345', 'password_confirm': 'Mismatch123!'}

        response = self.client.post('/api/register/', data, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('phone', response.data)

    def test_register_duplicate_username(self):
        self.client.post('/api/register/', REGISTER_DATA, format='json')
        data = {**REGISTER_DATA, 'national_id': '000000000000'}

        response = self.client.post('/api/register/', data, format='json')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['code'], 'duplicate_username')

    def test_login_wrong_password_and_unknown_user(self):
        self.client.post('/api/register/', REGISTER_DATA, format='json')

        wrong = self.client.post('/api/login/', {'username': 'flow_user', 'password': 'nope'}, format='json')
        unknown = self.client.post('/api/login/', {'username': 'ghost', 'password': 'nope'}, format='json')

        self.assertEqual(wrong.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(unknown.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(wrong.data, unknown.data)

    def test_full_auth_flow(self):
        """Register -> login -> profile -> update -> change password."""
        register_response = self.client.post('/api/register/', REGISTER_DATA, format='json')
        self.assertEqual(register_response.status_code, status.HTTP_201_CREATED)

        login_response = self.client.post('/api/login/', {
            'username': 'flow_user',
            'password': 'FlowPass123!'
        }, format='json')
        self.assertEqual(login_response.status_code, status.HTTP_200_OK)

        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {login_response.data['tokens']['access']}")

        profile_response = self.client.get('/api/profile/')
        self.assertEqual(profile_response.status_code, status.HTTP_200_OK)
        self.assertEqual(profile_response.data['username'], 'flow_user')

        patch_response = self.client.patch('/api/profile/', {'address': '2 Platform Lane'}, format='json')
        self.assertEqual(patch_response.status_code, status.HTTP_200_OK)
        self.assertEqual(patch_response.data['address'], '2 Platform Lane')

        bad_change = self.client.post('/api/profile/password/', {
            'current_password': 'wrong',
            'new_password': 'Another123!',
            'new_password_confirm': 'Another123!'
        }, format='json')
        self.assertEqual(bad_change.status_code, status.HTTP_401_UNAUTHORIZED)

        change = self.client.post('/api/profile/password/', {
            'current_password': 'FlowPass123!',
            'new_password': 'Another123!',
            'new_password_confirm': 'Another123!'
        }, format='json')
        self.assertEqual(change.status_code, status.HTTP_200_OK)

    def test_protected_route_without_token(self):
        response = self.client.get('/api/profile/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_protected_route_with_invalid_token(self):
        self.client.credentials(HTTP_AUTHORIZATION='Bearer invalid_token_here')
        response = self.client.get('/api/profile/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


# =============================================================================
# INTEGRATION TESTS - Terminal front end
# =============================================================================

def scripted(*answers):
    """input() replacement that replays answers, then behaves like end of input."""
    remaining = iter(answers)

    def read(prompt=''):
        try:
            return next(remaining)
        except StopIteration:
            raise EOFError
    return read


@override_settings(USER_BACKUP_BACKEND='none')
class TerminalCommandTests(TestCase):

    def setUp(self):
        self.train = Train.objects.create(train_number=12, train_name='Test Express', origin='Delhi',
                                          destination='Agra', seats_available=1)

    def run_terminal(self, *answers):
        out = StringIO()
        call_command('railway', read=scripted(*answers), stdout=out)
        return out.getvalue()

    def test_first_run_registers_logs_in_and_books(self):
        output = self.run_terminal(
            # registration
            'Asha Rao', '31', '9876543210', '123412341234', '5 Hill Road', '560001', 'asha', 'AshaPass1',
            # login
            'asha', 'AshaPass1',
            # reservations -> make reservation
            '2', '1', '12', 'lower', 'y', '2026-12-01',
            # logout
            '5',
        )

        self.assertIn('Registration successful!', output)
        self.assertIn('Welcome, Asha Rao!', output)
        self.assertIn('Reservation successful!', output)
        self.assertIn('YOUR TICKET', output)
        self.train.refresh_from_db()
        self.assertEqual(self.train.seats_available, 0)
        reservation = Reservation.objects.get()
        self.assertEqual(reservation.berth_type, 'LOWER')
        self.assertEqual(reservation.travel_date, date(2026, 12, 1))

    def test_lockout_after_three_failures(self):
        create_user(username='known', password='KnownPass1')

        output = self.run_terminal('known', 'bad', 'known', 'bad', 'known', 'bad', 'known', 'KnownPass1')

        self.assertIn('Attempts remaining: 2', output)
        self.assertIn('Attempts remaining: 1', output)
        self.assertIn('Maximum login attempts reached', output)
        self.assertNotIn('Welcome', output)

    def test_invalid_input_is_reprompted(self):
        create_user(username='known', password='KnownPass1')

        output = self.run_terminal('known', 'KnownPass1', 'nine', '9', '5')

        self.assertIn('Invalid number format', output)
        self.assertIn('Please enter a number between 1 and 6', output)
        self.assertIn('Thank you for using', output)
