"""
Tests for shared utilities.
Tests cover: Error taxonomy, Terminal prompts, User backup sinks.
"""
import csv
import os
import tempfile
from unittest.mock import patch

from django.test import SimpleTestCase, override_settings

from utils import prompts
from utils.backup import (
    BACKUP_FIELDS,
    CSVUserBackup,
    MongoUserBackup,
    NullUserBackup,
    get_user_backup,
)
from utils.exceptions import (
    BookingFailed,
    Conflict,
    DuplicateUsername,
    InvalidCredentials,
    LockedOut,
    NoSeatsAvailable,
    NotFound,
    RailwayError,
    ResourceExhausted,
    TrainNotFound,
    TransactionFailed,
    Unauthorized,
)

RECORD = {
    'user_id': 'USER0001',
    'username': 'ravi_k',
    'full_name': 'Ravi Kumar',
    'age': 34,
    'phone': '9876543210',
    'national_id': '',
    'address': '12 MG Road, Bengaluru',
    'postal_code': '560001',
}


class ErrorTaxonomyTests(SimpleTestCase):

    def test_categories(self):
        self.assertIsInstance(TrainNotFound(), NotFound)
        self.assertIsInstance(DuplicateUsername(), Conflict)
        self.assertIsInstance(NoSeatsAvailable(), ResourceExhausted)
        self.assertIsInstance(LockedOut(), Unauthorized)
        self.assertIsInstance(BookingFailed(), TransactionFailed)
        for error in (TrainNotFound(), DuplicateUsername(), LockedOut(), BookingFailed()):
            self.assertIsInstance(error, RailwayError)

    def test_only_transaction_failures_are_retryable(self):
        self.assertTrue(BookingFailed().retryable)
        self.assertFalse(NoSeatsAvailable().retryable)
        self.assertFalse(InvalidCredentials().retryable)

    def test_status_codes(self):
        self.assertEqual(TrainNotFound.status_code, 404)
        self.assertEqual(DuplicateUsername.status_code, 409)
        self.assertEqual(NoSeatsAvailable.status_code, 409)
        self.assertEqual(InvalidCredentials.status_code, 401)
        self.assertEqual(BookingFailed.status_code, 503)

    def test_as_dict(self):
        self.assertEqual(NoSeatsAvailable().as_dict(), {
            'error': 'No seats available on this train.',
            'code': 'no_seats_available',
        })
        self.assertEqual(TrainNotFound('Train 7 not found.').as_dict()['error'], 'Train 7 not found.')

    def test_transaction_failure_keeps_cause(self):
        cause = RuntimeError('deadlock')
        error = BookingFailed(cause=cause)

        self.assertIs(error.cause, cause)
        self.assertIn('deadlock', error.message)


class PrompterTests(SimpleTestCase):

    def prompter(self, *answers):
        remaining = iter(answers)
        self.output = []
        return prompts.Prompter(self.output.append, lambda prompt='': next(remaining))

    def test_text_reprompts_until_valid(self):
        ask = self.prompter('12ab', '9876543210')

        self.assertEqual(ask.text('Phone: ', prompts.PHONE, 'Invalid phone number'), '9876543210')
        self.assertEqual(self.output, ['Invalid phone number'])

    def test_integer_range(self):
        ask = self.prompter('x', '200', ' 42 ')

        self.assertEqual(ask.integer('Age: ', 15, 120), 42)
        self.assertEqual(self.output, ['Invalid number format', 'Please enter a number between 15 and 120'])

    def test_yes_no(self):
        ask = self.prompter('maybe', 'y', 'NO')

        self.assertTrue(ask.yes_no('Meals? '))
        self.assertFalse(ask.yes_no('Meals? '))
        self.assertEqual(self.output, ['Please enter Y or N'])

    def test_date(self):
        ask = self.prompter('01/03/2025', '2025-03-01')

        self.assertEqual(ask.date('Date: ').isoformat(), '2025-03-01')
        self.assertEqual(len(self.output), 1)

    def test_choice_is_case_insensitive(self):
        ask = self.prompter('window', 'lower')

        self.assertEqual(ask.choice('Berth: ', ['LOWER', 'UPPER']), 'LOWER')
        self.assertEqual(self.output, ['Invalid choice'])

    def test_validators(self):
        self.assertTrue(prompts.NAME('Ravi Kumar'))
        self.assertFalse(prompts.NAME('R2D2'))
        self.assertTrue(prompts.NATIONAL_ID('123412341234'))
        self.assertFalse(prompts.NATIONAL_ID('1234'))
        self.assertTrue(prompts.POSTAL_CODE('560001'))
        self.assertFalse(prompts.USERNAME('bad name'))
        self.assertFalse(prompts.not_blank('   '))


class UserBackupTests(SimpleTestCase):

    def setUp(self):
        handle, self.path = tempfile.mkstemp(suffix='.csv')
        os.close(handle)
        self.addCleanup(os.remove, self.path)

    def read_rows(self):
        with open(self.path, newline='', encoding='utf-8') as fh:
            return list(csv.reader(fh))

    def test_csv_writes_header_once(self):
        sink = CSVUserBackup(self.path)

        sink.write(RECORD)
        sink.write({**RECORD, 'user_id': 'USER0002', 'username': 'asha'})

        rows = self.read_rows()
        self.assertEqual(rows[0], BACKUP_FIELDS)
        self.assertEqual(len(rows), 3)
        self.assertEqual(rows[2][1], 'asha')
        # Commas inside values survive quoting
        self.assertEqual(rows[1][BACKUP_FIELDS.index('address')], '12 MG Road, Bengaluru')

    def test_csv_appends_to_existing_file(self):
        CSVUserBackup(self.path).write(RECORD)
        CSVUserBackup(self.path).write(RECORD)

        self.assertEqual(len(self.read_rows()), 3)

    @patch('utils.backup.backup_user_record', return_value=False)
    def test_mongo_sink_warns_when_unavailable(self, mock_backup):
        with self.assertLogs('utils.backup', level='WARNING'):
            MongoUserBackup().write(RECORD)
        mock_backup.assert_called_once_with(RECORD)

    def test_backend_selection(self):
        with override_settings(USER_BACKUP_BACKEND='csv', USER_BACKUP_CSV_PATH=self.path):
            sink = get_user_backup()
            self.assertIsInstance(sink, CSVUserBackup)
            self.assertEqual(sink.path, self.path)
        with override_settings(USER_BACKUP_BACKEND='mongo'):
            self.assertIsInstance(get_user_backup(), MongoUserBackup)
        with override_settings(USER_BACKUP_BACKEND='none'):
            self.assertIsInstance(get_user_backup(), NullUserBackup)
        with override_settings(USER_BACKUP_BACKEND='ftp'):
            with self.assertRaises(ValueError):
                get_user_backup()
