"""
Tests for analytics app.
Tests cover: Reservation event log, Top trains aggregation, API logging,
API access control.

The RealMongoDB tests need a local MongoDB and skip when it is unavailable:
    docker run -d -p 27017:27017 --name mongodb-test mongo:latest
    python manage.py test analytics
"""
import unittest
from datetime import date, timedelta
from unittest.mock import patch, MagicMock

from django.test import TestCase, override_settings
from django.utils import timezone
from pymongo import MongoClient
from pymongo.errors import OperationFailure, PyMongoError
from rest_framework.test import APITestCase
from rest_framework import status

from core.models import User
from trains.models import Train
from utils.mongo import (
    get_api_logs,
    get_mongo_db,
    get_top_trains,
    log_api_request,
    log_reservation_event,
    reset_mongo_connection,
)

TEST_DB_NAME = 'railway_logs_test'


def mongodb_reachable():
    """Check if MongoDB is available for testing."""
    try:
        client = MongoClient('mongodb://localhost:27017/', serverSelectionTimeoutMS=2000)
        client.admin.command('ping')
        client.close()
        return True
    except PyMongoError:
        return False


# Skip decorator for tests requiring MongoDB
requires_mongodb = unittest.skipUnless(
    mongodb_reachable(),
    "MongoDB is not available. Start MongoDB to run these tests."
)


def create_user(username, is_admin=False):
    return User.objects.create_user(
        username=username, password='AnyPass123', full_name='Test User',
        phone='9999999999', address='Somewhere', postal_code='110001', age=30,
        is_admin=is_admin,
    )


# =============================================================================
# REAL MONGODB INTEGRATION TESTS
# =============================================================================

@requires_mongodb
@override_settings(MONGODB_ENABLED=True, MONGODB_URI='mongodb://localhost:27017/', MONGODB_NAME=TEST_DB_NAME)
class RealMongoDBTests(TestCase):
    """
    Real integration tests with MongoDB.
    These tests actually connect to MongoDB and verify logging works.
    """

    @classmethod
    def setUpClass(cls):
        super().setUpClass()
        cls.mongo_client = MongoClient('mongodb://localhost:27017/')
        cls.db = cls.mongo_client[TEST_DB_NAME]

    @classmethod
    def tearDownClass(cls):
        cls.mongo_client.drop_database(TEST_DB_NAME)
        cls.mongo_client.close()
        reset_mongo_connection()
        super().tearDownClass()

    def setUp(self):
        reset_mongo_connection()
        self.db.api_logs.delete_many({})
        self.db.reservation_events.delete_many({})

    def test_log_api_request_stores_data(self):
        log_api_request(
            endpoint='/api/bookings/my/',
            method='GET',
            user_id='USER0001',
            request_params={'travel_date': '2025-03-01'},
            response_status=200,
            execution_time_ms=150.5,
            results_count=5
        )

        logs = list(self.db.api_logs.find({'endpoint': '/api/bookings/my/'}))
        self.assertEqual(len(logs), 1)
        self.assertEqual(logs[0]['user_id'], 'USER0001')
        self.assertEqual(logs[0]['execution_time_ms'], 150.5)
        self.assertEqual(get_api_logs(user_id='USER0001')[0]['results_count'], 5)

    def test_top_trains_aggregation(self):
        for reservation_id in (1, 2, 3):
            log_reservation_event('booked', 'USER0001', 12951, reservation_id,
                                  travel_date=date(2025, 3, 1), berth_type='LOWER')
        log_reservation_event('cancelled', 'USER0001', 12951, 3)
        log_reservation_event('booked', 'USER0002', 12301, 4)

        results = get_top_trains(limit=5)

        self.assertEqual(len(results), 2)
        self.assertEqual(results[0]['train_number'], 12951)
        self.assertEqual(results[0]['bookings'], 3)
        self.assertEqual(results[0]['cancellations'], 1)
        self.assertEqual(results[0]['net_bookings'], 2)

    def test_indexes_created(self):
        get_mongo_db()

        indexes = self.db.api_logs.index_information()
        self.assertIn('timestamp_-1', indexes)
        self.assertIn('endpoint_1_timestamp_-1', indexes)
        self.assertIn('train_number_1_action_1', self.db.reservation_events.index_information())


# =============================================================================
# MOCKED TESTS (fallback when MongoDB is unavailable)
# =============================================================================

class MockedMongoUtilityTests(TestCase):
    """Test MongoDB utility functions with mocks."""

    @patch('utils.mongo.get_mongo_db')
    def test_log_reservation_event_document(self, mock_get_db):
        mock_db = MagicMock()
        mock_get_db.return_value = mock_db

        log_reservation_event('booked', 'USER0001', 12951, 7,
                              travel_date=date(2025, 3, 1), berth_type='LOWER')

        event = mock_db['reservation_events'].insert_one.call_args[0][0]
        self.assertEqual(event['action'], 'booked')
        self.assertEqual(event['train_number'], 12951)
        self.assertEqual(event['reservation_id'], 7)
        self.assertEqual(event['travel_date'], '2025-03-01')
        self.assertIn('timestamp', event)

    @patch('utils.mongo.get_mongo_db')
    def test_log_reservation_event_swallows_mongo_errors(self, mock_get_db):
        mock_db = MagicMock()
        mock_db['reservation_events'].insert_one.side_effect = PyMongoError('down')
        mock_get_db.return_value = mock_db

        with self.assertLogs('utils.mongo', level='WARNING'):
            log_reservation_event('cancelled', 'USER0001', 12951, 7)

    @patch('utils.mongo.get_mongo_db')
    def test_get_top_trains_returns_list(self, mock_get_db):
        mock_db = MagicMock()
        mock_db.reservation_events.aggregate.return_value = iter([
            {'train_number': 12951, 'bookings': 10, 'cancellations': 2, 'net_bookings': 8},
        ])
        mock_get_db.return_value = mock_db

        result = get_top_trains(limit=5)

        self.assertEqual(result[0]['net_bookings'], 8)
        pipeline = mock_db.reservation_events.aggregate.call_args[0][0]
        self.assertEqual(pipeline[-1], {'$limit': 5})

    @patch('utils.mongo.get_mongo_db')
    def test_readers_handle_db_unavailable(self, mock_get_db):
        mock_get_db.return_value = None

        self.assertEqual(get_top_trains(), [])
        self.assertEqual(get_api_logs(), [])

    @patch('utils.mongo.get_mongo_db')
    def test_log_api_request_handles_db_unavailable(self, mock_get_db):
        mock_get_db.return_value = None

        # Should not raise exception
        log_api_request(
            endpoint='/api/bookings/',
            method='POST',
            user_id='USER0001',
            request_params={},
            response_status=201,
            execution_time_ms=100.5
        )

    @override_settings(MONGODB_ENABLED=False)
    def test_disabled_mongo_is_never_contacted(self):
        with patch('utils.mongo.MongoClient') as client:
            self.assertIsNone(get_mongo_db())
        client.assert_not_called()

    def test_get_api_logs_builds_query(self):
        mock_db = MagicMock()
        cursor = mock_db.api_logs.find.return_value.sort.return_value.skip.return_value.limit.return_value
        cursor.__iter__.return_value = iter([{'_id': 'abc', 'endpoint': '/api/bookings/'}])

        with patch('utils.mongo.get_mongo_db', return_value=mock_db):
            logs = get_api_logs(limit=10, endpoint='/api/bookings/', method='post', status_code=409)

        mock_db.api_logs.find.assert_called_once_with(
            {'endpoint': '/api/bookings/', 'response_status': 409, 'method': 'POST'}
        )
        self.assertEqual(logs, [{'_id': 'abc', 'endpoint': '/api/bookings/'}])


class ReservationEventWiringTests(TestCase):
    """The reservation engine reports committed bookings and cancellations."""

    def setUp(self):
        self.user = create_user('rider')
        Train.objects.create(train_number=12951, train_name='Mumbai Rajdhani', origin='Delhi',
                             destination='Mumbai', seats_available=5)

    @patch('bookings.services.log_reservation_event')
    def test_book_and_cancel_are_logged(self, mock_log):
        from bookings.services import ReservationEngine

        engine = ReservationEngine()
        reservation = engine.book(self.user.pk, 12951, 'Lower', False, date(2025, 3, 1))
        engine.cancel(self.user.pk, reservation.pk)

        actions = [c.args[0] for c in mock_log.call_args_list]
        self.assertEqual(actions, ['booked', 'cancelled'])
        self.assertEqual(mock_log.call_args_list[0].args[1:4], (self.user.pk, 12951, reservation.pk))

    @override_settings(MONGODB_ENABLED=True)
    def test_rejected_mongo_credentials_do_not_fail_booking(self):
        from bookings.services import ReservationEngine

        reset_mongo_connection()
        self.addCleanup(reset_mongo_connection)
        engine = ReservationEngine()

        with patch('utils.mongo.MongoClient') as client:
            client.return_value.admin.command.side_effect = OperationFailure('Authentication failed.')
            reservation = engine.book(self.user.pk, 12951, 'Lower', False, date(2025, 3, 1))
            self.assertEqual(Train.objects.get(pk=12951).seats_available, 4)

            engine.cancel(self.user.pk, reservation.pk)
            self.assertIsNone(get_mongo_db())

        self.assertEqual(Train.objects.get(pk=12951).seats_available, 5)
        client.return_value.close.assert_called_once()

    @patch('bookings.services.log_reservation_event', side_effect=RuntimeError('log sink broken'))
    def test_event_log_failure_keeps_committed_change(self, mock_log):
        from bookings.services import ReservationEngine

        engine = ReservationEngine()
        with self.assertLogs('bookings.services', level='WARNING') as logs:
            reservation = engine.book(self.user.pk, 12951, 'Upper', True, date(2025, 3, 2))
            engine.cancel(self.user.pk, reservation.pk)

        self.assertEqual(mock_log.call_count, 2)
        self.assertTrue(any('Could not log booked event' in line for line in logs.output))
        self.assertTrue(any('Could not log cancelled event' in line for line in logs.output))
        self.assertEqual(Train.objects.get(pk=12951).seats_available, 5)


# =============================================================================
# API TESTS (work with or without MongoDB)
# =============================================================================

class AnalyticsAPITests(APITestCase):
    """Integration tests for analytics endpoints."""

    def setUp(self):
        self.user = create_user('user')
        self.admin = create_user('admin', is_admin=True)

    @patch('analytics.views.get_top_trains')
    def test_top_trains_admin(self, mock_top_trains):
        mock_top_trains.return_value = [
            {'train_number': 12951, 'bookings': 150, 'cancellations': 10, 'net_bookings': 140},
            {'train_number': 12301, 'bookings': 75, 'cancellations': 0, 'net_bookings': 75},
        ]
        self.client.force_authenticate(user=self.admin)

        response = self.client.get('/api/analytics/top-trains/', {'limit': 50})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)
        mock_top_trains.assert_called_once_with(limit=20)

    @patch('analytics.views.get_top_trains')
    def test_top_trains_non_admin(self, mock_top_trains):
        self.client.force_authenticate(user=self.user)

        response = self.client.get('/api/analytics/top-trains/')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        mock_top_trains.assert_not_called()

    def test_top_trains_unauthenticated(self):
        response = self.client.get('/api/analytics/top-trains/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    @patch('analytics.views.get_api_logs')
    def test_api_logs_admin_only(self, mock_logs):
        mock_logs.return_value = []
        self.client.force_authenticate(user=self.user)

        response = self.client.get('/api/analytics/logs/')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    @patch('analytics.views.get_api_logs')
    def test_api_logs_filters(self, mock_logs):
        mock_logs.return_value = [{'endpoint': '/api/bookings/', 'method': 'POST'}]
        self.client.force_authenticate(user=self.admin)

        response = self.client.get('/api/analytics/logs/', {
            'endpoint': '/api/bookings/', 'method': 'post', 'status_code': '201', 'limit': 'abc',
        })

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['limit'], 50)
        mock_logs.assert_called_once_with(
            limit=50, offset=0, endpoint='/api/bookings/', user_id=None,
            status_code=201, method='POST',
        )

    @override_settings(MONGODB_ENABLED=False)
    def test_endpoints_work_without_mongo(self):
        reset_mongo_connection()
        self.client.force_authenticate(user=self.admin)

        response = self.client.get('/api/analytics/top-trains/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['results'], [])


class APILoggingMiddlewareTests(APITestCase):

    def setUp(self):
        self.user = create_user('rider')
        self.client.force_authenticate(user=self.user)

    @patch('utils.middleware.log_api_request')
    def test_booking_requests_are_logged(self, mock_log):
        response = self.client.get('/api/bookings/my/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        kwargs = mock_log.call_args.kwargs
        self.assertEqual(kwargs['endpoint'], '/api/bookings/my/')
        self.assertEqual(kwargs['method'], 'GET')
        self.assertEqual(kwargs['response_status'], 200)
        self.assertEqual(kwargs['results_count'], 0)

    @patch('utils.middleware.log_api_request')
    def test_other_requests_are_not_logged(self, mock_log):
        self.client.get('/api/trains/')
        mock_log.assert_not_called()

    @patch('utils.middleware.log_api_request', side_effect=RuntimeError('boom'))
    def test_logging_failure_does_not_break_response(self, mock_log):
        travel_date = timezone.localdate() + timedelta(days=3)
        Train.objects.create(train_number=1, train_name='Local', origin='A', destination='B', seats_available=1)

        with self.assertLogs('utils.middleware', level='WARNING'):
            response = self.client.post('/api/bookings/', {
                'train_number': 1, 'berth_type': 'side', 'travel_date': travel_date.isoformat(),
            }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
