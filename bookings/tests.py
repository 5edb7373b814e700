"""
Tests for bookings app.
Tests cover: Berth types, Booking and cancellation, Rollback, Tickets,
Concurrency scenarios, Booking API.
"""
import threading
from datetime import date, timedelta
from unittest import mock

from django.db import OperationalError, connection
from django.db.models import F
from django.db.models.query import QuerySet
from django.test import TestCase, TransactionTestCase
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from bookings.models import BerthType, Reservation
from bookings.services import ReservationEngine
from bookings.tickets import TicketProjector
from core.models import User
from trains.models import Train
from utils.exceptions import (
    BookingFailed,
    CancellationFailed,
    NoSeatsAvailable,
    ReservationNotFound,
    ResourceExhausted,
    TicketNotFound,
    TrainNotFound,
    TransactionFailed,
    UserNotFound,
)

TRAVEL_DATE = date(2025, 3, 1)


def create_user(username, full_name='Test Rider'):
    return User.objects.create_user(
        username=username, password='RiderPass1', full_name=full_name,
        phone='9999999999', address='Somewhere', postal_code='110001', age=30,
    )


def create_train(train_number=12, seats=1, train_name='Test Express'):
    return Train.objects.create(train_number=train_number, train_name=train_name,
                                origin='Delhi', destination='Agra', seats_available=seats)


def seats_left(train_number):
    return Train.objects.get(pk=train_number).seats_available


# =============================================================================
# UNIT TESTS - Models
# =============================================================================

class BerthTypeTests(TestCase):

    def test_normalize_is_case_insensitive(self):
        self.assertEqual(BerthType.normalize('lower'), BerthType.LOWER)
        self.assertEqual(BerthType.normalize(' Side '), BerthType.SIDE)
        self.assertEqual(BerthType.normalize(BerthType.MIDDLE), BerthType.MIDDLE)

    def test_normalize_rejects_unknown(self):
        with self.assertRaises(ValueError):
            BerthType.normalize('window')


# =============================================================================
# UNIT TESTS - Reservation engine
# =============================================================================

class BookTests(TestCase):

    def setUp(self):
        self.engine = ReservationEngine()
        self.alice = create_user('alice', 'Alice Rao')
        self.train = create_train(seats=3)

    def test_book_takes_one_seat(self):
        reservation = self.engine.book(self.alice.pk, 12, 'Lower', True, TRAVEL_DATE)

        self.assertEqual(seats_left(12), 2)
        stored = Reservation.objects.get(pk=reservation.pk)
        self.assertEqual(stored.user_id, self.alice.pk)
        self.assertEqual(stored.train_id, 12)
        self.assertEqual(stored.berth_type, BerthType.LOWER)
        self.assertTrue(stored.meals_required)
        self.assertEqual(stored.travel_date, TRAVEL_DATE)

    def test_book_unknown_train(self):
        with self.assertRaises(TrainNotFound):
            self.engine.book(self.alice.pk, 999, 'Lower', False, TRAVEL_DATE)
        self.assertEqual(Reservation.objects.count(), 0)

    def test_book_unknown_user(self):
        with self.assertRaises(UserNotFound):
            self.engine.book('USERMISSING', 12, 'Lower', False, TRAVEL_DATE)
        self.assertEqual(seats_left(12), 3)

    def test_book_invalid_berth(self):
        with self.assertRaises(ValueError):
            self.engine.book(self.alice.pk, 12, 'Window', False, TRAVEL_DATE)
        self.assertEqual(seats_left(12), 3)

    def test_book_sold_out_train_changes_nothing(self):
        create_train(train_number=13, seats=0)

        with self.assertLogs('bookings.services', level='WARNING'):
            with self.assertRaises(NoSeatsAvailable) as ctx:
                self.engine.book(self.alice.pk, 13, 'Upper', False, TRAVEL_DATE)

        self.assertIsInstance(ctx.exception, ResourceExhausted)
        self.assertEqual(seats_left(13), 0)
        self.assertEqual(Reservation.objects.count(), 0)

    def test_failed_decrement_rolls_back_insert(self):
        """A store failure after the insert leaves no reservation behind."""
        failure = OperationalError('Lock wait timeout exceeded')

        with mock.patch.object(QuerySet, 'update', side_effect=failure):
            with self.assertLogs('bookings.services', level='ERROR'):
                with self.assertRaises(BookingFailed) as ctx:
                    self.engine.book(self.alice.pk, 12, 'Lower', False, TRAVEL_DATE)

        self.assertIsInstance(ctx.exception, TransactionFailed)
        self.assertTrue(ctx.exception.retryable)
        self.assertIs(ctx.exception.cause, failure)
        self.assertEqual(Reservation.objects.count(), 0)
        self.assertEqual(seats_left(12), 3)

    def test_sequential_bookings_stop_at_capacity(self):
        """With k seats and N > k requests exactly k succeed."""
        users = [create_user(f'user{i}') for i in range(5)]
        booked, refused = 0, 0

        for user in users:
            try:
                self.engine.book(user.pk, 12, 'Side', False, TRAVEL_DATE)
                booked += 1
            except NoSeatsAvailable:
                refused += 1

        self.assertEqual((booked, refused), (3, 2))
        self.assertEqual(seats_left(12), 0)

    def test_counter_matches_reservation_count(self):
        bob = create_user('bob')
        first = self.engine.book(self.alice.pk, 12, 'Lower', False, TRAVEL_DATE)
        self.engine.book(bob.pk, 12, 'Upper', False, TRAVEL_DATE)
        self.engine.cancel(self.alice.pk, first.pk)
        self.engine.book(self.alice.pk, 12, 'Middle', True, TRAVEL_DATE + timedelta(days=1))

        count = Reservation.objects.filter(train_id=12).count()
        self.assertEqual(seats_left(12), 3 - count)


class CancelTests(TestCase):

    def setUp(self):
        self.engine = ReservationEngine()
        self.alice = create_user('alice')
        self.bob = create_user('bob')
        create_train(seats=2)
        self.reservation = self.engine.book(self.alice.pk, 12, 'Lower', False, TRAVEL_DATE)

    def test_cancel_returns_seat(self):
        self.engine.cancel(self.alice.pk, self.reservation.pk)

        self.assertFalse(Reservation.objects.filter(pk=self.reservation.pk).exists())
        self.assertEqual(seats_left(12), 2)

    def test_second_cancel_is_not_found(self):
        self.engine.cancel(self.alice.pk, self.reservation.pk)

        with self.assertRaises(ReservationNotFound):
            self.engine.cancel(self.alice.pk, self.reservation.pk)
        self.assertEqual(seats_left(12), 2)

    def test_cannot_cancel_someone_elses_reservation(self):
        with self.assertRaises(ReservationNotFound):
            self.engine.cancel(self.bob.pk, self.reservation.pk)

        self.assertTrue(Reservation.objects.filter(pk=self.reservation.pk).exists())
        self.assertEqual(seats_left(12), 1)

    def test_failed_increment_keeps_reservation(self):
        with mock.patch.object(QuerySet, 'update', side_effect=OperationalError('connection lost')):
            with self.assertLogs('bookings.services', level='ERROR'):
                with self.assertRaises(CancellationFailed):
                    self.engine.cancel(self.alice.pk, self.reservation.pk)

        self.assertTrue(Reservation.objects.filter(pk=self.reservation.pk).exists())
        self.assertEqual(seats_left(12), 1)


class ListForUserTests(TestCase):

    def setUp(self):
        self.engine = ReservationEngine()
        self.alice = create_user('alice')
        self.bob = create_user('bob')
        create_train(seats=10)
        create_train(train_number=14, seats=10, train_name='Second Express')

    def test_ordered_by_travel_date(self):
        late = self.engine.book(self.alice.pk, 12, 'Lower', False, date(2025, 5, 1))
        early = self.engine.book(self.alice.pk, 14, 'Upper', False, date(2025, 4, 1))
        self.engine.book(self.bob.pk, 12, 'Side', False, date(2025, 1, 1))

        reservations = list(self.engine.list_for_user(self.alice.pk))

        self.assertEqual([r.pk for r in reservations], [early.pk, late.pk])
        self.assertEqual(reservations[0].train.train_name, 'Second Express')

    def test_listing_is_lazy_and_reiterable(self):
        self.engine.book(self.alice.pk, 12, 'Lower', False, TRAVEL_DATE)

        with self.assertNumQueries(0):
            reservations = self.engine.list_for_user(self.alice.pk)

        self.assertEqual(len(list(reservations)), 1)
        self.assertEqual(len(list(reservations)), 1)

    def test_empty_listing(self):
        self.assertEqual(list(self.engine.list_for_user(self.bob.pk)), [])


class ExampleJourneyTests(TestCase):
    """Last seat: book, sold out, cancel, book again."""

    def test_last_seat_changes_hands(self):
        engine = ReservationEngine()
        user_a = create_user('user_a')
        user_b = create_user('user_b')
        create_train(train_number=12, seats=1)

        reservation = engine.book(user_a.pk, 12, 'Lower', False, date(2025, 3, 1))
        self.assertEqual(seats_left(12), 0)

        with self.assertRaises(ResourceExhausted):
            engine.book(user_b.pk, 12, 'Lower', False, date(2025, 3, 1))

        engine.cancel(user_a.pk, reservation.pk)
        self.assertEqual(seats_left(12), 1)

        engine.book(user_b.pk, 12, 'Lower', False, date(2025, 3, 1))
        self.assertEqual(seats_left(12), 0)
        self.assertEqual(Reservation.objects.get().user_id, user_b.pk)


# =============================================================================
# UNIT TESTS - Tickets
# =============================================================================

class TicketProjectorTests(TestCase):

    def setUp(self):
        self.engine = ReservationEngine()
        self.projector = TicketProjector()
        self.alice = create_user('alice', 'Alice Rao')
        create_train(seats=5)

    def test_render_ticket(self):
        reservation = self.engine.book(self.alice.pk, 12, 'middle', True, TRAVEL_DATE)

        ticket = self.projector.render_ticket(self.alice.pk, 12, TRAVEL_DATE)

        self.assertEqual(ticket.reservation_id, reservation.pk)
        self.assertEqual(ticket.passenger_name, 'Alice Rao')
        self.assertEqual(ticket.train_name, 'Test Express')
        self.assertEqual(ticket.berth_type, 'Middle')
        self.assertTrue(ticket.meals_required)
        self.assertEqual(ticket.travel_date, TRAVEL_DATE)

    def test_latest_reservation_wins(self):
        self.engine.book(self.alice.pk, 12, 'Lower', False, TRAVEL_DATE)
        second = self.engine.book(self.alice.pk, 12, 'Upper', False, TRAVEL_DATE)

        ticket = self.projector.render_ticket(self.alice.pk, 12, TRAVEL_DATE)

        self.assertEqual(ticket.reservation_id, second.pk)

    def test_rendering_has_no_side_effects(self):
        self.engine.book(self.alice.pk, 12, 'Lower', False, TRAVEL_DATE)

        first = self.projector.render_ticket(self.alice.pk, 12, TRAVEL_DATE)
        second = self.projector.render_ticket(self.alice.pk, 12, TRAVEL_DATE)

        self.assertEqual(first, second)
        self.assertEqual(seats_left(12), 4)

    def test_cancelled_reservation_has_no_ticket(self):
        reservation = self.engine.book(self.alice.pk, 12, 'Lower', False, TRAVEL_DATE)
        self.engine.cancel(self.alice.pk, reservation.pk)

        with self.assertRaises(TicketNotFound):
            self.projector.render_ticket(self.alice.pk, 12, TRAVEL_DATE)

    def test_other_users_reservation_has_no_ticket(self):
        self.engine.book(self.alice.pk, 12, 'Lower', False, TRAVEL_DATE)
        bob = create_user('bob')

        with self.assertRaises(TicketNotFound):
            self.projector.render_ticket(bob.pk, 12, TRAVEL_DATE)

    def test_ticket_lines(self):
        self.engine.book(self.alice.pk, 12, 'Side', False, TRAVEL_DATE)

        lines = self.projector.render_ticket(self.alice.pk, 12, TRAVEL_DATE).lines()

        self.assertTrue(lines[0].startswith('+'))
        self.assertEqual(lines[0], lines[-1])
        self.assertIn('Alice Rao', lines[1])
        self.assertIn('No', lines[5])
        self.assertEqual(len({len(line) for line in lines}), 1)


# =============================================================================
# CONCURRENCY TESTS
# =============================================================================

class BookingConcurrencyTests(TransactionTestCase):
    """
    Test booking concurrency scenarios.
    Uses TransactionTestCase so each thread commits on its own connection.
    """

    def setUp(self):
        self.users = [create_user(f'racer{i}') for i in range(6)]
        self.train = create_train(train_number=77, seats=2, train_name='Race Condition Express')

    def race(self, calls):
        """
        Run the callables from parallel threads, released together.

        Returns one outcome per call: 'ok', or the name of the exception raised.
        """
        outcomes = []
        lock = threading.Lock()
        barrier = threading.Barrier(len(calls))

        def attempt(call):
            try:
                barrier.wait()
                call()
                result = 'ok'
            except Exception as exc:
                result = type(exc).__name__
            finally:
                connection.close()
            with lock:
                outcomes.append(result)

        threads = [threading.Thread(target=attempt, args=(call,)) for call in calls]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        return outcomes

    def booking_calls(self):
        return [
            lambda user=user: ReservationEngine().book(user.pk, 77, 'Lower', False, TRAVEL_DATE)
            for user in self.users
        ]

    def test_concurrent_bookings_dont_oversell(self):
        """With 2 seats and 6 simultaneous requests exactly 2 succeed."""
        outcomes = self.race(self.booking_calls())

        self.assertEqual(sorted(outcomes), ['NoSeatsAvailable'] * 4 + ['ok'] * 2)
        self.assertEqual(seats_left(77), 0)
        self.assertEqual(Reservation.objects.filter(train_id=77).count(), 2)

    def test_counter_matches_rows_after_race(self):
        Train.objects.filter(pk=77).update(seats_available=4)

        outcomes = self.race(self.booking_calls())

        count = Reservation.objects.filter(train_id=77).count()
        self.assertEqual(outcomes.count('ok'), 4)
        self.assertEqual(count, 4)
        self.assertEqual(seats_left(77), 4 - count)

    def test_concurrent_cancels_return_one_seat(self):
        """Only one of several simultaneous cancels of the same reservation wins."""
        owner = self.users[0]
        reservation = ReservationEngine().book(owner.pk, 77, 'Upper', False, TRAVEL_DATE)
        self.assertEqual(seats_left(77), 1)

        calls = [lambda: ReservationEngine().cancel(owner.pk, reservation.pk) for _ in range(4)]
        outcomes = self.race(calls)

        self.assertEqual(sorted(outcomes), ['ReservationNotFound'] * 3 + ['ok'])
        self.assertEqual(seats_left(77), 2)
        self.assertFalse(Reservation.objects.exists())

    def test_conditional_decrement_refuses_empty_train(self):
        """The guarded UPDATE affects no row once the counter is zero."""
        Train.objects.filter(pk=77).update(seats_available=0)

        updated = Train.objects.filter(pk=77, seats_available__gt=0).update(
            seats_available=F('seats_available') - 1
        )

        self.assertEqual(updated, 0)
        self.assertEqual(seats_left(77), 0)


# =============================================================================
# INTEGRATION TESTS - API
# =============================================================================

class BookingAPITests(APITestCase):

    def setUp(self):
        self.user = create_user('alice', 'Alice Rao')
        self.other = create_user('bob')
        create_train(train_number=12951, seats=2, train_name='Mumbai Rajdhani')
        self.travel_date = timezone.localdate() + timedelta(days=7)
        self.client.force_authenticate(user=self.user)

    def book(self, **overrides):
        data = {
            'train_number': 12951,
            'berth_type': 'lower',
            'meals_required': True,
            'travel_date': self.travel_date.isoformat(),
        }
        data.update(overrides)
        return self.client.post('/api/bookings/', data, format='json')

    def test_create_booking_success(self):
        response = self.book()

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['booking']['berth_type'], 'LOWER')
        self.assertEqual(response.data['ticket']['passenger_name'], 'Alice Rao')
        self.assertEqual(response.data['ticket']['berth_type'], 'Lower')
        self.assertEqual(seats_left(12951), 1)

    def test_booking_unauthenticated(self):
        self.client.force_authenticate(user=None)
        self.assertEqual(self.book().status_code, status.HTTP_401_UNAUTHORIZED)

    def test_booking_past_date_rejected(self):
        response = self.book(travel_date=(timezone.localdate() - timedelta(days=1)).isoformat())

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('travel_date', response.data)
        self.assertEqual(seats_left(12951), 2)

    def test_booking_invalid_berth_rejected(self):
        response = self.book(berth_type='window')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('berth_type', response.data)

    def test_booking_unknown_train(self):
        response = self.book(train_number=404)
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['code'], 'train_not_found')

    def test_booking_exceeds_availability(self):
        self.book()
        self.book()

        response = self.book()

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['code'], 'no_seats_available')
        self.assertEqual(seats_left(12951), 0)

    def test_get_my_bookings(self):
        self.book()
        Reservation.objects.create(user=self.other, train_id=12951, berth_type='SIDE',
                                   travel_date=self.travel_date)

        response = self.client.get('/api/bookings/my/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['train_name'], 'Mumbai Rajdhani')

    def test_cancel_booking(self):
        reservation_id = self.book().data['booking']['id']

        response = self.client.delete(f'/api/bookings/{reservation_id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertEqual(seats_left(12951), 2)

        again = self.client.delete(f'/api/bookings/{reservation_id}/')
        self.assertEqual(again.status_code, status.HTTP_404_NOT_FOUND)

    def test_cancel_other_users_booking(self):
        reservation_id = self.book().data['booking']['id']
        self.client.force_authenticate(user=self.other)

        response = self.client.delete(f'/api/bookings/{reservation_id}/')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['code'], 'reservation_not_found')
        self.assertEqual(seats_left(12951), 1)

    def test_ticket_endpoint(self):
        self.book()
        params = {'train_number': 12951, 'travel_date': self.travel_date.isoformat()}

        response = self.client.get('/api/bookings/ticket/', params)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['train_name'], 'Mumbai Rajdhani')

        missing = self.client.get('/api/bookings/ticket/', {**params, 'train_number': 1})
        self.assertEqual(missing.status_code, status.HTTP_404_NOT_FOUND)
