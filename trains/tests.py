"""
Tests for trains app.
Tests cover: Model constraints, Inventory management, Admin-only writes.
"""
from datetime import date

from django.db import IntegrityError, transaction
from django.db.models import F
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APITestCase

from bookings.models import Reservation
from core.models import User
from trains.models import Train
from trains.services import TrainInventory
from utils.exceptions import DuplicateTrainNumber, TrainHasReservations, TrainNotFound


def create_user(username='rider', is_admin=False):
    return User.objects.create_user(
        username=username, password='RiderPass1', full_name='Test Rider',
        phone='9999999999', address='Somewhere', postal_code='110001', age=30,
        is_admin=is_admin,
    )


def create_train(train_number=12951, seats=10, **extra):
    fields = {
        'train_name': 'Mumbai Rajdhani',
        'origin': 'Delhi',
        'destination': 'Mumbai',
    }
    fields.update(extra)
    return Train.objects.create(train_number=train_number, seats_available=seats, **fields)


# =============================================================================
# UNIT TESTS - Models
# =============================================================================

class TrainModelTests(TestCase):
    """Test Train model constraints."""

    def test_train_string_representation(self):
        self.assertEqual(str(create_train()), '12951 - Mumbai Rajdhani')

    def test_can_book(self):
        self.assertTrue(create_train(seats=1).can_book())
        self.assertFalse(create_train(train_number=2, seats=0).can_book())

    def test_seats_cannot_go_negative(self):
        """The store itself rejects a counter below zero."""
        train = create_train(seats=0)

        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                Train.objects.filter(pk=train.pk).update(seats_available=F('seats_available') - 1)

        train.refresh_from_db()
        self.assertEqual(train.seats_available, 0)

    def test_trains_ordered_by_number(self):
        create_train(train_number=300)
        create_train(train_number=100)

        self.assertEqual([t.train_number for t in Train.objects.all()], [100, 300])


# =============================================================================
# UNIT TESTS - Inventory
# =============================================================================

class TrainInventoryTests(TestCase):

    def setUp(self):
        self.inventory = TrainInventory()

    def test_add_train(self):
        train = self.inventory.add_train(12301, 'Howrah Rajdhani', 'Delhi', 'Kolkata', 450, 'AC')

        stored = Train.objects.get(pk=12301)
        self.assertEqual(stored.train_name, 'Howrah Rajdhani')
        self.assertEqual(stored.seats_available, 450)
        self.assertEqual(stored.specification, 'AC')
        self.assertEqual(train.pk, 12301)

    def test_blank_specification_is_stored_as_null(self):
        self.inventory.add_train(12301, 'Howrah Rajdhani', 'Delhi', 'Kolkata', 450, '')
        self.assertIsNone(Train.objects.get(pk=12301).specification)

    def test_duplicate_train_number_leaves_original(self):
        create_train(seats=10)

        with self.assertRaises(DuplicateTrainNumber):
            self.inventory.add_train(12951, 'Impostor', 'X', 'Y', 999)

        stored = Train.objects.get(pk=12951)
        self.assertEqual(stored.train_name, 'Mumbai Rajdhani')
        self.assertEqual(stored.seats_available, 10)

    def test_get_train(self):
        create_train()
        self.assertEqual(self.inventory.get_train(12951).train_name, 'Mumbai Rajdhani')

    def test_get_missing_train(self):
        with self.assertRaises(TrainNotFound):
            self.inventory.get_train(404)

    def test_list_trains(self):
        create_train(train_number=2)
        create_train(train_number=1)

        self.assertEqual([t.pk for t in self.inventory.list_trains()], [1, 2])

    def test_update_descriptive_fields(self):
        create_train(seats=7)

        self.inventory.update_train(12951, origin='New Delhi', specification='AC only')

        stored = Train.objects.get(pk=12951)
        self.assertEqual(stored.origin, 'New Delhi')
        self.assertEqual(stored.specification, 'AC only')
        self.assertEqual(stored.seats_available, 7)

    def test_seat_counter_is_not_editable(self):
        create_train(seats=7)

        with self.assertRaises(ValueError):
            self.inventory.update_train(12951, seats_available=100)
        self.assertEqual(Train.objects.get(pk=12951).seats_available, 7)

    def test_update_missing_train(self):
        with self.assertRaises(TrainNotFound):
            self.inventory.update_train(404, train_name='Ghost')

    def test_remove_train(self):
        create_train()

        self.inventory.remove_train(12951)

        self.assertFalse(Train.objects.filter(pk=12951).exists())

    def test_remove_missing_train(self):
        with self.assertRaises(TrainNotFound):
            self.inventory.remove_train(404)

    def test_remove_train_with_reservations_is_refused(self):
        train = create_train(seats=9)
        Reservation.objects.create(user=create_user(), train=train, berth_type='LOWER',
                                   travel_date=date(2030, 1, 1))

        with self.assertRaises(TrainHasReservations):
            self.inventory.remove_train(12951)

        self.assertTrue(Train.objects.filter(pk=12951).exists())
        self.assertEqual(Reservation.objects.count(), 1)


# =============================================================================
# INTEGRATION TESTS - API
# =============================================================================

class TrainAPITests(APITestCase):

    def setUp(self):
        self.user = create_user()
        self.admin = create_user(username='admin', is_admin=True)
        create_train(seats=10)

    def test_list_requires_authentication(self):
        response = self.client.get('/api/trains/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_list_trains(self):
        self.client.force_authenticate(user=self.user)

        response = self.client.get('/api/trains/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['seats_available'], 10)

    def test_get_train(self):
        self.client.force_authenticate(user=self.user)

        self.assertEqual(self.client.get('/api/trains/12951/').status_code, status.HTTP_200_OK)
        missing = self.client.get('/api/trains/404/')
        self.assertEqual(missing.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(missing.data['code'], 'train_not_found')

    def test_non_admin_cannot_add_train(self):
        self.client.force_authenticate(user=self.user)

        response = self.client.post('/api/trains/', {
            'train_number': 12302, 'train_name': 'New Train', 'origin': 'A',
            'destination': 'B', 'seats_available': 100,
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(Train.objects.filter(pk=12302).exists())

    def test_admin_can_add_train(self):
        self.client.force_authenticate(user=self.admin)

        response = self.client.post('/api/trains/', {
            'train_number': 12302, 'train_name': 'New Train', 'origin': 'A',
            'destination': 'B', 'seats_available': 100,
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Train.objects.get(pk=12302).seats_available, 100)

    def test_add_duplicate_train(self):
        self.client.force_authenticate(user=self.admin)

        response = self.client.post('/api/trains/', {
            'train_number': 12951, 'train_name': 'Copy', 'origin': 'A',
            'destination': 'B', 'seats_available': 5,
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['code'], 'duplicate_train_number')

    def test_add_train_validation(self):
        self.client.force_authenticate(user=self.admin)

        response = self.client.post('/api/trains/', {
            'train_number': 1, 'train_name': '   ', 'origin': 'A',
            'destination': 'B', 'seats_available': 0,
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_admin_can_update_train(self):
        self.client.force_authenticate(user=self.admin)

        response = self.client.patch('/api/trains/12951/', {'destination': 'Pune'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['destination'], 'Pune')

    def test_patch_ignores_seat_counter(self):
        self.client.force_authenticate(user=self.admin)

        self.client.patch('/api/trains/12951/', {'train_name': 'Renamed', 'seats_available': 999}, format='json')

        self.assertEqual(Train.objects.get(pk=12951).seats_available, 10)

    def test_delete_train_with_reservations(self):
        Reservation.objects.create(user=self.user, train_id=12951, berth_type='SIDE',
                                   travel_date=date(2030, 1, 1))
        self.client.force_authenticate(user=self.admin)

        response = self.client.delete('/api/trains/12951/')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['code'], 'train_has_reservations')

    def test_admin_can_delete_train(self):
        self.client.force_authenticate(user=self.admin)

        response = self.client.delete('/api/trains/12951/')

        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Train.objects.exists())
