"""
Management command to seed the database with sample data.

Usage:
    python manage.py seed_db           # Seed with default data
    python manage.py seed_db --clear   # Clear existing data first
"""
from datetime import timedelta

from django.core.management.base import BaseCommand
from django.utils import timezone

from bookings.models import Reservation
from bookings.services import ReservationEngine
from core.auth import AuthenticationGate, RegistrationProfile
from core.models import User
from trains.models import Train
from trains.services import TrainInventory
from utils.backup import NullUserBackup
from utils.exceptions import Conflict


class Command(BaseCommand):
    help = 'Seed the database with sample data for testing'

    def add_arguments(self, parser):
        parser.add_argument(
            '--clear',
            action='store_true',
            help='Clear existing data before seeding',
        )

    def handle(self, *args, **options):
        if options['clear']:
            self.stdout.write('Clearing existing data...')
            self.clear_data()

        self.stdout.write('Seeding database...')

        users = self.create_users()
        self.create_trains()
        self.create_sample_reservations(users)

        self.stdout.write(self.style.SUCCESS('Database seeded successfully!'))
        self.print_summary()

    def clear_data(self):
        # Straight deletes: the trains go too, so their counters need no restoring
        Reservation.objects.all().delete()
        Train.objects.all().delete()
        User.objects.filter(is_superuser=False).delete()
        self.stdout.write(self.style.WARNING('  Cleared all non-superuser data'))

    def create_users(self):
        gate = AuthenticationGate(backup=NullUserBackup())
        users = []

        admin = User.objects.filter(username='admin').first()
        if admin is None:
            admin = User.objects.create_user(
                username='admin',
                password='Admin@123',
                full_name='Admin User',
                phone='9000000000',
                address='Rail Bhavan, New Delhi',
                postal_code='110001',
                age=40,
                is_admin=True,
                is_staff=True,
            )
            self.stdout.write('  Created admin: admin / Admin@123')
        users.append(admin)

        test_users = [
            ('john', 'John Doe', '9876543210', '111122223333', 'Mumbai', '400001', 30),
            ('jane', 'Jane Smith', '9876543211', '111122224444', 'Chennai', '600001', 28),
            ('raj', 'Raj Kumar', '9876543212', '111122225555', 'Bengaluru', '560001', 35),
        ]

        for username, name, phone, national_id, address, postal_code, age in test_users:
            profile = RegistrationProfile(
                username=username,
                full_name=name,
                phone=phone,
                national_id=national_id,
                address=address,
                postal_code=postal_code,
                age=age,
            )
            try:
                user = gate.register(profile, 'User@1234')
                self.stdout.write(f'  Created user: {username} / User@1234')
            except Conflict:
                user = User.objects.get(username=username)
            users.append(user)

        return users

    def create_trains(self):
        trains_data = [
            (12951, 'Mumbai Rajdhani', 'Delhi', 'Mumbai', 500, 'AC, pantry car'),
            (12301, 'Howrah Rajdhani', 'Delhi', 'Kolkata', 450, 'AC, pantry car'),
            (12259, 'Sealdah Duronto', 'Delhi', 'Kolkata', 400, None),
            (22691, 'Bangalore Rajdhani', 'Delhi', 'Bangalore', 350, 'AC'),
            (12627, 'Karnataka Express', 'Bangalore', 'Delhi', 600, None),
            (12621, 'Tamil Nadu Express', 'Chennai', 'Delhi', 550, None),
            (12245, 'Shatabdi Express', 'Chennai', 'Bangalore', 300, 'Chair car'),
        ]

        inventory = TrainInventory()
        created = 0
        for number, name, origin, destination, seats, extras in trains_data:
            try:
                inventory.add_train(number, name, origin, destination, seats, extras)
                created += 1
            except Conflict:
                continue

        self.stdout.write(f'  Created {created} trains')

    def create_sample_reservations(self, users):
        # Go through the engine so the seat counters stay consistent
        engine = ReservationEngine()
        travel_date = timezone.localdate() + timedelta(days=7)
        regular_users = [u for u in users if not u.is_admin]

        booked = 0
        for user, (train_number, berth) in zip(regular_users[:2], [(12951, 'LOWER'), (12301, 'UPPER')]):
            if Reservation.objects.filter(user=user, train_id=train_number).exists():
                continue
            engine.book(user.pk, train_number, berth, True, travel_date)
            booked += 1

        self.stdout.write(f'  Created {booked} sample reservations')

    def print_summary(self):
        self.stdout.write('\n' + '=' * 50)
        self.stdout.write('Database Summary:')
        self.stdout.write(f'  Users: {User.objects.count()}')
        self.stdout.write(f'  Trains: {Train.objects.count()}')
        self.stdout.write(f'  Reservations: {Reservation.objects.count()}')
        self.stdout.write('=' * 50)
        self.stdout.write('\nTest Credentials:')
        self.stdout.write('  Admin: admin / Admin@123')
        self.stdout.write('  User:  john / User@1234')
        self.stdout.write('=' * 50 + '\n')
