"""
Interactive terminal front end.

Usage:
    python manage.py railway
    python manage.py railway --database replica
"""
from django.conf import settings
from django.core.management.base import BaseCommand
from django.db import DEFAULT_DB_ALIAS

from bookings.models import BerthType
from bookings.services import ReservationEngine
from bookings.tickets import TicketProjector
from core.auth import AuthenticationGate, LoginSession, RegistrationProfile
from trains.services import TrainInventory
from utils import prompts
from utils.exceptions import LockedOut, RailwayError

MAX_NUMBER = 2 ** 31 - 1

TRAIN_BORDER = '+' + '+'.join('-' * w for w in (21, 11, 16, 16, 24, 16)) + '+'
RESERVATION_BORDER = '+' + '+'.join('-' * w for w in (7, 21, 11, 7, 16, 21)) + '+'


class Command(BaseCommand):
    help = 'Run the interactive railway reservation terminal'
    # Tests pass their own input function through call_command()
    stealth_options = ('read',)

    def add_arguments(self, parser):
        parser.add_argument(
            '--database',
            default=DEFAULT_DB_ALIAS,
            help='Database alias to run against',
        )

    def handle(self, *args, **options):
        using = options['database']
        self.gate = AuthenticationGate(using=using)
        self.engine = ReservationEngine(using=using)
        self.projector = TicketProjector(using=using)
        self.inventory = TrainInventory(using=using)
        self.ask = prompts.Prompter(self.stdout.write, options.get('read', input))

        title = f'WELCOME TO {settings.APP_NAME.upper()}'
        self.stdout.write('\n\t\t' + '=' * 44)
        self.stdout.write(f'\t\t{title:^44}')
        self.stdout.write('\t\t' + '=' * 44 + '\n')

        try:
            if not self.gate.has_users():
                self.register()
            user = self.login()
            if user is not None:
                self.main_menu(user)
        except (EOFError, KeyboardInterrupt):
            self.stdout.write('\nGoodbye.')

    # Authentication

    def register(self):
        self.stdout.write('\n=== NEW USER REGISTRATION ===')
        profile = RegistrationProfile(
            full_name=self.ask.text('Enter your full name: ', prompts.NAME, 'Invalid name format'),
            age=self.ask.integer('Enter your age: ', 15, 120),
            phone=self.ask.text('Enter phone number (10 digits): ', prompts.PHONE, 'Invalid phone number'),
            national_id=self.ask.text('Enter national ID number (12 digits): ', prompts.NATIONAL_ID,
                                      'Invalid national ID number'),
            address=self.ask.text('Enter your address: ', prompts.not_blank, 'Address cannot be empty'),
            postal_code=self.ask.text('Enter postal code (6 digits): ', prompts.POSTAL_CODE, 'Invalid postal code'),
            username=self.ask.text('Choose a username: ', prompts.USERNAME, 'Invalid username'),
        )
        password = self.ask.text('Choose a password (min 8 chars): ', lambda v: len(v) >= 8, 'Password too short')

        try:
            user = self.gate.register(profile, password)
        except RailwayError as e:
            self.stdout.write(self.style.ERROR(f'Registration failed: {e.message}'))
            return None
        self.stdout.write(self.style.SUCCESS(f'\nRegistration successful! Your user ID is: {user.pk}'))
        return user

    def login(self):
        self.stdout.write('\n=== USER LOGIN ===')
        session = LoginSession(self.gate)
        while True:
            username = self.ask.text('Username: ')
            password = self.ask.text('Password: ')
            try:
                user = session.attempt(username, password)
            except LockedOut:
                self.stdout.write(self.style.ERROR('Maximum login attempts reached. Exiting...'))
                return None
            except RailwayError as e:
                self.stdout.write(f'{e.message} Attempts remaining: {session.attempts_remaining}')
                continue
            self.stdout.write(self.style.SUCCESS(f'\nWelcome, {user.full_name}!'))
            return user

    # Menus

    def main_menu(self, user):
        actions = {
            1: self.train_menu,
            2: self.reservation_menu,
            3: self.profile_menu,
            4: lambda _user: self.show_about(),
        }
        while True:
            self.stdout.write('\n=== MAIN MENU ===')
            self.stdout.write(f'Logged in as: {user.full_name}')
            self.stdout.write('1. Train Management')
            self.stdout.write('2. Reservation System')
            self.stdout.write('3. User Profile')
            self.stdout.write('4. About')
            self.stdout.write('5. Logout')
            self.stdout.write('6. Exit')
            choice = self.ask.integer('Enter your choice: ', 1, 6)
            if choice in (5, 6):
                self.stdout.write(f'\nThank you for using {settings.APP_NAME}')
                return
            actions[choice](user)

    def train_menu(self, user):
        self.stdout.write('\n=== TRAIN MANAGEMENT ===')
        self.stdout.write('1. View All Trains')
        self.stdout.write('2. Add New Train')
        self.stdout.write('3. Update Train Details')
        self.stdout.write('4. Remove Train')
        self.stdout.write('5. Back to Main Menu')
        choice = self.ask.integer('Enter your choice: ', 1, 5)
        try:
            if choice == 1:
                self.show_trains()
            elif choice == 2:
                self.add_train()
            elif choice == 3:
                self.update_train()
            elif choice == 4:
                number = self.ask.integer('Enter train number to remove: ', 1, MAX_NUMBER)
                self.inventory.remove_train(number)
                self.stdout.write(self.style.SUCCESS('Train removed successfully!'))
        except RailwayError as e:
            self.stdout.write(self.style.ERROR(f'Error: {e.message}'))

    def reservation_menu(self, user):
        self.stdout.write('\n=== RESERVATION SYSTEM ===')
        self.stdout.write('1. Make Reservation')
        self.stdout.write('2. View My Reservations')
        self.stdout.write('3. Cancel Reservation')
        self.stdout.write('4. Back to Main Menu')
        choice = self.ask.integer('Enter your choice: ', 1, 4)
        if choice == 1:
            self.make_reservation(user)
        elif choice == 2:
            self.show_reservations(user)
        elif choice == 3:
            self.cancel_reservation(user)

    def profile_menu(self, user):
        self.stdout.write('\n=== USER PROFILE ===')
        self.stdout.write('1. View Profile')
        self.stdout.write('2. Update Profile')
        self.stdout.write('3. Change Password')
        self.stdout.write('4. Back to Main Menu')
        choice = self.ask.integer('Enter your choice: ', 1, 4)
        try:
            if choice == 1:
                self.show_profile(user)
            elif choice == 2:
                self.update_profile(user)
            elif choice == 3:
                self.change_password(user)
        except RailwayError as e:
            self.stdout.write(self.style.ERROR(e.message))

    # Trains

    def show_trains(self):
        self.stdout.write('\n=== AVAILABLE TRAINS ===')
        self.stdout.write(TRAIN_BORDER)
        self.stdout.write('| Train Name          | Train No  | Starting Point | Destination    '
                          '| Specifications         | Seats Available|')
        self.stdout.write(TRAIN_BORDER)
        for train in self.inventory.list_trains():
            self.stdout.write(
                f'| {train.train_name:<19} | {train.train_number:<9} | {train.origin:<14} '
                f'| {train.destination:<14} | {train.specification or "":<22} | {train.seats_available:<14} |'
            )
        self.stdout.write(TRAIN_BORDER)

    def add_train(self):
        self.stdout.write('\n=== ADD NEW TRAIN ===')
        train = self.inventory.add_train(
            train_name=self.ask.text('Train name: ', prompts.not_blank, 'Name cannot be empty'),
            train_number=self.ask.integer('Train number: ', 1, MAX_NUMBER),
            origin=self.ask.text('Starting point: ', prompts.not_blank, 'Starting point cannot be empty'),
            destination=self.ask.text('Destination: ', prompts.not_blank, 'Destination cannot be empty'),
            seats_available=self.ask.integer('Seats available: ', 1, MAX_NUMBER),
            specification=self.ask.text('Extra specifications (optional): '),
        )
        self.stdout.write(self.style.SUCCESS(f'Train {train.train_number} added successfully!'))

    def update_train(self):
        number = self.ask.integer('Enter train number to update: ', 1, MAX_NUMBER)
        train = self.inventory.get_train(number)
        self.stdout.write('\nCurrent Train Details:')
        self.stdout.write(f'1. Name: {train.train_name}')
        self.stdout.write(f'2. Starting Point: {train.origin}')
        self.stdout.write(f'3. Destination: {train.destination}')
        self.stdout.write(f'4. Specifications: {train.specification or ""}')
        field = self.ask.integer('Which field to update (1-4, 0 to cancel)? ', 0, 4)
        if field == 0:
            return
        name = {1: 'train_name', 2: 'origin', 3: 'destination', 4: 'specification'}[field]
        value = self.ask.text('New value: ', prompts.not_blank, 'Value cannot be empty')
        self.inventory.update_train(number, **{name: value})
        self.stdout.write(self.style.SUCCESS('Train details updated successfully!'))

    # Reservations

    def make_reservation(self, user):
        self.show_trains()
        number = self.ask.integer('Enter train number: ', 1, MAX_NUMBER)
        try:
            train = self.inventory.get_train(number)
        except RailwayError as e:
            self.stdout.write(self.style.ERROR(e.message))
            return
        if not train.can_book():
            self.stdout.write(self.style.ERROR('No seats available on this train!'))
            return

        self.stdout.write(f'Booking seat on: {train.train_name}')
        self.stdout.write(f'Seats available: {train.seats_available}')
        berth = self.ask.choice('Berth type (Lower/Upper/Middle/Side): ', BerthType.values, 'Invalid berth type')
        meals = self.ask.yes_no('Include meals (Y/N)? ')
        travel_date = self.ask.date('Departure date (YYYY-MM-DD): ')

        try:
            self.engine.book(user.pk, number, berth, meals, travel_date)
            ticket = self.projector.render_ticket(user.pk, number, travel_date)
        except RailwayError as e:
            self.stdout.write(self.style.ERROR(f'Reservation failed: {e.message}'))
            return

        self.stdout.write(self.style.SUCCESS('Reservation successful!'))
        self.stdout.write('\n=== YOUR TICKET ===')
        for line in ticket.lines():
            self.stdout.write(line)
        self.stdout.write('Note: Please carry valid ID proof during journey')

    def show_reservations(self, user):
        self.stdout.write('\n=== YOUR RESERVATIONS ===')
        reservations = self.engine.list_for_user(user.pk)
        if not reservations:
            self.stdout.write('No reservations found.')
            return False

        self.stdout.write(RESERVATION_BORDER)
        self.stdout.write('| ID    | Train Name          | Berth     | Meals | Departure Date | Booking Date        |')
        self.stdout.write(RESERVATION_BORDER)
        for r in reservations:
            booked = r.created_at.strftime('%Y-%m-%d %H:%M:%S')
            self.stdout.write(
                f'| {r.pk:<5} | {r.train.train_name:<19} | {r.get_berth_type_display():<9} '
                f'| {"Yes" if r.meals_required else "No":<5} | {r.travel_date.isoformat():<14} | {booked:<19} |'
            )
        self.stdout.write(RESERVATION_BORDER)
        return True

    def cancel_reservation(self, user):
        if not self.show_reservations(user):
            return
        reservation_id = self.ask.integer('Enter reservation ID to cancel (0 to cancel): ', 0, MAX_NUMBER)
        if reservation_id == 0:
            return
        try:
            self.engine.cancel(user.pk, reservation_id)
        except RailwayError as e:
            self.stdout.write(self.style.ERROR(f'Cancellation failed: {e.message}'))
            return
        self.stdout.write(self.style.SUCCESS('Reservation cancelled successfully!'))

    # Profile

    def show_profile(self, user):
        profile = self.gate.get_profile(user.pk)
        self.stdout.write('\n=== YOUR PROFILE ===')
        self.stdout.write(f'User ID: {profile.pk}')
        self.stdout.write(f'Username: {profile.username}')
        self.stdout.write(f'Full Name: {profile.full_name}')
        self.stdout.write(f'Age: {profile.age}')
        self.stdout.write(f'Phone: {profile.phone}')
        self.stdout.write(f'National ID: {profile.national_id or ""}')
        self.stdout.write(f'Address: {profile.address}')
        self.stdout.write(f'Postal Code: {profile.postal_code}')

    def update_profile(self, user):
        self.show_profile(user)
        self.stdout.write('\nWhich field would you like to update?')
        self.stdout.write('1. Full Name')
        self.stdout.write('2. Phone')
        self.stdout.write('3. Address')
        self.stdout.write('4. Postal Code')
        self.stdout.write('5. Cancel')
        choice = self.ask.integer('Enter your choice: ', 1, 5)
        if choice == 5:
            return
        if choice == 1:
            changes = {'full_name': self.ask.text('New full name: ', prompts.NAME, 'Invalid name format')}
        elif choice == 2:
            changes = {'phone': self.ask.text('New phone (10 digits): ', prompts.PHONE, 'Invalid phone number')}
        elif choice == 3:
            changes = {'address': self.ask.text('New address: ', prompts.not_blank, 'Value cannot be empty')}
        else:
            changes = {'postal_code': self.ask.text('New postal code (6 digits): ', prompts.POSTAL_CODE,
                                                    'Invalid postal code')}
        updated = self.gate.update_profile(user.pk, **changes)
        user.full_name = updated.full_name
        self.stdout.write(self.style.SUCCESS('Profile updated successfully!'))

    def change_password(self, user):
        current = self.ask.text('Current password: ')
        new = self.ask.text('New password (min 8 chars): ', lambda v: len(v) >= 8, 'Password too short')
        confirm = self.ask.text('Confirm new password: ')
        if new != confirm:
            self.stdout.write(self.style.ERROR("Passwords don't match!"))
            return
        self.gate.change_password(user.pk, current, new)
        self.stdout.write(self.style.SUCCESS('Password changed successfully!'))

    def show_about(self):
        self.stdout.write('\n=== ABOUT ===')
        self.stdout.write(f'{settings.APP_NAME}')
        self.stdout.write('Train inventory and passenger reservations.')
