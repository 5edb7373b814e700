"""
Read-only ticket view of a committed reservation.
"""
from dataclasses import dataclass
from datetime import date, datetime

from django.db import DEFAULT_DB_ALIAS

from utils.exceptions import TicketNotFound
from .models import Reservation


@dataclass(frozen=True)
class Ticket:
    reservation_id: int
    passenger_name: str
    train_number: int
    train_name: str
    berth_type: str
    meals_required: bool
    travel_date: date
    booked_at: datetime

    def as_dict(self):
        return {
            'reservation_id': self.reservation_id,
            'passenger_name': self.passenger_name,
            'train_number': self.train_number,
            'train_name': self.train_name,
            'berth_type': self.berth_type,
            'meals_required': self.meals_required,
            'travel_date': self.travel_date.isoformat(),
            'booked_at': self.booked_at.isoformat(),
        }

    def lines(self, width=20):
        """Boxed text rendering for the terminal."""
        rows = [
            ('Passenger Name', self.passenger_name),
            ('Train Name', self.train_name),
            ('Train Number', str(self.train_number)),
            ('Berth Type', self.berth_type),
            ('Meals Included', 'Yes' if self.meals_required else 'No'),
            ('Departure Date', self.travel_date.isoformat()),
        ]
        border = f"+{'-' * 21}+{'-' * (width + 2)}+"
        out = [border]
        out.extend(f"| {label:<19} | {value:<{width}} |" for label, value in rows)
        out.append(border)
        return out


class TicketProjector:
    def __init__(self, using=DEFAULT_DB_ALIAS):
        self.using = using

    def render_ticket(self, user_id, train_number, travel_date) -> Ticket:
        """
        Ticket for the user's most recent reservation on this train and date.

        Raises TicketNotFound when there is none (not yet committed, or
        cancelled).
        """
        reservation = Reservation.objects.using(self.using).filter(
            user_id=user_id,
            train_id=train_number,
            travel_date=travel_date,
        ).select_related('user', 'train').order_by('-created_at', '-id').first()

        if reservation is None:
            raise TicketNotFound()

        return Ticket(
            reservation_id=reservation.pk,
            passenger_name=reservation.user.full_name,
            train_number=reservation.train.train_number,
            train_name=reservation.train.train_name,
            berth_type=reservation.get_berth_type_display(),
            meals_required=reservation.meals_required,
            travel_date=reservation.travel_date,
            booked_at=reservation.created_at,
        )
