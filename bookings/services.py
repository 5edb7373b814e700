"""
Reservation engine: the only writer of Train.seats_available after a train
is created, and the only code that creates or deletes Reservation rows.

book() and cancel() each run as one transaction on the engine's database
alias. The train row is locked with SELECT ... FOR UPDATE and the counter is
moved with a conditional UPDATE whose affected-row count is checked, so two
sessions racing for the last seat can never both win.
"""
import logging

from django.db import DEFAULT_DB_ALIAS, DatabaseError, transaction
from django.db.models import F

from core.models import User
from trains.models import Train
from utils.exceptions import (
    BookingFailed,
    CancellationFailed,
    NoSeatsAvailable,
    ReservationNotFound,
    TrainNotFound,
    UserNotFound,
)
from utils.mongo import log_reservation_event
from .models import BerthType, Reservation

logger = logging.getLogger(__name__)


class ReservationEngine:
    def __init__(self, using=DEFAULT_DB_ALIAS):
        self.using = using

    def book(self, user_id, train_number, berth_type, meals_required, travel_date) -> Reservation:
        """
        Reserve one seat on ``train_number`` for ``user_id``.

        Raises TrainNotFound, UserNotFound, NoSeatsAvailable, or BookingFailed
        (wrapping the store error) when the transaction is rolled back.
        """
        berth = BerthType.normalize(berth_type)

        try:
            with transaction.atomic(using=self.using):
                try:
                    train = Train.objects.using(self.using).select_for_update().get(pk=train_number)
                except Train.DoesNotExist:
                    raise TrainNotFound()

                if not train.can_book():
                    raise NoSeatsAvailable()

                if not User.objects.using(self.using).filter(pk=user_id).exists():
                    raise UserNotFound()

                reservation = Reservation.objects.using(self.using).create(
                    user_id=user_id,
                    train_id=train_number,
                    berth_type=berth,
                    meals_required=bool(meals_required),
                    travel_date=travel_date,
                )

                updated = Train.objects.using(self.using).filter(
                    pk=train_number,
                    seats_available__gt=0,
                ).update(seats_available=F('seats_available') - 1)

                if updated == 0:
                    # Another session took the last seat; undo the insert
                    raise NoSeatsAvailable()
        except NoSeatsAvailable:
            logger.warning("No seats left on train %s for user %s", train_number, user_id)
            raise
        except DatabaseError as exc:
            logger.exception("Booking on train %s for user %s rolled back", train_number, user_id)
            raise BookingFailed(cause=exc) from exc

        logger.info(
            "Reservation %s booked: user=%s train=%s date=%s berth=%s",
            reservation.pk, user_id, train_number, travel_date, berth,
        )
        self._record_event(
            'booked', user_id, train_number, reservation.pk,
            travel_date=travel_date, berth_type=berth,
        )
        return reservation

    def cancel(self, user_id, reservation_id) -> None:
        """
        Delete the caller's reservation and give its seat back.

        A reservation owned by someone else is reported exactly like a
        missing one: ReservationNotFound.
        """
        try:
            with transaction.atomic(using=self.using):
                try:
                    reservation = Reservation.objects.using(self.using).select_for_update().get(
                        pk=reservation_id,
                        user_id=user_id,
                    )
                except Reservation.DoesNotExist:
                    raise ReservationNotFound()

                train_number = reservation.train_id
                deleted, _ = Reservation.objects.using(self.using).filter(
                    pk=reservation_id,
                    user_id=user_id,
                ).delete()
                if deleted == 0:
                    raise ReservationNotFound()

                Train.objects.using(self.using).filter(pk=train_number).update(
                    seats_available=F('seats_available') + 1
                )
        except DatabaseError as exc:
            logger.exception("Cancelling reservation %s for user %s rolled back", reservation_id, user_id)
            raise CancellationFailed(cause=exc) from exc

        logger.info("Reservation %s cancelled by %s, seat returned to train %s",
                    reservation_id, user_id, train_number)
        self._record_event('cancelled', user_id, train_number, reservation_id)

    @staticmethod
    def _record_event(action, user_id, train_number, reservation_id, **details):
        # Runs after commit: the reservation change stands whatever happens here
        try:
            log_reservation_event(action, user_id, train_number, reservation_id, **details)
        except Exception:
            logger.warning("Could not log %s event for reservation %s", action, reservation_id, exc_info=True)

    def list_for_user(self, user_id):
        """
        The user's reservations with their train, soonest travel date first.

        Returns an unevaluated QuerySet: nothing is read until it is iterated
        and it may be iterated any number of times.
        """
        return Reservation.objects.using(self.using).filter(
            user_id=user_id
        ).select_related('train').order_by('travel_date', 'id')
