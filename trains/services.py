"""
Train inventory management: add, edit, list and remove trains.

The seat counter is set once when a train is added. From then on only the
reservation engine writes it.
"""
import logging

from django.db import DEFAULT_DB_ALIAS, DatabaseError, IntegrityError, transaction
from django.db.models import ProtectedError

from utils.exceptions import (
    DuplicateTrainNumber,
    InventoryUpdateFailed,
    TrainHasReservations,
    TrainNotFound,
)
from .models import Train

logger = logging.getLogger(__name__)


class TrainInventory:
    def __init__(self, using=DEFAULT_DB_ALIAS):
        self.using = using

    @property
    def trains(self):
        return Train.objects.using(self.using)

    def list_trains(self):
        return self.trains.order_by('train_number')

    def get_train(self, train_number) -> Train:
        try:
            return self.trains.get(pk=train_number)
        except Train.DoesNotExist:
            raise TrainNotFound()

    def add_train(self, train_number, train_name, origin, destination,
                  seats_available, specification=None) -> Train:
        if self.trains.filter(pk=train_number).exists():
            raise DuplicateTrainNumber()

        try:
            with transaction.atomic(using=self.using):
                # create() would silently UPDATE an existing row with the same pk
                train = Train(
                    train_number=train_number,
                    train_name=train_name,
                    origin=origin,
                    destination=destination,
                    seats_available=seats_available,
                    specification=specification or None,
                )
                train.save(using=self.using, force_insert=True)
        except IntegrityError as exc:
            if self.trains.filter(pk=train_number).exists():
                raise DuplicateTrainNumber() from exc
            raise InventoryUpdateFailed(cause=exc) from exc
        except DatabaseError as exc:
            logger.exception("Adding train %s rolled back", train_number)
            raise InventoryUpdateFailed(cause=exc) from exc

        logger.info("Added train %s with %d seats", train_number, seats_available)
        return train

    def update_train(self, train_number, **changes) -> Train:
        """Field-level update of name, origin, destination and specification."""
        unknown = set(changes) - set(Train.EDITABLE_FIELDS)
        if unknown:
            raise ValueError(f"Train fields not editable: {', '.join(sorted(unknown))}")
        if not changes:
            return self.get_train(train_number)

        try:
            with transaction.atomic(using=self.using):
                try:
                    train = self.trains.select_for_update().get(pk=train_number)
                except Train.DoesNotExist:
                    raise TrainNotFound()
                for field, value in changes.items():
                    setattr(train, field, value)
                train.save(update_fields=list(changes))
        except DatabaseError as exc:
            logger.exception("Updating train %s rolled back", train_number)
            raise InventoryUpdateFailed(cause=exc) from exc

        logger.info("Updated train %s: %s", train_number, ', '.join(changes))
        return train

    def remove_train(self, train_number) -> None:
        """
        Delete a train. Refused with TrainHasReservations while any
        reservation still references it.
        """
        try:
            with transaction.atomic(using=self.using):
                try:
                    train = self.trains.select_for_update().get(pk=train_number)
                except Train.DoesNotExist:
                    raise TrainNotFound()
                if train.reservations.exists():
                    raise TrainHasReservations()
                train.delete()
        except ProtectedError as exc:
            # A booking slipped in between the check and the delete
            raise TrainHasReservations() from exc
        except DatabaseError as exc:
            logger.exception("Removing train %s rolled back", train_number)
            raise InventoryUpdateFailed(cause=exc) from exc

        logger.info("Removed train %s", train_number)
