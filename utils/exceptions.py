"""
Error taxonomy shared by the authentication gate, train inventory and
reservation engine.

Every error carries a machine readable ``code`` and the HTTP status the REST
layer answers with. Formatting for humans is left to the caller.
"""


class RailwayError(Exception):
    """Base class for all domain errors."""
    code = 'error'
    status_code = 400
    retryable = False
    default_message = 'Request could not be completed.'

    def __init__(self, message=None, **context):
        self.message = message or self.default_message
        self.context = context
        super().__init__(self.message)

    def as_dict(self):
        return {'error': self.message, 'code': self.code}


# Categories

class NotFound(RailwayError):
    code = 'not_found'
    status_code = 404
    default_message = 'Not found.'


class Conflict(RailwayError):
    code = 'conflict'
    status_code = 409
    default_message = 'Conflicts with existing data.'


class ResourceExhausted(RailwayError):
    code = 'resource_exhausted'
    status_code = 409
    default_message = 'Resource exhausted.'


class Unauthorized(RailwayError):
    code = 'unauthorized'
    status_code = 401
    default_message = 'Not authorized.'


class TransactionFailed(RailwayError):
    """
    The store rolled the whole unit of work back (constraint failure, lock
    wait timeout, lost connection). The only category a caller may retry.
    """
    code = 'transaction_failed'
    status_code = 503
    retryable = True
    default_message = 'The operation was rolled back.'

    def __init__(self, message=None, cause=None, **context):
        self.cause = cause
        if message is None and cause is not None:
            message = f"{self.default_message} ({cause})"
        super().__init__(message, **context)


# Not found

class TrainNotFound(NotFound):
    code = 'train_not_found'
    default_message = 'Train not found.'


class ReservationNotFound(NotFound):
    code = 'reservation_not_found'
    default_message = "Reservation not found or doesn't belong to you."


class TicketNotFound(NotFound):
    code = 'ticket_not_found'
    default_message = 'No reservation matches this ticket.'


class UserNotFound(NotFound):
    code = 'user_not_found'
    default_message = 'User not found.'


# Conflicts

class DuplicateUsername(Conflict):
    code = 'duplicate_username'
    default_message = 'This username is already taken.'


class DuplicateNationalId(Conflict):
    code = 'duplicate_national_id'
    default_message = 'A user with this national ID number already exists.'


class DuplicateTrainNumber(Conflict):
    code = 'duplicate_train_number'
    default_message = 'Train number already exists.'


class TrainHasReservations(Conflict):
    code = 'train_has_reservations'
    default_message = 'Train has active reservations and cannot be removed.'


# Capacity

class NoSeatsAvailable(ResourceExhausted):
    code = 'no_seats_available'
    default_message = 'No seats available on this train.'


# Credentials

class InvalidCredentials(Unauthorized):
    code = 'invalid_credentials'
    default_message = 'Invalid username or password.'


class LockedOut(Unauthorized):
    code = 'locked_out'
    default_message = 'Maximum login attempts reached.'


class IncorrectPassword(Unauthorized):
    code = 'incorrect_password'
    default_message = 'Incorrect current password.'


# Rollbacks

class BookingFailed(TransactionFailed):
    code = 'booking_failed'
    default_message = 'Reservation failed.'


class CancellationFailed(TransactionFailed):
    code = 'cancellation_failed'
    default_message = 'Cancellation failed.'


class RegistrationFailed(TransactionFailed):
    code = 'registration_failed'
    default_message = 'Registration failed.'


class InventoryUpdateFailed(TransactionFailed):
    code = 'inventory_update_failed'
    default_message = 'Train inventory update failed.'
