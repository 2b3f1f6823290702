"""Typed failures raised by the booking core.

Routes translate these into HTTP responses using ``status_code``.
"""


class BookingError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(BookingError):
    status_code = 404


class InvalidRelationshipError(BookingError):
    status_code = 400


class InvalidInputError(BookingError):
    status_code = 400


class ConflictError(BookingError):
    """Overlapping active reservation.

    ``detected_by`` is ``"pre_insert"`` when the overlap query found the clash and
    ``"constraint"`` when the database rejected the insert.
    """

    status_code = 409

    def __init__(self, message: str, detected_by: str = "pre_insert"):
        super().__init__(message)
        self.detected_by = detected_by


class ForbiddenError(BookingError):
    status_code = 403
