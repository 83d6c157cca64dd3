# storefront/domain/errors.py
from enum import Enum


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    VALIDATION = "validation"
    INVALID_TRANSITION = "invalid_transition"


class CommerceError(Exception):
    """
    Failure raised by the cart and order services. The API layer picks the
    response code from `kind`, never from the message text.
    """

    kind: ErrorKind = ErrorKind.VALIDATION

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(CommerceError):
    kind = ErrorKind.NOT_FOUND


class ConflictError(CommerceError):
    kind = ErrorKind.CONFLICT


class InputValidationError(CommerceError):
    kind = ErrorKind.VALIDATION


class InvalidTransitionError(CommerceError):
    kind = ErrorKind.INVALID_TRANSITION
