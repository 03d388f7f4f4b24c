"""
Domain errors raised by the exchange core.

Each error is a DRF APIException so views can let it propagate and DRF
renders `{"detail": ...}` with the matching status code.
"""

from rest_framework import status
from rest_framework.exceptions import APIException


class ExchangeError(APIException):
    """Base class for exchange domain errors."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'The request could not be completed.'
    default_code = 'exchange_error'


class NotFoundError(ExchangeError):
    """Referenced offer, listing, conversation or notification does not exist."""
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Not found.'
    default_code = 'not_found'


class ForbiddenError(ExchangeError):
    """Actor lacks the role required for the operation."""
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'You do not have permission to perform this action.'
    default_code = 'forbidden'


class InvalidStateError(ExchangeError):
    """Operation attempted from a status that does not permit it."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'This action is not allowed in the current state.'
    default_code = 'invalid_state'


class ConflictError(ExchangeError):
    """Listing exclusivity, repeat offer after rejection, or duplicate review."""
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'The request conflicts with the current state of the resource.'
    default_code = 'conflict'


class BadRequestError(ExchangeError):
    """Malformed counterpart, out-of-range rating or malformed payload."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Bad request.'
    default_code = 'bad_request'
