"""
Domain errors and the API-wide exception handler.

Every failure leaves the API as JSON with at least an ``error`` string.
"""

import logging

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, InterfaceError, OperationalError
from django.http import Http404
from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class NotFound(exceptions.APIException):
    """Referenced listing, booking, chat or notification does not exist."""

    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Not found.'
    default_code = 'not_found'


class Forbidden(exceptions.APIException):
    """Authenticated party is not entitled to the action."""

    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'Unauthorized'
    default_code = 'forbidden'


class InvalidOperation(exceptions.APIException):
    """A domain rule was violated, e.g. booking your own listing."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Invalid operation.'
    default_code = 'invalid_operation'


class ValidationError(exceptions.ValidationError):
    """Malformed or missing request fields."""


class DependencyFailure(exceptions.APIException):
    """The data store rejected the operation or could not be reached."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = 'Service temporarily unavailable.'
    default_code = 'dependency_failure'

    def __init__(self, detail=None, code=None, status_code=None):
        super().__init__(detail, code)
        if status_code is not None:
            self.status_code = status_code


def _error_message(detail):
    """Pick a single human-readable message out of a DRF error detail."""
    if isinstance(detail, dict):
        if 'detail' in detail:
            return _error_message(detail['detail'])
        if 'error' in detail:
            return _error_message(detail['error'])
        return 'Validation failed'
    if isinstance(detail, list):
        return _error_message(detail[0]) if detail else 'Validation failed'
    return str(detail)


def _translate_storage_error(exc):
    """Map database errors onto DependencyFailure."""
    if isinstance(exc, IntegrityError):
        return DependencyFailure(
            'A record with this data already exists.',
            code='conflict',
            status_code=status.HTTP_409_CONFLICT,
        )
    return DependencyFailure()


def api_exception_handler(exc, context):
    """
    DRF exception handler producing ``{"error": ..., "details": ...}`` bodies.

    - DRF and domain exceptions keep their status code
    - Django ValidationError becomes 400 with field detail
    - IntegrityError becomes 409, connection failures become 503
    - Anything else is logged with its stack trace and becomes 500
    """
    view = context.get('view')
    view_name = view.__class__.__name__ if view is not None else 'unknown'

    if isinstance(exc, DjangoValidationError):
        detail = exc.message_dict if hasattr(exc, 'error_dict') else exc.messages
        exc = ValidationError(detail)

    if isinstance(exc, (IntegrityError, OperationalError, InterfaceError)):
        logger.error(
            f"Storage failure in {view_name}: {exc.__class__.__name__}: {exc}",
            exc_info=True
        )
        exc = _translate_storage_error(exc)

    response = exception_handler(exc, context)

    if response is None:
        logger.error(f"Unhandled error in {view_name}: {exc}", exc_info=True)
        message = str(exc) if settings.DEBUG else 'Internal Server Error'
        return Response(
            {'error': message},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    if isinstance(exc, Http404):
        response.data = {'error': 'Not found.'}
        return response

    detail = response.data
    body = {'error': _error_message(detail)}
    if isinstance(exc, exceptions.ValidationError):
        body['error'] = 'Validation failed'
        body['details'] = detail
    response.data = body
    return response
