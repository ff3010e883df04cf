"""
API error taxonomy and the DRF exception handler.

Every failure leaves the API in the same envelope:

    {"success": false, "error": "<code>", "message": "...", "details": [...]}
"""
import logging

from django.conf import settings
from django.http import Http404
from django.core.exceptions import PermissionDenied
from rest_framework import exceptions as drf_exceptions
from rest_framework import status
from rest_framework.response import Response

logger = logging.getLogger(__name__)


class FarmToForkError(drf_exceptions.APIException):
    """Base class for errors surfaced to API callers."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code = 'internal_error'
    default_message = 'An unexpected error occurred'

    def __init__(self, message=None, details=None):
        self.message = message or self.default_message
        self.details = list(details) if details else []
        super().__init__(detail=self.message, code=self.error_code)

    def as_payload(self):
        payload = {
            'success': False,
            'error': self.error_code,
            'message': self.message,
        }
        if self.details:
            payload['details'] = self.details
        return payload


class ValidationError(FarmToForkError):
    status_code = status.HTTP_400_BAD_REQUEST
    error_code = 'validation_error'
    default_message = 'Invalid input'


class Unauthenticated(FarmToForkError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error_code = 'unauthenticated'
    default_message = 'Authentication required'


class Forbidden(FarmToForkError):
    status_code = status.HTTP_403_FORBIDDEN
    error_code = 'forbidden'
    default_message = 'You do not have access to this resource'


class NotFound(FarmToForkError):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = 'not_found'
    default_message = 'Resource not found'


class Conflict(FarmToForkError):
    status_code = status.HTTP_409_CONFLICT
    error_code = 'conflict'
    default_message = 'Conflicting state'


class InvalidState(FarmToForkError):
    status_code = status.HTTP_400_BAD_REQUEST
    error_code = 'invalid_state'
    default_message = 'Operation not allowed in the current state'


class InternalError(FarmToForkError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code = 'internal_error'
    default_message = 'Internal server error'


def flatten_errors(errors, prefix=''):
    """
    Flatten DRF serializer errors into "field.sub: message" strings.

    Handles nested dicts (nested serializers) and lists (many=True
    serializers, where the index becomes part of the path). Newer DRF
    releases report many=True errors as a dict keyed by index; those
    keys render the same way as list positions.
    """
    flat = []
    if isinstance(errors, dict):
        for key, value in errors.items():
            if key == 'non_field_errors':
                path = prefix
            elif isinstance(key, int):
                path = f'{prefix}[{key}]' if prefix else f'[{key}]'
            else:
                path = f'{prefix}.{key}' if prefix else str(key)
            flat.extend(flatten_errors(value, path))
    elif isinstance(errors, (list, tuple)):
        for index, value in enumerate(errors):
            if isinstance(value, (dict, list, tuple)):
                path = f'{prefix}[{index}]' if prefix else f'[{index}]'
                flat.extend(flatten_errors(value, path))
            elif value:
                flat.extend(flatten_errors(value, prefix))
    else:
        message = str(errors)
        flat.append(f'{prefix}: {message}' if prefix else message)
    return flat


def _envelope(error_code, message, details=None, status_code=400, headers=None):
    payload = {'success': False, 'error': error_code, 'message': message}
    if details:
        payload['details'] = details
    response = Response(payload, status=status_code)
    for name, value in (headers or {}).items():
        response[name] = value
    return response


def api_exception_handler(exc, context):
    """
    REST_FRAMEWORK['EXCEPTION_HANDLER'] entry point.

    Maps the taxonomy above, DRF's own exceptions and any unexpected
    exception onto the error envelope.
    """
    if isinstance(exc, Http404):
        exc = NotFound()
    elif isinstance(exc, PermissionDenied):
        exc = Forbidden()

    if isinstance(exc, FarmToForkError):
        headers = {'WWW-Authenticate': 'Bearer'} if isinstance(exc, Unauthenticated) else None
        return _envelope(exc.error_code, exc.message, exc.details, exc.status_code, headers)

    if isinstance(exc, drf_exceptions.ValidationError):
        return _envelope(
            ValidationError.error_code,
            'Invalid input',
            flatten_errors(exc.detail),
            status.HTTP_400_BAD_REQUEST,
        )

    if isinstance(exc, (drf_exceptions.NotAuthenticated, drf_exceptions.AuthenticationFailed)):
        return _envelope(
            Unauthenticated.error_code,
            str(exc.detail),
            status_code=status.HTTP_401_UNAUTHORIZED,
            headers={'WWW-Authenticate': 'Bearer'},
        )

    if isinstance(exc, drf_exceptions.PermissionDenied):
        return _envelope(Forbidden.error_code, str(exc.detail), status_code=status.HTTP_403_FORBIDDEN)

    if isinstance(exc, drf_exceptions.NotFound):
        return _envelope(NotFound.error_code, str(exc.detail), status_code=status.HTTP_404_NOT_FOUND)

    if isinstance(exc, drf_exceptions.APIException):
        # MethodNotAllowed, ParseError, UnsupportedMediaType, Throttled...
        code = exc.get_codes() if isinstance(exc.get_codes(), str) else 'error'
        return _envelope(code, str(exc.detail), status_code=exc.status_code)

    view = context.get('view')
    logger.exception(f"Unhandled error in {view.__class__.__name__ if view else 'unknown view'}")
    response = _envelope(
        InternalError.error_code,
        InternalError.default_message,
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    if settings.DEBUG:
        response.data['debug'] = str(exc)
    return response
