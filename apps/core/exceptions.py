"""
Exception hierarchy and the DRF exception handler.
"""
import logging
from rest_framework.views import exception_handler
from rest_framework.response import Response
from rest_framework import status

logger = logging.getLogger(__name__)


def _error_body(code, message, details=None, request_id=None):
    """Standard error envelope shared by the handler and middleware."""
    body = {
        'error': {
            'code': code,
            'message': message,
        }
    }
    if details:
        body['error']['details'] = details
    if request_id:
        body['request_id'] = request_id
    return body


def custom_exception_handler(exc, context):
    """
    Custom exception handler that logs errors and returns consistent format.

    FiestaException subclasses carry their own HTTP status and error code;
    everything else goes through DRF's default handler first.
    """
    request = context.get('request')
    request_id = getattr(request, 'request_id', None) if request else None

    if isinstance(exc, FiestaException):
        logger.warning(
            f"API error: {exc.__class__.__name__}: {exc.message}",
            extra={
                'code': exc.code,
                'details': exc.details,
                'request_id': request_id,
                'path': request.path if request else None,
                'method': request.method if request else None,
            }
        )
        return Response(
            _error_body(exc.code, exc.message, exc.details, request_id),
            status=exc.status_code
        )

    # Call DRF's default exception handler first
    response = exception_handler(exc, context)

    logger.error(
        f"API Exception: {exc.__class__.__name__}",
        extra={
            'exception': str(exc),
            'request_id': request_id,
            'path': request.path if request else None,
            'method': request.method if request else None,
        },
        exc_info=response is None
    )

    # If DRF didn't handle it, return a generic 500 error
    if response is None:
        return Response(
            _error_body(
                'INTERNAL_ERROR',
                'An unexpected error occurred',
                request_id=request_id
            ),
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    # Add request_id to all error responses
    if request_id and isinstance(response.data, dict):
        response.data['request_id'] = request_id

    return response


class FiestaException(Exception):
    """Base exception for Fiesta-specific errors."""

    status_code = 400
    code = 'ERROR'

    def __init__(self, message, details=None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class AuthenticationError(FiestaException):
    """Raised when authentication fails."""
    status_code = 401
    code = 'UNAUTHORIZED'


class PermissionDeniedError(FiestaException):
    """Raised when user lacks required permissions."""
    status_code = 403
    code = 'FORBIDDEN'


class NotFoundError(FiestaException):
    """Raised when a venue-scoped resource does not exist."""
    status_code = 404
    code = 'NOT_FOUND'


class ValidationError(FiestaException):
    """Raised when input validation fails."""
    status_code = 400
    code = 'VALIDATION_ERROR'


class ConflictError(FiestaException):
    """Raised when a write collides with existing state."""
    status_code = 409
    code = 'CONFLICT'
