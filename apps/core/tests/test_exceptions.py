"""
Tests for the exception hierarchy and the DRF exception handler.
"""
from rest_framework import exceptions as drf_exceptions
from rest_framework.test import APIRequestFactory

from apps.core.exceptions import (
    FiestaException, NotFoundError, PermissionDeniedError, ValidationError,
    custom_exception_handler,
)
from apps.rbac.exceptions import InvalidPermission, OwnerProtected, RoleInUse


def context_for(request_id=None):
    request = APIRequestFactory().post('/v1/roles')
    if request_id:
        request.request_id = request_id
    return {'request': request}


class TestFiestaExceptions:
    """Test status codes and error codes of the hierarchy."""

    def test_defaults(self):
        exc = FiestaException('Something failed')

        assert exc.status_code == 400
        assert exc.code == 'ERROR'
        assert exc.details == {}
        assert str(exc) == 'Something failed'

    def test_subclass_status_codes(self):
        assert NotFoundError('x').status_code == 404
        assert PermissionDeniedError('x').status_code == 403
        assert ValidationError('x').status_code == 400

    def test_rbac_errors_carry_codes(self):
        assert OwnerProtected('x').status_code == 403
        assert OwnerProtected('x').code == 'OWNER_PROTECTED'
        assert RoleInUse(3).details == {'count': 3}


class TestCustomExceptionHandler:
    """Test the error envelope."""

    def test_fiesta_exception_envelope(self):
        response = custom_exception_handler(
            InvalidPermission(['events.teleport']), context_for('req-123')
        )

        assert response.status_code == 400
        assert response.data == {
            'error': {
                'code': 'INVALID_PERMISSION',
                'message': 'One or more permissions are invalid',
                'details': {'missing': ['events.teleport']},
            },
            'request_id': 'req-123',
        }

    def test_envelope_omits_empty_details(self):
        response = custom_exception_handler(OwnerProtected('Cannot modify your own owner role'), context_for())

        assert response.status_code == 403
        assert 'details' not in response.data['error']
        assert 'request_id' not in response.data

    def test_drf_exception_keeps_default_body(self):
        response = custom_exception_handler(drf_exceptions.NotFound(), context_for('req-456'))

        assert response.status_code == 404
        assert 'detail' in response.data
        assert response.data['request_id'] == 'req-456'

    def test_unhandled_exception_becomes_internal_error(self):
        response = custom_exception_handler(RuntimeError('boom'), context_for())

        assert response.status_code == 500
        assert response.data['error']['code'] == 'INTERNAL_ERROR'
        assert 'boom' not in str(response.data)
