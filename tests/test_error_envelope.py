"""
Tests for the API error envelope
"""
import pytest
from django.http import Http404
from rest_framework import exceptions as drf_exceptions

from core.exceptions import Conflict, api_exception_handler, flatten_errors


class TestFlattenErrors:

    def test_nested_and_list_errors(self):
        errors = {
            'farmId': ['This field is required.'],
            'items': [{}, {'quantity': ['Too large.']}],
            'deliveryAddress': {'city': ['This field is required.']},
        }

        assert flatten_errors(errors) == [
            'farmId: This field is required.',
            'items[1].quantity: Too large.',
            'deliveryAddress.city: This field is required.',
        ]

    def test_index_keyed_list_errors(self):
        errors = {
            'items': {0: {'quantity': ['Ensure this value is less than or equal to 1000.']}},
            'products': {2: {'price': ['Ensure this value is greater than or equal to 0.']}},
        }

        assert flatten_errors(errors) == [
            'items[0].quantity: Ensure this value is less than or equal to 1000.',
            'products[2].price: Ensure this value is greater than or equal to 0.',
        ]

    def test_non_field_errors_keep_parent_path(self):
        assert flatten_errors({'non_field_errors': ['Provide at least one field.']}) == [
            'Provide at least one field.',
        ]


class TestExceptionHandler:

    def test_taxonomy_error(self):
        response = api_exception_handler(Conflict('Already pending', ['user: has a pending request']), {})

        assert response.status_code == 409
        assert response.data == {
            'success': False,
            'error': 'conflict',
            'message': 'Already pending',
            'details': ['user: has a pending request'],
        }

    def test_django_404(self):
        response = api_exception_handler(Http404(), {})

        assert response.status_code == 404
        assert response.data['error'] == 'not_found'

    def test_not_authenticated_sets_challenge(self):
        response = api_exception_handler(drf_exceptions.NotAuthenticated(), {})

        assert response.status_code == 401
        assert response['WWW-Authenticate'] == 'Bearer'

    @pytest.mark.parametrize('debug', [True, False])
    def test_unexpected_error(self, settings, debug):
        settings.DEBUG = debug

        response = api_exception_handler(RuntimeError('db exploded'), {})

        assert response.status_code == 500
        assert response.data['error'] == 'internal_error'
        assert ('debug' in response.data) is debug
