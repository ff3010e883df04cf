"""
Tests for the root URL configuration
"""
import pytest
from django.urls import resolve, reverse

from accounts.views import CurrentProfileView, UserDirectoryView, UserRoleUpdateView
from orders.views import OrderCreateView, OrderListView, OrderStatusUpdateView


class TestRootUrlconf:

    @pytest.mark.parametrize('url,view_class', [
        ('/api/orders/', OrderListView),
        ('/api/orders/create/', OrderCreateView),
        ('/api/orders/7/status/', OrderStatusUpdateView),
        ('/api/auth/me/', CurrentProfileView),
        ('/api/auth/users/', UserDirectoryView),
        ('/api/auth/users/role/', UserRoleUpdateView),
    ])
    def test_routes_resolve(self, url, view_class):
        assert resolve(url).func.view_class is view_class

    def test_onboarding_routes_resolve(self):
        assert resolve('/api/validate-farmer-request/').url_name
        assert resolve('/api/get-listings/').url_name

    def test_named_routes_reverse(self):
        assert reverse('orders:order-create') == '/api/orders/create/'
        assert reverse('accounts:user-directory') == '/api/auth/users/'
