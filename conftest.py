"""
Shared pytest fixtures for the marketplace tests.
"""
from decimal import Decimal

import pytest
from django.utils import timezone
from rest_framework.test import APIClient


@pytest.fixture(autouse=True)
def identity_provider_offline(settings):
    """Never call the real identity provider from tests."""
    settings.CLERK_SECRET_KEY = ''
    settings.CLERK_JWT_PUBLIC_KEY = ''
    settings.CLERK_ALLOW_UNVERIFIED_TOKENS = True


@pytest.fixture
def api_client():
    """API client for making requests."""
    return APIClient()


def _profile(user_id, email, role='user', **extra):
    from accounts.models import Profile
    return Profile.objects.create(user_id=user_id, email=email, role=role, **extra)


@pytest.fixture
def consumer(db):
    return _profile('user_consumer_001', 'consumer@example.com', first_name='Claire', last_name='Martin')


@pytest.fixture
def applicant(db):
    return _profile('user_applicant_001', 'jean.dupont@example.com', first_name='Jean', last_name='Dupont')


@pytest.fixture
def other_user(db):
    return _profile('user_other_001', 'other@example.com')


@pytest.fixture
def admin_profile(db):
    return _profile('user_admin_001', 'admin@farmtofork.fr', role='admin')


@pytest.fixture
def farmer(db):
    return _profile('user_farmer_001', 'farmer@example.com', role='farmer', first_name='Paul', last_name='Bernard')


@pytest.fixture
def request_payload():
    """A valid farmer request body."""
    return {
        'firstName': 'Jean',
        'lastName': 'Dupont',
        'farmName': 'Ferme des Trois Chênes',
        'siret': '12345678901234',
        'department': '33',
        'location': '12 route de Libourne, Saint-Émilion',
        'lat': 45.0,
        'lng': 2.0,
        'phone': '0612345678',
        'description': 'Vegetables and eggs',
        'products': 'Tomatoes, eggs, courgettes',
        'website': 'https://ferme-trois-chenes.fr',
    }


def make_farmer_request(profile, status='pending', **overrides):
    from farms.models import FarmerRequest
    now = timezone.now()
    fields = {
        'user_id': profile.user_id,
        'email': profile.email,
        'first_name': 'Jean',
        'last_name': 'Dupont',
        'farm_name': 'Ferme des Trois Chênes',
        'siret': '12345678901234',
        'department': '33',
        'location': 'Saint-Émilion',
        'lat': 44.89,
        'lng': -0.15,
        'phone': '0612345678',
        'status': status,
        'created_at': now,
        'updated_at': now,
    }
    fields.update(overrides)
    return FarmerRequest.objects.create(**fields)


@pytest.fixture
def farmer_request_factory(db):
    """Create farmer requests with arbitrary status/fields."""
    return make_farmer_request


@pytest.fixture
def pending_request(applicant):
    return make_farmer_request(applicant)


@pytest.fixture
def approved_request(applicant):
    return make_farmer_request(applicant, status='approved')


@pytest.fixture
def active_listing(farmer):
    from farms.models import Listing
    listing = Listing.objects.create(
        clerk_user_id=farmer.user_id,
        created_by=farmer.email,
        name='Les Jardins de Paul',
        email=farmer.email,
        address='Bordeaux',
        lat=44.84,
        lng=-0.58,
        orders_enabled=True,
        active=True,
        published_at=timezone.now(),
    )
    farmer.listing = listing
    farmer.save()
    return listing


def _product(listing, name, price, unit, stock_status='in_stock', **extra):
    from farms.models import Product
    return Product.objects.create(
        listing=listing,
        name=name,
        price=price,
        unit=unit,
        stock_status=stock_status,
        active=extra.pop('active', True),
        is_published=extra.pop('is_published', True),
        **extra
    )


@pytest.fixture
def product_factory(db):
    return _product


@pytest.fixture
def tomatoes(active_listing):
    return _product(active_listing, 'Tomates', Decimal('3.50'), 'kg', category='Légumes')


@pytest.fixture
def eggs(active_listing):
    return _product(active_listing, 'Oeufs', Decimal('0.35'), 'piece', stock_status='low_stock', category='Oeufs')
