"""
Producer Onboarding to First Order Test

Walks a producer from their first request to the first consumer order on
their storefront, through the public API only.

SCENARIO:
=========
- Jean submits a request for "Ferme des Trois Chênes" (SIRET, Gironde, 33)
- An admin approves it; the storefront is provisioned as a draft
- Jean completes the profile, adds two products and publishes
- The farm appears in the public directory
- Claire orders 4 kg of tomatoes and 6 eggs for pickup on Saturday
- Jean confirms the order

PRICING:
========
- Tomatoes: EUR 3.50 / kg  -> 4 kg = EUR 14.00
- Eggs:     EUR 0.35 each  -> 6    = EUR  2.10
- Order total:                       EUR 16.10
"""

import pytest
from decimal import Decimal
from unittest.mock import patch
from django.core import mail
from rest_framework import status

from accounts.models import Profile
from farms.models import FarmerRequest, Listing, Product
from orders.models import Order

pytestmark = pytest.mark.django_db


def test_onboarding_to_first_order(api_client, applicant, admin_profile, consumer, request_payload):
    # Step 1: submission
    api_client.force_authenticate(user=applicant)
    response = api_client.post('/api/onboarding/submit-request/', request_payload, format='json')
    assert response.status_code == status.HTTP_201_CREATED
    request_id = response.data['requestId']
    assert FarmerRequest.objects.get(pk=request_id).status == 'pending'

    # Step 2: admin approval
    api_client.force_authenticate(user=admin_profile)
    with patch('accounts.services.identity_provider.ClerkIdentityProvider.update_role') as mock_update_role:
        response = api_client.post(
            '/api/validate-farmer-request/',
            {'requestId': request_id, 'status': 'approved', 'reason': 'SIRET vérifié'},
            format='json',
        )
    assert response.status_code == status.HTTP_200_OK
    mock_update_role.assert_called_once()
    listing_id = response.data['listingId']

    applicant.refresh_from_db()
    assert applicant.role == Profile.UserRole.FARMER
    draft = Listing.objects.get(pk=listing_id)
    assert draft.active is False
    assert draft.published_at is None
    assert mail.outbox[-1].to == [applicant.email]

    # Draft storefronts are not public
    api_client.force_authenticate(user=None)
    assert api_client.get('/api/get-listings/').data['count'] == 0

    # Step 3: finalization
    api_client.force_authenticate(user=applicant)
    response = api_client.post(
        '/api/onboarding/create-listing/',
        {
            'requestId': request_id,
            'farmProfile': {'description': 'Maraîchage et poules plein air', 'contact': '0612345678'},
            'products': [
                {'name': 'Tomates', 'category': 'Légumes', 'price': '3.50', 'unit': 'kg'},
                {'name': 'Oeufs', 'category': 'Oeufs', 'price': '0.35', 'unit': 'piece'},
            ],
            'enableOrders': True,
            'publishFarm': True,
        },
        format='json',
    )
    assert response.status_code == status.HTTP_201_CREATED
    assert response.data['listingId'] == listing_id
    assert response.data['productsCreated'] == 2

    listing = Listing.objects.get(pk=listing_id)
    assert listing.active is True
    assert listing.published_at is not None
    assert listing.name == request_payload['farmName']

    # Step 4: public directory
    api_client.force_authenticate(user=None)
    response = api_client.get('/api/get-listings/')
    assert [row['id'] for row in response.data['listings']] == [listing_id]

    response = api_client.get(f'/api/listings/{listing_id}/')
    assert {product['name'] for product in response.data['listing']['products']} == {'Tomates', 'Oeufs'}

    # Step 5: consumer order
    tomatoes = Product.objects.get(listing_id=listing_id, name='Tomates')
    eggs = Product.objects.get(listing_id=listing_id, name='Oeufs')

    api_client.force_authenticate(user=consumer)
    response = api_client.post(
        '/api/orders/create/',
        {
            'farmId': listing_id,
            'items': [
                {'productId': tomatoes.id, 'quantity': 4},
                {'productId': eggs.id, 'quantity': 6},
            ],
            'deliveryMode': 'pickup',
            'deliveryDay': 'Samedi',
            'customerNotes': 'Je passerai vers 11h',
        },
        format='json',
    )
    assert response.status_code == status.HTTP_201_CREATED
    order = Order.objects.get(pk=response.data['order']['id'])
    assert order.status == 'pending'
    assert order.payment_status == 'unpaid'
    assert order.total_price == Decimal('16.10')
    assert order.delivery_address is None

    # Step 6: the producer sees and confirms it
    api_client.force_authenticate(user=applicant)
    response = api_client.get('/api/orders/', {'scope': 'farm'})
    assert [row['id'] for row in response.data['orders']] == [order.id]

    response = api_client.patch(f'/api/orders/{order.id}/status/', {'status': 'confirmed'}, format='json')
    assert response.status_code == status.HTTP_200_OK
    order.refresh_from_db()
    assert order.status == 'confirmed'
