"""
Tests for order creation, visibility and status progression
"""
import pytest
from decimal import Decimal
from rest_framework import status

from core.exceptions import InvalidState
from farms.models import Listing
from orders.models import Order
from orders.services import OrderService, round_money, validate_status_transition

pytestmark = pytest.mark.django_db

CREATE_URL = '/api/orders/create/'


def order_body(farm, *lines, **overrides):
    body = {
        'farmId': farm.id,
        'items': [{'productId': product.id, 'quantity': quantity} for product, quantity in lines],
        'deliveryMode': 'pickup',
        'deliveryDay': 'Samedi',
    }
    body.update(overrides)
    return body


@pytest.fixture
def placed_order(consumer, active_listing, tomatoes):
    """A pending pickup order for 2 kg of tomatoes."""
    return OrderService().create_order(consumer, {
        'farmId': active_listing.id,
        'items': [{'productId': tomatoes.id, 'quantity': 2}],
        'deliveryMode': 'pickup',
        'deliveryDay': 'Samedi',
    })


class TestMoneyHelpers:

    @pytest.mark.parametrize('amount,expected', [
        ('3.505', '3.51'),
        ('2.675', '2.68'),
        ('1.004', '1.00'),
        ('14', '14.00'),
    ])
    def test_round_half_up(self, amount, expected):
        assert round_money(Decimal(amount)) == Decimal(expected)

    def test_allowed_transition(self):
        assert validate_status_transition('pending', 'confirmed', Order.STATUS_TRANSITIONS)

    def test_terminal_status_has_no_transitions(self):
        with pytest.raises(InvalidState):
            validate_status_transition('delivered', 'cancelled', Order.STATUS_TRANSITIONS)


# =============================================================================
# CREATION
# =============================================================================

class TestCreateOrder:
    """POST /api/orders/create/"""

    def test_requires_authentication(self, api_client, active_listing, tomatoes):
        response = api_client.post(CREATE_URL, order_body(active_listing, (tomatoes, 1)), format='json')

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_total_from_server_prices(self, api_client, consumer, active_listing, tomatoes):
        api_client.force_authenticate(user=consumer)
        body = order_body(active_listing, (tomatoes, 4))
        body['items'][0]['price'] = '0.01'

        response = api_client.post(CREATE_URL, body, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        order = response.data['order']
        assert order['totalPrice'] == Decimal('14.00')
        assert order['status'] == 'pending'
        assert order['paymentStatus'] == 'unpaid'
        assert order['farmName'] == active_listing.name
        assert order['items'] == [{
            'productId': tomatoes.id,
            'productName': 'Tomates',
            'price': 3.5,
            'quantity': 4,
            'unit': 'kg',
            'imageUrl': None,
            'lineTotal': 14.0,
        }]

    def test_multiple_lines(self, api_client, consumer, active_listing, tomatoes, eggs):
        api_client.force_authenticate(user=consumer)

        response = api_client.post(CREATE_URL, order_body(active_listing, (tomatoes, 2), (eggs, 12)), format='json')

        assert response.status_code == status.HTTP_201_CREATED
        stored = Order.objects.get(pk=response.data['order']['id'])
        assert stored.total_price == Decimal('11.20')
        assert [item['lineTotal'] for item in stored.items] == [7.0, 4.2]
        assert stored.user_id == consumer.user_id

    def test_shape_errors_reported_together(self, api_client, consumer, active_listing, tomatoes):
        api_client.force_authenticate(user=consumer)
        body = order_body(active_listing, (tomatoes, 1001), deliveryMode='drone', customerNotes='x' * 501)
        del body['deliveryDay']

        response = api_client.post(CREATE_URL, body, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['error'] == 'validation_error'
        paths = {detail.split(':')[0] for detail in response.data['details']}
        assert paths == {'items[0].quantity', 'deliveryMode', 'deliveryDay', 'customerNotes'}
        assert Order.objects.count() == 0

    def test_total_beyond_column_capacity_rejected(self, api_client, consumer, active_listing, product_factory):
        tractor = product_factory(active_listing, 'Tracteur', Decimal('60000000.00'), 'piece')
        api_client.force_authenticate(user=consumer)

        response = api_client.post(CREATE_URL, order_body(active_listing, (tractor, 2)), format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['error'] == 'validation_error'
        assert response.data['details'][0].startswith('items: total 120000000.00')
        assert Order.objects.count() == 0

    def test_empty_cart_rejected(self, api_client, consumer, active_listing):
        api_client.force_authenticate(user=consumer)

        response = api_client.post(CREATE_URL, order_body(active_listing), format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['details'][0].startswith('items')

    def test_too_many_lines_rejected(self, api_client, consumer, active_listing, tomatoes):
        api_client.force_authenticate(user=consumer)
        lines = [(tomatoes, 1)] * 51

        response = api_client.post(CREATE_URL, order_body(active_listing, *lines), format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_unknown_farm(self, api_client, consumer, tomatoes):
        api_client.force_authenticate(user=consumer)
        body = {
            'farmId': 999999,
            'items': [{'productId': tomatoes.id, 'quantity': 1}],
            'deliveryMode': 'pickup',
            'deliveryDay': 'Samedi',
        }

        response = api_client.post(CREATE_URL, body, format='json')

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_inactive_farm(self, api_client, consumer, active_listing, tomatoes):
        active_listing.active = False
        active_listing.save()
        api_client.force_authenticate(user=consumer)

        response = api_client.post(CREATE_URL, order_body(active_listing, (tomatoes, 1)), format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['error'] == 'invalid_state'

    def test_unpublished_and_foreign_products_listed(self, api_client, consumer, active_listing, tomatoes, product_factory):
        hidden = product_factory(active_listing, 'Courges', Decimal('2.00'), 'kg', is_published=False)
        elsewhere = Listing.objects.create(clerk_user_id='user_elsewhere', name='Ailleurs', active=True)
        foreign = product_factory(elsewhere, 'Pommes', Decimal('2.50'), 'kg')
        api_client.force_authenticate(user=consumer)

        response = api_client.post(
            CREATE_URL,
            order_body(active_listing, (tomatoes, 1), (hidden, 1), (foreign, 1)),
            format='json',
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert str(hidden.id) in response.data['message']
        assert str(foreign.id) in response.data['message']
        assert len(response.data['details']) == 2

    def test_out_of_stock_creates_nothing(self, api_client, consumer, active_listing, tomatoes, product_factory):
        melons = product_factory(active_listing, 'Melons', Decimal('4.00'), 'piece', stock_status='out_of_stock')
        api_client.force_authenticate(user=consumer)

        response = api_client.post(CREATE_URL, order_body(active_listing, (tomatoes, 1), (melons, 1)), format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['error'] == 'invalid_state'
        assert 'Melons' in response.data['message']
        assert Order.objects.count() == 0

    def test_low_stock_is_orderable(self, api_client, consumer, active_listing, eggs):
        api_client.force_authenticate(user=consumer)

        response = api_client.post(CREATE_URL, order_body(active_listing, (eggs, 6)), format='json')

        assert response.status_code == status.HTTP_201_CREATED

    def test_product_without_price(self, api_client, consumer, active_listing, product_factory):
        honey = product_factory(active_listing, 'Miel', None, 'pot')
        api_client.force_authenticate(user=consumer)

        response = api_client.post(CREATE_URL, order_body(active_listing, (honey, 1)), format='json')

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.data['error'] == 'internal_error'
        assert Order.objects.count() == 0

    def test_delivery_requires_address(self, api_client, consumer, active_listing, tomatoes):
        api_client.force_authenticate(user=consumer)

        response = api_client.post(
            CREATE_URL,
            order_body(active_listing, (tomatoes, 1), deliveryMode='delivery'),
            format='json',
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['details'] == ['deliveryAddress: required when deliveryMode is delivery']

    def test_delivery_address_stored(self, api_client, consumer, active_listing, tomatoes):
        api_client.force_authenticate(user=consumer)
        address = {'street': '3 rue Sainte-Catherine', 'city': 'Bordeaux', 'postalCode': '33000', 'country': 'FR'}

        response = api_client.post(
            CREATE_URL,
            order_body(active_listing, (tomatoes, 1), deliveryMode='delivery', deliveryAddress=address),
            format='json',
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert Order.objects.get().delivery_address == address

    def test_pickup_ignores_address(self, api_client, consumer, active_listing, tomatoes):
        api_client.force_authenticate(user=consumer)
        address = {'street': '3 rue Sainte-Catherine', 'city': 'Bordeaux', 'postalCode': '33000', 'country': 'FR'}

        response = api_client.post(
            CREATE_URL,
            order_body(active_listing, (tomatoes, 1), deliveryAddress=address),
            format='json',
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['order']['deliveryAddress'] is None

    def test_snapshot_survives_catalog_changes(self, api_client, consumer, placed_order, tomatoes):
        tomatoes.price = Decimal('9.99')
        tomatoes.name = 'Tomates anciennes'
        tomatoes.save()
        api_client.force_authenticate(user=consumer)

        response = api_client.get(f'/api/orders/{placed_order.id}/')

        item = response.data['order']['items'][0]
        assert item['price'] == 3.5
        assert item['productName'] == 'Tomates'
        assert response.data['order']['totalPrice'] == Decimal('7.00')


# =============================================================================
# READS
# =============================================================================

class TestOrderVisibility:

    def test_purchaser_lists_own_orders(self, api_client, consumer, other_user, placed_order):
        api_client.force_authenticate(user=consumer)
        assert api_client.get('/api/orders/').data['count'] == 1

        api_client.force_authenticate(user=other_user)
        assert api_client.get('/api/orders/').data['count'] == 0

    def test_farmer_lists_farm_orders(self, api_client, farmer, placed_order):
        api_client.force_authenticate(user=farmer)

        response = api_client.get('/api/orders/', {'scope': 'farm'})

        assert [order['id'] for order in response.data['orders']] == [placed_order.id]

    def test_invalid_scope(self, api_client, consumer):
        api_client.force_authenticate(user=consumer)

        response = api_client.get('/api/orders/', {'scope': 'everything'})

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    @pytest.mark.parametrize('viewer', ['consumer', 'farmer', 'admin_profile'])
    def test_detail_visible_to_parties(self, request, api_client, placed_order, viewer):
        api_client.force_authenticate(user=request.getfixturevalue(viewer))

        response = api_client.get(f'/api/orders/{placed_order.id}/')

        assert response.status_code == status.HTTP_200_OK

    def test_detail_hidden_from_others(self, api_client, other_user, placed_order):
        api_client.force_authenticate(user=other_user)

        response = api_client.get(f'/api/orders/{placed_order.id}/')

        assert response.status_code == status.HTTP_404_NOT_FOUND


# =============================================================================
# STATUS
# =============================================================================

class TestOrderStatus:
    """PATCH /api/orders/<id>/status/"""

    def url(self, order):
        return f'/api/orders/{order.id}/status/'

    def test_farmer_progresses_order(self, api_client, farmer, placed_order):
        api_client.force_authenticate(user=farmer)

        for next_status in ('confirmed', 'ready', 'delivered'):
            response = api_client.patch(self.url(placed_order), {'status': next_status}, format='json')
            assert response.status_code == status.HTTP_200_OK

        placed_order.refresh_from_db()
        assert placed_order.status == 'delivered'

    def test_farmer_notes_saved(self, api_client, farmer, placed_order):
        api_client.force_authenticate(user=farmer)

        api_client.patch(
            self.url(placed_order),
            {'status': 'confirmed', 'farmerNotes': 'Prêt à partir de 10h'},
            format='json',
        )

        placed_order.refresh_from_db()
        assert placed_order.farmer_notes == 'Prêt à partir de 10h'

    def test_skipping_a_step_is_invalid(self, api_client, farmer, placed_order):
        api_client.force_authenticate(user=farmer)

        response = api_client.patch(self.url(placed_order), {'status': 'delivered'}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['error'] == 'invalid_state'
        placed_order.refresh_from_db()
        assert placed_order.status == 'pending'

    def test_unknown_status_value(self, api_client, farmer, placed_order):
        api_client.force_authenticate(user=farmer)

        response = api_client.patch(self.url(placed_order), {'status': 'shipped'}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['error'] == 'validation_error'

    def test_purchaser_cancels_pending_order(self, api_client, consumer, placed_order):
        api_client.force_authenticate(user=consumer)

        response = api_client.patch(
            self.url(placed_order),
            {'status': 'cancelled', 'cancelledReason': 'Plus disponible samedi'},
            format='json',
        )

        assert response.status_code == status.HTTP_200_OK
        placed_order.refresh_from_db()
        assert placed_order.status == 'cancelled'
        assert placed_order.cancelled_by == consumer.user_id
        assert placed_order.cancelled_reason == 'Plus disponible samedi'

    def test_purchaser_cannot_confirm(self, api_client, consumer, placed_order):
        api_client.force_authenticate(user=consumer)

        response = api_client.patch(self.url(placed_order), {'status': 'confirmed'}, format='json')

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_purchaser_cannot_cancel_confirmed_order(self, api_client, consumer, placed_order):
        placed_order.status = 'confirmed'
        placed_order.save()
        api_client.force_authenticate(user=consumer)

        response = api_client.patch(self.url(placed_order), {'status': 'cancelled'}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['error'] == 'invalid_state'

    def test_stranger_gets_not_found(self, api_client, other_user, placed_order):
        api_client.force_authenticate(user=other_user)

        response = api_client.patch(self.url(placed_order), {'status': 'cancelled'}, format='json')

        assert response.status_code == status.HTTP_404_NOT_FOUND
