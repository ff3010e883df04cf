"""
Listing & Catalog Service

Read-side queries (admin request queue, public listings) and the owner's
product management.
"""
import logging

from django.conf import settings
from django.db import DatabaseError

from core.exceptions import Forbidden, InternalError, NotFound, ValidationError
from core.pagination import paginate, parse_choice, parse_int
from farms.models import FarmerRequest, Listing, Product

logger = logging.getLogger(__name__)


class CatalogService:
    """Queries over requests and listings, plus product management"""

    REQUEST_STATUSES = ['pending', 'approved', 'rejected', 'all']
    REQUEST_SORT_FIELDS = ['created_at', 'updated_at', 'farm_name']
    LISTING_SORT_FIELDS = ['created_at', 'id']
    SORT_ORDERS = ['asc', 'desc']

    def __init__(self):
        self.max_limit = getattr(settings, 'QUERY_MAX_LIMIT', 100)

    def list_farmer_requests(self, params):
        """
        Admin queue of farmer requests.

        Query params: status, limit, offset, sortBy, sortOrder.
        """
        errors = []
        status = parse_choice(params, 'status', self.REQUEST_STATUSES, 'pending', errors)
        limit = parse_int(params, 'limit', errors, minimum=1, maximum=self.max_limit)
        offset = parse_int(params, 'offset', errors, minimum=0)
        sort_by = parse_choice(params, 'sortBy', self.REQUEST_SORT_FIELDS, 'created_at', errors)
        sort_order = parse_choice(params, 'sortOrder', self.SORT_ORDERS, 'desc', errors)
        if errors:
            raise ValidationError('Invalid query parameters', errors)

        queryset = FarmerRequest.objects.all()
        if status != 'all':
            queryset = queryset.filter(status=status)
        prefix = '-' if sort_order == 'desc' else ''
        queryset = queryset.order_by(f'{prefix}{sort_by}', f'{prefix}id')

        try:
            rows, pagination = paginate(queryset, limit, offset)
        except DatabaseError as e:
            logger.error(f"Failed to list farmer requests: {str(e)}")
            raise InternalError('Could not load farmer requests')
        return rows, pagination

    def list_listings(self, params):
        """
        Public listing directory.

        Query params: limit, offset, sortBy, sortOrder, includeInactive.
        """
        errors = []
        limit = parse_int(params, 'limit', errors, minimum=1, maximum=self.max_limit)
        offset = parse_int(params, 'offset', errors, minimum=0)
        sort_by = parse_choice(params, 'sortBy', self.LISTING_SORT_FIELDS, 'created_at', errors)
        sort_order = parse_choice(params, 'sortOrder', self.SORT_ORDERS, 'desc', errors)
        include_inactive = str(params.get('includeInactive', 'false')).lower()
        if include_inactive not in ('true', 'false'):
            errors.append('includeInactive: must be true or false')
        if errors:
            raise ValidationError('Invalid query parameters', errors)

        queryset = Listing.objects.all()
        if include_inactive != 'true':
            queryset = queryset.filter(active=True)
        prefix = '-' if sort_order == 'desc' else ''
        ordering = [f'{prefix}{sort_by}']
        if sort_by != 'id':
            ordering.append(f'{prefix}id')
        queryset = queryset.order_by(*ordering)

        try:
            return paginate(queryset, limit, offset)
        except DatabaseError as e:
            logger.error(f"Failed to list listings: {str(e)}")
            raise InternalError('Could not load listings')

    def get_listing(self, listing_id, profile=None):
        """
        Listing with its products as seen by the caller.

        Visitors see active listings and their active, published products;
        the owner also sees a draft listing and every product.
        """
        listing = Listing.objects.filter(pk=listing_id).first()
        is_owner = bool(profile and listing and listing.clerk_user_id == profile.user_id)
        if listing is None or (not listing.active and not is_owner):
            raise NotFound(f'Listing {listing_id} not found')

        products = listing.products.all()
        if not is_owner:
            products = products.filter(active=True, is_published=True)
        return listing, list(products.order_by('name', 'id'))

    def _get_owned_listing(self, profile, listing_id):
        listing = Listing.objects.filter(pk=listing_id).first()
        if listing is None:
            raise NotFound(f'Listing {listing_id} not found')
        if listing.clerk_user_id != profile.user_id:
            raise Forbidden('Only the listing owner can manage its products')
        return listing

    def create_product(self, profile, listing_id, data):
        listing = self._get_owned_listing(profile, listing_id)
        product = Product.objects.create(
            listing=listing,
            name=data['name'],
            category=data.get('category', ''),
            description=data.get('description', ''),
            price=data.get('price'),
            unit=data.get('unit') or 'kg',
            stock_status=data.get('stock_status', Product.StockStatus.IN_STOCK),
            image_url=data.get('image_url', ''),
            active=data.get('active', True),
            is_published=data.get('is_published', listing.active),
        )
        logger.info(f"Product {product.id} added to listing {listing.id}")
        return product

    def update_product(self, profile, product_id, data):
        """Update a product; past orders keep their own snapshot."""
        product = Product.objects.select_related('listing').filter(pk=product_id).first()
        if product is None:
            raise NotFound(f'Product {product_id} not found')
        if product.listing.clerk_user_id != profile.user_id:
            raise Forbidden('Only the listing owner can manage its products')

        for field, value in data.items():
            setattr(product, field, value)
        product.save()
        logger.info(f"Product {product.id} updated ({', '.join(data) or 'no fields'})")
        return product
