"""
Farm onboarding and catalog serializers.

Wire format is camelCase; model fields are snake_case.
"""
from django.conf import settings
from rest_framework import serializers

from .models import FarmerRequest, Listing, Product


# =============================================================================
# FARMER REQUESTS
# =============================================================================

class FarmerRequestSerializer(serializers.ModelSerializer):
    """Read-only representation of a farmer request."""
    userId = serializers.CharField(source='user_id')
    firstName = serializers.CharField(source='first_name')
    lastName = serializers.CharField(source='last_name')
    farmName = serializers.CharField(source='farm_name')
    decidedAt = serializers.DateTimeField(source='decided_at')
    decidedBy = serializers.CharField(source='decided_by')
    adminReason = serializers.CharField(source='admin_reason')
    createdAt = serializers.DateTimeField(source='created_at')
    updatedAt = serializers.DateTimeField(source='updated_at')

    class Meta:
        model = FarmerRequest
        fields = [
            'id', 'userId', 'email', 'firstName', 'lastName', 'farmName',
            'siret', 'department', 'location', 'lat', 'lng', 'phone',
            'description', 'products', 'website', 'status',
            'decidedAt', 'decidedBy', 'adminReason', 'createdAt', 'updatedAt',
        ]
        read_only_fields = fields


class FarmerRequestDecisionSerializer(serializers.Serializer):
    """Admin decision on a farmer request."""
    requestId = serializers.IntegerField(min_value=1)
    status = serializers.ChoiceField(choices=['approved', 'rejected'])
    userId = serializers.CharField(required=False, allow_blank=True, max_length=255)
    role = serializers.ChoiceField(choices=['farmer', 'admin', 'user'], required=False)
    reason = serializers.CharField(
        required=False,
        allow_blank=True,
        max_length=settings.DECISION_REASON_MAX_LENGTH,
    )


class FarmerRequestUpdateSerializer(serializers.Serializer):
    """Owner edits allowed once the request is approved."""
    description = serializers.CharField(required=False, allow_blank=True, trim_whitespace=True)
    products = serializers.CharField(required=False, allow_blank=True, trim_whitespace=True)
    website = serializers.CharField(required=False, allow_blank=True, max_length=500)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError('Provide at least one of description, products or website.')
        return attrs


# =============================================================================
# LISTING FINALIZATION
# =============================================================================

class FarmProfileSerializer(serializers.Serializer):
    name = serializers.CharField(required=False, allow_blank=True, max_length=200)
    description = serializers.CharField(required=False, allow_blank=True)
    location = serializers.CharField(required=False, allow_blank=True, max_length=500)
    contact = serializers.CharField(required=False, allow_blank=True, max_length=30)


class OnboardingProductSerializer(serializers.Serializer):
    # Blank names are accepted here and skipped on insert
    name = serializers.CharField(allow_blank=True, max_length=200)
    category = serializers.CharField(required=False, allow_blank=True, max_length=100)
    price = serializers.DecimalField(
        max_digits=10,
        decimal_places=2,
        min_value=0,
        required=False,
        allow_null=True,
    )
    unit = serializers.CharField(required=False, default='kg', max_length=30)
    status = serializers.ChoiceField(
        choices=Product.StockStatus.values,
        required=False,
        default=Product.StockStatus.IN_STOCK,
    )


class FinalizeListingSerializer(serializers.Serializer):
    requestId = serializers.IntegerField(min_value=1)
    farmProfile = FarmProfileSerializer(required=False)
    products = OnboardingProductSerializer(many=True, required=False)
    enableOrders = serializers.BooleanField(required=False, default=False)
    publishFarm = serializers.BooleanField(required=False, default=False)


# =============================================================================
# LISTINGS & PRODUCTS
# =============================================================================

class ProductSerializer(serializers.ModelSerializer):
    listingId = serializers.IntegerField(source='listing_id', read_only=True)
    stockStatus = serializers.CharField(source='stock_status', read_only=True)
    imageUrl = serializers.CharField(source='image_url', read_only=True)
    isPublished = serializers.BooleanField(source='is_published', read_only=True)

    class Meta:
        model = Product
        fields = [
            'id', 'listingId', 'name', 'category', 'description', 'price', 'unit',
            'stockStatus', 'imageUrl', 'active', 'isPublished',
        ]
        read_only_fields = fields


class ProductWriteSerializer(serializers.Serializer):
    """Create (name required) or partially update a product."""
    name = serializers.CharField(max_length=200)
    category = serializers.CharField(required=False, allow_blank=True, max_length=100)
    description = serializers.CharField(required=False, allow_blank=True)
    price = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0, allow_null=True, required=False)
    unit = serializers.CharField(required=False, max_length=30)
    stockStatus = serializers.ChoiceField(
        choices=Product.StockStatus.values,
        required=False,
        source='stock_status',
    )
    imageUrl = serializers.URLField(required=False, allow_blank=True, max_length=500, source='image_url')
    active = serializers.BooleanField(required=False)
    isPublished = serializers.BooleanField(required=False, source='is_published')

    def validate_name(self, value):
        if not value.strip():
            raise serializers.ValidationError('This field may not be blank.')
        return value.strip()


class ListingSerializer(serializers.ModelSerializer):
    phoneNumber = serializers.CharField(source='phone_number')
    ordersEnabled = serializers.BooleanField(source='orders_enabled')
    publishedAt = serializers.DateTimeField(source='published_at')
    createdAt = serializers.DateTimeField(source='created_at')
    updatedAt = serializers.DateTimeField(source='updated_at')

    class Meta:
        model = Listing
        fields = [
            'id', 'name', 'description', 'address', 'email', 'phoneNumber',
            'website', 'lat', 'lng', 'ordersEnabled', 'active', 'publishedAt',
            'createdAt', 'updatedAt',
        ]
        read_only_fields = fields


class ListingDetailSerializer(ListingSerializer):
    products = serializers.SerializerMethodField()

    class Meta(ListingSerializer.Meta):
        fields = ListingSerializer.Meta.fields + ['products']
        read_only_fields = fields

    def get_products(self, obj):
        products = self.context.get('products')
        if products is None:
            products = obj.products.filter(active=True, is_published=True)
        return ProductSerializer(products, many=True).data
