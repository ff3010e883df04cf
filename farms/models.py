"""
Farm onboarding and catalog models.

FarmerRequest -> (admin decision) -> Listing -> Products
"""
from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import models
from django.db.models import Q


class FarmerRequest(models.Model):
    """
    A producer's application for selling rights on the marketplace.

    Rows are never deleted; decided requests remain as the audit trail.
    """

    class Status(models.TextChoices):
        PENDING = 'pending', 'Pending'
        APPROVED = 'approved', 'Approved'
        REJECTED = 'rejected', 'Rejected'

    user_id = models.CharField(
        max_length=255,
        db_index=True,
        help_text="Identity provider subject of the applicant"
    )
    email = models.EmailField(max_length=255)

    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    farm_name = models.CharField(max_length=200)

    siret = models.CharField(
        max_length=14,
        help_text="14-digit French business identifier"
    )
    department = models.CharField(
        max_length=3,
        help_text="Département code (e.g. 33, 974, 2A)"
    )
    location = models.CharField(max_length=500)
    lat = models.FloatField(validators=[MinValueValidator(-90), MaxValueValidator(90)])
    lng = models.FloatField(validators=[MinValueValidator(-180), MaxValueValidator(180)])

    # Optional details, editable by the owner after approval
    phone = models.CharField(max_length=30, blank=True, default='')
    description = models.TextField(blank=True, default='')
    products = models.TextField(
        blank=True,
        default='',
        help_text="Free-text summary of what the farm produces"
    )
    website = models.CharField(max_length=500, blank=True, default='')

    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True,
    )

    # Decision metadata
    decided_at = models.DateTimeField(null=True, blank=True)
    decided_by = models.CharField(max_length=255, blank=True, default='')
    admin_reason = models.TextField(blank=True, default='')

    created_at = models.DateTimeField()
    updated_at = models.DateTimeField()

    class Meta:
        db_table = 'farmer_requests'
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['user_id'],
                condition=Q(status='pending'),
                name='unique_pending_request_per_user',
            ),
        ]

    def __str__(self):
        return f"{self.farm_name} ({self.status})"

    @property
    def is_pending(self):
        return self.status == self.Status.PENDING

    @property
    def is_approved(self):
        return self.status == self.Status.APPROVED


class Listing(models.Model):
    """A farm's public storefront. Exactly one per farmer."""

    clerk_user_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Identity provider subject of the owning farmer"
    )
    created_by = models.EmailField(max_length=255, blank=True, default='')

    name = models.CharField(max_length=200)
    description = models.TextField(blank=True, default='')
    address = models.CharField(max_length=500, blank=True, default='')
    email = models.EmailField(max_length=255, blank=True, default='')
    phone_number = models.CharField(max_length=30, blank=True, default='')
    website = models.CharField(max_length=500, blank=True, default='')
    lat = models.FloatField(null=True, blank=True)
    lng = models.FloatField(null=True, blank=True)

    orders_enabled = models.BooleanField(default=False)
    active = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Publication flag"
    )
    published_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Set when first published, cleared when unpublished"
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'listing'
        ordering = ['-created_at']

    def __str__(self):
        return self.name


class Product(models.Model):
    """A product sold by a listing. Prices are read from here at order time."""

    class StockStatus(models.TextChoices):
        IN_STOCK = 'in_stock', 'In stock'
        LOW_STOCK = 'low_stock', 'Low stock'
        OUT_OF_STOCK = 'out_of_stock', 'Out of stock'

    listing = models.ForeignKey(
        Listing,
        on_delete=models.CASCADE,
        related_name='products',
        db_column='listing_id',
    )
    name = models.CharField(max_length=200)
    category = models.CharField(max_length=100, blank=True, default='')
    description = models.TextField(blank=True, default='')
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(0)],
    )
    unit = models.CharField(max_length=30, null=True, blank=True, default='kg')
    stock_status = models.CharField(
        max_length=20,
        choices=StockStatus.choices,
        default=StockStatus.IN_STOCK,
    )
    image_url = models.URLField(max_length=500, blank=True, default='')
    active = models.BooleanField(default=True)
    is_published = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'products'
        ordering = ['name']
        indexes = [
            models.Index(fields=['listing', 'active', 'is_published'], name='products_listing_pub_idx'),
        ]

    def __str__(self):
        return f"{self.name} ({self.listing_id})"


class FarmerRequestDecision(models.Model):
    """
    Journal of an admin decision on a farmer request.

    Each step of the decision is recorded as it completes, so a decision
    interrupted by an identity provider or database failure can be resumed
    (every step is idempotent).
    """

    request = models.ForeignKey(
        FarmerRequest,
        on_delete=models.CASCADE,
        related_name='decisions',
    )
    status = models.CharField(max_length=20, choices=FarmerRequest.Status.choices)
    role = models.CharField(max_length=20)
    reason = models.TextField(blank=True, default='')
    decided_by = models.CharField(max_length=255, blank=True, default='')

    identity_synced = models.BooleanField(default=False)
    profile_synced = models.BooleanField(default=False)
    status_updated = models.BooleanField(default=False)
    listing_provisioned = models.BooleanField(default=False)
    notified = models.BooleanField(default=False)

    attempts = models.PositiveIntegerField(default=0)
    last_error = models.TextField(blank=True, default='')
    completed_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'farmer_request_decisions'
        ordering = ['-created_at']

    def __str__(self):
        return f"Decision {self.status} on request {self.request_id}"

    @property
    def is_complete(self):
        return self.completed_at is not None
