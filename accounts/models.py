from django.db import models


class Profile(models.Model):
    """
    Local mirror of an identity-provider user.

    Sign-up, sessions and credentials live with the identity provider; this
    row holds the marketplace role and the link to the farmer's listing.
    Instances are used as ``request.user`` on authenticated API calls.
    """

    class UserRole(models.TextChoices):
        USER = 'user', 'Consumer'
        FARMER = 'farmer', 'Farmer'
        ADMIN = 'admin', 'Administrator'

    user_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Identity provider subject (e.g. user_2abc...)"
    )

    email = models.EmailField(
        max_length=255,
        blank=True,
        default='',
    )

    first_name = models.CharField(max_length=100, blank=True, default='')
    last_name = models.CharField(max_length=100, blank=True, default='')
    phone = models.CharField(max_length=30, blank=True, default='')

    role = models.CharField(
        max_length=20,
        choices=UserRole.choices,
        default=UserRole.USER,
        db_index=True,
        help_text="Marketplace role, mirrored in the identity provider's public metadata"
    )

    listing = models.ForeignKey(
        'farms.Listing',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='owner_profiles',
        help_text="Storefront owned by this farmer, linked when onboarding completes"
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'profiles'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.email or self.user_id} ({self.role})"

    # DRF treats any object exposing these as a user
    @property
    def is_authenticated(self):
        return True

    @property
    def is_anonymous(self):
        return False

    @property
    def is_admin(self):
        return self.role == self.UserRole.ADMIN

    @property
    def is_farmer(self):
        return self.role == self.UserRole.FARMER

    def get_full_name(self):
        full_name = f"{self.first_name} {self.last_name}".strip()
        return full_name or self.email or self.user_id
