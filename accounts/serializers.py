from django.conf import settings
from rest_framework import serializers

from .models import Profile


class ProfileSerializer(serializers.ModelSerializer):
    """
    Serializer for the caller's profile.
    Role and listing are managed by the onboarding workflow, not by the user.
    """
    userId = serializers.CharField(source='user_id', read_only=True)
    firstName = serializers.CharField(source='first_name', required=False, allow_blank=True, max_length=100)
    lastName = serializers.CharField(source='last_name', required=False, allow_blank=True, max_length=100)
    listingId = serializers.IntegerField(source='listing_id', read_only=True, allow_null=True)
    fullName = serializers.CharField(source='get_full_name', read_only=True)

    class Meta:
        model = Profile
        fields = ('userId', 'email', 'firstName', 'lastName', 'fullName', 'phone', 'role', 'listingId')
        read_only_fields = ('email', 'role')


class UserDirectorySerializer(serializers.ModelSerializer):
    """Profile row in the admin user directory."""
    userId = serializers.CharField(source='user_id', read_only=True)
    firstName = serializers.CharField(source='first_name', read_only=True)
    lastName = serializers.CharField(source='last_name', read_only=True)
    listingId = serializers.IntegerField(source='listing_id', read_only=True, allow_null=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)

    class Meta:
        model = Profile
        fields = ('userId', 'email', 'firstName', 'lastName', 'phone', 'role', 'listingId', 'createdAt', 'updatedAt')
        read_only_fields = fields


class UserRoleUpdateSerializer(serializers.Serializer):
    """Admin role change for a single user."""
    userId = serializers.RegexField(
        regex=r'^user_[A-Za-z0-9]{24,}$',
        max_length=255,
        error_messages={'invalid': 'Invalid user id format.'},
    )
    role = serializers.ChoiceField(choices=Profile.UserRole.values)
    reason = serializers.CharField(
        required=False,
        allow_blank=True,
        max_length=settings.DECISION_REASON_MAX_LENGTH,
    )
