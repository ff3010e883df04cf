"""
Management command to set a user's marketplace role.

Updates both the identity provider's public metadata and the local
profile. Used to bootstrap the first platform administrator.

Usage:
    python manage.py set_user_role user_2abc... admin --email admin@example.com
"""

from django.core.management.base import BaseCommand, CommandError
from accounts.models import Profile
from accounts.services.identity_provider import (
    ClerkIdentityProvider,
    IdentityProviderError,
)


class Command(BaseCommand):
    help = "Set a user's marketplace role (user, farmer or admin)"

    def add_arguments(self, parser):
        parser.add_argument('user_id', help='Identity provider user id')
        parser.add_argument('role', choices=Profile.UserRole.values)
        parser.add_argument('--email', default='', help='Email stored on a newly created profile')
        parser.add_argument('--reason', default='', help='Reason recorded in the role metadata')

    def handle(self, *args, **options):
        user_id = options['user_id']
        role = options['role']

        try:
            ClerkIdentityProvider().update_role(
                user_id,
                role,
                updated_by='manage.py set_user_role',
                reason=options['reason'] or None,
            )
        except IdentityProviderError as e:
            raise CommandError(f'Identity provider update failed: {e}')

        profile, created = Profile.objects.update_or_create(
            user_id=user_id,
            defaults={'role': role},
        )
        if created and options['email']:
            profile.email = options['email'].lower()
            profile.save(update_fields=['email', 'updated_at'])

        verb = 'Created' if created else 'Updated'
        self.stdout.write(self.style.SUCCESS(f'✓ {verb} profile {user_id} with role {role}'))
