"""
Replay Incomplete Decisions Management Command

Resumes admin decisions on farmer requests whose identity provider,
profile, status or listing step failed. Also scheduled hourly via Celery
Beat; run it by hand after an identity provider outage:

    python manage.py replay_incomplete_decisions
"""

from django.core.management.base import BaseCommand
from django.utils import timezone
from farms.services.approval_workflow import FarmerRequestWorkflowService


class Command(BaseCommand):
    help = 'Resume farmer request decisions that did not complete'

    def add_arguments(self, parser):
        parser.add_argument(
            '--limit',
            type=int,
            default=100,
            help='Maximum number of decisions to replay',
        )

    def handle(self, *args, **options):
        self.stdout.write(f'\n[{timezone.now().strftime("%Y-%m-%d %H:%M:%S")}] '
                          f'Replaying incomplete decisions...\n')

        summary = FarmerRequestWorkflowService().replay_incomplete_decisions(limit=options['limit'])

        if summary['processed'] == 0:
            self.stdout.write(self.style.SUCCESS('✓ No incomplete decisions found'))
            return

        self.stdout.write(self.style.SUCCESS(f"✓ {summary['completed']} decision(s) completed"))
        if summary['failed']:
            self.stdout.write(
                self.style.WARNING(f"⚠ {summary['failed']} decision(s) still incomplete")
            )
