"""
Management command to expire stale waitlist entries.

This command should be run periodically (e.g., daily via cron) so that
clients are not offered slots long after they asked for them.
"""

from datetime import date

from django.core.management.base import BaseCommand, CommandError
from bookings import services


class Command(BaseCommand):
    help = 'Expire waitlist entries whose expiry date has passed'

    def add_arguments(self, parser):
        parser.add_argument(
            '--date',
            default=None,
            help='Treat this date (YYYY-MM-DD) as today (default: today)'
        )

    def handle(self, *args, **options):
        today = None
        if options['date']:
            try:
                today = date.fromisoformat(options['date'])
            except ValueError:
                raise CommandError(f"Invalid date: {options['date']}")

        self.stdout.write('Expiring stale waitlist entries...')

        total_expired = services.expire_waitlist_entries(today=today)

        self.stdout.write(
            self.style.SUCCESS(
                f'Successfully expired {total_expired} waitlist entr(ies)'
            )
        )
