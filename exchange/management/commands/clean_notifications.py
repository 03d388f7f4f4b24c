# Clean Notifications Management Command
from datetime import timedelta

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from exchange import notifications
from exchange.models import Notification


class Command(BaseCommand):
    help = 'Deletes read notifications older than the retention window.'

    def add_arguments(self, parser):
        parser.add_argument(
            '--days',
            type=int,
            default=None,
            help='Retention window in days (defaults to EXCHANGE_NOTIFICATION_RETENTION_DAYS).',
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Report how many notifications would be deleted without deleting them.',
        )

    def handle(self, *args, **options):
        days = options['days']
        if days is None:
            days = settings.EXCHANGE_NOTIFICATION_RETENTION_DAYS
        if days < 0:
            raise CommandError('--days must be zero or a positive integer.')

        if options['dry_run']:
            cutoff = timezone.now() - timedelta(days=days)
            count = Notification.objects.filter(is_read=True, created_at__lt=cutoff).count()
            self.stdout.write(self.style.SUCCESS(
                f'Dry run completed. {count} notification(s) would be deleted.'
            ))
            return

        deleted = notifications.clean_old(days)
        self.stdout.write(self.style.SUCCESS(
            f'Deleted {deleted} read notification(s) older than {days} day(s).'
        ))
