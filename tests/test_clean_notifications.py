from datetime import timedelta
from io import StringIO

from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase, override_settings
from django.utils import timezone

from exchange import notifications
from exchange.models import Notification, User


class CleanNotificationsCommandTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(
            username='reader', email='reader@test.com', password='password'
        )
        self.old_read, self.old_unread, self.recent_read, self.ancient_read = [
            notifications.notify(
                self.user, None, Notification.TYPE_LISTING_CREATED,
                'Listing created', 'Your listing is live.',
            )
            for _ in range(4)
        ]
        notifications.mark_read(
            self.user, [self.old_read.pk, self.recent_read.pk, self.ancient_read.pk]
        )

        now = timezone.now()
        Notification.objects.filter(pk__in=[self.old_read.pk, self.old_unread.pk]).update(
            created_at=now - timedelta(days=10)
        )
        Notification.objects.filter(pk=self.ancient_read.pk).update(
            created_at=now - timedelta(days=60)
        )

    def run_command(self, **options):
        out = StringIO()
        call_command('clean_notifications', stdout=out, **options)
        return out.getvalue()

    def remaining(self):
        return set(Notification.objects.values_list('pk', flat=True))

    def test_default_retention_window(self):
        output = self.run_command()

        self.assertEqual(
            self.remaining(),
            {self.old_read.pk, self.old_unread.pk, self.recent_read.pk}
        )
        self.assertIn('Deleted 1 read notification(s) older than 30 day(s).', output)

    @override_settings(EXCHANGE_NOTIFICATION_RETENTION_DAYS=5)
    def test_retention_from_settings(self):
        self.run_command()

        self.assertEqual(self.remaining(), {self.old_unread.pk, self.recent_read.pk})

    def test_days_option(self):
        output = self.run_command(days=7)

        self.assertEqual(self.remaining(), {self.old_unread.pk, self.recent_read.pk})
        self.assertIn('Deleted 2 read notification(s) older than 7 day(s).', output)

    def test_unread_notifications_are_kept(self):
        self.run_command(days=0)

        self.assertEqual(self.remaining(), {self.old_unread.pk})

    def test_dry_run_does_not_delete(self):
        output = self.run_command(days=7, dry_run=True)

        self.assertEqual(len(self.remaining()), 4)
        self.assertIn('Dry run completed. 2 notification(s) would be deleted.', output)

    def test_negative_days(self):
        with self.assertRaises(CommandError):
            self.run_command(days=-1)
