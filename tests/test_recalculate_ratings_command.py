from decimal import Decimal
from io import StringIO

from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase

from exchange import offers, reviews
from exchange.models import Listing, Review, User


class RecalculateRatingsCommandTests(TestCase):
    def setUp(self):
        self.owner = User.objects.create_user(
            username='owner', email='owner@test.com', password='password'
        )
        self.reader1 = User.objects.create_user(
            username='reader1', email='r1@test.com', password='password'
        )
        self.reader2 = User.objects.create_user(
            username='reader2', email='r2@test.com', password='password'
        )

        book = {
            'bookTitle': 'Neuromancer',
            'author': 'William Gibson',
            'category': 'Science Fiction',
            'condition': 'good',
            'images': [],
        }

        # Two accepted trades for the owner, reviewed 5 and 3 by the readers
        for reader, score in ((self.reader1, 5), (self.reader2, 3)):
            listing = Listing.objects.create(
                owner=self.owner,
                book_title=f'Listing for {reader.username}',
                author='Some Author',
                category='Fiction',
                condition='good',
            )
            offer = offers.create_offer(reader, listing.pk, book)
            offers.accept_chat(offer.pk, self.owner)
            offers.accept_offer(offer.pk, self.owner)
            reviews.submit(offer.pk, reader, self.owner.pk, score)

        # Owner actual stats: rating 4.00 over 2, 2 trades, 2 reviews still owed

        # Corrupt data intentionally
        User.objects.filter(pk=self.owner.pk).update(
            rating=Decimal('1.00'),
            total_ratings=99,
            total_trades=0,
            successful_trades=7,
            pending_reviews=0,
        )
        User.objects.filter(pk=self.reader1.pk).update(pending_reviews=3)

    def run_command(self, **options):
        out = StringIO()
        call_command('recalculate_ratings', stdout=out, **options)
        return out.getvalue()

    def test_recalculate_everything(self):
        """Test full recalculation of ratings and counters."""
        output = self.run_command()

        self.owner.refresh_from_db()
        self.reader1.refresh_from_db()
        self.reader2.refresh_from_db()

        # (5 + 3) / 2
        self.assertEqual(self.owner.rating, Decimal('4.00'))
        self.assertEqual(self.owner.total_ratings, 2)
        self.assertEqual(self.owner.total_trades, 2)
        self.assertEqual(self.owner.successful_trades, 2)
        self.assertEqual(self.owner.pending_reviews, 2)

        self.assertEqual(self.reader1.pending_reviews, 0)
        self.assertEqual(self.reader2.pending_reviews, 0)

        self.assertIn('Processed 3 users total, 2 out of date.', output)
        self.assertIn('Recalculation completed successfully.', output)

    def test_consistent_data_is_left_alone(self):
        self.run_command()

        output = self.run_command()

        self.assertIn('Processed 3 users total, 0 out of date.', output)

    def test_deleted_review_counts_as_pending(self):
        Review.objects.filter(reviewer=self.reader1).delete()

        self.run_command()

        self.owner.refresh_from_db()
        self.reader1.refresh_from_db()

        self.assertEqual(self.reader1.pending_reviews, 1)
        self.assertEqual(self.owner.rating, Decimal('3.00'))
        self.assertEqual(self.owner.total_ratings, 1)

    def test_dry_run_does_not_change_data(self):
        """Test that --dry-run flag does not persist changes."""
        output = self.run_command(dry_run=True)

        self.owner.refresh_from_db()

        # Check values remain corrupted
        self.assertEqual(self.owner.rating, Decimal('1.00'))
        self.assertEqual(self.owner.total_ratings, 99)
        self.assertEqual(self.owner.successful_trades, 7)

        self.assertIn('[DRY-RUN] User', output)
        self.assertIn('Dry run completed. No changes saved.', output)

    def test_ratings_only_flag(self):
        """Test processing only rating fields."""
        self.run_command(ratings_only=True)

        self.owner.refresh_from_db()

        self.assertEqual(self.owner.rating, Decimal('4.00'))
        self.assertEqual(self.owner.total_ratings, 2)

        # Counters should REMAIN corrupted
        self.assertEqual(self.owner.total_trades, 0)
        self.assertEqual(self.owner.successful_trades, 7)

    def test_counters_only_flag(self):
        """Test processing only trade and review counters."""
        self.run_command(counters_only=True)

        self.owner.refresh_from_db()

        # Rating should REMAIN corrupted
        self.assertEqual(self.owner.rating, Decimal('1.00'))

        self.assertEqual(self.owner.total_trades, 2)
        self.assertEqual(self.owner.successful_trades, 2)
        self.assertEqual(self.owner.pending_reviews, 2)

    def test_small_batches(self):
        self.run_command(batch_size=1)

        self.owner.refresh_from_db()
        self.assertEqual(self.owner.rating, Decimal('4.00'))

    def test_conflicting_flags(self):
        with self.assertRaises(CommandError):
            self.run_command(ratings_only=True, counters_only=True)

    def test_invalid_batch_size(self):
        with self.assertRaises(CommandError):
            self.run_command(batch_size=0)
