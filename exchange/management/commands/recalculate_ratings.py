# Recalculate Ratings Management Command
from decimal import Decimal

from django.core.management.base import BaseCommand, CommandError
from django.db.models import Avg, Count, Exists, OuterRef, Q

from exchange.models import Review, TradeOffer, User


class Command(BaseCommand):
    help = 'Recalculates user ratings and trade/review counters from reviews and accepted offers.'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Run the command without saving changes to the database.',
        )
        parser.add_argument(
            '--ratings-only',
            action='store_true',
            help='Recalculate only rating and total_ratings.',
        )
        parser.add_argument(
            '--counters-only',
            action='store_true',
            help='Recalculate only total_trades, successful_trades and pending_reviews.',
        )
        parser.add_argument(
            '--batch-size',
            type=int,
            default=1000,
            help='Batch size for bulk processing.',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        batch_size = options['batch_size']

        if options['ratings_only'] and options['counters_only']:
            raise CommandError('--ratings-only and --counters-only are mutually exclusive.')
        if batch_size < 1:
            raise CommandError('--batch-size must be a positive integer.')

        fields = []
        if not options['counters_only']:
            fields += ['rating', 'total_ratings']
        if not options['ratings_only']:
            fields += ['total_trades', 'successful_trades', 'pending_reviews']

        self.recalculate_users(fields, dry_run, batch_size)

        if dry_run:
            self.stdout.write(self.style.SUCCESS('Dry run completed. No changes saved.'))
        else:
            self.stdout.write(self.style.SUCCESS('Recalculation completed successfully.'))

    def expected_values(self, user):
        """Compute the stored reputation fields for `user` from source records."""
        stats = Review.objects.filter(reviewee=user).aggregate(
            avg=Avg('rating'),
            total=Count('id'),
        )
        raw_avg = stats['avg']
        rating = Decimal('0.00') if raw_avg is None else Decimal(str(raw_avg)).quantize(Decimal('0.01'))

        accepted = TradeOffer.objects.filter(
            Q(from_user=user) | Q(to_user=user),
            status=TradeOffer.STATUS_ACCEPTED,
        )
        trades = accepted.count()
        own_review = Review.objects.filter(trade_offer=OuterRef('pk'), reviewer=user)
        pending = accepted.exclude(Exists(own_review)).count()

        return {
            'rating': rating,
            'total_ratings': stats['total'] or 0,
            'total_trades': trades,
            'successful_trades': trades,
            'pending_reviews': pending,
        }

    def recalculate_users(self, fields, dry_run, batch_size):
        self.stdout.write('Recalculating user reputation...')
        users = User.objects.all().iterator(chunk_size=batch_size)
        updates = []
        count = 0
        changed = 0

        for user in users:
            expected = self.expected_values(user)
            diffs = {
                field: (getattr(user, field), expected[field])
                for field in fields
                if getattr(user, field) != expected[field]
            }

            if diffs:
                changed += 1
                if dry_run:
                    summary = ', '.join(f'{field} {old} -> {new}' for field, (old, new) in diffs.items())
                    self.stdout.write(f'  [DRY-RUN] User {user.id} ({user.email}): {summary}')
                for field, (_old, new) in diffs.items():
                    setattr(user, field, new)
                updates.append(user)

            if len(updates) >= batch_size:
                if not dry_run:
                    User.objects.bulk_update(updates, fields)
                updates = []

            count += 1
            if count % 100 == 0:
                self.stdout.write(f'Processed {count} users...')

        if updates and not dry_run:
            User.objects.bulk_update(updates, fields)

        self.stdout.write(f'Processed {count} users total, {changed} out of date.')
