"""
Django signals for reputation bookkeeping.

When a review is created the reviewee's running rating is folded forward
and the reviewer's pending-review counter is decremented. Deleting a review
clears the matching flag on its trade offer.
"""

import logging
from decimal import Decimal

from django.db import transaction
from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from .models import Review, TradeOffer, User

logger = logging.getLogger(__name__)

RATING_PLACES = Decimal('0.01')


def fold_rating(current_rating, total_ratings, new_rating):
    """
    Running mean: (old * count + new) / (count + 1), rounded to 2 places.

    Args:
        current_rating: Current mean as Decimal
        total_ratings: Number of ratings already folded into the mean
        new_rating: Score being added (1-5)

    Returns:
        Decimal: The new mean
    """
    total = Decimal(current_rating) * total_ratings + Decimal(new_rating)
    return (total / (total_ratings + 1)).quantize(RATING_PLACES)


@receiver(post_save, sender=Review)
def update_reputation_on_review_created(sender, instance, created, **kwargs):
    """
    Update reviewee rating and reviewer pending count for a new review.

    Runs inside the transaction that saved the review; if this fails the
    review insert is rolled back as well, so reviews and ratings never drift.

    Args:
        sender: The Review model class
        instance: The Review instance that was saved
        created: Boolean indicating if this is a new review
        **kwargs: Additional keyword arguments
    """
    if not created:
        return

    try:
        with transaction.atomic():
            # Lock both rows to serialize concurrent reviews of the same user
            reviewee = User.objects.select_for_update().get(pk=instance.reviewee_id)

            old_rating = reviewee.rating
            reviewee.rating = fold_rating(reviewee.rating, reviewee.total_ratings, instance.rating)
            reviewee.total_ratings += 1
            reviewee.save(update_fields=['rating', 'total_ratings', 'updated_at'])

            reviewer = User.objects.select_for_update().get(pk=instance.reviewer_id)
            if reviewer.pending_reviews > 0:
                reviewer.pending_reviews -= 1
                reviewer.save(update_fields=['pending_reviews', 'updated_at'])

            logger.info(
                f"Updated reputation for review {instance.id}: "
                f"reviewee={reviewee.pk}, rating {old_rating} -> {reviewee.rating} "
                f"over {reviewee.total_ratings} review(s); "
                f"reviewer={reviewer.pk}, pending_reviews={reviewer.pending_reviews}"
            )

    except Exception as e:
        logger.error(
            f"Error updating reputation for review {instance.id}: {str(e)}",
            exc_info=True
        )
        raise


@receiver(post_delete, sender=Review)
def clear_review_flag_on_review_deleted(sender, instance, **kwargs):
    """
    Keep the offer's review flags in step with its Review rows.

    The rating is not rolled back here; `recalculate_ratings` rebuilds it.
    """
    offer = TradeOffer.objects.filter(pk=instance.trade_offer_id).first()
    if offer is None:
        return

    if instance.reviewer_id == offer.from_user_id:
        offer.from_user_reviewed = False
    elif instance.reviewer_id == offer.to_user_id:
        offer.to_user_reviewed = False
    offer.both_reviewed = False

    TradeOffer.objects.filter(pk=offer.pk).update(
        from_user_reviewed=offer.from_user_reviewed,
        to_user_reviewed=offer.to_user_reviewed,
        both_reviewed=False,
    )
    logger.info(
        f"Review {instance.id} deleted; offer {offer.pk} flags reset for reviewer {instance.reviewer_id}"
    )
