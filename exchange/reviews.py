"""
Review gate.

Each party of an accepted offer owes exactly one review of the other
party. Rating aggregation runs in the Review post_save receiver
(see signals.py) inside the same transaction as the review insert.
"""

import logging

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.db.models import Exists, OuterRef, Q

from . import notifications
from .exceptions import BadRequestError, ConflictError, ForbiddenError, InvalidStateError, NotFoundError
from .models import Review, TradeOffer

User = get_user_model()
logger = logging.getLogger(__name__)


def display_name(user):
    return user.get_full_name() or user.username


def compute_pending(user):
    """
    Accepted offers the user has not reviewed yet.

    Pending means no Review row by this user exists for the offer, so a
    review removed by an admin puts the offer back in the list.

    Returns:
        list: [{'tradeOffer': TradeOffer, 'revieweeId': int, 'revieweeName': str}, ...]
    """
    own_review = Review.objects.filter(trade_offer=OuterRef('pk'), reviewer=user)
    offers = TradeOffer.objects.filter(
        Q(from_user=user) | Q(to_user=user),
        ~Exists(own_review),
        status=TradeOffer.STATUS_ACCEPTED,
    ).select_related('from_user', 'to_user', 'target_listing').order_by('-completed_date', '-id')

    pending = []
    for offer in offers:
        reviewee = offer.to_user if offer.from_user_id == user.pk else offer.from_user
        pending.append({
            'tradeOffer': offer,
            'revieweeId': reviewee.pk,
            'revieweeName': display_name(reviewee),
        })
    return pending


def _validate_rating(rating):
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        raise BadRequestError('Rating must be an integer between 1 and 5.')


def submit(offer_id, reviewer, reviewee_id, rating, comment=None):
    """
    Record the reviewer's review of the other party.

    Args:
        offer_id: Accepted trade offer being reviewed
        reviewer: User submitting the review
        reviewee_id: ID of the other party
        rating: Integer score from 1 to 5
        comment: Optional text, at most 500 characters

    Returns:
        Review: The created review

    Raises:
        NotFoundError: Offer does not exist
        InvalidStateError: Offer is not accepted
        ForbiddenError: Reviewer is not a party to the offer
        BadRequestError: Reviewee is not the other party, or rating out of range
        ConflictError: Reviewer already reviewed this offer
    """
    with transaction.atomic():
        try:
            offer = TradeOffer.objects.select_for_update().get(pk=offer_id)
        except TradeOffer.DoesNotExist:
            raise NotFoundError(f'Trade offer with ID {offer_id} does not exist.')

        if offer.status != TradeOffer.STATUS_ACCEPTED:
            raise InvalidStateError('Only accepted offers can be reviewed.')

        role = offer.role_of(reviewer.pk)
        if role is None:
            logger.warning(f"User {reviewer.pk} attempted to review offer {offer_id} they are not part of")
            raise ForbiddenError('You are not a party to this offer.')

        try:
            reviewee_id = int(reviewee_id)
        except (TypeError, ValueError):
            raise BadRequestError('Invalid reviewee.')
        if reviewee_id != offer.counterpart_id(reviewer.pk):
            raise BadRequestError('You can only review the other party of the offer.')

        _validate_rating(rating)

        if Review.objects.filter(trade_offer=offer, reviewer=reviewer).exists():
            raise ConflictError('You have already reviewed this exchange.')

        try:
            with transaction.atomic():
                review = Review.objects.create(
                    trade_offer=offer,
                    reviewer=reviewer,
                    reviewee_id=reviewee_id,
                    rating=rating,
                    comment=(comment or '')[:500],
                )
        except IntegrityError:
            raise ConflictError('You have already reviewed this exchange.')

        if role == TradeOffer.ROLE_PROPOSER:
            offer.from_user_reviewed = True
        else:
            offer.to_user_reviewed = True
        offer.both_reviewed = offer.from_user_reviewed and offer.to_user_reviewed

        TradeOffer.objects.filter(pk=offer.pk).update(
            from_user_reviewed=offer.from_user_reviewed,
            to_user_reviewed=offer.to_user_reviewed,
            both_reviewed=offer.both_reviewed,
        )

        notifications.notify_review_received(review)

    logger.info(
        f"Review {review.pk} submitted. "
        f"Offer ID: {offer_id}, Reviewer: {reviewer.pk}, "
        f"Reviewee: {reviewee_id}, Rating: {rating}"
    )
    return review


def reviews_received(user_id):
    """Visible reviews about a user, newest first."""
    if not User.objects.filter(pk=user_id).exists():
        raise NotFoundError(f'User with ID {user_id} does not exist.')

    return Review.objects.filter(
        reviewee_id=user_id,
        is_visible=True,
    ).select_related('reviewer', 'reviewee', 'trade_offer').order_by('-created_at', '-id')


def reviews_given(user):
    return Review.objects.filter(
        reviewer=user,
    ).select_related('reviewer', 'reviewee', 'trade_offer').order_by('-created_at', '-id')
