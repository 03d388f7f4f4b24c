"""
Trade-offer state machine.

Every lifecycle operation runs in one database transaction:

1. Re-read the offer under select_for_update
2. Check the actor's role and the prior status against TradeOffer.TRANSITIONS
3. Persist the transition with a conditional update on the expected status
4. Update the listing, then the conversation, then fan out notifications

Realtime pushes produced along the way are deferred until commit.
"""

import logging

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from . import conversations, listings, notifications
from .exceptions import ConflictError, ForbiddenError, InvalidStateError, NotFoundError
from .models import Conversation, Listing, TradeOffer

User = get_user_model()
logger = logging.getLogger(__name__)

ARCHIVE_RESPONSE_MESSAGE = 'Archived by the proposer'

# Statuses a recipient still sees in their inbox
RECEIVED_STATUSES = (
    TradeOffer.STATUS_PENDING,
    TradeOffer.STATUS_CHAT_ACCEPTED,
    TradeOffer.STATUS_ACCEPTED,
    TradeOffer.STATUS_REJECTED,
)

ROLE_DENIED_MESSAGES = {
    TradeOffer.ROLE_RECIPIENT: 'Only the listing owner can perform this action.',
    TradeOffer.ROLE_PROPOSER: 'Only the user who made the offer can perform this action.',
}


def _load_for_update(offer_id):
    try:
        return TradeOffer.objects.select_for_update().get(pk=offer_id)
    except TradeOffer.DoesNotExist:
        raise NotFoundError(f'Trade offer with ID {offer_id} does not exist.')


def _begin(offer_id, actor, action):
    """
    Lock the offer and validate `action` for `actor`.

    Returns:
        tuple: (TradeOffer, next_status)

    Raises:
        NotFoundError: Offer does not exist
        ForbiddenError: Actor does not hold the role the action requires
        InvalidStateError: Action not allowed from the current status
    """
    offer = _load_for_update(offer_id)
    required_role, _allowed, next_status = TradeOffer.TRANSITIONS[action]

    if offer.role_of(actor.pk) != required_role:
        logger.warning(
            f"Offer {offer.pk}: user {actor.pk} denied {action} "
            f"(requires {required_role})"
        )
        raise ForbiddenError(ROLE_DENIED_MESSAGES[required_role])

    is_valid, error_message = offer.can_transition(action)
    if not is_valid:
        logger.warning(
            f"Offer {offer.pk}: invalid {action} from status {offer.status} by user {actor.pk}"
        )
        raise InvalidStateError(error_message)

    return offer, next_status


def _apply(offer, next_status, actor, **fields):
    """
    Persist the transition only if the offer still has the status we read.

    Raises:
        InvalidStateError: If a concurrent writer moved the offer first
    """
    previous_status = offer.status
    updated = TradeOffer.objects.filter(
        pk=offer.pk,
        status=previous_status,
    ).update(status=next_status, updated_at=timezone.now(), **fields)

    if not updated:
        logger.warning(f"Offer {offer.pk}: concurrent transition lost from {previous_status}")
        raise InvalidStateError('This offer was changed by another request. Please reload it.')

    for name, value in fields.items():
        setattr(offer, name, value)
    offer.status = next_status

    logger.info(
        f"Offer {offer.pk} transitioned. "
        f"Old Status: {previous_status}, "
        f"New Status: {next_status}, "
        f"Actor: {actor.pk}"
    )
    return offer


def _end_conversation(offer, actor, reason, text):
    """Post a closing system message and end the offer's conversation, if any."""
    if not offer.conversation_id:
        return None

    conversation = Conversation.objects.get(pk=offer.conversation_id)
    if not conversation.is_active():
        return conversation

    conversations.post_system_message(conversation, actor, text)
    conversations.close(conversation, reason)
    return conversation


def create_offer(from_user, target_listing_id, offered_book, message=None):
    """
    Propose an exchange against a listing.

    Args:
        from_user: Proposer
        target_listing_id: ID of the listing the offer targets
        offered_book: Validated dict describing the proposer's book
        message: Optional note to the listing owner

    Returns:
        TradeOffer: The pending offer

    Raises:
        NotFoundError: Listing does not exist
        InvalidStateError: Listing is not active
        ForbiddenError: Proposer owns the listing
        ConflictError: Listing already has an active offer, or the proposer
            was already rejected by the owner on this listing
    """
    with transaction.atomic():
        listing = listings.lock_listing(target_listing_id)

        if listing.status != Listing.STATUS_ACTIVE:
            raise InvalidStateError('This listing is not available for offers.')

        if listing.owner_id == from_user.pk:
            logger.warning(f"User {from_user.pk} attempted to offer on own listing {listing.pk}")
            raise ForbiddenError('You cannot make an offer on your own listing.')

        listings.assert_no_active_offer(listing)

        previously_rejected = TradeOffer.objects.filter(
            target_listing=listing,
            from_user=from_user,
            status=TradeOffer.STATUS_REJECTED,
        ).exists()
        if previously_rejected:
            raise ConflictError(
                'Your previous offer on this listing was rejected. '
                'You cannot make another offer on it.'
            )

        try:
            with transaction.atomic():
                offer = TradeOffer.objects.create(
                    from_user=from_user,
                    to_user=listing.owner,
                    target_listing=listing,
                    offered_book=offered_book,
                    message=message or '',
                )
        except IntegrityError:
            logger.warning(f"Active-offer constraint hit on listing {listing.pk}")
            raise ConflictError('This listing already has an active offer.')

        listings.increment_offer_count(listing)
        notifications.notify_new_offer(offer)

    logger.info(
        f"Offer {offer.pk} created by user {from_user.pk} on listing {listing.pk}"
    )
    return offer


def accept_chat(offer_id, actor):
    """Recipient opens the chat stage; a conversation is created and linked."""
    with transaction.atomic():
        offer, next_status = _begin(offer_id, actor, TradeOffer.ACTION_ACCEPT_CHAT)
        _apply(offer, next_status, actor, chat_accepted_date=timezone.now())

        conversation = conversations.open(
            offer,
            offer.target_listing,
            [offer.from_user, offer.to_user],
        )
        conversations.post_system_message(
            conversation,
            actor,
            'The chat was accepted. You can now discuss the exchange here.',
        )

        TradeOffer.objects.filter(pk=offer.pk).update(conversation=conversation)
        offer.conversation = conversation

        notifications.notify_offer_chat_accepted(offer)

    return offer


def accept_offer(offer_id, actor, response_message=None):
    """
    Recipient completes the exchange.

    The listing is completed, the conversation ended, both parties'
    trade counters bumped and each asked for a review.
    """
    with transaction.atomic():
        offer, next_status = _begin(offer_id, actor, TradeOffer.ACTION_ACCEPT_OFFER)
        now = timezone.now()
        _apply(
            offer,
            next_status,
            actor,
            response_message=response_message or '',
            response_date=now,
            completed_date=now,
        )

        listings.mark_completed(offer.target_listing, offer)

        _end_conversation(
            offer,
            actor,
            Conversation.END_OFFER_ACCEPTED,
            'The offer was accepted and the exchange is complete. This chat is now closed.',
        )

        User.objects.filter(pk__in=[offer.from_user_id, offer.to_user_id]).update(
            total_trades=F('total_trades') + 1,
            successful_trades=F('successful_trades') + 1,
            pending_reviews=F('pending_reviews') + 1,
        )

        notifications.notify_offer_accepted(offer)
        notifications.notify_review_required(offer.from_user, offer)
        notifications.notify_review_required(offer.to_user, offer)

    return offer


def reject_offer(offer_id, actor, response_message=None):
    """Recipient declines the offer; the listing stays available to others."""
    with transaction.atomic():
        offer, next_status = _begin(offer_id, actor, TradeOffer.ACTION_REJECT)
        _apply(
            offer,
            next_status,
            actor,
            response_message=response_message or '',
            response_date=timezone.now(),
        )

        _end_conversation(
            offer,
            actor,
            Conversation.END_OFFER_REJECTED,
            'The offer was rejected. This chat is now closed.',
        )

        notifications.notify_offer_rejected(offer)

    return offer


def cancel_offer(offer_id, actor):
    """Proposer withdraws the offer."""
    with transaction.atomic():
        offer, next_status = _begin(offer_id, actor, TradeOffer.ACTION_CANCEL)
        _apply(offer, next_status, actor)

        _end_conversation(
            offer,
            actor,
            Conversation.END_OFFER_CANCELLED,
            'The offer was cancelled. This chat is now closed.',
        )

        notifications.notify_offer_cancelled(offer)

    return offer


def archive_offer(offer_id, actor):
    """
    Proposer archives the offer.

    Stored as rejected with archived_by_user set. The recipient is not sent
    an offer_rejected notification, and like any rejection it blocks the
    proposer from offering on the listing again.
    """
    with transaction.atomic():
        offer, next_status = _begin(offer_id, actor, TradeOffer.ACTION_ARCHIVE)
        _apply(
            offer,
            next_status,
            actor,
            archived_by_user=True,
            response_message=ARCHIVE_RESPONSE_MESSAGE,
            response_date=timezone.now(),
        )

        conversation = _end_conversation(
            offer,
            actor,
            Conversation.END_OFFER_ARCHIVED,
            'The offer was archived. This chat is now closed.',
        )
        if conversation is not None:
            notifications.notify_conversation_ended(
                conversation,
                Conversation.END_OFFER_ARCHIVED,
                offer_id=offer.pk,
            )

    return offer


# ============================================================================
# Read side
# ============================================================================

def _with_relations(queryset):
    return queryset.select_related('from_user', 'to_user', 'target_listing', 'conversation')


def offers_received(user):
    return _with_relations(
        TradeOffer.objects.filter(to_user=user, status__in=RECEIVED_STATUSES)
    ).order_by('-created_at', '-id')


def offers_sent(user):
    return _with_relations(
        TradeOffer.objects.filter(from_user=user)
    ).order_by('-created_at', '-id')


def get_offer_for(offer_id, user):
    """
    Return an offer visible to `user`.

    Raises:
        NotFoundError: Offer does not exist
        ForbiddenError: User is not a party to the offer
    """
    try:
        offer = _with_relations(TradeOffer.objects).get(pk=offer_id)
    except TradeOffer.DoesNotExist:
        raise NotFoundError(f'Trade offer with ID {offer_id} does not exist.')

    if not offer.is_party(user.pk):
        raise ForbiddenError('You are not a party to this offer.')

    return offer
