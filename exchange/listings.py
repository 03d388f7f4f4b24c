"""
Listing availability guard.

Keeps the one-active-offer-per-listing rule: offer creation locks the
listing row and bumps its version before checking for active offers, so
two concurrent proposers serialize on the listing.
"""

import logging

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from .exceptions import ConflictError, ForbiddenError, InvalidStateError, NotFoundError
from .models import Listing, TradeOffer

logger = logging.getLogger(__name__)


def has_active_offer(listing):
    return TradeOffer.objects.filter(
        target_listing=listing,
        status__in=TradeOffer.ACTIVE_STATUSES,
    ).exists()


def assert_no_active_offer(listing):
    """
    Raises:
        ConflictError: If an offer in pending or chat_accepted references the listing
    """
    if has_active_offer(listing):
        raise ConflictError('This listing already has an active offer.')


def lock_listing(listing_id):
    """
    Lock the listing row and bump its version.

    Must be called inside transaction.atomic().

    Returns:
        Listing: The locked listing with its new version

    Raises:
        NotFoundError: If the listing does not exist
        ConflictError: If another writer changed the version in between
    """
    try:
        listing = Listing.objects.select_for_update().get(pk=listing_id)
    except Listing.DoesNotExist:
        raise NotFoundError(f'Listing with ID {listing_id} does not exist.')

    updated = Listing.objects.filter(
        pk=listing.pk,
        version=listing.version,
    ).update(version=F('version') + 1)

    if not updated:
        logger.warning(f"Version conflict while locking listing {listing.pk}")
        raise ConflictError('This listing was modified concurrently. Please try again.')

    listing.version += 1
    return listing


def increment_offer_count(listing):
    Listing.objects.filter(pk=listing.pk).update(
        offer_count=F('offer_count') + 1,
        version=F('version') + 1,
        updated_at=timezone.now(),
    )
    listing.refresh_from_db(fields=['offer_count', 'version'])
    return listing


def mark_completed(listing, offer):
    """
    Flip an active listing to completed, pointing at the offer that completed it.

    Raises:
        InvalidStateError: If the listing is no longer active
    """
    now = timezone.now()
    updated = Listing.objects.filter(
        pk=listing.pk,
        status=Listing.STATUS_ACTIVE,
    ).update(
        status=Listing.STATUS_COMPLETED,
        completed_trade_offer=offer,
        completed_date=now,
        version=F('version') + 1,
        updated_at=now,
    )

    if not updated:
        raise InvalidStateError('This listing is no longer available.')

    listing.refresh_from_db()
    logger.info(f"Listing {listing.pk} completed by offer {offer.pk}")
    return listing


def remove_listing(listing_id, actor):
    """
    Owner-initiated removal of an active listing.

    Raises:
        NotFoundError: Listing does not exist
        ForbiddenError: Actor is not the owner
        InvalidStateError: Listing is not active
        ConflictError: An offer is still being negotiated on it
    """
    with transaction.atomic():
        listing = lock_listing(listing_id)

        if listing.owner_id != actor.pk:
            logger.warning(f"User {actor.pk} attempted to remove listing {listing_id} they do not own")
            raise ForbiddenError('Only the owner can remove this listing.')

        if listing.status != Listing.STATUS_ACTIVE:
            raise InvalidStateError(f'Cannot remove a listing that is {listing.status}.')

        assert_no_active_offer(listing)

        Listing.objects.filter(pk=listing.pk).update(
            status=Listing.STATUS_REMOVED,
            version=F('version') + 1,
            updated_at=timezone.now(),
        )
        listing.refresh_from_db()

    logger.info(f"Listing {listing_id} removed by owner {actor.pk}")
    return listing
