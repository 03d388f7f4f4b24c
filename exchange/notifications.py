"""
Notification dispatcher.

Every notification is persisted first; the realtime push to the recipient's
user channel is scheduled with `transaction.on_commit`, so a rolled-back
operation never pushes and a failed push never rolls anything back.
"""

import logging
import math
from datetime import timedelta

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from .models import Notification
from .realtime import push, user_channel

logger = logging.getLogger(__name__)


def _push_payload(notification):
    return {
        'id': notification.id,
        'type': notification.type,
        'title': notification.title,
        'message': notification.message,
        'data': notification.data,
        'priority': notification.priority,
        'createdAt': notification.created_at.isoformat(),
    }


def notify(recipient, sender, type, title, message, data=None, priority=Notification.PRIORITY_MEDIUM):
    """
    Persist a notification and schedule its push.

    Args:
        recipient: User receiving the notification
        sender: User that triggered it, or None for system notifications
        type: One of Notification.TYPE_CHOICES
        title: Short title (truncated to 100 characters)
        message: Body text (truncated to 500 characters)
        data: Dict with any of listingId, offerId, conversationId, reviewId
        priority: low, medium or high

    Returns:
        Notification: The persisted record
    """
    data = {
        key: value for key, value in (data or {}).items()
        if key in Notification.DATA_KEYS and value is not None
    }

    notification = Notification.objects.create(
        recipient=recipient,
        sender=sender,
        type=type,
        title=title[:100],
        message=message[:500],
        data=data,
        priority=priority,
    )

    logger.info(
        f"Notification {notification.id} ({type}) created for user {recipient.pk}"
    )

    payload = _push_payload(notification)
    channel = user_channel(recipient.pk)
    transaction.on_commit(lambda: push(channel, payload))

    return notification


# ============================================================================
# Lifecycle notifications
# ============================================================================

def notify_new_offer(offer):
    book_title = offer.offered_book.get('bookTitle', 'a book')
    return notify(
        recipient=offer.to_user,
        sender=offer.from_user,
        type=Notification.TYPE_NEW_OFFER,
        title='You received a new offer!',
        message=f'You received a new offer of "{book_title}" for your listing.',
        data={'offerId': offer.id, 'listingId': offer.target_listing_id},
        priority=Notification.PRIORITY_HIGH,
    )


def notify_offer_chat_accepted(offer):
    return notify(
        recipient=offer.from_user,
        sender=offer.to_user,
        type=Notification.TYPE_OFFER_CHAT_ACCEPTED,
        title='Chat accepted!',
        message='The chat for your offer was accepted. You can start talking now!',
        data={'offerId': offer.id, 'conversationId': offer.conversation_id},
        priority=Notification.PRIORITY_HIGH,
    )


def notify_offer_accepted(offer):
    return notify(
        recipient=offer.from_user,
        sender=offer.to_user,
        type=Notification.TYPE_OFFER_ACCEPTED,
        title='Offer accepted!',
        message='Your offer was accepted. The exchange is complete.',
        data={'offerId': offer.id, 'listingId': offer.target_listing_id},
        priority=Notification.PRIORITY_HIGH,
    )


def notify_offer_rejected(offer):
    return notify(
        recipient=offer.from_user,
        sender=offer.to_user,
        type=Notification.TYPE_OFFER_REJECTED,
        title='Offer rejected',
        message='Unfortunately your offer was rejected.',
        data={'offerId': offer.id, 'listingId': offer.target_listing_id},
        priority=Notification.PRIORITY_MEDIUM,
    )


def notify_offer_cancelled(offer):
    return notify(
        recipient=offer.to_user,
        sender=offer.from_user,
        type=Notification.TYPE_OFFER_CANCELLED,
        title='Offer cancelled',
        message='An offer sent to you was cancelled.',
        data={'offerId': offer.id, 'listingId': offer.target_listing_id},
        priority=Notification.PRIORITY_LOW,
    )


def notify_new_message(message, conversation):
    """Notify every participant except the sender."""
    offer_id = getattr(getattr(conversation, 'trade_offer', None), 'id', None)
    return [
        notify(
            recipient=participant,
            sender=message.sender,
            type=Notification.TYPE_NEW_MESSAGE,
            title='New message',
            message='You have a new message.',
            data={'conversationId': conversation.id, 'offerId': offer_id},
            priority=Notification.PRIORITY_MEDIUM,
        )
        for participant in conversation.participants.exclude(pk=message.sender_id)
    ]


CONVERSATION_ENDED_MESSAGES = {
    'offer_accepted': 'The offer was accepted and the chat has ended.',
    'offer_rejected': 'The offer was rejected and the chat has ended.',
    'offer_archived': 'The offer was archived and the chat has ended.',
    'offer_cancelled': 'The offer was cancelled and the chat has ended.',
}


def notify_conversation_ended(conversation, reason, offer_id=None):
    return [
        notify(
            recipient=participant,
            sender=None,
            type=Notification.TYPE_CONVERSATION_ENDED,
            title='Chat ended',
            message=CONVERSATION_ENDED_MESSAGES.get(reason, 'The chat has ended.'),
            data={'conversationId': conversation.id, 'offerId': offer_id},
            priority=Notification.PRIORITY_LOW,
        )
        for participant in conversation.participants.all()
    ]


def notify_review_required(user, offer):
    return notify(
        recipient=user,
        sender=None,
        type=Notification.TYPE_REVIEW_REQUIRED,
        title='Review required',
        message='Please review the other party of your completed exchange.',
        data={'offerId': offer.id},
        priority=Notification.PRIORITY_MEDIUM,
    )


def notify_review_received(review):
    return notify(
        recipient=review.reviewee,
        sender=review.reviewer,
        type=Notification.TYPE_REVIEW_RECEIVED,
        title='You received a new review',
        message=f'You received a {review.rating}-star review.',
        data={'reviewId': review.id, 'offerId': review.trade_offer_id},
        priority=Notification.PRIORITY_LOW,
    )


# ============================================================================
# Read side
# ============================================================================

def _clamp_paging(page, limit):
    max_limit = settings.EXCHANGE_NOTIFICATION_MAX_PAGE_SIZE
    try:
        page = int(page)
    except (TypeError, ValueError):
        page = 1
    try:
        limit = int(limit)
    except (TypeError, ValueError):
        limit = settings.EXCHANGE_NOTIFICATION_PAGE_SIZE
    return max(page, 1), min(max(limit, 1), max_limit)


def unread_count(user):
    return Notification.objects.filter(recipient=user, is_read=False).count()


def list_for(user, page=1, limit=None, unread_only=False):
    """
    Return one page of the user's notifications, newest first.

    Returns:
        dict: {'notifications': [...], 'pagination': {page, limit, total, pages},
               'unreadCount': int}
    """
    page, limit = _clamp_paging(page, limit)

    queryset = Notification.objects.filter(recipient=user).select_related('sender')
    if unread_only:
        queryset = queryset.filter(is_read=False)

    total = queryset.count()
    offset = (page - 1) * limit
    notifications = list(queryset.order_by('-created_at', '-id')[offset:offset + limit])

    return {
        'notifications': notifications,
        'pagination': {
            'page': page,
            'limit': limit,
            'total': total,
            'pages': math.ceil(total / limit) if total else 0,
        },
        'unreadCount': unread_count(user),
    }


def mark_read(user, ids=None):
    """
    Mark notifications as read.

    Args:
        user: Owner of the notifications
        ids: Iterable of notification ids; None marks every unread notification

    Returns:
        int: Number of notifications updated
    """
    queryset = Notification.objects.filter(recipient=user, is_read=False)
    if ids is not None:
        queryset = queryset.filter(pk__in=list(ids))

    updated = queryset.update(is_read=True, read_at=timezone.now())

    logger.info(f"Marked {updated} notification(s) as read for user {user.pk}")
    return updated


def clean_old(days=None):
    """
    Delete read notifications older than the retention window.

    Returns:
        int: Number of notifications deleted
    """
    if days is None:
        days = settings.EXCHANGE_NOTIFICATION_RETENTION_DAYS

    cutoff = timezone.now() - timedelta(days=days)
    deleted, _ = Notification.objects.filter(is_read=True, created_at__lt=cutoff).delete()

    logger.info(f"Deleted {deleted} read notification(s) older than {days} day(s)")
    return deleted
