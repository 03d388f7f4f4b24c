"""
Conversation manager.

A conversation is opened once per trade offer when its chat stage is
accepted, and ended once when the offer leaves that stage. Only the two
offer parties may read or write it, and only an active conversation
accepts new messages.
"""

import logging

from django.db import transaction
from django.utils import timezone

from . import notifications
from .exceptions import BadRequestError, ForbiddenError, InvalidStateError, NotFoundError
from .models import Conversation, Message
from .realtime import conversation_channel, push

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 2000


def message_event(message):
    """Build the realtime payload for a chat message."""
    return {
        'type': 'new_message',
        'conversationId': message.conversation_id,
        'message': {
            'id': message.id,
            'sender': message.sender_id,
            'content': message.content,
            'messageType': message.message_type,
            'isRead': message.is_read,
            'createdAt': message.created_at.isoformat(),
        },
    }


def _publish(message):
    event = message_event(message)
    channel = conversation_channel(message.conversation_id)
    transaction.on_commit(lambda: push(channel, event))


def _get_for_participant(conversation_id, user, lock=False):
    queryset = Conversation.objects.select_related('listing')
    if lock:
        queryset = queryset.select_for_update()

    try:
        conversation = queryset.get(pk=conversation_id)
    except Conversation.DoesNotExist:
        raise NotFoundError(f'Conversation with ID {conversation_id} does not exist.')

    if not conversation.has_participant(user.pk):
        logger.warning(
            f"User {user.pk} denied access to conversation {conversation_id}"
        )
        raise ForbiddenError('You are not a participant of this conversation.')

    return conversation


def open(offer, listing, participants):
    """
    Create the active conversation for `offer`.

    Args:
        offer: TradeOffer whose chat stage was accepted
        listing: The offer's target listing
        participants: The two offer parties

    Returns:
        Conversation: The newly created conversation
    """
    conversation = Conversation.objects.create(listing=listing)
    conversation.participants.set(participants)

    logger.info(
        f"Conversation {conversation.id} opened for offer {offer.id} "
        f"between users {[p.pk for p in participants]}"
    )
    return conversation


def close(conversation, reason):
    """
    End an active conversation.

    Raises:
        InvalidStateError: If the conversation has already ended
    """
    now = timezone.now()
    updated = Conversation.objects.filter(
        pk=conversation.pk,
        status=Conversation.STATUS_ACTIVE,
    ).update(
        status=Conversation.STATUS_ENDED,
        end_reason=reason,
        ended_at=now,
        updated_at=now,
    )

    if not updated:
        raise InvalidStateError(f'Conversation {conversation.pk} has already ended.')

    conversation.status = Conversation.STATUS_ENDED
    conversation.end_reason = reason
    conversation.ended_at = now

    logger.info(f"Conversation {conversation.pk} ended: {reason}")
    return conversation


def _append(conversation, sender, content, message_type):
    message = Message.objects.create(
        conversation=conversation,
        sender=sender,
        content=content,
        message_type=message_type,
    )
    Conversation.objects.filter(pk=conversation.pk).update(
        last_message_at=message.created_at,
        updated_at=message.created_at,
    )
    conversation.last_message_at = message.created_at
    _publish(message)
    return message


def post_system_message(conversation, sender, text):
    """Append a system message announcing a lifecycle event."""
    return _append(conversation, sender, text, Message.TYPE_SYSTEM)


def post_user_message(conversation_id, sender, content):
    """
    Append a user message to an active conversation.

    Raises:
        NotFoundError: Conversation does not exist
        ForbiddenError: Sender is not a participant
        InvalidStateError: Conversation has ended
        BadRequestError: Content is empty or too long
    """
    content = (content or '').strip()
    if not content:
        raise BadRequestError('Message content cannot be empty.')
    if len(content) > MAX_MESSAGE_LENGTH:
        raise BadRequestError(
            f'Message content cannot exceed {MAX_MESSAGE_LENGTH} characters.'
        )

    with transaction.atomic():
        conversation = _get_for_participant(conversation_id, sender, lock=True)

        if not conversation.is_active():
            raise InvalidStateError('This conversation has ended.')

        message = _append(conversation, sender, content, Message.TYPE_USER)
        notifications.notify_new_message(message, conversation)

    logger.info(
        f"Message {message.id} posted to conversation {conversation_id} by user {sender.pk}"
    )
    return message


def mark_read(conversation_id, reader):
    """
    Mark every message not authored by `reader` as read.

    Returns:
        int: Number of messages updated
    """
    conversation = _get_for_participant(conversation_id, reader)

    updated = conversation.messages.filter(
        is_read=False,
    ).exclude(
        sender=reader,
    ).update(is_read=True, read_at=timezone.now())

    logger.info(
        f"Marked {updated} message(s) read in conversation {conversation_id} for user {reader.pk}"
    )
    return updated


def conversations_for(user):
    """Conversations the user takes part in, most recently active first."""
    return (
        Conversation.objects
        .filter(participants=user)
        .select_related('listing', 'trade_offer')
        .prefetch_related('participants')
        .order_by('-last_message_at', '-id')
    )


def get_with_messages(conversation_id, user):
    """
    Return a conversation and its messages in chronological order.

    Returns:
        tuple: (Conversation, list of Message)
    """
    conversation = _get_for_participant(conversation_id, user)
    messages = list(conversation.messages.select_related('sender').order_by('created_at', 'id'))
    return conversation, messages
