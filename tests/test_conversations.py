"""
Tests for the conversation manager (exchange.conversations) and its endpoints.
"""

import pytest
from rest_framework import status

from exchange import conversations, offers
from exchange.exceptions import BadRequestError, ForbiddenError, InvalidStateError, NotFoundError
from exchange.models import Conversation, Message, Notification
from exchange.realtime import conversation_channel


@pytest.fixture
def conversation(owner, proposer, listing, offered_book):
    offer = offers.create_offer(proposer, listing.pk, offered_book)
    offer = offers.accept_chat(offer.pk, owner)
    return Conversation.objects.get(pk=offer.conversation_id)


@pytest.mark.django_db
class TestPostUserMessage:

    def test_participant_posts_message(self, owner, proposer, conversation):
        before = conversation.last_message_at

        message = conversations.post_user_message(conversation.pk, proposer, '  Hello there!  ')

        assert message.content == 'Hello there!'
        assert message.message_type == Message.TYPE_USER
        assert message.sender == proposer

        conversation.refresh_from_db()
        assert conversation.last_message_at >= before
        assert conversation.last_message_at == message.created_at

        notification = Notification.objects.get(type=Notification.TYPE_NEW_MESSAGE)
        assert notification.recipient == owner
        assert notification.data['conversationId'] == conversation.pk

    def test_message_pushed_after_commit(self, proposer, conversation, registry, django_capture_on_commit_callbacks):
        received = []
        registry.connect(conversation_channel(conversation.pk), received.append)

        with django_capture_on_commit_callbacks(execute=True):
            message = conversations.post_user_message(conversation.pk, proposer, 'Ping')

        assert len(received) == 1
        assert received[0]['type'] == 'new_message'
        assert received[0]['message']['id'] == message.pk
        assert received[0]['message']['content'] == 'Ping'

    def test_non_participant_forbidden(self, other_user, conversation):
        with pytest.raises(ForbiddenError):
            conversations.post_user_message(conversation.pk, other_user, 'Let me in')

    def test_missing_conversation(self, proposer):
        with pytest.raises(NotFoundError):
            conversations.post_user_message(123456, proposer, 'Hello?')

    def test_empty_content(self, proposer, conversation):
        with pytest.raises(BadRequestError):
            conversations.post_user_message(conversation.pk, proposer, '   ')

    def test_ended_conversation_rejects_messages(self, owner, proposer, conversation):
        offers.reject_offer(conversation.trade_offer.pk, owner)

        with pytest.raises(InvalidStateError):
            conversations.post_user_message(conversation.pk, proposer, 'Wait!')


@pytest.mark.django_db
class TestCloseConversation:

    def test_close_twice_is_invalid(self, conversation):
        conversations.close(conversation, Conversation.END_OFFER_REJECTED)

        with pytest.raises(InvalidStateError):
            conversations.close(conversation, Conversation.END_OFFER_REJECTED)

        conversation.refresh_from_db()
        assert conversation.status == Conversation.STATUS_ENDED
        assert conversation.end_reason == Conversation.END_OFFER_REJECTED


@pytest.mark.django_db
class TestMarkRead:

    def test_marks_only_messages_from_others(self, owner, proposer, conversation):
        # The system message announcing chat acceptance is authored by the owner
        conversations.post_user_message(conversation.pk, owner, 'Hi!')
        conversations.post_user_message(conversation.pk, proposer, 'Hello!')

        updated = conversations.mark_read(conversation.pk, proposer)

        assert updated == 2
        assert not conversation.messages.filter(sender=owner, is_read=False).exists()
        assert conversation.messages.get(sender=proposer).is_read is False
        assert conversations.mark_read(conversation.pk, proposer) == 0

    def test_non_participant_forbidden(self, other_user, conversation):
        with pytest.raises(ForbiddenError):
            conversations.mark_read(conversation.pk, other_user)


@pytest.mark.django_db
class TestConversationQueries:

    def test_ordered_by_last_message(self, owner, proposer, other_user, make_listing, offered_book, conversation):
        second_offer = offers.create_offer(other_user, make_listing(owner).pk, offered_book)
        second_offer = offers.accept_chat(second_offer.pk, owner)

        conversations.post_user_message(conversation.pk, proposer, 'Bump')

        ordered = [c.pk for c in conversations.conversations_for(owner)]
        assert ordered == [conversation.pk, second_offer.conversation_id]
        assert [c.pk for c in conversations.conversations_for(proposer)] == [conversation.pk]

    def test_get_with_messages(self, owner, proposer, other_user, conversation):
        conversations.post_user_message(conversation.pk, proposer, 'First')

        found, messages = conversations.get_with_messages(conversation.pk, owner)

        assert found == conversation
        assert [m.message_type for m in messages] == [Message.TYPE_SYSTEM, Message.TYPE_USER]

        with pytest.raises(ForbiddenError):
            conversations.get_with_messages(conversation.pk, other_user)


@pytest.mark.django_db
class TestConversationEndpoints:

    def test_list(self, auth_client, owner, conversation):
        response = auth_client(owner).get('/api/conversations/')

        assert response.status_code == status.HTTP_200_OK
        assert len(response.data) == 1
        assert response.data[0]['id'] == conversation.pk
        assert response.data[0]['trade_offer'] == conversation.trade_offer.pk
        assert response.data[0]['unread_count'] == 0

    def test_detail(self, auth_client, proposer, other_user, conversation):
        response = auth_client(proposer).get(f'/api/conversations/{conversation.pk}/')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['conversation']['id'] == conversation.pk
        assert len(response.data['messages']) == 1

        denied = auth_client(other_user).get(f'/api/conversations/{conversation.pk}/')
        assert denied.status_code == status.HTTP_403_FORBIDDEN

    def test_post_message_and_mark_read(self, auth_client, owner, proposer, conversation):
        response = auth_client(proposer).post(
            f'/api/conversations/{conversation.pk}/messages/',
            {'content': 'Is the book still available?'},
            format='json'
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['content'] == 'Is the book still available?'
        assert response.data['sender']['id'] == proposer.pk

        listing_view = auth_client(owner).get('/api/conversations/')
        assert listing_view.data[0]['unread_count'] == 1

        read = auth_client(owner).put(f'/api/conversations/{conversation.pk}/messages/read/', {}, format='json')
        assert read.status_code == status.HTTP_200_OK
        assert read.data['updated'] == 1

    def test_post_to_ended_conversation(self, auth_client, owner, proposer, conversation):
        offers.cancel_offer(conversation.trade_offer.pk, proposer)

        response = auth_client(owner).post(
            f'/api/conversations/{conversation.pk}/messages/',
            {'content': 'Too late'},
            format='json'
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_empty_message_rejected(self, auth_client, proposer, conversation):
        response = auth_client(proposer).post(
            f'/api/conversations/{conversation.pk}/messages/',
            {'content': ''},
            format='json'
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
