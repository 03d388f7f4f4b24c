"""
Serializers for the BookSwap exchange API.

Request serializers validate payload shape only; lifecycle rules are
enforced by the domain modules (offers, conversations, reviews).
"""

from django.contrib.auth import get_user_model
from rest_framework import serializers

from .models import Conversation, Listing, Message, Notification, Review, TradeOffer

User = get_user_model()


# ============================================================================
# Nested read-only serializers
# ============================================================================

class UserSummarySerializer(serializers.ModelSerializer):
    """
    Public user details embedded in offers, messages and reviews.

    Fields:
    - id, username, first_name, last_name
    - rating, total_ratings: public reputation
    """

    class Meta:
        model = User
        fields = ['id', 'username', 'first_name', 'last_name', 'rating', 'total_ratings']
        read_only_fields = fields


class ListingSummarySerializer(serializers.ModelSerializer):
    owner = serializers.PrimaryKeyRelatedField(read_only=True)

    class Meta:
        model = Listing
        fields = [
            'id', 'owner', 'book_title', 'author', 'isbn', 'category',
            'condition', 'status', 'offer_count', 'completed_date',
        ]
        read_only_fields = fields


# ============================================================================
# Trade offers
# ============================================================================

class OfferedBookSerializer(serializers.Serializer):
    """
    Description of the book a proposer offers in exchange.

    Stored as-is (camelCase keys) in TradeOffer.offered_book.
    """

    CONDITION_CHOICES = [choice for choice, _label in Listing.CONDITION_CHOICES]

    bookTitle = serializers.CharField(max_length=255)
    author = serializers.CharField(max_length=255)
    category = serializers.CharField(max_length=100)
    condition = serializers.ChoiceField(choices=CONDITION_CHOICES)
    images = serializers.ListField(
        child=serializers.CharField(max_length=500),
        required=False,
        default=list,
        max_length=10,
    )
    description = serializers.CharField(max_length=500, required=False, allow_blank=True, default='')
    isbn = serializers.CharField(max_length=20, required=False, allow_blank=True)
    publisher = serializers.CharField(max_length=255, required=False, allow_blank=True)
    publishedYear = serializers.IntegerField(required=False, min_value=0, max_value=9999)

    def validate_bookTitle(self, value):
        """
        Validate the title is not only whitespace.

        Raises:
            ValidationError: If the title is blank after trimming
        """
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Book title cannot be empty.")
        return value

    def validate_author(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Author cannot be empty.")
        return value


class TradeOfferCreateSerializer(serializers.Serializer):
    """
    Request body for POST /api/offers/.

    Fields:
    - targetListingId: Required, listing the offer targets
    - offeredBook: Required, see OfferedBookSerializer
    - message: Optional note to the listing owner
    """

    targetListingId = serializers.IntegerField(min_value=1)
    offeredBook = OfferedBookSerializer()
    message = serializers.CharField(max_length=1000, required=False, allow_blank=True, default='')


class ResponseMessageSerializer(serializers.Serializer):
    responseMessage = serializers.CharField(max_length=1000, required=False, allow_blank=True, default='')


class TradeOfferSerializer(serializers.ModelSerializer):
    """Full representation of a trade offer for either party."""

    from_user = UserSummarySerializer(read_only=True)
    to_user = UserSummarySerializer(read_only=True)
    target_listing = ListingSummarySerializer(read_only=True)
    conversation = serializers.PrimaryKeyRelatedField(read_only=True)

    class Meta:
        model = TradeOffer
        fields = [
            'id', 'from_user', 'to_user', 'target_listing', 'offered_book',
            'message', 'status', 'chat_accepted_date', 'response_message',
            'response_date', 'completed_date', 'archived_by_user',
            'conversation', 'from_user_reviewed', 'to_user_reviewed',
            'both_reviewed', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


# ============================================================================
# Conversations
# ============================================================================

class MessageSerializer(serializers.ModelSerializer):
    sender = UserSummarySerializer(read_only=True)

    class Meta:
        model = Message
        fields = ['id', 'conversation', 'sender', 'content', 'message_type', 'is_read', 'read_at', 'created_at']
        read_only_fields = fields


class MessageCreateSerializer(serializers.Serializer):
    content = serializers.CharField(max_length=2000, trim_whitespace=True)


class ConversationSerializer(serializers.ModelSerializer):
    """
    Conversation summary for the inbox.

    `unread_count` counts messages from the other party the requesting
    user has not read; it needs `request` in the serializer context.
    """

    participants = UserSummarySerializer(many=True, read_only=True)
    listing = ListingSummarySerializer(read_only=True)
    trade_offer = serializers.SerializerMethodField()
    last_message = serializers.SerializerMethodField()
    unread_count = serializers.SerializerMethodField()

    class Meta:
        model = Conversation
        fields = [
            'id', 'participants', 'listing', 'trade_offer', 'status',
            'end_reason', 'ended_at', 'last_message_at', 'last_message',
            'unread_count', 'created_at',
        ]
        read_only_fields = fields

    def get_trade_offer(self, obj):
        offer = getattr(obj, 'trade_offer', None)
        return offer.id if offer is not None else None

    def get_last_message(self, obj):
        message = obj.messages.order_by('-created_at', '-id').first()
        if message is None:
            return None
        return {
            'id': message.id,
            'sender': message.sender_id,
            'content': message.content,
            'message_type': message.message_type,
            'created_at': message.created_at,
        }

    def get_unread_count(self, obj):
        request = self.context.get('request')
        if request is None or not request.user.is_authenticated:
            return 0
        return obj.messages.filter(is_read=False).exclude(sender=request.user).count()


# ============================================================================
# Notifications
# ============================================================================

class NotificationSerializer(serializers.ModelSerializer):
    sender = UserSummarySerializer(read_only=True, allow_null=True)

    class Meta:
        model = Notification
        fields = ['id', 'sender', 'type', 'title', 'message', 'data', 'priority', 'is_read', 'read_at', 'created_at']
        read_only_fields = fields


class NotificationMarkReadSerializer(serializers.Serializer):
    notificationIds = serializers.ListField(
        child=serializers.IntegerField(min_value=1),
        allow_empty=False,
        max_length=500,
    )


# ============================================================================
# Reviews
# ============================================================================

class ReviewSerializer(serializers.ModelSerializer):
    reviewer = UserSummarySerializer(read_only=True)
    reviewee = UserSummarySerializer(read_only=True)
    trade_offer = serializers.PrimaryKeyRelatedField(read_only=True)

    class Meta:
        model = Review
        fields = ['id', 'trade_offer', 'reviewer', 'reviewee', 'rating', 'comment', 'created_at']
        read_only_fields = fields


class ReviewCreateSerializer(serializers.Serializer):
    """
    Request body for POST /api/reviews/.

    Fields:
    - tradeOfferId: Required, accepted offer being reviewed
    - revieweeId: Required, the other party of the offer
    - rating: Required, integer from 1-5
    - comment: Optional, at most 500 characters
    """

    tradeOfferId = serializers.IntegerField(min_value=1)
    revieweeId = serializers.IntegerField(min_value=1)
    rating = serializers.IntegerField()
    comment = serializers.CharField(max_length=500, required=False, allow_blank=True, default='')

    def validate_rating(self, value):
        """
        Validate rating is between 1-5.

        Raises:
            ValidationError: If rating is outside 1-5
        """
        if value < 1 or value > 5:
            raise serializers.ValidationError("Rating must be between 1 and 5.")
        return value


class PendingReviewSerializer(serializers.Serializer):
    tradeOffer = TradeOfferSerializer(read_only=True)
    revieweeId = serializers.IntegerField(read_only=True)
    revieweeName = serializers.CharField(read_only=True)
