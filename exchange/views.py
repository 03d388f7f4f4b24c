"""
API views for the BookSwap exchange.

Views are thin: they validate the payload shape, call one domain
operation with `request.user` as the actor, and serialize the result.
Domain errors (exchange.exceptions) propagate and are rendered by DRF.
"""

import logging

from rest_framework import status
from rest_framework.generics import ListAPIView
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView

from . import conversations, listings, notifications, offers, reviews
from .exceptions import ExchangeError
from .serializers import (
    ConversationSerializer,
    ListingSummarySerializer,
    MessageCreateSerializer,
    MessageSerializer,
    NotificationMarkReadSerializer,
    NotificationSerializer,
    PendingReviewSerializer,
    ResponseMessageSerializer,
    ReviewCreateSerializer,
    ReviewSerializer,
    TradeOfferCreateSerializer,
    TradeOfferSerializer,
)

logger = logging.getLogger(__name__)


def get_client_ip(request):
    """
    Get client IP address from request.
    Handles proxy headers for accurate IP detection.
    """
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        ip = x_forwarded_for.split(',')[0]
    else:
        ip = request.META.get('REMOTE_ADDR')
    return ip


class ExchangeAPIView(APIView):
    """
    Base view for exchange endpoints.

    Requires JWT authentication and logs every rejected domain operation
    with the actor and client IP before DRF renders the error.
    """
    permission_classes = [IsAuthenticated]

    def handle_exception(self, exc):
        if isinstance(exc, ExchangeError):
            user = getattr(self.request, 'user', None)
            logger.warning(
                f"{self.__class__.__name__} rejected: {exc.detail} "
                f"(status {exc.status_code}), "
                f"User ID: {getattr(user, 'pk', None)}, "
                f"Path: {self.request.path}, "
                f"IP: {get_client_ip(self.request)}"
            )
        return super().handle_exception(exc)


# ============================================================================
# Trade Offer Views
# ============================================================================

class OfferCreateView(ExchangeAPIView):
    """
    API endpoint for making a trade offer on a listing.

    POST /api/offers/
    Headers: Authorization: Bearer <access_token>
    Request body: {
        "targetListingId": 12,
        "offeredBook": {
            "bookTitle": "Dune",
            "author": "Frank Herbert",
            "category": "Science Fiction",
            "condition": "good",
            "images": [],
            "description": "Paperback"
        },
        "message": "Would you swap?"
    }

    Success response (201): the created offer

    Error responses:
    - 400: Invalid payload or listing not active
    - 403: Offer on own listing
    - 404: Listing not found
    - 409: Listing already has an active offer, or proposer was rejected before
    """
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'offers'

    def post(self, request, *args, **kwargs):
        serializer = TradeOfferCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        offer = offers.create_offer(
            from_user=request.user,
            target_listing_id=data['targetListingId'],
            offered_book=dict(data['offeredBook']),
            message=data.get('message'),
        )

        logger.info(
            f"Offer created. Offer ID: {offer.pk}, "
            f"User ID: {request.user.pk}, "
            f"IP: {get_client_ip(request)}"
        )

        return Response(
            TradeOfferSerializer(offer).data,
            status=status.HTTP_201_CREATED
        )


class OffersReceivedView(ListAPIView):
    """
    GET /api/offers/received/

    Offers made on the user's listings that are pending, in chat,
    accepted or rejected. Newest first.
    """
    permission_classes = [IsAuthenticated]
    serializer_class = TradeOfferSerializer

    def get_queryset(self):
        return offers.offers_received(self.request.user)


class OffersSentView(ListAPIView):
    """GET /api/offers/sent/ - every offer the user made, newest first."""
    permission_classes = [IsAuthenticated]
    serializer_class = TradeOfferSerializer

    def get_queryset(self):
        return offers.offers_sent(self.request.user)


class OfferDetailView(ExchangeAPIView):
    """GET /api/offers/<id>/ - visible to the two parties only."""

    def get(self, request, *args, **kwargs):
        offer = offers.get_offer_for(kwargs.get('pk'), request.user)
        return Response(TradeOfferSerializer(offer).data)


class OfferActionView(ExchangeAPIView):
    """
    API endpoint for moving an offer through its lifecycle.

    One view serves every transition; `operation` is bound in urls.py.

    PUT /api/offers/<id>/accept-chat/     (listing owner)
    PUT /api/offers/<id>/accept-offer/    (listing owner) {"responseMessage": "..."}
    PUT /api/offers/<id>/reject/          (listing owner) {"responseMessage": "..."}
    PUT /api/offers/<id>/cancel/          (proposer)
    PUT /api/offers/<id>/archive/         (proposer)

    Success response (200): the updated offer

    Error responses:
    - 400: Transition not allowed from the current status
    - 403: Actor does not hold the required role
    - 404: Offer not found
    """
    operation = None

    OPERATIONS_WITH_RESPONSE = {
        'accept_offer': offers.accept_offer,
        'reject': offers.reject_offer,
    }

    OPERATIONS = {
        'accept_chat': offers.accept_chat,
        'cancel': offers.cancel_offer,
        'archive': offers.archive_offer,
    }

    def put(self, request, *args, **kwargs):
        offer_id = kwargs.get('pk')

        if self.operation in self.OPERATIONS_WITH_RESPONSE:
            serializer = ResponseMessageSerializer(data=request.data)
            serializer.is_valid(raise_exception=True)
            offer = self.OPERATIONS_WITH_RESPONSE[self.operation](
                offer_id,
                request.user,
                response_message=serializer.validated_data.get('responseMessage'),
            )
        else:
            offer = self.OPERATIONS[self.operation](offer_id, request.user)

        logger.info(
            f"Offer {self.operation} applied. "
            f"Offer ID: {offer_id}, "
            f"New Status: {offer.status}, "
            f"User ID: {request.user.pk}, "
            f"IP: {get_client_ip(request)}"
        )

        offer = offers.get_offer_for(offer_id, request.user)
        return Response(TradeOfferSerializer(offer).data, status=status.HTTP_200_OK)


class ListingRemoveView(ExchangeAPIView):
    """
    PUT /api/listings/<id>/remove/

    Owner takes an active listing off the market. Fails with 409 while an
    offer is being negotiated on it.
    """

    def put(self, request, *args, **kwargs):
        listing = listings.remove_listing(kwargs.get('pk'), request.user)
        return Response(ListingSummarySerializer(listing).data)


# ============================================================================
# Conversation Views
# ============================================================================

class ConversationListView(ExchangeAPIView):
    """GET /api/conversations/ - most recently active first."""

    def get(self, request, *args, **kwargs):
        queryset = conversations.conversations_for(request.user)
        serializer = ConversationSerializer(queryset, many=True, context={'request': request})
        return Response(serializer.data)


class ConversationDetailView(ExchangeAPIView):
    """
    GET /api/conversations/<id>/

    Success response (200): {"conversation": {...}, "messages": [...]}
    """

    def get(self, request, *args, **kwargs):
        conversation, messages = conversations.get_with_messages(kwargs.get('pk'), request.user)
        return Response({
            'conversation': ConversationSerializer(conversation, context={'request': request}).data,
            'messages': MessageSerializer(messages, many=True).data,
        })


class MessageCreateView(ExchangeAPIView):
    """
    POST /api/conversations/<id>/messages/
    Request body: {"content": "Hello!"}

    Error responses:
    - 400: Empty content or conversation ended
    - 403: Not a participant
    - 404: Conversation not found
    """
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'messages'

    def post(self, request, *args, **kwargs):
        serializer = MessageCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        message = conversations.post_user_message(
            kwargs.get('pk'),
            request.user,
            serializer.validated_data['content'],
        )
        return Response(MessageSerializer(message).data, status=status.HTTP_201_CREATED)


class MessageMarkReadView(ExchangeAPIView):
    """PUT /api/conversations/<id>/messages/read/"""

    def put(self, request, *args, **kwargs):
        updated = conversations.mark_read(kwargs.get('pk'), request.user)
        return Response({'updated': updated})


# ============================================================================
# Notification Views
# ============================================================================

class NotificationListView(ExchangeAPIView):
    """
    GET /api/notifications/?page=1&limit=20&unreadOnly=true

    Success response (200):
    {
        "notifications": [...],
        "pagination": {"page": 1, "limit": 20, "total": 42, "pages": 3},
        "unreadCount": 5
    }
    """

    def get(self, request, *args, **kwargs):
        unread_only = request.query_params.get('unreadOnly', '').lower() in ('1', 'true', 'yes')

        result = notifications.list_for(
            request.user,
            page=request.query_params.get('page', 1),
            limit=request.query_params.get('limit'),
            unread_only=unread_only,
        )

        return Response({
            'notifications': NotificationSerializer(result['notifications'], many=True).data,
            'pagination': result['pagination'],
            'unreadCount': result['unreadCount'],
        })


class NotificationUnreadCountView(ExchangeAPIView):
    """GET /api/notifications/unread-count/"""

    def get(self, request, *args, **kwargs):
        return Response({'unreadCount': notifications.unread_count(request.user)})


class NotificationMarkReadView(ExchangeAPIView):
    """PUT /api/notifications/mark-read/  {"notificationIds": [1, 2]}"""

    def put(self, request, *args, **kwargs):
        serializer = NotificationMarkReadSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        updated = notifications.mark_read(request.user, serializer.validated_data['notificationIds'])
        return Response({
            'updated': updated,
            'unreadCount': notifications.unread_count(request.user),
        })


class NotificationMarkAllReadView(ExchangeAPIView):
    """PUT /api/notifications/mark-all-read/"""

    def put(self, request, *args, **kwargs):
        updated = notifications.mark_read(request.user)
        return Response({'updated': updated, 'unreadCount': 0})


# ============================================================================
# Review Views
# ============================================================================

class PendingReviewsView(ExchangeAPIView):
    """
    GET /api/reviews/pending/

    Success response (200):
    [{"tradeOffer": {...}, "revieweeId": 7, "revieweeName": "Jane Doe"}]
    """

    def get(self, request, *args, **kwargs):
        pending = reviews.compute_pending(request.user)
        return Response(PendingReviewSerializer(pending, many=True).data)


class ReviewCreateView(ExchangeAPIView):
    """
    API endpoint for reviewing the other party of a completed exchange.

    POST /api/reviews/
    Request body: {
        "tradeOfferId": 123,
        "revieweeId": 7,
        "rating": 5,
        "comment": "Book was exactly as described."
    }

    Success response (201): the created review

    Error responses:
    - 400: Invalid rating or reviewee, or offer not accepted
    - 403: User is not a party to the offer
    - 404: Offer not found
    - 409: Already reviewed
    """

    def post(self, request, *args, **kwargs):
        serializer = ReviewCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        review = reviews.submit(
            data['tradeOfferId'],
            request.user,
            data['revieweeId'],
            data['rating'],
            comment=data.get('comment'),
        )

        logger.info(
            f"Review created successfully. "
            f"Reviewer: {request.user.pk}, "
            f"Offer ID: {data['tradeOfferId']}, "
            f"IP: {get_client_ip(request)}"
        )

        return Response(ReviewSerializer(review).data, status=status.HTTP_201_CREATED)


class ReviewsReceivedView(ExchangeAPIView):
    """GET /api/reviews/received/<user_id>/ - visible reviews about a user."""

    def get(self, request, *args, **kwargs):
        queryset = reviews.reviews_received(kwargs.get('user_id'))
        return Response(ReviewSerializer(queryset, many=True).data)


class ReviewsGivenView(ExchangeAPIView):
    """GET /api/reviews/given/"""

    def get(self, request, *args, **kwargs):
        queryset = reviews.reviews_given(request.user)
        return Response(ReviewSerializer(queryset, many=True).data)
