"""
URL configuration for bookswap_marketplace project.
"""
from django.contrib import admin
from django.urls import path
from rest_framework_simplejwt.views import (
    TokenObtainPairView,
    TokenRefreshView,
    TokenVerifyView,
    TokenBlacklistView,
)
from exchange.views import (
    OfferCreateView,
    OffersReceivedView,
    OffersSentView,
    OfferDetailView,
    OfferActionView,
    ListingRemoveView,
    ConversationListView,
    ConversationDetailView,
    MessageCreateView,
    MessageMarkReadView,
    NotificationListView,
    NotificationUnreadCountView,
    NotificationMarkReadView,
    NotificationMarkAllReadView,
    PendingReviewsView,
    ReviewCreateView,
    ReviewsReceivedView,
    ReviewsGivenView,
)


urlpatterns = [
    path('admin/', admin.site.urls),

    # Authentication endpoints
    path('api/token/', TokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('api/token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),
    path('api/token/verify/', TokenVerifyView.as_view(), name='token_verify'),
    path('api/token/blacklist/', TokenBlacklistView.as_view(), name='token_blacklist'),

    # Trade offer endpoints
    path('api/offers/', OfferCreateView.as_view(), name='offer_create'),
    path('api/offers/received/', OffersReceivedView.as_view(), name='offers_received'),
    path('api/offers/sent/', OffersSentView.as_view(), name='offers_sent'),
    path('api/offers/<int:pk>/', OfferDetailView.as_view(), name='offer_detail'),
    path('api/offers/<int:pk>/accept-chat/', OfferActionView.as_view(operation='accept_chat'), name='offer_accept_chat'),
    path('api/offers/<int:pk>/accept-offer/', OfferActionView.as_view(operation='accept_offer'), name='offer_accept_offer'),
    path('api/offers/<int:pk>/reject/', OfferActionView.as_view(operation='reject'), name='offer_reject'),
    path('api/offers/<int:pk>/cancel/', OfferActionView.as_view(operation='cancel'), name='offer_cancel'),
    path('api/offers/<int:pk>/archive/', OfferActionView.as_view(operation='archive'), name='offer_archive'),

    # Listing endpoints
    path('api/listings/<int:pk>/remove/', ListingRemoveView.as_view(), name='listing_remove'),

    # Conversation endpoints
    path('api/conversations/', ConversationListView.as_view(), name='conversation_list'),
    path('api/conversations/<int:pk>/', ConversationDetailView.as_view(), name='conversation_detail'),
    path('api/conversations/<int:pk>/messages/', MessageCreateView.as_view(), name='message_create'),
    path('api/conversations/<int:pk>/messages/read/', MessageMarkReadView.as_view(), name='message_mark_read'),

    # Notification endpoints
    path('api/notifications/', NotificationListView.as_view(), name='notification_list'),
    path('api/notifications/unread-count/', NotificationUnreadCountView.as_view(), name='notification_unread_count'),
    path('api/notifications/mark-read/', NotificationMarkReadView.as_view(), name='notification_mark_read'),
    path('api/notifications/mark-all-read/', NotificationMarkAllReadView.as_view(), name='notification_mark_all_read'),

    # Review endpoints
    path('api/reviews/', ReviewCreateView.as_view(), name='review_create'),
    path('api/reviews/pending/', PendingReviewsView.as_view(), name='reviews_pending'),
    path('api/reviews/received/<int:user_id>/', ReviewsReceivedView.as_view(), name='reviews_received'),
    path('api/reviews/given/', ReviewsGivenView.as_view(), name='reviews_given'),
]
