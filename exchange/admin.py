"""
Django admin configuration for the exchange app.

Listings are created here (or by the seeding script). Offer, conversation
and review state is read-only: it only changes through the exchange core.
"""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.utils.translation import gettext_lazy as _

from .models import Conversation, Listing, Message, Notification, Review, TradeOffer, User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """
    Custom admin interface for User model.

    Extends Django's UserAdmin with the reputation counters.
    """

    list_display = [
        'email',
        'username',
        'rating',
        'total_ratings',
        'successful_trades',
        'pending_reviews',
        'is_staff',
        'is_active',
        'created_at',
    ]

    list_filter = [
        'is_staff',
        'is_superuser',
        'is_active',
        'created_at',
    ]

    search_fields = [
        'email',
        'username',
        'first_name',
        'last_name',
    ]

    ordering = ['-created_at']

    fieldsets = (
        (None, {
            'fields': ('username', 'password')
        }),
        (_('Personal Info'), {
            'fields': ('first_name', 'last_name', 'email')
        }),
        (_('Reputation'), {
            'fields': (
                'rating',
                'total_ratings',
                'total_trades',
                'successful_trades',
                'pending_reviews',
            )
        }),
        (_('Permissions'), {
            'fields': (
                'is_active',
                'is_staff',
                'is_superuser',
                'groups',
                'user_permissions',
            ),
            'classes': ('collapse',),
        }),
        (_('Important Dates'), {
            'fields': ('last_login', 'date_joined', 'created_at', 'updated_at'),
            'classes': ('collapse',),
        }),
    )

    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': ('username', 'email', 'password1', 'password2'),
        }),
    )

    readonly_fields = [
        'rating', 'total_ratings', 'total_trades', 'successful_trades',
        'pending_reviews', 'created_at', 'updated_at', 'last_login', 'date_joined',
    ]

    list_per_page = 25

    def get_readonly_fields(self, request, obj=None):
        if obj:  # Editing an existing object
            return self.readonly_fields
        return []


@admin.register(Listing)
class ListingAdmin(admin.ModelAdmin):
    """Admin interface for Listing model."""

    list_display = ['id', 'book_title', 'author', 'owner', 'category', 'condition', 'status', 'offer_count', 'created_at']
    list_filter = ['status', 'condition', 'category', 'created_at']
    search_fields = ['book_title', 'author', 'isbn', 'owner__email', 'owner__username']
    readonly_fields = ['status', 'offer_count', 'completed_trade_offer', 'completed_date', 'version', 'created_at', 'updated_at']
    ordering = ['-created_at']
    date_hierarchy = 'created_at'
    list_per_page = 25

    fieldsets = (
        (None, {
            'fields': ('owner', 'book_title', 'author', 'isbn')
        }),
        (_('Details'), {
            'fields': ('category', 'condition', 'description')
        }),
        (_('Availability'), {
            'fields': ('status', 'offer_count', 'completed_trade_offer', 'completed_date', 'version')
        }),
        (_('Timestamps'), {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',),
        }),
    )


class ReadOnlyAdmin(admin.ModelAdmin):
    """Base admin for records owned by the exchange lifecycle."""

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False


@admin.register(TradeOffer)
class TradeOfferAdmin(ReadOnlyAdmin):
    list_display = ['id', 'from_user', 'to_user', 'target_listing', 'status', 'archived_by_user', 'both_reviewed', 'created_at']
    list_filter = ['status', 'archived_by_user', 'both_reviewed', 'created_at']
    search_fields = ['from_user__email', 'to_user__email', 'target_listing__book_title']
    ordering = ['-created_at']
    date_hierarchy = 'created_at'
    list_per_page = 25


class MessageInline(admin.TabularInline):
    model = Message
    extra = 0
    fields = ['sender', 'message_type', 'content', 'is_read', 'created_at']
    readonly_fields = fields
    can_delete = False


@admin.register(Conversation)
class ConversationAdmin(ReadOnlyAdmin):
    list_display = ['id', 'listing', 'status', 'end_reason', 'last_message_at', 'created_at']
    list_filter = ['status', 'end_reason']
    ordering = ['-last_message_at']
    inlines = [MessageInline]
    list_per_page = 25


@admin.register(Notification)
class NotificationAdmin(ReadOnlyAdmin):
    list_display = ['id', 'recipient', 'type', 'title', 'priority', 'is_read', 'created_at']
    list_filter = ['type', 'priority', 'is_read', 'created_at']
    search_fields = ['recipient__email', 'title', 'message']
    ordering = ['-created_at']
    list_per_page = 50


@admin.register(Review)
class ReviewAdmin(admin.ModelAdmin):
    """Admin interface for Review model; only visibility is editable."""

    list_display = ['id', 'reviewer', 'reviewee', 'trade_offer', 'rating', 'is_visible', 'created_at']
    list_filter = ['rating', 'is_visible', 'created_at']
    search_fields = ['reviewer__email', 'reviewee__email', 'comment']
    readonly_fields = ['trade_offer', 'reviewer', 'reviewee', 'rating', 'comment', 'created_at', 'updated_at']
    ordering = ['-created_at']
    date_hierarchy = 'created_at'
    list_per_page = 25

    fieldsets = (
        (None, {
            'fields': ('trade_offer', 'reviewer', 'reviewee')
        }),
        (_('Review Content'), {
            'fields': ('rating', 'comment', 'is_visible')
        }),
        (_('Timestamps'), {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',),
        }),
    )

    def has_add_permission(self, request):
        return False
