"""
Data model for the BookSwap exchange marketplace.
"""

from decimal import Decimal

from django.contrib.auth.models import AbstractUser
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import models
from django.utils.translation import gettext_lazy as _


class User(AbstractUser):
    """
    Marketplace user with a rolling trade reputation.

    Additional fields:
    - email: Required, unique email address
    - rating: Mean of all received review scores (0.00-5.00)
    - total_ratings: Number of reviews received
    - total_trades / successful_trades: Completed exchange counters
    - pending_reviews: Reviews this user still owes
    """

    email = models.EmailField(
        _('email address'),
        unique=True,
        blank=False,
        null=False,
        error_messages={
            'unique': _('A user with that email already exists.'),
        },
        help_text=_('Required. Enter a valid email address.')
    )

    rating = models.DecimalField(
        _('rating'),
        max_digits=3,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[
            MinValueValidator(Decimal('0.00'), message=_('Rating cannot be negative.')),
            MaxValueValidator(Decimal('5.00'), message=_('Rating cannot exceed 5.00.'))
        ],
        help_text=_('Mean of all review scores received.')
    )

    total_ratings = models.PositiveIntegerField(
        _('total ratings'),
        default=0,
        help_text=_('Number of reviews received.')
    )

    total_trades = models.PositiveIntegerField(
        _('total trades'),
        default=0,
        help_text=_('Number of completed exchanges the user took part in.')
    )

    successful_trades = models.PositiveIntegerField(
        _('successful trades'),
        default=0,
        help_text=_('Number of exchanges that ended in an accepted offer.')
    )

    pending_reviews = models.PositiveIntegerField(
        _('pending reviews'),
        default=0,
        help_text=_('Reviews this user still has to submit.')
    )

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)
    updated_at = models.DateTimeField(_('updated at'), auto_now=True)

    class Meta:
        verbose_name = _('user')
        verbose_name_plural = _('users')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['email'], name='user_email_idx'),
            models.Index(fields=['rating'], name='user_rating_idx'),
        ]

    def __str__(self):
        """Return email as string representation."""
        return self.email or self.username

    def save(self, *args, **kwargs):
        # Case-insensitive uniqueness
        if self.email:
            self.email = self.email.lower()
        super().save(*args, **kwargs)


class Listing(models.Model):
    """
    A book offered for exchange.

    Listing content is owned by `owner`. Status moves to `completed` or
    `removed` only through the exchange core; `version` is bumped on every
    guarded write so concurrent offer creation serializes on the row.
    """

    STATUS_ACTIVE = 'active'
    STATUS_PENDING = 'pending'
    STATUS_COMPLETED = 'completed'
    STATUS_REMOVED = 'removed'

    STATUS_CHOICES = [
        (STATUS_ACTIVE, 'Active'),
        (STATUS_PENDING, 'Pending'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_REMOVED, 'Removed'),
    ]

    CONDITION_CHOICES = [
        ('new', 'New'),
        ('very_good', 'Very Good'),
        ('good', 'Good'),
        ('fair', 'Fair'),
    ]

    owner = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='listings',
        help_text=_('User offering this book')
    )

    book_title = models.CharField(_('book title'), max_length=255)
    author = models.CharField(_('author'), max_length=255)
    isbn = models.CharField(_('ISBN'), max_length=20, blank=True, default='')
    category = models.CharField(_('category'), max_length=100)
    condition = models.CharField(_('condition'), max_length=20, choices=CONDITION_CHOICES)
    description = models.TextField(_('description'), max_length=1000, blank=True, default='')

    status = models.CharField(
        _('status'),
        max_length=20,
        choices=STATUS_CHOICES,
        default=STATUS_ACTIVE,
        help_text=_('Availability of the listing')
    )

    offer_count = models.PositiveIntegerField(
        _('offer count'),
        default=0,
        help_text=_('Number of offers received')
    )

    completed_trade_offer = models.OneToOneField(
        'TradeOffer',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='completed_listing',
        help_text=_('Offer that completed this listing')
    )

    completed_date = models.DateTimeField(_('completed date'), null=True, blank=True)

    version = models.PositiveIntegerField(
        _('version'),
        default=0,
        help_text=_('Optimistic concurrency token')
    )

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)
    updated_at = models.DateTimeField(_('updated at'), auto_now=True)

    class Meta:
        verbose_name = _('listing')
        verbose_name_plural = _('listings')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'category'], name='listing_status_category_idx'),
            models.Index(fields=['owner', 'status'], name='listing_owner_status_idx'),
        ]

    def __str__(self):
        return f"{self.book_title} by {self.author}"

    def clean(self):
        """
        Validate model fields.

        Raises:
            ValidationError: If title or author is blank
        """
        super().clean()

        if not self.book_title or not self.book_title.strip():
            raise ValidationError({
                'book_title': _('Book title cannot be empty.')
            })

        if not self.author or not self.author.strip():
            raise ValidationError({
                'author': _('Author cannot be empty.')
            })

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)

    def is_available(self):
        """Return True while the listing can receive offers."""
        return self.status == self.STATUS_ACTIVE


class TradeOffer(models.Model):
    """
    A proposal to exchange a described book for another user's listing.

    The negotiation runs through a fixed transition table:

        pending -> chat_accepted -> accepted
        pending | chat_accepted -> rejected    (recipient rejects)
        pending | chat_accepted -> cancelled   (proposer cancels)
        pending | chat_accepted -> rejected    (proposer archives)

    `accepted`, `rejected` and `cancelled` are terminal.
    """

    STATUS_PENDING = 'pending'
    STATUS_CHAT_ACCEPTED = 'chat_accepted'
    STATUS_ACCEPTED = 'accepted'
    STATUS_REJECTED = 'rejected'
    STATUS_CANCELLED = 'cancelled'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_CHAT_ACCEPTED, 'Chat Accepted'),
        (STATUS_ACCEPTED, 'Accepted'),
        (STATUS_REJECTED, 'Rejected'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    ACTIVE_STATUSES = (STATUS_PENDING, STATUS_CHAT_ACCEPTED)
    TERMINAL_STATUSES = (STATUS_ACCEPTED, STATUS_REJECTED, STATUS_CANCELLED)

    ROLE_PROPOSER = 'from_user'
    ROLE_RECIPIENT = 'to_user'

    ACTION_ACCEPT_CHAT = 'accept_chat'
    ACTION_ACCEPT_OFFER = 'accept_offer'
    ACTION_REJECT = 'reject'
    ACTION_CANCEL = 'cancel'
    ACTION_ARCHIVE = 'archive'

    # action -> (required actor role, allowed prior statuses, next status)
    TRANSITIONS = {
        ACTION_ACCEPT_CHAT: (ROLE_RECIPIENT, (STATUS_PENDING,), STATUS_CHAT_ACCEPTED),
        ACTION_ACCEPT_OFFER: (ROLE_RECIPIENT, (STATUS_CHAT_ACCEPTED,), STATUS_ACCEPTED),
        ACTION_REJECT: (ROLE_RECIPIENT, ACTIVE_STATUSES, STATUS_REJECTED),
        ACTION_CANCEL: (ROLE_PROPOSER, ACTIVE_STATUSES, STATUS_CANCELLED),
        ACTION_ARCHIVE: (ROLE_PROPOSER, ACTIVE_STATUSES, STATUS_REJECTED),
    }

    from_user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='offers_sent',
        help_text=_('User proposing the exchange')
    )

    to_user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='offers_received',
        help_text=_('Owner of the target listing')
    )

    target_listing = models.ForeignKey(
        Listing,
        on_delete=models.CASCADE,
        related_name='offers',
        help_text=_('Listing the offer is made against')
    )

    offered_book = models.JSONField(
        _('offered book'),
        default=dict,
        help_text=_('Description of the book offered in exchange')
    )

    message = models.TextField(_('message'), max_length=1000, blank=True, default='')

    status = models.CharField(
        _('status'),
        max_length=20,
        choices=STATUS_CHOICES,
        default=STATUS_PENDING
    )

    chat_accepted_date = models.DateTimeField(_('chat accepted date'), null=True, blank=True)
    response_message = models.TextField(_('response message'), max_length=1000, blank=True, default='')
    response_date = models.DateTimeField(_('response date'), null=True, blank=True)
    completed_date = models.DateTimeField(_('completed date'), null=True, blank=True)

    archived_by_user = models.BooleanField(
        _('archived by user'),
        default=False,
        help_text=_('Set when the proposer withdrew the offer through archive')
    )

    conversation = models.OneToOneField(
        'Conversation',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='trade_offer',
        help_text=_('Chat opened when the chat stage was accepted')
    )

    from_user_reviewed = models.BooleanField(default=False)
    to_user_reviewed = models.BooleanField(default=False)
    both_reviewed = models.BooleanField(default=False)

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)
    updated_at = models.DateTimeField(_('updated at'), auto_now=True)

    class Meta:
        verbose_name = _('trade offer')
        verbose_name_plural = _('trade offers')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['from_user', 'status'], name='offer_from_status_idx'),
            models.Index(fields=['to_user', 'status'], name='offer_to_status_idx'),
            models.Index(fields=['target_listing', 'status'], name='offer_listing_status_idx'),
        ]
        constraints = [
            # Ignored by MySQL; the listing row lock covers that backend
            models.UniqueConstraint(
                fields=['target_listing'],
                condition=models.Q(status__in=['pending', 'chat_accepted']),
                name='unique_active_offer_per_listing'
            )
        ]

    def __str__(self):
        title = (self.offered_book or {}).get('bookTitle', '?')
        return f"Offer #{self.pk}: {title} -> listing {self.target_listing_id} ({self.status})"

    def clean(self):
        """
        Validate the offer parties.

        Ensures:
        - Proposer and recipient are different users
        - Recipient owns the target listing
        """
        super().clean()

        if self.from_user_id and self.to_user_id and self.from_user_id == self.to_user_id:
            raise ValidationError({
                'from_user': _('You cannot make an offer on your own listing.')
            })

        if self.target_listing_id and self.to_user_id:
            if self.target_listing.owner_id != self.to_user_id:
                raise ValidationError({
                    'to_user': _('Offer recipient must be the listing owner.')
                })

    def save(self, *args, **kwargs):
        if not self.pk:
            self.clean()
        super().save(*args, **kwargs)

    def is_active(self):
        return self.status in self.ACTIVE_STATUSES

    def is_party(self, user_id):
        return user_id in (self.from_user_id, self.to_user_id)

    def role_of(self, user_id):
        """
        Return the role `user_id` plays in this offer.

        Returns:
            str or None: ROLE_PROPOSER, ROLE_RECIPIENT, or None for third parties
        """
        if user_id == self.from_user_id:
            return self.ROLE_PROPOSER
        if user_id == self.to_user_id:
            return self.ROLE_RECIPIENT
        return None

    def counterpart_id(self, user_id):
        """Return the id of the other party, or None if `user_id` is not a party."""
        if user_id == self.from_user_id:
            return self.to_user_id
        if user_id == self.to_user_id:
            return self.from_user_id
        return None

    def can_transition(self, action):
        """
        Check whether `action` is allowed from the current status.

        Args:
            action: One of the keys of TRANSITIONS

        Returns:
            tuple: (is_valid: bool, error_message: str or None)
        """
        if action not in self.TRANSITIONS:
            return False, f'Unknown offer action: {action}.'

        _role, allowed, _next_status = self.TRANSITIONS[action]

        if self.status in allowed:
            return True, None

        if action == self.ACTION_ACCEPT_OFFER and self.status == self.STATUS_PENDING:
            return False, 'The chat must be accepted before the offer can be accepted.'

        if action == self.ACTION_ARCHIVE and self.status == self.STATUS_ACCEPTED:
            return False, 'Accepted offers cannot be archived.'

        if self.status in self.TERMINAL_STATUSES:
            return False, f'This offer is already {self.status}.'

        return False, f'Cannot {action.replace("_", " ")} an offer that is {self.status}.'


class Conversation(models.Model):
    """
    Chat channel scoped to exactly one trade offer and its two parties.

    Opened when the chat stage is accepted and ended once, when the offer
    leaves the chat stage. New messages are accepted only while active.
    """

    STATUS_ACTIVE = 'active'
    STATUS_ENDED = 'ended'

    STATUS_CHOICES = [
        (STATUS_ACTIVE, 'Active'),
        (STATUS_ENDED, 'Ended'),
    ]

    END_OFFER_ACCEPTED = 'offer_accepted'
    END_OFFER_REJECTED = 'offer_rejected'
    END_OFFER_ARCHIVED = 'offer_archived'
    END_OFFER_CANCELLED = 'offer_cancelled'

    END_REASON_CHOICES = [
        (END_OFFER_ACCEPTED, 'Offer accepted'),
        (END_OFFER_REJECTED, 'Offer rejected'),
        (END_OFFER_ARCHIVED, 'Offer archived'),
        (END_OFFER_CANCELLED, 'Offer cancelled'),
    ]

    participants = models.ManyToManyField(
        User,
        related_name='conversations',
        help_text=_('The two parties of the trade offer')
    )

    listing = models.ForeignKey(
        Listing,
        on_delete=models.CASCADE,
        related_name='conversations'
    )

    status = models.CharField(
        _('status'),
        max_length=10,
        choices=STATUS_CHOICES,
        default=STATUS_ACTIVE
    )

    end_reason = models.CharField(
        _('end reason'),
        max_length=20,
        choices=END_REASON_CHOICES,
        blank=True,
        default=''
    )

    ended_at = models.DateTimeField(_('ended at'), null=True, blank=True)
    last_message_at = models.DateTimeField(_('last message at'), auto_now_add=True)

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)
    updated_at = models.DateTimeField(_('updated at'), auto_now=True)

    class Meta:
        verbose_name = _('conversation')
        verbose_name_plural = _('conversations')
        ordering = ['-last_message_at']
        indexes = [
            models.Index(fields=['status'], name='conversation_status_idx'),
            models.Index(fields=['last_message_at'], name='conversation_last_msg_idx'),
        ]

    def __str__(self):
        return f"Conversation #{self.pk} on listing {self.listing_id} ({self.status})"

    def is_active(self):
        return self.status == self.STATUS_ACTIVE

    def has_participant(self, user_id):
        return self.participants.filter(pk=user_id).exists()


class Message(models.Model):
    """A single chat message; immutable apart from its read state."""

    TYPE_USER = 'user'
    TYPE_SYSTEM = 'system'

    MESSAGE_TYPE_CHOICES = [
        (TYPE_USER, 'User'),
        (TYPE_SYSTEM, 'System'),
    ]

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name='messages'
    )

    sender = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='messages_sent'
    )

    content = models.TextField(_('content'), max_length=2000)

    message_type = models.CharField(
        _('message type'),
        max_length=10,
        choices=MESSAGE_TYPE_CHOICES,
        default=TYPE_USER
    )

    is_read = models.BooleanField(_('is read'), default=False)
    read_at = models.DateTimeField(_('read at'), null=True, blank=True)
    created_at = models.DateTimeField(_('created at'), auto_now_add=True)

    class Meta:
        verbose_name = _('message')
        verbose_name_plural = _('messages')
        ordering = ['created_at', 'id']
        indexes = [
            models.Index(fields=['conversation', 'created_at'], name='message_conv_created_idx'),
            models.Index(fields=['conversation', 'is_read'], name='message_conv_read_idx'),
        ]

    def __str__(self):
        return f"{self.sender_id}: {self.content[:30]}"


class Notification(models.Model):
    """Persisted notification record; pushed live to the recipient when connected."""

    TYPE_NEW_OFFER = 'new_offer'
    TYPE_OFFER_CHAT_ACCEPTED = 'offer_chat_accepted'
    TYPE_OFFER_ACCEPTED = 'offer_accepted'
    TYPE_OFFER_REJECTED = 'offer_rejected'
    TYPE_OFFER_CANCELLED = 'offer_cancelled'
    TYPE_NEW_MESSAGE = 'new_message'
    TYPE_CONVERSATION_ENDED = 'conversation_ended'
    TYPE_REVIEW_REQUIRED = 'review_required'
    TYPE_REVIEW_RECEIVED = 'review_received'
    # Sent by listing management, never by the offer lifecycle
    TYPE_LISTING_CREATED = 'listing_created'

    TYPE_CHOICES = [
        (TYPE_NEW_OFFER, 'New offer'),
        (TYPE_OFFER_CHAT_ACCEPTED, 'Offer chat accepted'),
        (TYPE_OFFER_ACCEPTED, 'Offer accepted'),
        (TYPE_OFFER_REJECTED, 'Offer rejected'),
        (TYPE_OFFER_CANCELLED, 'Offer cancelled'),
        (TYPE_NEW_MESSAGE, 'New message'),
        (TYPE_CONVERSATION_ENDED, 'Conversation ended'),
        (TYPE_REVIEW_REQUIRED, 'Review required'),
        (TYPE_REVIEW_RECEIVED, 'Review received'),
        (TYPE_LISTING_CREATED, 'Listing created'),
    ]

    PRIORITY_LOW = 'low'
    PRIORITY_MEDIUM = 'medium'
    PRIORITY_HIGH = 'high'

    PRIORITY_CHOICES = [
        (PRIORITY_LOW, 'Low'),
        (PRIORITY_MEDIUM, 'Medium'),
        (PRIORITY_HIGH, 'High'),
    ]

    # Keys allowed in `data`
    DATA_KEYS = ('listingId', 'offerId', 'conversationId', 'reviewId')

    recipient = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='notifications'
    )

    sender = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='notifications_sent',
        help_text=_('Empty for system notifications')
    )

    type = models.CharField(_('type'), max_length=30, choices=TYPE_CHOICES)
    title = models.CharField(_('title'), max_length=100)
    message = models.CharField(_('message'), max_length=500)
    data = models.JSONField(_('data'), default=dict, blank=True)

    priority = models.CharField(
        _('priority'),
        max_length=10,
        choices=PRIORITY_CHOICES,
        default=PRIORITY_MEDIUM
    )

    is_read = models.BooleanField(_('is read'), default=False)
    read_at = models.DateTimeField(_('read at'), null=True, blank=True)
    created_at = models.DateTimeField(_('created at'), auto_now_add=True)

    class Meta:
        verbose_name = _('notification')
        verbose_name_plural = _('notifications')
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['recipient', 'is_read', 'created_at'], name='notif_recipient_read_idx'),
            models.Index(fields=['type'], name='notif_type_idx'),
            models.Index(fields=['created_at'], name='notif_created_idx'),
        ]

    def __str__(self):
        return f"{self.type} -> {self.recipient_id}: {self.title}"


class Review(models.Model):
    """
    Post-trade review, one per (trade offer, reviewer).

    Reviewer and reviewee must be the two parties of an accepted offer.
    """

    trade_offer = models.ForeignKey(
        TradeOffer,
        on_delete=models.CASCADE,
        related_name='reviews'
    )

    reviewer = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='reviews_given'
    )

    reviewee = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='reviews_received'
    )

    rating = models.PositiveSmallIntegerField(
        _('rating'),
        validators=[
            MinValueValidator(1, message=_('Rating must be at least 1.')),
            MaxValueValidator(5, message=_('Rating must be at most 5.'))
        ],
        help_text=_('Rating from 1 to 5 stars')
    )

    comment = models.TextField(_('comment'), max_length=500, blank=True, default='')

    is_visible = models.BooleanField(_('is visible'), default=True)

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)
    updated_at = models.DateTimeField(_('updated at'), auto_now=True)

    class Meta:
        verbose_name = _('review')
        verbose_name_plural = _('reviews')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['reviewee', 'is_visible'], name='review_reviewee_visible_idx'),
            models.Index(fields=['reviewer'], name='review_reviewer_idx'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['trade_offer', 'reviewer'],
                name='unique_review_per_offer_reviewer'
            )
        ]

    def __str__(self):
        return f"Review by {self.reviewer_id} for {self.reviewee_id} - {self.rating}★"

    def save(self, *args, **kwargs):
        """
        Validate the review on creation.

        full_clean() is not called so that the unique constraint surfaces
        as IntegrityError.
        """
        if not self.pk:
            if self.reviewer_id and self.reviewee_id and self.reviewer_id == self.reviewee_id:
                raise ValidationError({
                    'reviewee': _('Reviewer and reviewee cannot be the same user.')
                })

            offer = self.trade_offer
            if offer.status != TradeOffer.STATUS_ACCEPTED:
                raise ValidationError({
                    'trade_offer': _('Only accepted offers can be reviewed.')
                })

            if offer.counterpart_id(self.reviewer_id) != self.reviewee_id:
                raise ValidationError({
                    'reviewee': _('Reviewee must be the other party of the offer.')
                })

            if self.rating is None or not 1 <= self.rating <= 5:
                raise ValidationError({
                    'rating': _('Rating must be between 1 and 5.')
                })

        super().save(*args, **kwargs)
