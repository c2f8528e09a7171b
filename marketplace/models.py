"""
Data model for the RentMe marketplace.

Users list items (Listing), other users request them for a date range
(Booking). A confirmed booking gets a one-to-one Chat thread, and every
state change worth knowing about lands in the recipient's Notification inbox.
"""

import math
from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.contrib.auth.models import AbstractUser
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import models
from django.utils.translation import gettext_lazy as _


class User(AbstractUser):
    """
    Marketplace user mirrored from the external identity provider.

    Additional fields:
    - clerk_id: Subject id issued by the identity provider (unique)
    - email: Required, unique email address
    - avatar: Profile picture URL hosted by the identity provider
    - created_at: Account creation timestamp
    - updated_at: Last update timestamp

    Staff accounts created through ``createsuperuser`` have no clerk_id.
    """

    clerk_id = models.CharField(
        _('identity provider id'),
        max_length=191,
        unique=True,
        null=True,
        blank=True,
        help_text=_('Subject id issued by the identity provider.')
    )

    email = models.EmailField(
        _('email address'),
        unique=True,
        error_messages={
            'unique': _('A user with that email already exists.'),
        },
    )

    avatar = models.URLField(
        _('avatar'),
        max_length=500,
        blank=True,
        default='',
        help_text=_('Profile image URL.')
    )

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)
    updated_at = models.DateTimeField(_('updated at'), auto_now=True)

    class Meta:
        verbose_name = _('user')
        verbose_name_plural = _('users')
        ordering = ['-created_at']

    def __str__(self):
        return self.email or self.username

    @property
    def display_name(self):
        full_name = f'{self.first_name} {self.last_name}'.strip()
        return full_name or self.email

    def save(self, *args, **kwargs):
        """Normalise email and default the username to the provider subject id."""
        if self.email:
            self.email = self.email.lower()
        if not self.username:
            self.username = self.clerk_id or self.email
        super().save(*args, **kwargs)


class Listing(models.Model):
    """
    An item offered for rent by its owner.

    Fields:
    - owner: User offering the item
    - title, description: Free text shown in search results
    - price: Daily rental price
    - category: Free-text category tag
    - location: Free-text pickup location
    - images: List of image URLs (hosted externally)
    - available: Whether the listing shows up in public search
    """

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='listings',
        help_text=_('User offering this item')
    )

    title = models.CharField(_('title'), max_length=200)
    description = models.TextField(_('description'), max_length=2000)

    price = models.DecimalField(
        _('price per day'),
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.01'), message=_('Price must be a positive number.'))],
    )

    category = models.CharField(_('category'), max_length=100)
    location = models.CharField(_('location'), max_length=100)
    images = models.JSONField(_('images'), default=list, blank=True)

    available = models.BooleanField(
        _('available'),
        default=True,
        help_text=_('Whether the listing can be found and booked')
    )

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)
    updated_at = models.DateTimeField(_('updated at'), auto_now=True)

    class Meta:
        verbose_name = _('listing')
        verbose_name_plural = _('listings')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['owner'], name='marketplace_owner_i_3c6e1b_idx'),
            models.Index(fields=['available'], name='marketplace_availab_8a0d2f_idx'),
            models.Index(fields=['category'], name='marketplace_categor_5f4e7a_idx'),
        ]

    def __str__(self):
        return self.title

    def clean(self):
        """
        Validate listing content.

        Raises:
            ValidationError: If a text field is blank or too short
        """
        super().clean()

        errors = {}
        if not self.title or len(self.title.strip()) < 3:
            errors['title'] = _('Title must be at least 3 characters.')
        if not self.description or len(self.description.strip()) < 10:
            errors['description'] = _('Description must be at least 10 characters.')
        elif len(self.description) > 2000:
            errors['description'] = _('Description cannot exceed 2000 characters.')
        if not self.category or not self.category.strip():
            errors['category'] = _('Category is required.')
        if not self.location or len(self.location.strip()) < 2:
            errors['location'] = _('Location must be at least 2 characters.')
        if not isinstance(self.images, list):
            errors['images'] = _('Images must be a list of URLs.')
        if errors:
            raise ValidationError(errors)

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)


class Booking(models.Model):
    """
    A renter's request to rent a listing for a date range.

    Lifecycle:
    - PENDING is the only initial state
    - The listing owner moves it to CONFIRMED, CANCELLED or COMPLETED
    - CANCELLED and COMPLETED are final
    """

    PENDING = 'PENDING'
    CONFIRMED = 'CONFIRMED'
    CANCELLED = 'CANCELLED'
    COMPLETED = 'COMPLETED'

    STATUS_CHOICES = [
        (PENDING, 'Pending'),
        (CONFIRMED, 'Confirmed'),
        (CANCELLED, 'Cancelled'),
        (COMPLETED, 'Completed'),
    ]

    # Statuses an owner may request; PENDING is never a target.
    TARGET_STATUSES = (CONFIRMED, CANCELLED, COMPLETED)

    ALLOWED_TRANSITIONS = {
        PENDING: {CONFIRMED, CANCELLED, COMPLETED},
        CONFIRMED: {CANCELLED, COMPLETED},
        CANCELLED: set(),
        COMPLETED: set(),
    }

    renter = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='bookings',
        help_text=_('User renting the item')
    )

    listing = models.ForeignKey(
        Listing,
        on_delete=models.CASCADE,
        related_name='bookings',
        help_text=_('Listing being rented')
    )

    start_date = models.DateTimeField(_('start date'))
    end_date = models.DateTimeField(_('end date'))

    total_cost = models.DecimalField(
        _('total cost'),
        max_digits=12,
        decimal_places=2,
        help_text=_('Rental days multiplied by the daily price')
    )

    message = models.TextField(_('message'), blank=True, default='')

    status = models.CharField(
        _('status'),
        max_length=20,
        choices=STATUS_CHOICES,
        default=PENDING,
    )

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)
    updated_at = models.DateTimeField(_('updated at'), auto_now=True)

    class Meta:
        verbose_name = _('booking')
        verbose_name_plural = _('bookings')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['renter'], name='marketplace_renter__9b2c4d_idx'),
            models.Index(fields=['listing'], name='marketplace_listing_1e7f3a_idx'),
            models.Index(fields=['status'], name='marketplace_status_6d8b0e_idx'),
        ]

    def __str__(self):
        return f'Booking {self.pk} of {self.listing_id} by {self.renter_id}'

    @staticmethod
    def rental_days(start_date, end_date):
        """Number of started days between two datetimes."""
        return math.ceil((end_date - start_date) / timedelta(days=1))

    @classmethod
    def calculate_total_cost(cls, start_date, end_date, daily_price):
        return Decimal(cls.rental_days(start_date, end_date)) * Decimal(daily_price)

    @property
    def owner_id(self):
        return self.listing.owner_id

    def is_party(self, user):
        """True when user is the renter or the owner of the booked listing."""
        return user.pk in (self.renter_id, self.listing.owner_id)

    def can_transition_to(self, new_status):
        """
        Validate a status change requested by the listing owner.

        Writing the current status again is accepted so that repeated
        requests stay idempotent.

        Returns:
            tuple: (is_valid: bool, error_message: str or None)
        """
        if new_status not in self.TARGET_STATUSES:
            return False, f'Invalid status. Must be one of: {", ".join(self.TARGET_STATUSES)}.'

        if self.status == new_status:
            return True, None

        if new_status in self.ALLOWED_TRANSITIONS.get(self.status, set()):
            return True, None

        return False, f'Cannot change a {self.status.lower()} booking to {new_status.lower()}.'

    def clean(self):
        """
        Validate booking invariants.

        Ensures:
        - The renter is not the owner of the listing
        - The end date is after the start date
        - The total cost is not negative
        """
        super().clean()

        if self.listing_id and self.renter_id and self.listing.owner_id == self.renter_id:
            raise ValidationError({'renter': _('Cannot book your own listing.')})

        if self.start_date and self.end_date and self.end_date <= self.start_date:
            raise ValidationError({'end_date': _('End date must be after start date.')})

        if self.total_cost is not None and self.total_cost < 0:
            raise ValidationError({'total_cost': _('Total cost cannot be negative.')})

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)


class Chat(models.Model):
    """Message thread bound one-to-one to a booking."""

    booking = models.OneToOneField(
        Booking,
        on_delete=models.CASCADE,
        related_name='chat',
    )

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)
    updated_at = models.DateTimeField(_('updated at'), auto_now=True)

    class Meta:
        verbose_name = _('chat')
        verbose_name_plural = _('chats')
        ordering = ['-updated_at']

    def __str__(self):
        return f'Chat for booking {self.booking_id}'


class Message(models.Model):
    """A single chat message. Never edited once written."""

    SENDER_OWNER = 'owner'
    SENDER_RENTER = 'renter'

    SENDER_CHOICES = [
        (SENDER_OWNER, 'Owner'),
        (SENDER_RENTER, 'Renter'),
    ]

    chat = models.ForeignKey(Chat, on_delete=models.CASCADE, related_name='messages')

    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='messages',
    )

    sender = models.CharField(_('sender role'), max_length=10, choices=SENDER_CHOICES)
    content = models.TextField(_('content'))
    created_at = models.DateTimeField(_('created at'), auto_now_add=True)

    class Meta:
        verbose_name = _('message')
        verbose_name_plural = _('messages')
        ordering = ['created_at', 'id']

    def __str__(self):
        return f'{self.sender}: {self.content[:50]}'


class Notification(models.Model):
    """In-app inbox entry for a single user."""

    TYPE_BOOKING_STATUS = 'booking_status'
    TYPE_CHAT_MESSAGE = 'chat_message'
    TYPE_REVIEW = 'review'

    TYPE_CHOICES = [
        (TYPE_BOOKING_STATUS, 'Booking status'),
        (TYPE_CHAT_MESSAGE, 'Chat message'),
        (TYPE_REVIEW, 'Review'),
    ]

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='notifications',
    )

    type = models.CharField(_('type'), max_length=30, choices=TYPE_CHOICES)
    title = models.CharField(_('title'), max_length=255)
    message = models.TextField(_('message'))

    related_id = models.PositiveBigIntegerField(
        _('related entity id'),
        null=True,
        blank=True,
        help_text=_('Id of the booking, chat or review this notification is about')
    )

    read = models.BooleanField(_('read'), default=False)
    created_at = models.DateTimeField(_('created at'), auto_now_add=True)

    class Meta:
        verbose_name = _('notification')
        verbose_name_plural = _('notifications')
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['user', 'read'], name='marketplace_user_id_4a9c2e_idx'),
        ]

    def __str__(self):
        return f'{self.type} -> {self.user_id}'


class Review(models.Model):
    """A renter's rating of a listing after a completed booking."""

    listing = models.ForeignKey(Listing, on_delete=models.CASCADE, related_name='reviews')

    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='reviews',
    )

    rating = models.PositiveSmallIntegerField(
        _('rating'),
        validators=[
            MinValueValidator(1, message=_('Rating must be at least 1.')),
            MaxValueValidator(5, message=_('Rating cannot exceed 5.')),
        ],
    )

    comment = models.TextField(_('comment'), blank=True, default='')
    created_at = models.DateTimeField(_('created at'), auto_now_add=True)

    class Meta:
        verbose_name = _('review')
        verbose_name_plural = _('reviews')
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['listing', 'author'],
                name='unique_review_per_author_listing',
            ),
        ]

    def __str__(self):
        return f'Review {self.rating}/5 of {self.listing_id} by {self.author_id}'

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)
