"""
Serializers for listings, bookings, chats, notifications, reviews and users.
"""

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db.models import Avg, Count
from rest_framework import serializers

from .models import Booking, Chat, Listing, Message, Notification, Review

User = get_user_model()

DATE_INPUT_FORMATS = ['iso-8601', '%Y-%m-%d']


class CamelCaseAliasMixin:
    """
    Accept camelCase request keys for the listed fields.

    ``field_aliases`` maps incoming camelCase names onto serializer field
    names. A snake_case key, when also present, wins.
    """

    field_aliases = {}

    def to_internal_value(self, data):
        if hasattr(data, 'items'):
            data = {key: value for key, value in data.items()}
            for alias, field_name in self.field_aliases.items():
                if alias in data and field_name not in data:
                    data[field_name] = data.pop(alias)
        return super().to_internal_value(data)


# ============================================================================
# Users
# ============================================================================

class UserSummarySerializer(serializers.ModelSerializer):
    """Public identity of a user embedded in other payloads."""

    class Meta:
        model = User
        fields = ['id', 'first_name', 'last_name', 'avatar']
        read_only_fields = fields


class UserProfileSerializer(serializers.ModelSerializer):
    """
    Serializer for the authenticated user's own profile.

    Includes the five most recent listings and bookings.
    """

    recent_listings = serializers.SerializerMethodField()
    recent_bookings = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = [
            'id', 'clerk_id', 'email', 'first_name', 'last_name', 'avatar',
            'created_at', 'updated_at', 'recent_listings', 'recent_bookings',
        ]
        read_only_fields = fields

    def get_recent_listings(self, obj):
        listings = obj.listings.order_by('-created_at')[:5]
        return ListingSummarySerializer(listings, many=True).data

    def get_recent_bookings(self, obj):
        bookings = obj.bookings.select_related('listing', 'listing__owner').order_by('-created_at')[:5]
        return BookingSerializer(bookings, many=True).data


class UserProfileUpdateSerializer(serializers.ModelSerializer):
    """
    Profile fields a user may change locally.

    Email and identity-provider id are owned by the identity provider and
    arrive through the webhook only.
    """

    class Meta:
        model = User
        fields = ['first_name', 'last_name', 'avatar']
        extra_kwargs = {
            'first_name': {'required': False},
            'last_name': {'required': False},
            'avatar': {'required': False},
        }

    def validate_first_name(self, value):
        return value.strip()

    def validate_last_name(self, value):
        return value.strip()


class PublicUserSerializer(serializers.ModelSerializer):
    """
    Public profile: available listings and the average rating received
    across all of the user's listings.
    """

    listings = serializers.SerializerMethodField()
    average_rating = serializers.SerializerMethodField()
    total_reviews = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = [
            'id', 'first_name', 'last_name', 'avatar', 'created_at',
            'listings', 'average_rating', 'total_reviews',
        ]
        read_only_fields = fields

    def _rating_stats(self, obj):
        if not hasattr(obj, '_rating_stats'):
            obj._rating_stats = Review.objects.filter(listing__owner=obj).aggregate(
                average=Avg('rating'),
                total=Count('id'),
            )
        return obj._rating_stats

    def get_listings(self, obj):
        listings = obj.listings.filter(available=True).order_by('-created_at')
        return ListingSummarySerializer(listings, many=True).data

    def get_average_rating(self, obj):
        average = self._rating_stats(obj)['average']
        return round(float(average), 2) if average is not None else None

    def get_total_reviews(self, obj):
        return self._rating_stats(obj)['total']


# ============================================================================
# Listings
# ============================================================================

class ListingSummarySerializer(serializers.ModelSerializer):
    """Compact listing embedded in bookings, chats and profiles."""

    owner = UserSummarySerializer(read_only=True)

    class Meta:
        model = Listing
        fields = ['id', 'title', 'price', 'category', 'location', 'images', 'available', 'owner']
        read_only_fields = fields


class ListingSerializer(serializers.ModelSerializer):
    """
    Serializer for creating, updating and showing listings.

    Fields:
    - title: Required, 3-200 characters
    - description: Required, 10-2000 characters
    - price: Required, daily price greater than 0
    - category, location: Required free text
    - images: Optional list of URLs; a placeholder is stored when empty
    - available: Optional, defaults to True

    Read-only fields:
    - id, owner, average_rating, review_count, created_at, updated_at
    """

    owner = UserSummarySerializer(read_only=True)
    images = serializers.ListField(child=serializers.URLField(max_length=500), required=False)
    average_rating = serializers.SerializerMethodField()
    review_count = serializers.SerializerMethodField()

    class Meta:
        model = Listing
        fields = [
            'id', 'owner', 'title', 'description', 'price', 'category',
            'location', 'images', 'available', 'average_rating',
            'review_count', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'owner', 'average_rating', 'review_count', 'created_at', 'updated_at']

    def validate_title(self, value):
        value = value.strip()
        if len(value) < 3:
            raise serializers.ValidationError("Title must be at least 3 characters.")
        return value

    def validate_description(self, value):
        value = value.strip()
        if len(value) < 10:
            raise serializers.ValidationError("Description must be at least 10 characters.")
        return value

    def validate_price(self, value):
        if value <= 0:
            raise serializers.ValidationError("Price must be a positive number.")
        return value

    def validate_category(self, value):
        if not value.strip():
            raise serializers.ValidationError("Category is required.")
        return value.strip()

    def validate_location(self, value):
        value = value.strip()
        if len(value) < 2:
            raise serializers.ValidationError("Location must be at least 2 characters.")
        return value

    def create(self, validated_data):
        if not validated_data.get('images'):
            validated_data['images'] = [settings.RENTME['PLACEHOLDER_IMAGE']]
        return super().create(validated_data)

    def get_average_rating(self, obj):
        average = getattr(obj, 'average_rating', None)
        if average is None:
            average = obj.reviews.aggregate(average=Avg('rating'))['average']
        return round(float(average), 2) if average is not None else None

    def get_review_count(self, obj):
        count = getattr(obj, 'review_count', None)
        if count is None:
            count = obj.reviews.count()
        return count


# ============================================================================
# Bookings
# ============================================================================

class BookingSerializer(serializers.ModelSerializer):
    """Booking as returned to renters and owners."""

    listing = ListingSummarySerializer(read_only=True)
    renter = UserSummarySerializer(read_only=True)
    chat_id = serializers.SerializerMethodField()

    class Meta:
        model = Booking
        fields = [
            'id', 'listing', 'renter', 'start_date', 'end_date', 'total_cost',
            'message', 'status', 'chat_id', 'created_at', 'updated_at',
        ]
        read_only_fields = fields

    def get_chat_id(self, obj):
        chat = Chat.objects.filter(booking=obj).only('id').first()
        return chat.id if chat else None


class BookingCreateSerializer(CamelCaseAliasMixin, serializers.Serializer):
    """
    Input for a booking request.

    Accepts ``listingId``, ``startDate`` and ``endDate`` as well as their
    snake_case forms. Dates may be full ISO-8601 datetimes or plain dates.
    """

    field_aliases = {
        'listingId': 'listing_id',
        'startDate': 'start_date',
        'endDate': 'end_date',
    }

    listing_id = serializers.IntegerField(min_value=1)
    start_date = serializers.DateTimeField(input_formats=DATE_INPUT_FORMATS)
    end_date = serializers.DateTimeField(input_formats=DATE_INPUT_FORMATS)
    message = serializers.CharField(required=False, allow_blank=True, default='', max_length=2000)

    def validate(self, attrs):
        if attrs['end_date'] <= attrs['start_date']:
            raise serializers.ValidationError({
                'end_date': 'End date must be after start date.'
            })
        return attrs


class BookingStatusUpdateSerializer(serializers.Serializer):
    """Requested target status; the transition rules live on the model."""

    status = serializers.CharField(max_length=20)

    def validate_status(self, value):
        value = value.strip().upper()
        if value not in Booking.TARGET_STATUSES:
            raise serializers.ValidationError(
                f"Invalid status. Must be one of: {', '.join(Booking.TARGET_STATUSES)}."
            )
        return value


# ============================================================================
# Chat
# ============================================================================

class MessageSerializer(serializers.ModelSerializer):
    author = UserSummarySerializer(read_only=True)

    class Meta:
        model = Message
        fields = ['id', 'chat', 'author', 'sender', 'content', 'created_at']
        read_only_fields = fields


class MessageCreateSerializer(serializers.Serializer):
    content = serializers.CharField(
        max_length=5000,
        error_messages={
            'required': 'Message content is required',
            'blank': 'Message content is required',
            'null': 'Message content is required',
        },
    )


class ChatSerializer(serializers.ModelSerializer):
    """A chat with its booking and all messages, oldest first."""

    booking = BookingSerializer(read_only=True)
    messages = serializers.SerializerMethodField()

    class Meta:
        model = Chat
        fields = ['id', 'booking', 'messages', 'created_at', 'updated_at']
        read_only_fields = fields

    def get_messages(self, obj):
        messages = obj.messages.select_related('author').order_by('created_at', 'id')
        return MessageSerializer(messages, many=True).data


class ChatListSerializer(serializers.ModelSerializer):
    """Chat overview row with the latest message as preview."""

    booking = BookingSerializer(read_only=True)
    last_message = serializers.SerializerMethodField()

    class Meta:
        model = Chat
        fields = ['id', 'booking', 'last_message', 'created_at', 'updated_at']
        read_only_fields = fields

    def get_last_message(self, obj):
        message = obj.messages.select_related('author').order_by('-created_at', '-id').first()
        return MessageSerializer(message).data if message else None


# ============================================================================
# Notifications
# ============================================================================

class NotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Notification
        fields = ['id', 'type', 'title', 'message', 'related_id', 'read', 'created_at']
        read_only_fields = fields


# ============================================================================
# Reviews
# ============================================================================

class ReviewSerializer(serializers.ModelSerializer):
    author = UserSummarySerializer(read_only=True)

    class Meta:
        model = Review
        fields = ['id', 'listing', 'author', 'rating', 'comment', 'created_at']
        read_only_fields = fields


class ReviewCreateSerializer(CamelCaseAliasMixin, serializers.Serializer):
    """
    Input for reviewing a listing.

    Fields:
    - listing_id (or listingId): Required, listing being reviewed
    - rating: Required, integer from 1-5
    - comment: Optional text feedback
    """

    field_aliases = {'listingId': 'listing_id'}

    listing_id = serializers.IntegerField(min_value=1)
    rating = serializers.IntegerField()
    comment = serializers.CharField(required=False, allow_blank=True, default='', max_length=2000)

    def validate_rating(self, value):
        if value < 1 or value > 5:
            raise serializers.ValidationError("Rating must be between 1 and 5.")
        return value


# ============================================================================
# Identity provider webhook
# ============================================================================

class IdentityEmailAddressSerializer(serializers.Serializer):
    email_address = serializers.EmailField()


class IdentityUserDataSerializer(serializers.Serializer):
    """
    The ``data`` object of a user event.

    Only the fields mirrored onto User are validated; anything else the
    identity provider sends is dropped.
    """

    id = serializers.CharField(max_length=191)
    email_addresses = IdentityEmailAddressSerializer(many=True, required=False)
    first_name = serializers.CharField(max_length=150, required=False, allow_blank=True, allow_null=True)
    last_name = serializers.CharField(max_length=150, required=False, allow_blank=True, allow_null=True)
    profile_image_url = serializers.CharField(max_length=500, required=False, allow_blank=True, allow_null=True)


class IdentityWebhookSerializer(serializers.Serializer):
    """Envelope of an identity-provider user event."""

    type = serializers.CharField(max_length=100)
    data = IdentityUserDataSerializer()
