"""
API views for the RentMe marketplace.

Views validate input with serializers, call into ``services`` for every rule
that touches bookings, chats or notifications, and let the configured
exception handler turn domain errors into JSON responses.
"""

import logging
from decimal import Decimal, InvalidOperation as InvalidDecimal

from django.contrib.auth import get_user_model
from django.db import DatabaseError, connection
from django.db.models import Avg, Count, Q
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import AllowAny, IsAuthenticated, IsAuthenticatedOrReadOnly
from rest_framework.response import Response
from rest_framework.views import APIView

from . import services
from .models import Listing, Review
from .permissions import IsListingOwnerOrReadOnly
from .serializers import (
    BookingCreateSerializer,
    BookingSerializer,
    BookingStatusUpdateSerializer,
    ChatListSerializer,
    ChatSerializer,
    IdentityWebhookSerializer,
    ListingSerializer,
    MessageCreateSerializer,
    MessageSerializer,
    NotificationSerializer,
    PublicUserSerializer,
    ReviewCreateSerializer,
    ReviewSerializer,
    UserProfileSerializer,
    UserProfileUpdateSerializer,
)

User = get_user_model()
logger = logging.getLogger(__name__)


class ListingPagination(PageNumberPagination):
    page_size = 12
    page_size_query_param = 'limit'
    max_page_size = 100


class HealthCheckView(APIView):
    """
    Liveness probe that also checks the database connection.

    GET /api/health/

    Returns:
    - 200 OK: {"status": "ok", "database": "ok", "timestamp": ...}
    - 503 Service Unavailable: database unreachable
    """

    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request, *args, **kwargs):
        try:
            with connection.cursor() as cursor:
                cursor.execute('SELECT 1')
        except DatabaseError as e:
            logger.error(f"Health check failed, database unreachable: {e}")
            return Response(
                {'status': 'error', 'database': 'unavailable', 'timestamp': timezone.now()},
                status=status.HTTP_503_SERVICE_UNAVAILABLE
            )

        return Response(
            {'status': 'ok', 'database': 'ok', 'timestamp': timezone.now()},
            status=status.HTTP_200_OK
        )


# ============================================================================
# Listings
# ============================================================================

class ListingListCreateView(APIView):
    """
    Search available listings or create a new one.

    GET /api/listings/ (public)

    Query Parameters:
    - search: Case-insensitive match on title or description
    - category: Exact category
    - location: Case-insensitive partial match
    - min_price / minPrice: Minimum daily price
    - max_price / maxPrice: Maximum daily price
    - page: Page number
    - limit: Page size (default 12, max 100)

    POST /api/listings/ (authenticated)
    Creates a listing owned by the caller.

    Returns:
    - 200 OK: Paginated listings, newest first
    - 201 Created: The new listing
    - 400 Bad Request: Invalid filter or listing data
    - 401 Unauthorized: POST without a valid token
    """

    permission_classes = [IsAuthenticatedOrReadOnly]

    def _price_param(self, request, *names):
        for name in names:
            raw = request.query_params.get(name)
            if raw not in (None, ''):
                try:
                    value = Decimal(raw)
                except InvalidDecimal:
                    value = None
                if value is None or not value.is_finite():
                    return None, f'Invalid value for "{names[0]}". Must be a valid number.'
                if value < 0:
                    return None, f'"{names[0]}" cannot be negative.'
                return value, None
        return None, None

    def get(self, request, *args, **kwargs):
        queryset = (
            Listing.objects.filter(available=True)
            .select_related('owner')
            .annotate(average_rating=Avg('reviews__rating'), review_count=Count('reviews'))
            .order_by('-created_at')
        )

        search = request.query_params.get('search', '').strip()
        if search:
            queryset = queryset.filter(Q(title__icontains=search) | Q(description__icontains=search))

        category = request.query_params.get('category', '').strip()
        if category:
            queryset = queryset.filter(category=category)

        location = request.query_params.get('location', '').strip()
        if location:
            queryset = queryset.filter(location__icontains=location)

        min_price, error = self._price_param(request, 'min_price', 'minPrice')
        if error:
            return Response({'error': error}, status=status.HTTP_400_BAD_REQUEST)
        max_price, error = self._price_param(request, 'max_price', 'maxPrice')
        if error:
            return Response({'error': error}, status=status.HTTP_400_BAD_REQUEST)

        if min_price is not None and max_price is not None and min_price > max_price:
            return Response(
                {'error': 'Minimum price cannot be greater than maximum price.'},
                status=status.HTTP_400_BAD_REQUEST
            )
        if min_price is not None:
            queryset = queryset.filter(price__gte=min_price)
        if max_price is not None:
            queryset = queryset.filter(price__lte=max_price)

        paginator = ListingPagination()
        page = paginator.paginate_queryset(queryset, request, view=self)
        serializer = ListingSerializer(page, many=True)
        return paginator.get_paginated_response(serializer.data)

    def post(self, request, *args, **kwargs):
        serializer = ListingSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        listing = serializer.save(owner=request.user)

        logger.info(
            f"Listing created. Listing ID: {listing.id}, Owner: {request.user.id}, "
            f"Price: {listing.price}"
        )
        return Response(ListingSerializer(listing).data, status=status.HTTP_201_CREATED)


class MyListingsView(APIView):
    """
    The caller's own listings, available or not.

    GET /api/listings/me/
    """

    permission_classes = [IsAuthenticated]

    def get(self, request, *args, **kwargs):
        listings = (
            Listing.objects.filter(owner=request.user)
            .select_related('owner')
            .annotate(average_rating=Avg('reviews__rating'), review_count=Count('reviews'))
            .order_by('-created_at')
        )
        return Response({'listings': ListingSerializer(listings, many=True).data})


class ListingDetailView(APIView):
    """
    Retrieve, update or delete a single listing.

    GET    /api/listings/<id>/  (public)
    PUT    /api/listings/<id>/  (owner only, partial updates accepted)
    PATCH  /api/listings/<id>/  (owner only)
    DELETE /api/listings/<id>/  (owner only; removes its bookings too)

    Returns:
    - 200 OK: Listing data, or a confirmation message after delete
    - 400 Bad Request: Invalid listing data
    - 403 Forbidden: Caller does not own the listing
    - 404 Not Found: Listing does not exist
    """

    permission_classes = [IsAuthenticatedOrReadOnly, IsListingOwnerOrReadOnly]

    def get_object(self, listing_id):
        listing = services.get_listing(listing_id)
        self.check_object_permissions(self.request, listing)
        return listing

    def get(self, request, listing_id, *args, **kwargs):
        return Response(ListingSerializer(self.get_object(listing_id)).data)

    def put(self, request, listing_id, *args, **kwargs):
        listing = self.get_object(listing_id)
        serializer = ListingSerializer(listing, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()

        logger.info(f"Listing updated. Listing ID: {listing.id}, Owner: {request.user.id}")
        return Response(serializer.data)

    def patch(self, request, listing_id, *args, **kwargs):
        return self.put(request, listing_id, *args, **kwargs)

    def delete(self, request, listing_id, *args, **kwargs):
        listing = self.get_object(listing_id)
        listing.delete()

        logger.info(f"Listing deleted. Listing ID: {listing_id}, Owner: {request.user.id}")
        return Response({'message': 'Listing deleted successfully'}, status=status.HTTP_200_OK)


# ============================================================================
# Bookings
# ============================================================================

class BookingListCreateView(APIView):
    """
    The caller's bookings as renter, or a new booking request.

    GET /api/bookings/

    POST /api/bookings/
    {
        "listingId": 1,
        "startDate": "2025-12-15",
        "endDate": "2025-12-18",
        "message": "Can I pick it up in the morning?"
    }

    Returns:
    - 200 OK: {"bookings": [...]}
    - 201 Created: The PENDING booking with computed total_cost
    - 400 Bad Request: Invalid dates, or booking your own listing
    - 404 Not Found: Listing does not exist
    """

    permission_classes = [IsAuthenticated]

    def get(self, request, *args, **kwargs):
        bookings = services.list_bookings_for_renter(request.user)
        return Response({'bookings': BookingSerializer(bookings, many=True).data})

    def post(self, request, *args, **kwargs):
        serializer = BookingCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        booking = services.create_booking(
            renter=request.user,
            listing_id=serializer.validated_data['listing_id'],
            start_date=serializer.validated_data['start_date'],
            end_date=serializer.validated_data['end_date'],
            message=serializer.validated_data.get('message', ''),
        )
        return Response(BookingSerializer(booking).data, status=status.HTTP_201_CREATED)


class ListingBookingsView(APIView):
    """
    Every booking of one listing, for its owner.

    GET /api/bookings/listing/<listing_id>/
    """

    permission_classes = [IsAuthenticated]

    def get(self, request, listing_id, *args, **kwargs):
        bookings = services.list_bookings_for_listing(listing_id, request.user)
        return Response({'bookings': BookingSerializer(bookings, many=True).data})


class BookingStatusUpdateView(APIView):
    """
    Move a booking to CONFIRMED, CANCELLED or COMPLETED.

    PATCH /api/bookings/<id>/status/
    {"status": "CONFIRMED"}

    Only the owner of the booked listing may do this. Confirming opens the
    booking's chat. The renter receives a notification for every change.

    Returns:
    - 200 OK: Updated booking
    - 400 Bad Request: Unknown status or a change out of a final state
    - 403 Forbidden: Caller does not own the listing
    - 404 Not Found: Booking does not exist
    """

    permission_classes = [IsAuthenticated]

    def patch(self, request, booking_id, *args, **kwargs):
        serializer = BookingStatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        booking = services.update_booking_status(
            booking_id,
            request.user,
            serializer.validated_data['status'],
        )
        return Response(BookingSerializer(booking).data)


# ============================================================================
# Chat
# ============================================================================

class ChatListView(APIView):
    """
    Chats the caller takes part in, most recently active first, each with
    its latest message.

    GET /api/chat/
    """

    permission_classes = [IsAuthenticated]

    def get(self, request, *args, **kwargs):
        chats = services.list_chats_for_user(request.user)
        return Response({'chats': ChatListSerializer(chats, many=True).data})


class ChatDetailView(APIView):
    """
    Open the chat for a booking, creating it on first access.

    GET /api/chat/<booking_id>/

    Returns:
    - 200 OK: Chat with booking details and messages, oldest first
    - 403 Forbidden: Caller is neither renter nor listing owner
    - 404 Not Found: Booking does not exist
    """

    permission_classes = [IsAuthenticated]

    def get(self, request, booking_id, *args, **kwargs):
        chat = services.get_or_create_chat(booking_id, request.user)
        return Response(ChatSerializer(chat).data)


class ChatMessageCreateView(APIView):
    """
    Send a message in a booking's chat.

    POST /api/chat/<booking_id>/messages/
    {"content": "Is the tent still clean?"}

    Returns:
    - 201 Created: The stored message
    - 400 Bad Request: Empty content
    - 403 Forbidden: Caller is neither renter nor listing owner
    - 404 Not Found: Booking does not exist
    """

    permission_classes = [IsAuthenticated]

    def post(self, request, booking_id, *args, **kwargs):
        serializer = MessageCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        message = services.send_message(booking_id, request.user, serializer.validated_data['content'])
        return Response(MessageSerializer(message).data, status=status.HTTP_201_CREATED)


# ============================================================================
# Notifications
# ============================================================================

class NotificationListView(APIView):
    """
    The caller's most recent notifications, newest first.

    GET /api/notifications/
    """

    permission_classes = [IsAuthenticated]

    def get(self, request, *args, **kwargs):
        notifications = services.list_notifications(request.user)
        return Response({'notifications': NotificationSerializer(notifications, many=True).data})


class NotificationUnreadCountView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, *args, **kwargs):
        return Response({'count': services.unread_notification_count(request.user)})


class NotificationMarkReadView(APIView):
    """
    PATCH /api/notifications/<id>/read/

    Returns:
    - 200 OK: The notification, now read
    - 403 Forbidden: Notification belongs to someone else
    - 404 Not Found: Notification does not exist
    """

    permission_classes = [IsAuthenticated]

    def patch(self, request, notification_id, *args, **kwargs):
        notification = services.mark_notification_read(notification_id, request.user)
        return Response(NotificationSerializer(notification).data)


class NotificationMarkAllReadView(APIView):
    permission_classes = [IsAuthenticated]

    def patch(self, request, *args, **kwargs):
        updated = services.mark_all_notifications_read(request.user)
        return Response({'message': 'All notifications marked as read', 'updated': updated})


# ============================================================================
# Reviews
# ============================================================================

class ListingReviewsView(APIView):
    """
    Public reviews of a listing with the average rating.

    GET /api/reviews/listing/<listing_id>/
    """

    permission_classes = [AllowAny]

    def get(self, request, listing_id, *args, **kwargs):
        listing = get_object_or_404(Listing, pk=listing_id)
        reviews = Review.objects.filter(listing=listing).select_related('author').order_by('-created_at')
        stats = reviews.aggregate(average=Avg('rating'), total=Count('id'))

        return Response({
            'reviews': ReviewSerializer(reviews, many=True).data,
            'average_rating': round(float(stats['average']), 2) if stats['average'] is not None else None,
            'total_reviews': stats['total'],
        })


class ReviewCreateView(APIView):
    """
    Review a listing after a completed booking.

    POST /api/reviews/
    {"listingId": 1, "rating": 5, "comment": "Great tent"}

    Returns:
    - 201 Created: The review
    - 400 Bad Request: Invalid rating, no completed booking, own listing,
      or already reviewed
    - 404 Not Found: Listing does not exist
    """

    permission_classes = [IsAuthenticated]

    def post(self, request, *args, **kwargs):
        serializer = ReviewCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        review = services.create_review(
            author=request.user,
            listing_id=serializer.validated_data['listing_id'],
            rating=serializer.validated_data['rating'],
            comment=serializer.validated_data.get('comment', ''),
        )
        return Response(ReviewSerializer(review).data, status=status.HTTP_201_CREATED)


# ============================================================================
# Users
# ============================================================================

class UserProfileView(APIView):
    """
    The caller's profile.

    GET /api/users/profile/
    Profile with the five most recent listings and bookings.

    PUT /api/users/profile/
    Update first_name, last_name or avatar.
    """

    permission_classes = [IsAuthenticated]

    def get(self, request, *args, **kwargs):
        return Response(UserProfileSerializer(request.user).data)

    def put(self, request, *args, **kwargs):
        serializer = UserProfileUpdateSerializer(request.user, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()

        logger.info(f"Profile updated. User: {request.user.id}, Fields: {sorted(serializer.validated_data)}")
        return Response(UserProfileSerializer(request.user).data)


class PublicUserProfileView(APIView):
    """
    Public profile of any user.

    GET /api/users/<id>/
    """

    permission_classes = [AllowAny]

    def get(self, request, user_id, *args, **kwargs):
        user = get_object_or_404(User, pk=user_id, is_active=True)
        return Response(PublicUserSerializer(user).data)


# ============================================================================
# Identity provider webhook
# ============================================================================

class IdentityWebhookView(APIView):
    """
    Mirror identity-provider user events into the local user table.

    POST /api/auth/webhooks/clerk/
    {"type": "user.created", "data": {"id": "user_123", "email_addresses": [...], ...}}

    Handles user.created, user.updated and user.deleted; other event types
    are acknowledged and ignored.
    """

    permission_classes = [AllowAny]
    authentication_classes = []

    def post(self, request, *args, **kwargs):
        serializer = IdentityWebhookSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        event_type = serializer.validated_data['type']
        logger.info(f"Identity webhook received: {event_type}")
        services.sync_identity_user(event_type, serializer.validated_data['data'])
        return Response({'received': True}, status=status.HTTP_200_OK)
