"""
URL configuration for the rentme project.

Every API route lives under ``/api/``; the Django admin is at ``/admin/``.
"""
from django.contrib import admin
from django.urls import path
from marketplace.views import (
    BookingListCreateView,
    BookingStatusUpdateView,
    ChatDetailView,
    ChatListView,
    ChatMessageCreateView,
    HealthCheckView,
    IdentityWebhookView,
    ListingBookingsView,
    ListingDetailView,
    ListingListCreateView,
    ListingReviewsView,
    MyListingsView,
    NotificationListView,
    NotificationMarkAllReadView,
    NotificationMarkReadView,
    NotificationUnreadCountView,
    PublicUserProfileView,
    ReviewCreateView,
    UserProfileView,
)


urlpatterns = [
    path('admin/', admin.site.urls),

    path('api/health/', HealthCheckView.as_view(), name='health'),

    # Identity provider
    path('api/auth/webhooks/clerk/', IdentityWebhookView.as_view(), name='identity_webhook'),

    # Listing endpoints
    path('api/listings/', ListingListCreateView.as_view(), name='listing_list'),
    path('api/listings/me/', MyListingsView.as_view(), name='my_listings'),
    path('api/listings/<int:listing_id>/', ListingDetailView.as_view(), name='listing_detail'),

    # Booking endpoints
    path('api/bookings/', BookingListCreateView.as_view(), name='booking_list'),
    path('api/bookings/listing/<int:listing_id>/', ListingBookingsView.as_view(), name='listing_bookings'),
    path('api/bookings/<int:booking_id>/status/', BookingStatusUpdateView.as_view(), name='booking_status_update'),

    # Chat endpoints
    path('api/chat/', ChatListView.as_view(), name='chat_list'),
    path('api/chat/<int:booking_id>/', ChatDetailView.as_view(), name='chat_detail'),
    path('api/chat/<int:booking_id>/messages/', ChatMessageCreateView.as_view(), name='chat_message_create'),

    # Notification endpoints
    path('api/notifications/', NotificationListView.as_view(), name='notification_list'),
    path('api/notifications/unread-count/', NotificationUnreadCountView.as_view(), name='notification_unread_count'),
    path('api/notifications/mark-all-read/', NotificationMarkAllReadView.as_view(), name='notification_mark_all_read'),
    path('api/notifications/<int:notification_id>/read/', NotificationMarkReadView.as_view(), name='notification_mark_read'),

    # Review endpoints
    path('api/reviews/', ReviewCreateView.as_view(), name='review_create'),
    path('api/reviews/listing/<int:listing_id>/', ListingReviewsView.as_view(), name='listing_reviews'),

    # User endpoints
    path('api/users/profile/', UserProfileView.as_view(), name='user_profile'),
    path('api/users/<int:user_id>/', PublicUserProfileView.as_view(), name='public_user_profile'),
]
