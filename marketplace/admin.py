"""
Django admin configuration for the marketplace models.
"""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.utils.translation import gettext_lazy as _

from . import services
from .models import Booking, Chat, Listing, Message, Notification, Review, User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """
    Admin interface for the marketplace User model.

    Extends Django's UserAdmin with the identity-provider id and avatar.
    """

    list_display = [
        'email',
        'username',
        'clerk_id',
        'first_name',
        'last_name',
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
        'clerk_id',
        'first_name',
        'last_name',
    ]

    ordering = ['-created_at']

    fieldsets = (
        (None, {
            'fields': ('username', 'password')
        }),
        (_('Personal Info'), {
            'fields': ('first_name', 'last_name', 'email', 'avatar')
        }),
        (_('Identity Provider'), {
            'fields': ('clerk_id',)
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

    readonly_fields = ['created_at', 'updated_at', 'last_login', 'date_joined']
    date_hierarchy = 'created_at'
    list_per_page = 25

    def get_readonly_fields(self, request, obj=None):
        if obj:
            return self.readonly_fields
        return []


@admin.register(Listing)
class ListingAdmin(admin.ModelAdmin):
    list_display = ['title', 'owner', 'price', 'category', 'location', 'available', 'created_at']
    list_filter = ['available', 'category', 'created_at']
    search_fields = ['title', 'description', 'location', 'owner__email']
    readonly_fields = ['created_at', 'updated_at']
    ordering = ['-created_at']
    date_hierarchy = 'created_at'
    list_per_page = 25

    fieldsets = (
        (None, {
            'fields': ('owner', 'title', 'description')
        }),
        (_('Pricing & Details'), {
            'fields': ('price', 'category', 'location', 'images', 'available')
        }),
        (_('Timestamps'), {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',),
        }),
    )


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    """Bookings with status filters; total cost is computed, never typed in."""

    list_display = ['id', 'listing', 'renter', 'status', 'start_date', 'end_date', 'total_cost', 'created_at']
    list_filter = ['status', 'created_at']
    search_fields = ['listing__title', 'renter__email', 'listing__owner__email']
    readonly_fields = ['total_cost', 'created_at', 'updated_at']
    raw_id_fields = ['listing', 'renter']
    ordering = ['-created_at']
    date_hierarchy = 'created_at'
    list_per_page = 25

    def changelist_view(self, request, extra_context=None):
        extra_context = extra_context or {}
        extra_context['summary'] = services.marketplace_summary()
        return super().changelist_view(request, extra_context=extra_context)


class MessageInline(admin.TabularInline):
    model = Message
    extra = 0
    fields = ['sender', 'author', 'content', 'created_at']
    readonly_fields = ['sender', 'author', 'content', 'created_at']
    ordering = ['created_at']

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Chat)
class ChatAdmin(admin.ModelAdmin):
    list_display = ['id', 'booking', 'created_at', 'updated_at']
    search_fields = ['booking__listing__title', 'booking__renter__email']
    readonly_fields = ['created_at', 'updated_at']
    raw_id_fields = ['booking']
    inlines = [MessageInline]
    ordering = ['-updated_at']


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    list_display = ['id', 'chat', 'sender', 'author', 'created_at']
    list_filter = ['sender', 'created_at']
    search_fields = ['content', 'author__email']
    readonly_fields = ['created_at']
    raw_id_fields = ['chat', 'author']
    ordering = ['-created_at']


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ['id', 'user', 'type', 'title', 'read', 'created_at']
    list_filter = ['type', 'read', 'created_at']
    search_fields = ['title', 'message', 'user__email']
    readonly_fields = ['created_at']
    raw_id_fields = ['user']
    ordering = ['-created_at']


@admin.register(Review)
class ReviewAdmin(admin.ModelAdmin):
    list_display = ['id', 'listing', 'author', 'rating', 'created_at']
    list_filter = ['rating', 'created_at']
    search_fields = ['listing__title', 'author__email', 'comment']
    readonly_fields = ['created_at']
    raw_id_fields = ['listing', 'author']
    ordering = ['-created_at']
