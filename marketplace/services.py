"""
Business operations behind the API views.

Booking lifecycle, chat threads and the notification inbox live here so that
each rule is written once; views only translate HTTP to these calls.
Notifications are a best-effort side effect: a failure is logged and never
undoes the operation that triggered it.
"""

import logging
from decimal import Decimal

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Count, Q, Sum
from django.utils import timezone

from .exceptions import Forbidden, InvalidOperation, NotFound, ValidationError
from .models import Booking, Chat, Listing, Message, Notification, Review

User = get_user_model()
logger = logging.getLogger(__name__)


STATUS_NOTIFICATIONS = {
    Booking.CONFIRMED: (
        'Booking Confirmed!',
        'Your booking for "{title}" has been confirmed. '
        'You can now chat with the owner about delivery details.',
    ),
    Booking.CANCELLED: (
        'Booking Cancelled',
        'Your booking for "{title}" has been cancelled.',
    ),
    Booking.COMPLETED: (
        'Booking Completed',
        'Your booking for "{title}" has been completed. Please leave a review!',
    ),
}


def preview_text(content, limit=None):
    """First ``limit`` characters of content, with an ellipsis when cut."""
    if limit is None:
        limit = settings.RENTME['MESSAGE_PREVIEW_LENGTH']
    if len(content) > limit:
        return f'{content[:limit]}...'
    return content


# ============================================================================
# Notification Dispatcher
# ============================================================================

def create_notification(user_id, notification_type, title, message, related_id=None):
    """
    Persist one unread notification for ``user_id``.

    Raises whatever the ORM raises; callers decide whether that is fatal.
    """
    notification = Notification.objects.create(
        user_id=user_id,
        type=notification_type,
        title=title,
        message=message,
        related_id=related_id,
        read=False,
    )
    logger.info(
        f"Notification created. ID: {notification.id}, User: {user_id}, "
        f"Type: {notification_type}, Related: {related_id}"
    )
    return notification


def dispatch_best_effort(description, func, *args, **kwargs):
    """
    Run a side effect that must never fail the calling operation.

    The call runs in its own savepoint so a database error inside it leaves
    the surrounding transaction usable. Returns the call's result, or None
    when it raised.
    """
    try:
        with transaction.atomic():
            return func(*args, **kwargs)
    except Exception:
        logger.exception(f"Best-effort side effect failed: {description}")
        return None


def list_notifications(user, limit=None):
    if limit is None:
        limit = settings.RENTME['NOTIFICATION_LIST_LIMIT']
    return list(Notification.objects.filter(user=user).order_by('-created_at', '-id')[:limit])


def unread_notification_count(user):
    return Notification.objects.filter(user=user, read=False).count()


def mark_notification_read(notification_id, user):
    """Mark one of the user's notifications as read. Idempotent."""
    try:
        notification = Notification.objects.get(pk=notification_id)
    except Notification.DoesNotExist:
        raise NotFound('Notification not found')

    if notification.user_id != user.id:
        logger.warning(
            f"Notification access denied. Notification ID: {notification_id}, "
            f"Owner: {notification.user_id}, User: {user.id}"
        )
        raise Forbidden('Unauthorized')

    if not notification.read:
        notification.read = True
        notification.save(update_fields=['read'])
    return notification


def mark_all_notifications_read(user):
    """Flip every unread notification of ``user``; returns how many changed."""
    updated = Notification.objects.filter(user=user, read=False).update(read=True)
    logger.info(f"Marked {updated} notifications as read for user {user.id}")
    return updated


# ============================================================================
# Booking Lifecycle Handler
# ============================================================================

def get_listing(listing_id):
    try:
        return Listing.objects.select_related('owner').get(pk=listing_id)
    except Listing.DoesNotExist:
        raise NotFound('Listing not found')


def get_booking(booking_id):
    try:
        return Booking.objects.select_related('listing', 'listing__owner', 'renter').get(pk=booking_id)
    except Booking.DoesNotExist:
        raise NotFound('Booking not found')


def create_booking(renter, listing_id, start_date, end_date, message=''):
    """
    Create a PENDING booking request.

    Cost is the number of started days times the listing's daily price.
    No availability or overlap check is made against other bookings.
    """
    listing = get_listing(listing_id)

    if listing.owner_id == renter.id:
        raise InvalidOperation('Cannot book your own listing')

    if end_date <= start_date:
        raise ValidationError({'end_date': ['End date must be after start date.']})

    booking = Booking.objects.create(
        renter=renter,
        listing=listing,
        start_date=start_date,
        end_date=end_date,
        total_cost=Booking.calculate_total_cost(start_date, end_date, listing.price),
        message=message or '',
        status=Booking.PENDING,
    )

    logger.info(
        f"Booking created. Booking ID: {booking.id}, Listing: {listing.id}, "
        f"Renter: {renter.id}, Days: {Booking.rental_days(start_date, end_date)}, "
        f"Total: {booking.total_cost}"
    )
    return booking


def update_booking_status(booking_id, user, new_status):
    """
    Move a booking to CONFIRMED, CANCELLED or COMPLETED.

    Only the owner of the booked listing may do this. Confirming guarantees
    a chat thread exists for the booking. The renter is notified of every
    actual change; notification failures are logged and ignored.
    """
    if new_status not in Booking.TARGET_STATUSES:
        raise ValidationError({
            'status': [f'Invalid status. Must be one of: {", ".join(Booking.TARGET_STATUSES)}.']
        })

    with transaction.atomic():
        booking = (
            Booking.objects.select_for_update()
            .select_related('listing', 'renter')
            .filter(pk=booking_id)
            .first()
        )
        if booking is None:
            raise NotFound('Booking not found')

        if booking.listing.owner_id != user.id:
            logger.warning(
                f"Unauthorized booking status update attempt. Booking ID: {booking_id}, "
                f"User: {user.id}, Requested Status: {new_status}"
            )
            raise Forbidden('Unauthorized')

        is_valid, error_message = booking.can_transition_to(new_status)
        if not is_valid:
            raise InvalidOperation(error_message)

        old_status = booking.status
        changed = old_status != new_status
        if changed:
            booking.status = new_status
            booking.save(update_fields=['status', 'updated_at'])

        if new_status == Booking.CONFIRMED:
            ensure_chat(booking)

    logger.info(
        f"Booking status updated. Booking ID: {booking.id}, Old Status: {old_status}, "
        f"New Status: {new_status}, User: {user.id}"
    )

    if changed:
        title, template = STATUS_NOTIFICATIONS[new_status]
        dispatch_best_effort(
            f'booking {booking.id} status notification',
            create_notification,
            booking.renter_id,
            Notification.TYPE_BOOKING_STATUS,
            title,
            template.format(title=booking.listing.title),
            related_id=booking.id,
        )

    return booking


def list_bookings_for_renter(user):
    return (
        Booking.objects.filter(renter=user)
        .select_related('listing', 'listing__owner', 'renter')
        .order_by('-created_at')
    )


def list_bookings_for_listing(listing_id, user):
    """All bookings of a listing; only its owner may look."""
    listing = get_listing(listing_id)
    if listing.owner_id != user.id:
        raise Forbidden('Unauthorized')
    return (
        Booking.objects.filter(listing=listing)
        .select_related('listing', 'listing__owner', 'renter')
        .order_by('-created_at')
    )


# ============================================================================
# Chat/Messaging Handler
# ============================================================================

def ensure_chat(booking):
    """
    Return the booking's chat, creating it if needed.

    Relies on the unique booking key: a concurrent create loses the insert
    race and reads the winner's row instead of making a second chat.
    """
    chat, created = Chat.objects.get_or_create(booking=booking)
    if created:
        logger.info(f"Chat created. Chat ID: {chat.id}, Booking ID: {booking.id}")
    return chat


def get_booking_for_party(booking_id, user):
    """Fetch a booking the user takes part in, as renter or listing owner."""
    booking = get_booking(booking_id)
    if not booking.is_party(user):
        logger.warning(
            f"Chat access denied. Booking ID: {booking_id}, User: {user.id}, "
            f"Renter: {booking.renter_id}, Owner: {booking.listing.owner_id}"
        )
        raise Forbidden('You do not have access to this chat')
    return booking


def get_or_create_chat(booking_id, user):
    booking = get_booking_for_party(booking_id, user)
    return ensure_chat(booking)


def send_message(booking_id, user, content):
    """
    Append a message to the booking's chat and notify the other party.

    The sender role is ``owner`` when the author owns the listing and
    ``renter`` otherwise.
    """
    if not isinstance(content, str) or not content.strip():
        raise ValidationError({'content': ['Message content is required']})
    content = content.strip()

    booking = get_booking_for_party(booking_id, user)
    chat = ensure_chat(booking)

    is_owner = booking.listing.owner_id == user.id
    sender = Message.SENDER_OWNER if is_owner else Message.SENDER_RENTER

    message = Message.objects.create(chat=chat, author=user, sender=sender, content=content)
    Chat.objects.filter(pk=chat.pk).update(updated_at=timezone.now())

    logger.info(
        f"Message sent. Message ID: {message.id}, Chat ID: {chat.id}, "
        f"Booking ID: {booking.id}, Sender: {sender}, User: {user.id}"
    )

    recipient_id = booking.renter_id if is_owner else booking.listing.owner_id
    dispatch_best_effort(
        f'chat {chat.id} message notification',
        create_notification,
        recipient_id,
        Notification.TYPE_CHAT_MESSAGE,
        f'New message from the {sender} about "{booking.listing.title}"',
        preview_text(content),
        related_id=chat.id,
    )

    return message


def list_chats_for_user(user):
    """Chats where the user is renter or owner, most recently active first."""
    return (
        Chat.objects.filter(Q(booking__renter=user) | Q(booking__listing__owner=user))
        .select_related('booking', 'booking__renter', 'booking__listing', 'booking__listing__owner')
        .order_by('-updated_at')
    )


# ============================================================================
# Reviews
# ============================================================================

def create_review(author, listing_id, rating, comment=''):
    """
    Review a listing the author has rented to completion.

    One review per author and listing; owners cannot review themselves.
    """
    listing = get_listing(listing_id)

    if listing.owner_id == author.id:
        raise InvalidOperation('Cannot review your own listing')

    has_completed_booking = Booking.objects.filter(
        renter=author,
        listing=listing,
        status=Booking.COMPLETED,
    ).exists()
    if not has_completed_booking:
        raise InvalidOperation('You can only review listings after a completed booking')

    if Review.objects.filter(listing=listing, author=author).exists():
        raise InvalidOperation('You have already reviewed this listing')

    review = Review.objects.create(listing=listing, author=author, rating=rating, comment=comment or '')
    logger.info(
        f"Review created. Review ID: {review.id}, Listing: {listing.id}, "
        f"Author: {author.id}, Rating: {rating}"
    )
    return review


# ============================================================================
# Identity provider sync
# ============================================================================

def _identity_fields(data):
    """Map an identity-provider user payload onto User fields."""
    fields = {}
    addresses = data.get('email_addresses') or []
    if not isinstance(addresses, list) or not all(isinstance(entry, dict) for entry in addresses):
        raise ValidationError({'email_addresses': ['Expected a list of email address objects']})
    if addresses and addresses[0].get('email_address'):
        fields['email'] = addresses[0]['email_address']
    if data.get('first_name') is not None:
        fields['first_name'] = data['first_name']
    if data.get('last_name') is not None:
        fields['last_name'] = data['last_name']
    if data.get('profile_image_url') is not None:
        fields['avatar'] = data['profile_image_url']
    return fields


def sync_identity_user(event_type, data):
    """
    Apply an identity-provider webhook event to the local user table.

    ``user.created`` and ``user.updated`` both upsert so that redelivered or
    reordered events converge. Returns the user, or None for deletions and
    ignored event types.
    """
    clerk_id = data.get('id')
    if not clerk_id:
        raise ValidationError({'data': ['User id is required']})

    if event_type == 'user.deleted':
        deleted, _ = User.objects.filter(clerk_id=clerk_id).delete()
        logger.info(f"Identity user deleted. Subject: {clerk_id}, Rows: {deleted}")
        return None

    if event_type not in ('user.created', 'user.updated'):
        logger.info(f"Unhandled identity webhook type: {event_type}")
        return None

    fields = _identity_fields(data)
    user = User.objects.filter(clerk_id=clerk_id).first()

    if user is None:
        if not fields.get('email'):
            raise ValidationError({'email_addresses': ['An email address is required']})
        user = User(clerk_id=clerk_id, **fields)
        user.set_unusable_password()
        user.save()
        logger.info(f"Identity user created. Subject: {clerk_id}, User: {user.id}")
        return user

    for name, value in fields.items():
        setattr(user, name, value)
    user.save()
    logger.info(f"Identity user updated. Subject: {clerk_id}, User: {user.id}")
    return user


# ============================================================================
# Marketplace overview
# ============================================================================

def marketplace_summary():
    """
    Totals for the admin overview.

    Revenue counts CONFIRMED and COMPLETED bookings only; pending requests
    and cancellations never bring in money.
    """
    counts = dict(
        Booking.objects.order_by().values_list('status').annotate(total=Count('id'))
    )
    revenue = Booking.objects.filter(
        status__in=[Booking.CONFIRMED, Booking.COMPLETED]
    ).aggregate(total=Sum('total_cost'))['total']

    return {
        'total_users': User.objects.count(),
        'total_listings': Listing.objects.count(),
        'total_bookings': sum(counts.values()),
        'bookings_by_status': {value: counts.get(value, 0) for value, _label in Booking.STATUS_CHOICES},
        'total_revenue': revenue or Decimal('0.00'),
    }
