"""
Signal receivers for the marketplace app.

A new review notifies the owner of the reviewed listing. The notification is
best-effort: a failure is logged and the review stays saved.
"""

import logging

from django.db.models.signals import post_save
from django.dispatch import receiver

from .models import Notification, Review
from .services import create_notification, dispatch_best_effort

logger = logging.getLogger(__name__)


@receiver(post_save, sender=Review)
def notify_owner_on_review(sender, instance, created, **kwargs):
    """
    Notify the listing owner about a newly created review.

    Edits to an existing review and raw fixture loads are ignored.
    """
    if not created or kwargs.get('raw', False):
        return

    listing = instance.listing
    logger.debug(f"Review {instance.id} saved, notifying owner {listing.owner_id}")

    dispatch_best_effort(
        f'review {instance.id} notification',
        create_notification,
        listing.owner_id,
        Notification.TYPE_REVIEW,
        'New Review',
        f'Your listing "{listing.title}" received a {instance.rating}-star review.',
        related_id=instance.id,
    )
