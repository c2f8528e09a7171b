"""
Tests for the notification dispatcher and the notification endpoints.

Test Coverage:
- Notifications are created unread
- Best-effort dispatch logs and swallows failures
- Mark one / mark all as read, including ownership checks
- Listing order, limit and unread count
"""

import logging

import pytest
from django.db import IntegrityError
from rest_framework import status

from marketplace import services
from marketplace.exceptions import Forbidden, NotFound
from marketplace.models import Notification


def notify(user, title='Hello', read=False):
    notification = services.create_notification(
        user.id, Notification.TYPE_BOOKING_STATUS, title, f'{title} body', related_id=1
    )
    if read:
        Notification.objects.filter(pk=notification.pk).update(read=True)
    return notification


@pytest.mark.django_db
class TestNotificationDispatcher:

    def test_create_notification_is_unread(self, renter):
        notification = services.create_notification(
            renter.id,
            Notification.TYPE_CHAT_MESSAGE,
            'New message',
            'Hi there',
            related_id=42,
        )

        notification.refresh_from_db()
        assert notification.read is False
        assert notification.user_id == renter.id
        assert notification.type == Notification.TYPE_CHAT_MESSAGE
        assert notification.related_id == 42

    def test_dispatch_best_effort_returns_result(self, renter):
        result = services.dispatch_best_effort(
            'test notification',
            services.create_notification,
            renter.id,
            Notification.TYPE_REVIEW,
            'Title',
            'Body',
        )

        assert isinstance(result, Notification)
        assert Notification.objects.filter(user=renter).count() == 1

    def test_dispatch_best_effort_swallows_and_logs(self, renter, caplog):
        def broken(*args, **kwargs):
            raise RuntimeError('mail server down')

        with caplog.at_level(logging.ERROR, logger='marketplace.services'):
            result = services.dispatch_best_effort('broken side effect', broken, renter.id)

        assert result is None
        assert 'broken side effect' in caplog.text
        assert 'mail server down' in caplog.text

    def test_dispatch_best_effort_keeps_transaction_usable(self, renter):
        def violates_constraint():
            Notification.objects.create(user_id=renter.id, type='x', title='t', message='m')
            raise IntegrityError('simulated constraint failure')

        services.dispatch_best_effort('constraint failure', violates_constraint)

        # The savepoint was rolled back and later queries still work.
        assert Notification.objects.filter(user=renter).count() == 0
        notify(renter)
        assert Notification.objects.filter(user=renter).count() == 1

    def test_mark_notification_read(self, renter):
        notification = notify(renter)

        result = services.mark_notification_read(notification.id, renter)

        assert result.read is True
        notification.refresh_from_db()
        assert notification.read is True

    def test_mark_notification_read_is_idempotent(self, renter):
        notification = notify(renter, read=True)

        result = services.mark_notification_read(notification.id, renter)

        assert result.read is True

    def test_mark_notification_read_other_user(self, renter, stranger):
        notification = notify(renter)

        with pytest.raises(Forbidden):
            services.mark_notification_read(notification.id, stranger)

        notification.refresh_from_db()
        assert notification.read is False

    def test_mark_notification_read_missing(self, renter):
        with pytest.raises(NotFound):
            services.mark_notification_read(999999, renter)

    def test_mark_all_read_only_touches_own_unread(self, renter, stranger):
        for i in range(3):
            notify(renter, title=f'unread {i}')
        notify(renter, title='already read', read=True)
        notify(stranger, title='someone else')

        updated = services.mark_all_notifications_read(renter)

        assert updated == 3
        assert not Notification.objects.filter(user=renter, read=False).exists()
        assert Notification.objects.filter(user=stranger, read=False).count() == 1

    def test_list_notifications_newest_first_with_limit(self, renter):
        created = [notify(renter, title=f'n{i}') for i in range(5)]

        result = services.list_notifications(renter, limit=3)

        assert [n.id for n in result] == [n.id for n in reversed(created)][:3]

    def test_unread_count(self, renter):
        notify(renter)
        notify(renter)
        notify(renter, read=True)

        assert services.unread_notification_count(renter) == 2


@pytest.mark.django_db
class TestNotificationEndpoints:

    def test_list_requires_authentication(self, api_client):
        response = api_client.get('/api/notifications/')

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_list_returns_only_own_notifications(self, renter_client, renter, stranger):
        notify(renter, title='mine')
        notify(stranger, title='theirs')

        response = renter_client.get('/api/notifications/')

        assert response.status_code == status.HTTP_200_OK
        titles = [n['title'] for n in response.data['notifications']]
        assert titles == ['mine']

    def test_unread_count_endpoint(self, renter_client, renter):
        notify(renter)
        notify(renter, read=True)

        response = renter_client.get('/api/notifications/unread-count/')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['count'] == 1

    def test_mark_read_endpoint(self, renter_client, renter):
        notification = notify(renter)

        response = renter_client.patch(f'/api/notifications/{notification.id}/read/')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['read'] is True

    def test_mark_read_someone_elses_notification(self, stranger_client, renter):
        notification = notify(renter)

        response = stranger_client.patch(f'/api/notifications/{notification.id}/read/')

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.data['error'] == 'Unauthorized'

    def test_mark_read_missing_notification(self, renter_client):
        response = renter_client.patch('/api/notifications/999999/read/')

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data['error'] == 'Notification not found'

    def test_mark_all_read_endpoint(self, renter_client, renter):
        notify(renter)
        notify(renter)

        response = renter_client.patch('/api/notifications/mark-all-read/')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['updated'] == 2
        assert renter_client.get('/api/notifications/unread-count/').data['count'] == 0
