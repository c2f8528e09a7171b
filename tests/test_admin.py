"""
Tests for the admin booking overview.
"""

from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from django.urls import reverse

from marketplace import services
from marketplace.models import Booking

User = get_user_model()


@pytest.fixture
def staff_client(client, db):
    admin_user = User.objects.create_superuser(
        username='site_admin',
        email='admin@example.com',
        password='admin-pass-123',
    )
    client.force_login(admin_user)
    return client


@pytest.mark.django_db
class TestMarketplaceSummary:

    def test_empty_marketplace(self):
        summary = services.marketplace_summary()

        assert summary['total_users'] == 0
        assert summary['total_bookings'] == 0
        assert summary['total_revenue'] == Decimal('0.00')
        assert set(summary['bookings_by_status']) == {
            Booking.PENDING, Booking.CONFIRMED, Booking.CANCELLED, Booking.COMPLETED,
        }

    def test_totals_and_revenue(self, listing, renter, stranger, booking_factory):
        booking_factory(listing, renter)
        booking_factory(listing, renter, status=Booking.CONFIRMED)
        booking_factory(listing, stranger, days=2, status=Booking.COMPLETED)
        booking_factory(listing, stranger, status=Booking.CANCELLED)

        summary = services.marketplace_summary()

        assert summary['total_users'] == 3
        assert summary['total_listings'] == 1
        assert summary['total_bookings'] == 4
        assert summary['bookings_by_status'][Booking.PENDING] == 1
        assert summary['bookings_by_status'][Booking.CANCELLED] == 1
        assert summary['total_revenue'] == Decimal('50.00')


@pytest.mark.django_db
class TestBookingChangelist:

    def test_changelist_shows_summary(self, staff_client, pending_booking):
        response = staff_client.get(reverse('admin:marketplace_booking_changelist'))

        assert response.status_code == 200
        assert response.context['summary']['total_bookings'] == 1
        assert b'marketplace-summary' in response.content

    def test_changelist_requires_staff(self, client):
        response = client.get(reverse('admin:marketplace_booking_changelist'))

        assert response.status_code == 302
