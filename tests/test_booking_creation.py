"""
Test suite for booking creation and booking listings.

Tests cover:
- Valid booking creation with camelCase and snake_case bodies
- Total cost calculation (started days times daily price)
- Self-booking prevention
- Date validation
- Missing listing, authentication requirements
- Renter booking list and owner-only listing bookings
"""

from decimal import Decimal

import pytest
from rest_framework import status

from marketplace import services
from marketplace.exceptions import InvalidOperation, NotFound, ValidationError
from marketplace.models import Booking


@pytest.mark.django_db
class TestBookingCreation:

    def test_create_booking_camel_case(self, renter_client, renter, listing):
        data = {
            'listingId': listing.id,
            'startDate': '2024-01-01',
            'endDate': '2024-01-04',
            'message': 'Need it for a weekend trip',
        }

        response = renter_client.post('/api/bookings/', data, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['status'] == Booking.PENDING
        assert Decimal(response.data['total_cost']) == Decimal('30.00')
        assert response.data['renter']['id'] == renter.id
        assert response.data['listing']['id'] == listing.id
        assert response.data['message'] == 'Need it for a weekend trip'

        booking = Booking.objects.get(pk=response.data['id'])
        assert booking.total_cost == Decimal('30.00')
        assert booking.renter_id == renter.id

    def test_create_booking_snake_case_iso_datetimes(self, renter_client, listing):
        data = {
            'listing_id': listing.id,
            'start_date': '2024-03-01T10:00:00Z',
            'end_date': '2024-03-03T12:00:00Z',
        }

        response = renter_client.post('/api/bookings/', data, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        # Two days and two hours count as three started days.
        assert Decimal(response.data['total_cost']) == Decimal('30.00')
        assert response.data['message'] == ''

    def test_cannot_book_own_listing(self, owner_client, listing):
        data = {'listingId': listing.id, 'startDate': '2024-01-01', 'endDate': '2024-01-04'}

        response = owner_client.post('/api/bookings/', data, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['error'] == 'Cannot book your own listing'
        assert Booking.objects.count() == 0

    def test_end_date_before_start_date(self, renter_client, listing):
        data = {'listingId': listing.id, 'startDate': '2024-01-04', 'endDate': '2024-01-01'}

        response = renter_client.post('/api/bookings/', data, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['error'] == 'Validation failed'
        assert 'end_date' in response.data['details']

    def test_same_start_and_end(self, renter_client, listing):
        data = {'listingId': listing.id, 'startDate': '2024-01-01', 'endDate': '2024-01-01'}

        response = renter_client.post('/api/bookings/', data, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_missing_fields(self, renter_client):
        response = renter_client.post('/api/bookings/', {}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        details = response.data['details']
        assert 'listing_id' in details
        assert 'start_date' in details
        assert 'end_date' in details

    def test_invalid_date_format(self, renter_client, listing):
        data = {'listingId': listing.id, 'startDate': 'tomorrow', 'endDate': '2024-01-04'}

        response = renter_client.post('/api/bookings/', data, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'start_date' in response.data['details']

    def test_listing_not_found(self, renter_client):
        data = {'listingId': 999999, 'startDate': '2024-01-01', 'endDate': '2024-01-04'}

        response = renter_client.post('/api/bookings/', data, format='json')

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data['error'] == 'Listing not found'

    def test_requires_authentication(self, api_client, listing):
        data = {'listingId': listing.id, 'startDate': '2024-01-01', 'endDate': '2024-01-04'}

        response = api_client.post('/api/bookings/', data, format='json')

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_overlapping_bookings_are_accepted(self, renter_client, stranger_client, listing):
        data = {'listingId': listing.id, 'startDate': '2024-01-01', 'endDate': '2024-01-04'}

        first = renter_client.post('/api/bookings/', data, format='json')
        second = stranger_client.post('/api/bookings/', data, format='json')

        assert first.status_code == status.HTTP_201_CREATED
        assert second.status_code == status.HTTP_201_CREATED

    def test_service_rejects_own_listing(self, owner, listing):
        from datetime import datetime, timezone as dt_timezone

        with pytest.raises(InvalidOperation):
            services.create_booking(
                owner,
                listing.id,
                datetime(2024, 1, 1, tzinfo=dt_timezone.utc),
                datetime(2024, 1, 2, tzinfo=dt_timezone.utc),
            )

    def test_service_missing_listing(self, renter):
        from datetime import datetime, timezone as dt_timezone

        with pytest.raises(NotFound):
            services.create_booking(
                renter,
                424242,
                datetime(2024, 1, 1, tzinfo=dt_timezone.utc),
                datetime(2024, 1, 2, tzinfo=dt_timezone.utc),
            )

    def test_service_date_error_uses_serializer_field_name(self, renter, listing):
        from datetime import datetime, timezone as dt_timezone

        with pytest.raises(ValidationError) as excinfo:
            services.create_booking(
                renter,
                listing.id,
                datetime(2024, 1, 4, tzinfo=dt_timezone.utc),
                datetime(2024, 1, 1, tzinfo=dt_timezone.utc),
            )

        assert set(excinfo.value.detail) == {'end_date'}
        assert Booking.objects.count() == 0


@pytest.mark.django_db
class TestBookingLists:

    def test_renter_sees_own_bookings(self, booking_factory, renter_client, renter, stranger, listing):
        mine = booking_factory(listing, renter)
        booking_factory(listing, stranger)

        response = renter_client.get('/api/bookings/')

        assert response.status_code == status.HTTP_200_OK
        assert [b['id'] for b in response.data['bookings']] == [mine.id]

    def test_owner_sees_listing_bookings(self, booking_factory, owner_client, renter, stranger, listing):
        first = booking_factory(listing, renter)
        second = booking_factory(listing, stranger)

        response = owner_client.get(f'/api/bookings/listing/{listing.id}/')

        assert response.status_code == status.HTTP_200_OK
        assert {b['id'] for b in response.data['bookings']} == {first.id, second.id}

    def test_non_owner_cannot_see_listing_bookings(self, renter_client, pending_booking, listing):
        response = renter_client.get(f'/api/bookings/listing/{listing.id}/')

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_listing_bookings_missing_listing(self, owner_client):
        response = owner_client.get('/api/bookings/listing/999999/')

        assert response.status_code == status.HTTP_404_NOT_FOUND
