"""
Test suite for listing reviews.

Tests cover:
- Review creation after a completed booking
- Owner notification through the review signal
- Rejections: no completed booking, own listing, duplicate, bad rating
- Public review list with average rating
"""

from unittest import mock

import pytest
from rest_framework import status

from marketplace import services
from marketplace.models import Booking, Notification, Review


@pytest.fixture
def completed_booking(listing, renter, booking_factory):
    return booking_factory(listing, renter, status=Booking.COMPLETED)


@pytest.mark.django_db
class TestReviewCreation:

    def test_create_review_after_completed_booking(self, renter_client, renter, owner, listing, completed_booking):
        response = renter_client.post(
            '/api/reviews/',
            {'listingId': listing.id, 'rating': 5, 'comment': 'Dry all weekend!'},
            format='json'
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['rating'] == 5
        assert response.data['author']['id'] == renter.id
        assert response.data['listing'] == listing.id

        notification = Notification.objects.get(user=owner)
        assert notification.type == Notification.TYPE_REVIEW
        assert notification.related_id == response.data['id']
        assert '5-star' in notification.message

    def test_requires_completed_booking(self, renter_client, listing, confirmed_booking):
        response = renter_client.post('/api/reviews/', {'listing_id': listing.id, 'rating': 4}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert Review.objects.count() == 0

    def test_owner_cannot_review_own_listing(self, owner_client, listing, completed_booking):
        response = owner_client.post('/api/reviews/', {'listing_id': listing.id, 'rating': 5}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['error'] == 'Cannot review your own listing'

    def test_duplicate_review(self, renter_client, listing, completed_booking):
        data = {'listing_id': listing.id, 'rating': 4}

        renter_client.post('/api/reviews/', data, format='json')
        response = renter_client.post('/api/reviews/', data, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert Review.objects.count() == 1

    @pytest.mark.parametrize('rating', [0, 6, -1])
    def test_rating_out_of_range(self, renter_client, listing, completed_booking, rating):
        response = renter_client.post(
            '/api/reviews/', {'listing_id': listing.id, 'rating': rating}, format='json'
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'rating' in response.data['details']

    def test_missing_listing(self, renter_client):
        response = renter_client.post('/api/reviews/', {'listing_id': 999999, 'rating': 4}, format='json')

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_review_survives_notification_failure(self, renter, listing, completed_booking):
        with mock.patch('marketplace.signals.create_notification', side_effect=RuntimeError('boom')):
            review = services.create_review(renter, listing.id, 3, 'ok')

        assert Review.objects.filter(pk=review.pk).exists()
        assert Notification.objects.count() == 0


@pytest.mark.django_db
class TestListingReviews:

    def test_public_list_with_average(self, api_client, listing, renter, stranger, booking_factory):
        booking_factory(listing, renter, status=Booking.COMPLETED)
        booking_factory(listing, stranger, status=Booking.COMPLETED)
        services.create_review(renter, listing.id, 5, 'Great')
        services.create_review(stranger, listing.id, 2, 'Leaky')

        response = api_client.get(f'/api/reviews/listing/{listing.id}/')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['total_reviews'] == 2
        assert response.data['average_rating'] == 3.5
        assert {r['comment'] for r in response.data['reviews']} == {'Great', 'Leaky'}

    def test_no_reviews(self, api_client, listing):
        response = api_client.get(f'/api/reviews/listing/{listing.id}/')

        assert response.data['reviews'] == []
        assert response.data['average_rating'] is None

    def test_missing_listing(self, api_client):
        response = api_client.get('/api/reviews/listing/999999/')

        assert response.status_code == status.HTTP_404_NOT_FOUND
