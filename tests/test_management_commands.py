"""
Tests for the seed_marketplace and backfill_chats management commands.
"""

from io import StringIO

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError

from marketplace.models import Booking, Chat, Listing, Review, User


@pytest.mark.django_db
class TestBackfillChats:

    def test_dry_run_creates_nothing(self, confirmed_booking):
        out = StringIO()

        call_command('backfill_chats', '--dry-run', stdout=out)

        assert not Chat.objects.exists()
        assert f'Booking {confirmed_booking.id}' in out.getvalue()
        assert '1 chats would be created' in out.getvalue()

    def test_creates_missing_chats_only_for_confirmed(self, listing, renter, stranger, booking_factory):
        confirmed = booking_factory(listing, renter, status=Booking.CONFIRMED)
        already_has_chat = booking_factory(listing, stranger, status=Booking.CONFIRMED)
        Chat.objects.create(booking=already_has_chat)
        pending = booking_factory(listing, renter)
        out = StringIO()

        call_command('backfill_chats', stdout=out)

        assert Chat.objects.filter(booking=confirmed).count() == 1
        assert Chat.objects.filter(booking=already_has_chat).count() == 1
        assert not Chat.objects.filter(booking=pending).exists()
        assert 'Created 1 missing chats.' in out.getvalue()

    def test_second_run_is_a_no_op(self, confirmed_booking):
        call_command('backfill_chats', stdout=StringIO())
        out = StringIO()

        call_command('backfill_chats', stdout=out)

        assert Chat.objects.count() == 1
        assert 'Created 0 missing chats.' in out.getvalue()


@pytest.mark.django_db
class TestSeedMarketplace:

    def test_seed_creates_data(self):
        out = StringIO()

        call_command(
            'seed_marketplace',
            '--users', '4',
            '--listings-per-user', '2',
            '--bookings', '15',
            '--seed', '7',
            stdout=out,
        )

        assert User.objects.filter(clerk_id__in=['clerk_user_1', 'clerk_user_2']).count() == 2
        assert User.objects.count() == 6
        assert Listing.objects.count() == 12
        assert Booking.objects.count() == 15
        assert 'Marketplace seeded successfully.' in out.getvalue()

        for booking in Booking.objects.select_related('listing'):
            assert booking.renter_id != booking.listing.owner_id
            assert booking.total_cost == Booking.calculate_total_cost(
                booking.start_date, booking.end_date, booking.listing.price
            )

        confirmed = Booking.objects.filter(status=Booking.CONFIRMED)
        assert Chat.objects.filter(booking__in=confirmed).count() == confirmed.count()

        for review in Review.objects.all():
            assert Booking.objects.filter(
                listing=review.listing, renter=review.author, status=Booking.COMPLETED
            ).exists()

    def test_development_accounts_are_reused(self):
        call_command('seed_marketplace', '--users', '0', '--bookings', '0', stdout=StringIO())
        call_command('seed_marketplace', '--users', '0', '--bookings', '0', stdout=StringIO())

        assert User.objects.count() == 2

    def test_negative_counts_rejected(self):
        with pytest.raises(CommandError):
            call_command('seed_marketplace', '--users', '-1', stdout=StringIO())
