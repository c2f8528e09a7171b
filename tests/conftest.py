"""
Shared fixtures for the RentMe test suite.

Users carry a ``clerk_<name>`` subject id so that the development verifier
maps ``mock-token-<name>`` onto them.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.utils import timezone
from rest_framework.test import APIClient

from marketplace.models import Booking, Listing

User = get_user_model()


def make_user(name, **extra):
    """Create a user whose mock bearer token is ``mock-token-<name>``."""
    return User.objects.create_user(
        username=f'clerk_{name}',
        email=f'{name}@example.com',
        password=None,
        clerk_id=f'clerk_{name}',
        first_name=name.capitalize(),
        **extra
    )


def bearer_client(user):
    """Return an APIClient authenticated as ``user`` with a mock token."""
    client = APIClient()
    name = user.clerk_id[len('clerk_'):]
    client.credentials(HTTP_AUTHORIZATION=f'Bearer mock-token-{name}')
    return client


def make_booking(listing, renter, days=3, status=Booking.PENDING):
    start_date = timezone.now() + timedelta(days=1)
    end_date = start_date + timedelta(days=days)
    return Booking.objects.create(
        listing=listing,
        renter=renter,
        start_date=start_date,
        end_date=end_date,
        total_cost=Booking.calculate_total_cost(start_date, end_date, listing.price),
        status=status,
    )


@pytest.fixture(autouse=True)
def clear_cache():
    """Throttle counters live in the cache; start every test from zero."""
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def api_client():
    """Unauthenticated API client."""
    return APIClient()


@pytest.fixture
def owner(db):
    return make_user('owner', last_name='Lender')


@pytest.fixture
def renter(db):
    return make_user('renter', last_name='Borrower')


@pytest.fixture
def stranger(db):
    return make_user('stranger')


@pytest.fixture
def owner_client(owner):
    return bearer_client(owner)


@pytest.fixture
def renter_client(renter):
    return bearer_client(renter)


@pytest.fixture
def stranger_client(stranger):
    return bearer_client(stranger)


@pytest.fixture
def listing(owner):
    """A $10/day listing owned by ``owner``."""
    return Listing.objects.create(
        owner=owner,
        title='Camping Tent',
        description='Four person tent, waterproof, with poles and pegs.',
        price=Decimal('10.00'),
        category='Sports',
        location='Portland, OR',
        images=['https://example.com/tent.jpg'],
    )


@pytest.fixture
def pending_booking(listing, renter):
    return make_booking(listing, renter)


@pytest.fixture
def confirmed_booking(listing, renter):
    return make_booking(listing, renter, status=Booking.CONFIRMED)


@pytest.fixture
def booking_factory(db):
    """``booking_factory(listing, renter, days=3, status=PENDING)``"""
    return make_booking


@pytest.fixture
def client_for(db):
    """``client_for(user)`` returns an APIClient with that user's mock token."""
    return bearer_client
