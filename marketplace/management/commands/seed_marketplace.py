# Seed Marketplace Management Command
import random
from datetime import timedelta
from decimal import Decimal

from django.core.management.base import BaseCommand, CommandError
from django.db import transaction
from django.utils import timezone
from faker import Faker

from marketplace.models import Booking, Listing, Review, User
from marketplace.services import ensure_chat

CATEGORIES = {
    'Electronics': ['Camera Kit', 'Projector', 'Drone', 'Gaming Console', 'Speaker Set'],
    'Sports': ['Mountain Bike', 'Kayak', 'Camping Tent', 'Snowboard', 'Climbing Gear'],
    'Tools': ['Power Drill', 'Pressure Washer', 'Ladder', 'Tile Cutter', 'Lawn Mower'],
    'Party': ['Bouncy Castle', 'Sound System', 'Folding Tables', 'Photo Booth', 'Fog Machine'],
    'Vehicles': ['Cargo Van', 'Trailer', 'Electric Scooter', 'Roof Box', 'Bike Rack'],
}

# Fixed accounts matching the mock development tokens.
DEV_USERS = [
    {'clerk_id': 'clerk_user_1', 'email': 'john@example.com', 'first_name': 'John', 'last_name': 'Doe'},
    {'clerk_id': 'clerk_user_2', 'email': 'jane@example.com', 'first_name': 'Jane', 'last_name': 'Smith'},
]


class Command(BaseCommand):
    help = 'Populates the database with demo users, listings, bookings, chats and reviews.'

    def add_arguments(self, parser):
        parser.add_argument(
            '--users',
            type=int,
            default=10,
            help='Number of generated users in addition to the fixed development accounts.',
        )
        parser.add_argument(
            '--listings-per-user',
            type=int,
            default=2,
            help='Listings created for every user.',
        )
        parser.add_argument(
            '--bookings',
            type=int,
            default=20,
            help='Number of bookings spread over random listings.',
        )
        parser.add_argument(
            '--seed',
            type=int,
            default=None,
            help='Random seed for reproducible data.',
        )

    def handle(self, *args, **options):
        if options['users'] < 0 or options['listings_per_user'] < 0 or options['bookings'] < 0:
            raise CommandError('Counts must not be negative.')

        self.fake = Faker()
        if options['seed'] is not None:
            Faker.seed(options['seed'])
            random.seed(options['seed'])

        with transaction.atomic():
            users = self.create_users(options['users'])
            listings = self.create_listings(users, options['listings_per_user'])
            bookings = self.create_bookings(users, listings, options['bookings'])
            self.create_reviews(bookings)

        self.stdout.write(self.style.SUCCESS('Marketplace seeded successfully.'))

    def create_users(self, count):
        self.stdout.write(f'Creating {count} users plus {len(DEV_USERS)} development accounts...')
        users = []

        for fields in DEV_USERS:
            user, _ = User.objects.get_or_create(
                clerk_id=fields['clerk_id'],
                defaults={key: value for key, value in fields.items() if key != 'clerk_id'},
            )
            users.append(user)

        for _ in range(count):
            clerk_id = f'clerk_{self.fake.unique.user_name()}'
            user = User(
                clerk_id=clerk_id,
                email=self.fake.unique.email(),
                first_name=self.fake.first_name(),
                last_name=self.fake.last_name(),
                avatar=self.fake.image_url(),
            )
            user.set_unusable_password()
            user.save()
            users.append(user)

        return users

    def create_listings(self, users, per_user):
        self.stdout.write('Creating listings...')
        listings = []

        for owner in users:
            for _ in range(per_user):
                category = random.choice(list(CATEGORIES))
                listing = Listing.objects.create(
                    owner=owner,
                    title=f'{self.fake.color_name()} {random.choice(CATEGORIES[category])}',
                    description=self.fake.paragraph(nb_sentences=4)[:2000],
                    price=Decimal(random.randint(500, 15000)) / 100,
                    category=category,
                    location=self.fake.city(),
                    images=[self.fake.image_url() for _ in range(random.randint(1, 3))],
                    available=random.random() > 0.1,
                )
                listings.append(listing)

        self.stdout.write(f'Created {len(listings)} listings.')
        return listings

    def create_bookings(self, users, listings, count):
        self.stdout.write('Creating bookings...')
        bookings = []
        statuses = [choice for choice, _ in Booking.STATUS_CHOICES]

        if not listings or len(users) < 2:
            self.stdout.write(self.style.WARNING('Not enough users or listings to create bookings.'))
            return bookings

        for _ in range(count):
            listing = random.choice(listings)
            renter = random.choice([user for user in users if user.id != listing.owner_id])

            start_date = timezone.now() + timedelta(days=random.randint(-30, 30), hours=random.randint(0, 23))
            end_date = start_date + timedelta(days=random.randint(1, 7))
            status = random.choice(statuses)

            booking = Booking.objects.create(
                renter=renter,
                listing=listing,
                start_date=start_date,
                end_date=end_date,
                total_cost=Booking.calculate_total_cost(start_date, end_date, listing.price),
                message=self.fake.sentence(),
                status=status,
            )
            if status in (Booking.CONFIRMED, Booking.COMPLETED):
                ensure_chat(booking)
            bookings.append(booking)

        self.stdout.write(f'Created {len(bookings)} bookings.')
        return bookings

    def create_reviews(self, bookings):
        self.stdout.write('Creating reviews...')
        created = 0

        for booking in bookings:
            if booking.status != Booking.COMPLETED:
                continue
            if Review.objects.filter(listing=booking.listing, author=booking.renter).exists():
                continue
            Review.objects.create(
                listing=booking.listing,
                author=booking.renter,
                rating=random.randint(3, 5),
                comment=self.fake.sentence(nb_words=12),
            )
            created += 1

        self.stdout.write(f'Created {created} reviews.')
