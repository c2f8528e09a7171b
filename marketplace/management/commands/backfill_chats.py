# Backfill Chats Management Command
from django.core.management.base import BaseCommand

from marketplace.models import Booking
from marketplace.services import ensure_chat


class Command(BaseCommand):
    help = 'Creates the missing chat thread for every confirmed booking.'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='List bookings that would get a chat without creating anything.',
        )
        parser.add_argument(
            '--batch-size',
            type=int,
            default=500,
            help='Chunk size used when iterating bookings.',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']

        bookings = (
            Booking.objects.filter(status=Booking.CONFIRMED, chat__isnull=True)
            .select_related('listing')
            .order_by('id')
        )

        count = 0
        for booking in bookings.iterator(chunk_size=options['batch_size']):
            if dry_run:
                self.stdout.write(f'  [DRY-RUN] Booking {booking.id} ("{booking.listing.title}") has no chat')
            else:
                ensure_chat(booking)
            count += 1

        if dry_run:
            self.stdout.write(self.style.SUCCESS(f'Dry run completed. {count} chats would be created.'))
        else:
            self.stdout.write(self.style.SUCCESS(f'Created {count} missing chats.'))
