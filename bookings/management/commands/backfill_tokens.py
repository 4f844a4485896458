from django.core.management.base import BaseCommand

from bookings.services.tokens import backfill_tokens


class Command(BaseCommand):
    help = "Give bookings with empty or legacy numeric tokens a well-formed token and fix the day counters."

    def add_arguments(self, parser):
        parser.add_argument('--dry-run', action='store_true', help='Report the changes without saving them')

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        changes = backfill_tokens(dry_run=dry_run)
        for booking_id, old, new in changes:
            self.stdout.write(f"booking {booking_id}: {old or '<empty>'} -> {new}")
        verb = 'Would update' if dry_run else 'Updated'
        self.stdout.write(self.style.SUCCESS(f"{verb} {len(changes)} bookings"))
