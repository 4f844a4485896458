from django.core.management.base import BaseCommand

from bookings.services.scheduler import run_sweep


class Command(BaseCommand):
    help = "Send appointment and payment reminders and expire unpaid online bookings. Safe to run repeatedly (cron)."

    def handle(self, *args, **options):
        result = run_sweep()
        self.stdout.write(self.style.SUCCESS(
            f"Sent {len(result.reminded)} appointment reminders, expired {len(result.expired)} bookings, "
            f"sent {len(result.payment_reminded)} payment reminders"
        ))
