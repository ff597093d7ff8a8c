from django.conf import settings
from django.core.management.base import BaseCommand

from services.dispatch import sweep_expired_offers


class Command(BaseCommand):
    help = "Advance delivery tasks whose volunteer offer expired and release expired beneficiary offers."

    def add_arguments(self, parser):
        parser.add_argument(
            "--batch-size",
            type=int,
            default=getattr(settings, "EXPIRY_SWEEP_BATCH_SIZE", 20),
            help="Maximum number of expired offers handled per run (default: EXPIRY_SWEEP_BATCH_SIZE).",
        )

    def handle(self, *args, **options):
        result = sweep_expired_offers(batch_size=options["batch_size"])

        self.stdout.write(
            self.style.SUCCESS(
                f"Expired {result.expired_tasks} task offer(s): "
                f"{result.reassigned} reassigned, {result.unassigned} unassigned; "
                f"released {result.expired_beneficiary_offers} beneficiary offer(s)."
            )
        )
