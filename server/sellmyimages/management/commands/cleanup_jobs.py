from django.core.management.base import BaseCommand

from sellmyimages.tasks import cleanup_abandoned_jobs, purge_expired_downloads


class Command(BaseCommand):
    """Run the job cleanup tasks synchronously."""

    help = "Abandon stale checkouts, delete old abandoned jobs and purge expired downloads"

    def add_arguments(self, parser):
        parser.add_argument(
            "--skip-downloads",
            action="store_true",
            help="Only clean up abandoned jobs",
        )

    def handle(self, *args, **options):
        deleted = cleanup_abandoned_jobs()
        self.stdout.write(self.style.SUCCESS(f"Deleted {deleted} abandoned jobs"))

        if not options["skip_downloads"]:
            purged = purge_expired_downloads()
            self.stdout.write(self.style.SUCCESS(f"Purged {purged} expired downloads"))
