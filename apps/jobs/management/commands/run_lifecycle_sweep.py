from django.core.management.base import BaseCommand

from apps.jobs.sweep import run_sweep
from apps.payments.utils import dispatch_pending


class Command(BaseCommand):
    help = "Apply deadline-driven job and contract transitions (auto-select, auto-cancel, suspension, auto-confirm)."

    def add_arguments(self, parser):
        parser.add_argument(
            '--dispatch-payments',
            action='store_true',
            help="Also retry payment events that were never delivered.",
        )

    def handle(self, *args, **options):
        report = run_sweep()
        for action, count in sorted(report.as_dict().items()):
            self.stdout.write(f"{action}: {count}")
        if options['dispatch_payments']:
            sent = dispatch_pending()
            self.stdout.write(f"payment_events_sent: {sent}")
        if report.errors:
            self.stderr.write(self.style.WARNING(f"{len(report.errors)} item(s) could not be processed"))
        else:
            self.stdout.write(self.style.SUCCESS("Lifecycle sweep complete"))
