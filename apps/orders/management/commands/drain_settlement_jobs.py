"""
Management command to run due order settlement jobs.
Useful when no django-q cluster is running, or to push one order through by hand.
"""

from typing import Any

from django.core.management.base import BaseCommand, CommandParser

from apps.orders.tasks import drain_settlement_jobs, drain_settlement_jobs_async, process_order_settlement


class Command(BaseCommand):
    help = "Run due revenue snapshot and bonus evaluation jobs"

    def add_arguments(self, parser: CommandParser) -> None:
        parser.add_argument(
            "--order",
            help="Only run the jobs and notifications of this order id",
        )
        parser.add_argument(
            "--async",
            action="store_true",
            dest="run_async",
            help="Queue the drain on the django-q cluster instead of running it here",
        )

    def handle(self, *args: Any, **options: Any) -> None:
        if options["run_async"]:
            task_id = drain_settlement_jobs_async()
            self.stdout.write(self.style.SUCCESS(f"📤 Queued settlement drain (task {task_id})"))
            return

        if options["order"]:
            result = process_order_settlement(options["order"])
            self.stdout.write(self.style.SUCCESS(f"✅ Order {options['order']}: {result['jobs']}"))
            return

        result = drain_settlement_jobs()
        if "results" not in result:
            self.stdout.write(self.style.WARNING("⏭️ Drain already running, skipped"))
            return
        counts = result["results"]
        style = self.style.SUCCESS if not counts["failed"] and not counts["dead"] else self.style.WARNING
        self.stdout.write(
            style(f"✅ Settlement jobs: {counts['done']} done, {counts['failed']} failed, {counts['dead']} dead")
        )
