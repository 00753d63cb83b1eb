"""
Management command to deliver pending notification outbox rows.
"""

from typing import Any

from django.core.management.base import BaseCommand, CommandParser

from apps.orders.tasks import drain_notification_outbox, drain_notification_outbox_async


class Command(BaseCommand):
    help = "Deliver due notification outbox rows"

    def add_arguments(self, parser: CommandParser) -> None:
        parser.add_argument(
            "--async",
            action="store_true",
            dest="run_async",
            help="Queue the drain on the django-q cluster instead of running it here",
        )

    def handle(self, *args: Any, **options: Any) -> None:
        if options["run_async"]:
            task_id = drain_notification_outbox_async()
            self.stdout.write(self.style.SUCCESS(f"📤 Queued outbox drain (task {task_id})"))
            return

        result = drain_notification_outbox()
        if "results" not in result:
            self.stdout.write(self.style.WARNING("⏭️ Drain already running, skipped"))
            return
        counts = result["results"]
        self.stdout.write(
            self.style.SUCCESS(f"📨 Outbox: {counts['done']} processed, {counts['sent']} sent, {counts['failed']} failed")
        )
