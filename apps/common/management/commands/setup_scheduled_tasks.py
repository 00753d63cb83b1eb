"""
Management command to set up the scheduled tasks for Tessera Platform.

Registers the django-q2 schedules that drain settlement jobs and the
notification outbox.
"""

from typing import Any

from django.core.management.base import BaseCommand, CommandError

from apps.orders.tasks import setup_order_scheduled_tasks


class Command(BaseCommand):
    help = 'Set up the order settlement and notification outbox schedules'

    def handle(self, *args: Any, **options: Any) -> None:
        self.stdout.write('🚀 Setting up Tessera Platform scheduled tasks...')

        try:
            results = setup_order_scheduled_tasks()
        except Exception as e:
            raise CommandError(f'❌ Failed to set up scheduled tasks: {e}') from e

        for task_name, result in results.items():
            if result == 'already_exists':
                self.stdout.write(self.style.WARNING(f'  - {task_name}: Task already exists (skipped)'))
            else:
                self.stdout.write(self.style.SUCCESS(f'  - {task_name}: Created successfully'))

        created = sum(1 for value in results.values() if value == 'created')
        self.stdout.write('')
        self.stdout.write('📦 Order Settlement:')
        self.stdout.write('  - Drain Settlement Jobs: Every minute')
        self.stdout.write('  - Drain Notification Outbox: Every minute')
        self.stdout.write('')
        self.stdout.write('🔧 Start workers: python manage.py qcluster')
        self.stdout.write(
            self.style.SUCCESS(f'📊 Summary: {created} new tasks created, {len(results) - created} existing tasks skipped')
        )
