"""Create any missing weapon statistics table or index."""

from __future__ import annotations

from django.core.management.base import BaseCommand

from arsenal.client import WeaponStatsClient
from arsenal.management.commands._common import command_errors


class Command(BaseCommand):
    """Apply the normalized schema without touching existing rows."""

    help = "Create missing weapon statistics tables and indexes (idempotent)."

    def add_arguments(self, parser) -> None:
        """Add command arguments."""

        parser.add_argument("--database", default="default", help="Database alias to use.")

    def handle(self, *args, **options) -> str | None:
        """Run the command."""

        client = WeaponStatsClient(using=options["database"])
        with command_errors():
            created = client.schema.apply_schema()
        self.stdout.write(f"created_tables={list(created)}")
        return None
