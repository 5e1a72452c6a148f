"""Report which weapon statistics tables and indexes exist."""

from __future__ import annotations

from django.core.management.base import BaseCommand

from arsenal.client import WeaponStatsClient
from arsenal.integrity import audit_dataset
from arsenal.management.commands._common import command_errors


class Command(BaseCommand):
    """Print per-table schema status and, optionally, an integrity audit."""

    help = "Show weapon statistics schema status (tables, indexes, row counts)."

    def add_arguments(self, parser) -> None:
        """Add command arguments."""

        parser.add_argument(
            "--audit",
            action="store_true",
            help="Also audit stored data (rising damage curves, missing stats or dropoffs).",
        )
        parser.add_argument("--database", default="default", help="Database alias to use.")

    def handle(self, *args, **options) -> str | None:
        """Run the command."""

        client = WeaponStatsClient(using=options["database"])
        with command_errors():
            status = client.schema.status()
            for table in status.tables:
                if not table.exists:
                    self.stdout.write(f"{table.table}: missing")
                    continue
                line = f"{table.table}: rows={table.row_count}"
                if table.missing_indexes:
                    line += f" missing_indexes={list(table.missing_indexes)}"
                self.stdout.write(line)
            self.stdout.write(f"complete={status.is_complete}")

            if options["audit"] and status.is_complete:
                report = audit_dataset(using=client.using)
                self.stdout.write(f"valid={report.is_valid}")
                for issue in report.issues:
                    self.stdout.write(f"issue: {issue}")
        return None
