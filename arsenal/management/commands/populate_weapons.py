"""Populate empty weapon statistics tables from a source document."""

from __future__ import annotations

from django.core.management.base import BaseCommand, CommandError

from arsenal.client import WeaponStatsClient
from arsenal.management.commands._common import add_source_arguments, command_errors, resolve_mode


class Command(BaseCommand):
    """Load a source document into an applied, empty schema."""

    help = "Populate the weapon statistics tables from a JSON document (tables must be empty)."

    def add_arguments(self, parser) -> None:
        """Add command arguments."""

        add_source_arguments(parser)
        parser.add_argument("--database", default="default", help="Database alias to use.")

    def handle(self, *args, **options) -> str | None:
        """Run the command."""

        mode = resolve_mode(check=options["check"], write=options["write"])
        client = WeaponStatsClient(using=options["database"])
        with command_errors():
            document = client.load_source(options["file"])
            status = client.schema.status()
            if not status.is_complete:
                raise CommandError(
                    f"Schema is incomplete (missing tables={list(status.missing_tables)}, "
                    f"indexes={list(status.missing_indexes)}); run apply_weapon_schema first."
                )
            if not status.is_empty:
                raise CommandError("Tables already hold data; use refresh_weapons to replace the dataset.")
            summary = client.check(document) if mode == "CHECK" else client.populate(document)

        self.stdout.write(f"[{mode}] counts={summary.as_counts()}")
        for warning in summary.warnings:
            self.stdout.write(f"[{mode}] warning: {warning}")
        return None
