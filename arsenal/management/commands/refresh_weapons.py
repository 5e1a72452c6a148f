"""Replace the weapon statistics dataset: reset the schema, then populate."""

from __future__ import annotations

from django.core.management.base import BaseCommand, CommandError

from arsenal.client import WeaponStatsClient
from arsenal.ingestion import IngestionSummary
from arsenal.management.commands._common import add_source_arguments, command_errors, resolve_mode
from arsenal.source import SourceDocument


class Command(BaseCommand):
    """Drop and recreate every weapon statistics table, then load a document."""

    help = "Reset the weapon statistics schema and load a JSON document (destroys current data)."

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
            if mode == "CHECK":
                summary = self._check(client, document)
            else:
                summary = client.refresh(document)

        self.stdout.write(f"[{mode}] counts={summary.as_counts()}")
        for warning in summary.warnings:
            self.stdout.write(f"[{mode}] warning: {warning}")
        return None

    def _check(self, client: WeaponStatsClient, document: SourceDocument) -> IngestionSummary:
        """Validate a refresh without dropping anything.

        Current rows are deleted inside the check transaction, which is then
        rolled back, so the stored dataset survives.
        """

        if not client.schema.status().is_complete:
            raise CommandError("Schema is incomplete; run apply_weapon_schema or refresh with --write.")
        return client.pipeline.check(document, replace_existing=True)
