"""Client facade tying schema, ingestion, and queries to one database alias."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from django.conf import settings
from django.db import DEFAULT_DB_ALIAS, transaction

from arsenal.connection import ensure_connection, supports_atomic_refresh
from arsenal.ingestion import IngestionPipeline, IngestionSummary
from arsenal.queries import QueryEngine
from arsenal.schema import SchemaManager
from arsenal.source import SourceDocument, load_document

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class WeaponStatsClient:
    """Entry point for the weapon statistics store.

    The client is a small immutable value: copies share nothing mutable, and
    Django manages the underlying connection per thread.

    Attributes:
        using: Database alias.
        chunk_size: Rows per round trip for lazy query sequences.
        batch_size: Rows per bulk insert during ingestion.
    """

    using: str = DEFAULT_DB_ALIAS
    chunk_size: int | None = None
    batch_size: int | None = None

    def check_connection(self) -> None:
        """Raise ConnectionFailure when the database cannot be reached."""

        ensure_connection(self.using)

    @property
    def schema(self) -> SchemaManager:
        return SchemaManager(self.using)

    @property
    def queries(self) -> QueryEngine:
        return QueryEngine(using=self.using, chunk_size=self.chunk_size)

    @property
    def pipeline(self) -> IngestionPipeline:
        return IngestionPipeline(using=self.using, batch_size=self.batch_size)

    def load_source(self, path: str | Path | None = None) -> SourceDocument:
        """Parse the source document at `path` (default: `WEAPON_STATS["SOURCE_PATH"]`)."""

        return load_document(path or settings.WEAPON_STATS["SOURCE_PATH"])

    def populate(self, document: SourceDocument) -> IngestionSummary:
        return self.pipeline.populate(document)

    def check(self, document: SourceDocument) -> IngestionSummary:
        return self.pipeline.check(document)

    def refresh(self, document: SourceDocument) -> IngestionSummary:
        """Destroy the current dataset and load `document` in its place.

        On engines that allow schema edits inside a transaction the reset and
        the population commit together, so a failure keeps the previous
        dataset. Elsewhere (SQLite) the reset commits on its own; if the
        population then fails the schema is left empty and the caller must
        retry from the reset.

        Raises:
            SchemaFailure: If the reset is rejected.
            DataConflict: If the document violates an entity invariant.
        """

        ensure_connection(self.using)
        if supports_atomic_refresh(self.using):
            with transaction.atomic(using=self.using):
                self.schema.reset_schema()
                summary = self.pipeline.populate(document)
        else:
            self.schema.reset_schema()
            summary = self.pipeline.populate(document)
        logger.info("refreshed %r", self.using)
        return summary

    def ensure_initialized(self, document: SourceDocument | None = None) -> IngestionSummary | None:
        """Apply the schema and populate it when it holds no data yet.

        Args:
            document: Document to load; defaults to the configured source.

        Returns:
            The ingestion summary, or None when data was already present.
        """

        self.schema.apply_schema()
        if not self.schema.status().is_empty:
            logger.info("dataset already present on %r; skipping population", self.using)
            return None
        return self.populate(document or self.load_source())
