"""DDL lifecycle for the normalized weapon statistics schema.

Tables are created in dependency order (lookups, weapons, per-weapon stats,
configurations, dropoffs) and dropped in the reverse order. There is no
incremental migration path: `reset_schema` is the only way to move to a new
dataset, and it must not run while ingestion or readers are active.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from django.db import DEFAULT_DB_ALIAS, DatabaseError, connections, models

from arsenal.connection import ensure_connection
from arsenal.errors import SchemaFailure
from arsenal.models import (
    AmmoType,
    Barrel,
    Category,
    ConfigDropoff,
    Configuration,
    Weapon,
    WeaponAmmoStats,
)

logger = logging.getLogger(__name__)

CORE_MODELS: tuple[type[models.Model], ...] = (
    Category,
    Barrel,
    AmmoType,
    Weapon,
    WeaponAmmoStats,
    Configuration,
    ConfigDropoff,
)


@dataclass(frozen=True, slots=True)
class TableStatus:
    """Inspection result for one core table.

    Attributes:
        table: Table name.
        exists: Whether the table is present.
        missing_indexes: Declared index names not found on the table.
        row_count: Number of rows, or None when the table is absent.
    """

    table: str
    exists: bool
    missing_indexes: tuple[str, ...] = ()
    row_count: int | None = None


@dataclass(frozen=True, slots=True)
class SchemaStatus:
    """Inspection result for the whole schema, in dependency order."""

    tables: tuple[TableStatus, ...]

    @property
    def missing_tables(self) -> tuple[str, ...]:
        """Names of expected tables that do not exist."""

        return tuple(status.table for status in self.tables if not status.exists)

    @property
    def missing_indexes(self) -> tuple[str, ...]:
        """Names of declared indexes missing from existing tables."""

        return tuple(name for status in self.tables for name in status.missing_indexes)

    @property
    def is_complete(self) -> bool:
        """True when every table and index exists."""

        return not self.missing_tables and not self.missing_indexes

    @property
    def is_absent(self) -> bool:
        """True when none of the expected tables exist."""

        return all(not status.exists for status in self.tables)

    @property
    def is_empty(self) -> bool:
        """True when the schema is complete and holds no rows."""

        return self.is_complete and all(status.row_count == 0 for status in self.tables)


class SchemaManager:
    """Apply, reset, and inspect the core tables on one database alias."""

    def __init__(self, using: str = DEFAULT_DB_ALIAS) -> None:
        self.using = using

    @property
    def _connection(self):
        return connections[self.using]

    def existing_tables(self) -> set[str]:
        """Return the names of core tables currently present."""

        ensure_connection(self.using)
        expected = {model._meta.db_table for model in CORE_MODELS}
        with self._connection.cursor() as cursor:
            present = set(self._connection.introspection.table_names(cursor))
        return expected & present

    def status(self) -> SchemaStatus:
        """Inspect which tables and indexes exist, with row counts.

        A partially applied schema shows up as a mix of present and missing
        tables instead of being assumed complete.
        """

        existing = self.existing_tables()
        tables: list[TableStatus] = []
        for model in CORE_MODELS:
            table = model._meta.db_table
            if table not in existing:
                tables.append(TableStatus(table=table, exists=False))
                continue
            present = self._index_names(table)
            missing = tuple(index.name for index in model._meta.indexes if index.name not in present)
            tables.append(
                TableStatus(
                    table=table,
                    exists=True,
                    missing_indexes=missing,
                    row_count=model._default_manager.using(self.using).count(),
                )
            )
        return SchemaStatus(tables=tuple(tables))

    def apply_schema(self) -> tuple[str, ...]:
        """Create any missing table or index; existing objects are left alone.

        Returns:
            Names of the tables created by this call.

        Raises:
            SchemaFailure: If the engine rejects a DDL statement.
        """

        existing = self.existing_tables()
        missing_models = [model for model in CORE_MODELS if model._meta.db_table not in existing]
        missing_indexes = [
            (model, index)
            for model in CORE_MODELS
            if model._meta.db_table in existing
            for index in model._meta.indexes
            if index.name not in self._index_names(model._meta.db_table)
        ]
        if not missing_models and not missing_indexes:
            logger.debug("schema already complete on %r", self.using)
            return ()

        with self._schema_errors("apply"):
            with self._connection.schema_editor() as editor:
                for model in missing_models:
                    editor.create_model(model)
                for model, index in missing_indexes:
                    logger.info("adding missing index %s on %s", index.name, model._meta.db_table)
                    editor.add_index(model, index)
        created = tuple(model._meta.db_table for model in missing_models)
        logger.info("schema applied on %r; created tables: %s", self.using, list(created))
        return created

    def reset_schema(self) -> None:
        """Drop every core table in reverse dependency order and recreate all.

        This destroys the dataset and invalidates every surrogate id handed
        out before the call.

        Raises:
            SchemaFailure: If the engine rejects a DDL statement.
        """

        existing = self.existing_tables()
        with self._schema_errors("reset"):
            with self._connection.schema_editor() as editor:
                for model in reversed(CORE_MODELS):
                    if model._meta.db_table in existing:
                        editor.delete_model(model)
                for model in CORE_MODELS:
                    editor.create_model(model)
        logger.info("schema reset on %r; dropped %d tables", self.using, len(existing))

    def _index_names(self, table: str) -> set[str]:
        """Return the names of indexes and constraints present on `table`."""

        with self._connection.cursor() as cursor:
            return set(self._connection.introspection.get_constraints(cursor, table))

    @contextmanager
    def _schema_errors(self, action: str) -> Iterator[None]:
        """Translate database errors raised by DDL into SchemaFailure."""

        try:
            yield
        except DatabaseError as exc:
            raise SchemaFailure(f"Schema {action} failed on {self.using!r}: {exc}") from exc
