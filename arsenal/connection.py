"""Connection helpers shared by the schema, ingestion, and query layers."""

from __future__ import annotations

from django.db import DatabaseError, connections

from arsenal.errors import ConnectionFailure


def ensure_connection(using: str) -> None:
    """Open (or health-check) the connection for `using`.

    Raises:
        ConnectionFailure: If the storage engine cannot be reached.
    """

    try:
        connections[using].ensure_connection()
    except DatabaseError as exc:
        raise ConnectionFailure(f"Cannot connect to database {using!r}: {exc}") from exc


def supports_atomic_refresh(using: str) -> bool:
    """Return True when a schema reset can share a transaction with ingestion.

    PostgreSQL rolls back DDL with the surrounding transaction. SQLite can too,
    but Django refuses schema edits inside an atomic block there because
    foreign key enforcement cannot be switched off mid-transaction.
    """

    connection = connections[using]
    return connection.features.can_rollback_ddl and connection.vendor != "sqlite"
