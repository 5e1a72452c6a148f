"""Error taxonomy for weapon statistics storage, ingestion, and queries.

Every failure surfaced by the `arsenal` layer is a `WeaponStatsError`
subclass, so management commands can report the error class by name and exit
non-zero without inspecting database driver exceptions.
"""

from __future__ import annotations


class WeaponStatsError(Exception):
    """Base class for all weapon statistics failures."""


class ConnectionFailure(WeaponStatsError):
    """The storage engine could not be reached or rejected authentication."""


class SchemaFailure(WeaponStatsError):
    """The storage engine rejected a DDL statement."""


class ParseFailure(WeaponStatsError):
    """The source document is malformed (bad JSON, wrong shapes, bad types)."""


class DataConflict(WeaponStatsError):
    """The source document violates an entity invariant.

    Examples: the same weapon under two categories, a duplicate dropoff range,
    an empty dropoff curve, a negative numeric field, or the same natural key
    repeated with different attributes.
    """


class QueryConstructionFailure(WeaponStatsError):
    """A query request is invalid; raised before any I/O happens."""


class RetrievalFailure(WeaponStatsError):
    """A database error occurred while a result sequence was being consumed."""
