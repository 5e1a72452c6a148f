"""Natural-key deduplication for a single ingestion run.

A `NormalizedKeyRegistry` maps a natural key (a name, or a composite of
already-resolved surrogate ids and names) to the surrogate id the store
assigned when the row was inserted. It guarantees one row per distinct key no
matter how often the source document references it, and refuses to silently
merge a key that reappears with different attributes.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Hashable, Mapping
from typing import Any

from django.db import models

from arsenal.errors import DataConflict

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_name(value: str) -> str:
    """Normalize a display name for use as a natural key.

    Args:
        value: Raw name from the source document.

    Returns:
        The name trimmed with internal whitespace collapsed to single spaces.
    """

    return _WHITESPACE_RE.sub(" ", value).strip()


def _normalize_key(key: Hashable) -> Hashable:
    """Normalize string parts of a natural key, leaving ids untouched."""

    if isinstance(key, str):
        return normalize_name(key)
    if isinstance(key, tuple):
        return tuple(normalize_name(part) if isinstance(part, str) else part for part in key)
    return key


class NormalizedKeyRegistry:
    """Bijection between natural keys and surrogate ids for one model.

    Args:
        model: Django model whose rows this registry creates.
        key_fields: Model field names that together form the natural key. A
            single-field key may be passed as a plain value to
            `get_or_create`; composite keys are passed as tuples in the same
            order as `key_fields`.
        using: Database alias to insert into.
        label: Human-readable entity label used in conflict messages.
    """

    def __init__(
        self,
        model: type[models.Model],
        *,
        key_fields: tuple[str, ...],
        using: str = "default",
        label: str | None = None,
    ) -> None:
        self._model = model
        self._key_fields = key_fields
        self._using = using
        self._label = label or model._meta.verbose_name
        self._ids: dict[Hashable, int] = {}
        self._attributes: dict[Hashable, dict[str, Any]] = {}

    def __contains__(self, key: Hashable) -> bool:
        return _normalize_key(key) in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    @property
    def created(self) -> int:
        """Number of rows inserted by this registry."""

        return len(self._ids)

    def id_for(self, key: Hashable) -> int:
        """Return the surrogate id of an already-registered key.

        Raises:
            KeyError: If the key was never registered in this run.
        """

        return self._ids[_normalize_key(key)]

    def key_for(self, row_id: int) -> Hashable:
        """Return the normalized natural key registered under `row_id`."""

        return next(key for key, value in self._ids.items() if value == row_id)

    def attributes_for(self, key: Hashable) -> dict[str, Any]:
        """Return a copy of the attributes first registered with `key`."""

        return dict(self._attributes[_normalize_key(key)])

    def get_or_create(self, key: Hashable, **attributes: Any) -> int:
        """Return the id for `key`, inserting a row the first time it is seen.

        Args:
            key: Natural key value (or tuple for composite keys).
            **attributes: Non-key column values for the row.

        Returns:
            The surrogate id assigned by the store.

        Raises:
            DataConflict: If the key was seen before with different attributes.
        """

        normalized = _normalize_key(key)
        existing_id = self._ids.get(normalized)
        if existing_id is not None:
            self._check_attributes(normalized, attributes)
            return existing_id

        parts = normalized if len(self._key_fields) > 1 else (normalized,)
        if not isinstance(parts, tuple) or len(parts) != len(self._key_fields):
            raise ValueError(f"Expected a key with fields {self._key_fields!r}, got {key!r}.")

        row = self._model.objects.using(self._using).create(
            **dict(zip(self._key_fields, parts, strict=True)),
            **attributes,
        )
        self._ids[normalized] = row.pk
        self._attributes[normalized] = dict(attributes)
        logger.debug("registered %s %r as id=%s", self._label, normalized, row.pk)
        return row.pk

    def _check_attributes(self, key: Hashable, attributes: Mapping[str, Any]) -> None:
        """Raise DataConflict when a repeated key carries different attributes."""

        previous = self._attributes[key]
        if previous == dict(attributes):
            return
        differing = sorted(
            name for name in set(previous) | set(attributes) if previous.get(name) != attributes.get(name)
        )
        details = ", ".join(f"{name}: {previous.get(name)!r} != {attributes.get(name)!r}" for name in differing)
        raise DataConflict(f"{self._label} {key!r} appears with conflicting attributes ({details}).")
