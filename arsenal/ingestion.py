"""One-pass ingestion of a source document into the normalized schema.

The pipeline walks the nested document in four passes so that every foreign
key references a row created earlier in the same run:

1. lookups: every distinct category, barrel, and ammo type name,
2. weapons, each bound to exactly one category,
3. weapon x ammo compatibility stats,
4. configurations (weapon x barrel x ammo) followed by their dropoff curves.

Validation happens inline and any violation raises `DataConflict`. The whole
run executes inside one transaction, so a failure leaves no partial dataset.
Population never merges with existing rows: callers reset the schema first.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import DEFAULT_DB_ALIAS, DatabaseError, DataError, IntegrityError, models, transaction

from arsenal.connection import ensure_connection
from arsenal.errors import DataConflict, SchemaFailure
from arsenal.models import (
    AmmoType,
    Barrel,
    Category,
    ConfigDropoff,
    Configuration,
    Weapon,
    WeaponAmmoStats,
)
from arsenal.registry import NormalizedKeyRegistry
from arsenal.schema import CORE_MODELS
from arsenal.source import AmmoStatSource, ConfigurationSource, DropoffSample, SourceDocument

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class IngestionSummary:
    """Row counts written by an ingestion run, plus non-fatal warnings."""

    categories: int = 0
    barrels: int = 0
    ammo_types: int = 0
    weapons: int = 0
    weapon_ammo_stats: int = 0
    configurations: int = 0
    dropoffs: int = 0
    warnings: tuple[str, ...] = ()

    def as_counts(self) -> dict[str, int]:
        """Return the per-table counts keyed by table name."""

        return {
            "categories": self.categories,
            "barrels": self.barrels,
            "ammo_types": self.ammo_types,
            "weapons": self.weapons,
            "weapon_ammo_stats": self.weapon_ammo_stats,
            "configurations": self.configurations,
            "config_dropoffs": self.dropoffs,
        }


def _require_non_negative(value: int | Decimal | None, what: str) -> None:
    """Raise DataConflict for negative numeric fields; None is allowed."""

    if value is not None and value < 0:
        raise DataConflict(f"{what} must be non-negative, got {value}.")


def _require_storable(value: int | Decimal | None, what: str, model: type[models.Model], field: str) -> None:
    """Raise DataConflict unless `value` fits the column without rounding.

    Runs the model field's own validators (digits and decimal places for
    decimal columns, bounds for integer columns) on top of the sign check,
    so every later comparison sees exactly the value that will be stored.
    """

    _require_non_negative(value, what)
    if value is None:
        return
    try:
        model._meta.get_field(field).run_validators(value)
    except ValidationError as exc:
        column = f"{model._meta.db_table}.{field}"
        raise DataConflict(f"{what} does not fit column {column}: {' '.join(exc.messages)}") from exc


def _validated_curve(samples: tuple[DropoffSample, ...], what: str) -> tuple[tuple[int, Decimal], ...]:
    """Validate a dropoff curve and return it sorted by range.

    Raises:
        DataConflict: If the curve is empty, has a duplicate range, or holds
            negative values.
    """

    if not samples:
        raise DataConflict(f"{what} has no dropoff samples.")
    by_range: dict[int, Decimal] = {}
    for sample in samples:
        _require_storable(sample.range, f"{what} dropoff range", ConfigDropoff, "range")
        _require_storable(
            sample.damage, f"{what} dropoff damage at range {sample.range}", ConfigDropoff, "damage"
        )
        if sample.range in by_range:
            raise DataConflict(f"{what} lists range {sample.range} more than once.")
        by_range[sample.range] = sample.damage
    return tuple(sorted(by_range.items()))


def _increases_with_range(curve: tuple[tuple[int, Decimal], ...]) -> bool:
    """Return True when damage goes up anywhere along a range-sorted curve."""

    return any(later[1] > earlier[1] for earlier, later in zip(curve, curve[1:]))


class _IngestionRun:
    """State for exactly one pass over one document.

    Registries live here so surrogate ids never leak between runs.
    """

    def __init__(self, *, using: str, batch_size: int) -> None:
        self.using = using
        self.batch_size = batch_size
        self.categories = NormalizedKeyRegistry(Category, key_fields=("name",), using=using, label="category")
        self.barrels = NormalizedKeyRegistry(Barrel, key_fields=("name",), using=using, label="barrel")
        self.ammo_types = NormalizedKeyRegistry(AmmoType, key_fields=("name",), using=using, label="ammo type")
        self.weapons = NormalizedKeyRegistry(Weapon, key_fields=("name",), using=using, label="weapon")
        self.ammo_stats = NormalizedKeyRegistry(
            WeaponAmmoStats,
            key_fields=("weapon_id", "ammo_id"),
            using=using,
            label="weapon ammo stats",
        )
        self.configurations = NormalizedKeyRegistry(
            Configuration,
            key_fields=("weapon_id", "barrel_id", "ammo_id"),
            using=using,
            label="configuration",
        )
        self._curves: dict[int, tuple[tuple[int, Decimal], ...]] = {}
        self._pending_dropoffs: list[ConfigDropoff] = []
        self._dropoffs_written = 0
        self._warnings: list[str] = []

    def run(self, document: SourceDocument) -> IngestionSummary:
        self._register_lookups(document)
        self._register_weapons(document)
        self._register_ammo_stats(document)
        self._register_configurations(document)
        self._flush_dropoffs()
        return IngestionSummary(
            categories=self.categories.created,
            barrels=self.barrels.created,
            ammo_types=self.ammo_types.created,
            weapons=self.weapons.created,
            weapon_ammo_stats=self.ammo_stats.created,
            configurations=self.configurations.created,
            dropoffs=self._dropoffs_written,
            warnings=tuple(self._warnings),
        )

    def _register_lookups(self, document: SourceDocument) -> None:
        """Pass 1: register every distinct lookup name in first-seen order."""

        for category in document.categories:
            self.categories.get_or_create(category.name)
        for _, weapon in document.iter_weapons():
            for stats in weapon.ammo_stats:
                self.ammo_types.get_or_create(stats.ammo)
            for config in weapon.configurations:
                self.barrels.get_or_create(config.barrel)
                self.ammo_types.get_or_create(config.ammo)

    def _register_weapons(self, document: SourceDocument) -> None:
        """Pass 2: bind each weapon name to exactly one category."""

        for category, weapon in document.iter_weapons():
            try:
                self.weapons.get_or_create(weapon.name, category_id=self.categories.id_for(category.name))
            except DataConflict as exc:
                bound = self.categories.key_for(self.weapons.attributes_for(weapon.name)["category_id"])
                raise DataConflict(
                    f"Weapon {weapon.name!r} is listed under both {bound!r} and {category.name!r}."
                ) from exc

    def _register_ammo_stats(self, document: SourceDocument) -> None:
        """Pass 3: one stats row per (weapon, ammo)."""

        for _, weapon in document.iter_weapons():
            weapon_id = self.weapons.id_for(weapon.name)
            for stats in weapon.ammo_stats:
                self._validate_ammo_stats(weapon.name, stats)
                self.ammo_stats.get_or_create(
                    (weapon_id, self.ammo_types.id_for(stats.ammo)),
                    magazine_size=stats.magazine_size,
                    empty_reload_time=stats.empty_reload_time,
                    tactical_reload_time=stats.tactical_reload_time,
                    headshot_multiplier=stats.headshot_multiplier,
                    pellet_count=stats.pellet_count,
                )

    def _register_configurations(self, document: SourceDocument) -> None:
        """Pass 4: configurations and their dropoff curves."""

        for _, weapon in document.iter_weapons():
            weapon_id = self.weapons.id_for(weapon.name)
            for config in weapon.configurations:
                what = f"Configuration {weapon.name} / {config.barrel} / {config.ammo}"
                self._validate_fire_profile(what, config)
                curve = _validated_curve(config.dropoffs, what)
                key = (weapon_id, self.barrels.id_for(config.barrel), self.ammo_types.id_for(config.ammo))
                seen = key in self.configurations
                config_id = self.configurations.get_or_create(
                    key,
                    velocity=config.velocity,
                    rpm_single=config.rpm_single,
                    rpm_burst=config.rpm_burst,
                    rpm_auto=config.rpm_auto,
                )
                if seen:
                    if self._curves[config_id] != curve:
                        raise DataConflict(f"{what} appears twice with different dropoff curves.")
                    continue
                self._curves[config_id] = curve
                if _increases_with_range(curve):
                    message = f"{what} damage increases with range: {[(r, str(d)) for r, d in curve]}"
                    logger.warning("%s", message)
                    self._warnings.append(message)
                self._queue_dropoffs(config_id, curve)

    def _queue_dropoffs(self, config_id: int, curve: tuple[tuple[int, Decimal], ...]) -> None:
        self._pending_dropoffs.extend(
            ConfigDropoff(configuration_id=config_id, range=range_value, damage=damage)
            for range_value, damage in curve
        )
        if len(self._pending_dropoffs) >= self.batch_size:
            self._flush_dropoffs()

    def _flush_dropoffs(self) -> None:
        if not self._pending_dropoffs:
            return
        ConfigDropoff.objects.using(self.using).bulk_create(self._pending_dropoffs, batch_size=self.batch_size)
        self._dropoffs_written += len(self._pending_dropoffs)
        self._pending_dropoffs = []

    @staticmethod
    def _validate_ammo_stats(weapon_name: str, stats: AmmoStatSource) -> None:
        what = f"Ammo stats {weapon_name} / {stats.ammo}"
        for field, value, key in (
            ("magazine_size", stats.magazine_size, "magSize"),
            ("headshot_multiplier", stats.headshot_multiplier, "headshotMultiplier"),
            ("empty_reload_time", stats.empty_reload_time, "emptyReload"),
            ("tactical_reload_time", stats.tactical_reload_time, "tacticalReload"),
            ("pellet_count", stats.pellet_count, "pelletCount"),
        ):
            _require_storable(value, f"{what} {key}", WeaponAmmoStats, field)

    @staticmethod
    def _validate_fire_profile(what: str, config: ConfigurationSource) -> None:
        _require_storable(config.velocity, f"{what} velocity", Configuration, "velocity")
        _require_storable(config.rpm_single, f"{what} rpmSingle", Configuration, "rpm_single")
        _require_storable(config.rpm_burst, f"{what} rpmBurst", Configuration, "rpm_burst")
        _require_storable(config.rpm_auto, f"{what} rpmAuto", Configuration, "rpm_auto")


class IngestionPipeline:
    """Populate the normalized schema from a parsed source document.

    Args:
        using: Database alias to write into.
        batch_size: Rows per bulk insert for dropoff curves. Only affects
            throughput, never the resulting rows.
    """

    def __init__(self, *, using: str = DEFAULT_DB_ALIAS, batch_size: int | None = None) -> None:
        self.using = using
        self.batch_size = batch_size or settings.WEAPON_STATS["INGEST_BATCH_SIZE"]
        if self.batch_size <= 0:
            raise ValueError("batch_size must be positive.")

    def populate(self, document: SourceDocument) -> IngestionSummary:
        """Write the document into empty tables in one transaction.

        Raises:
            DataConflict: If the document violates an entity invariant. No row
                of the document is committed in that case.
        """

        ensure_connection(self.using)
        with self._storage_errors(), transaction.atomic(using=self.using):
            summary = _IngestionRun(using=self.using, batch_size=self.batch_size).run(document)
        logger.info("populated %r: %s", self.using, summary.as_counts())
        return summary

    def check(self, document: SourceDocument, *, replace_existing: bool = False) -> IngestionSummary:
        """Run the full pipeline against the store, then roll it back.

        Args:
            document: Parsed source document.
            replace_existing: Delete current rows inside the rolled-back
                transaction first, to check a refresh of a populated store.

        Returns:
            The summary the same document would produce under `populate`.
        """

        ensure_connection(self.using)
        with self._storage_errors(), transaction.atomic(using=self.using):
            if replace_existing:
                for model in reversed(CORE_MODELS):
                    model._default_manager.using(self.using).all().delete()
            summary = _IngestionRun(using=self.using, batch_size=self.batch_size).run(document)
            transaction.set_rollback(True, using=self.using)
        logger.info("checked document against %r: %s", self.using, summary.as_counts())
        return summary

    @contextmanager
    def _storage_errors(self) -> Iterator[None]:
        """Translate store-side constraint failures into the error taxonomy."""

        try:
            yield
        except (IntegrityError, DataError) as exc:
            raise DataConflict(f"The store rejected a row: {exc}") from exc
        except DatabaseError as exc:
            raise SchemaFailure(f"Ingestion failed on {self.using!r}; is the schema applied? {exc}") from exc
