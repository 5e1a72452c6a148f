"""Lazily evaluated, composable retrieval over the normalized schema.

A request is first turned into an immutable `QueryPlan`. Building a plan
validates every predicate and sort key and never touches the database, so an
invalid request fails immediately with `QueryConstructionFailure`. Executing
a plan returns a `LazyRows` sequence: nothing is fetched until the sequence is
iterated, rows arrive in chunks, and abandoning the iterator closes its cursor
without fetching the rest. Database errors raised mid-iteration surface as
`RetrievalFailure` at that point; rows already yielded stay valid.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field, replace
from decimal import Decimal
from enum import StrEnum
from itertools import islice
from typing import Any, Generic, TypeVar

from django.conf import settings
from django.db import DEFAULT_DB_ALIAS, DatabaseError
from django.db.models import F, OuterRef, QuerySet, Subquery

from arsenal.connection import ensure_connection
from arsenal.errors import QueryConstructionFailure, RetrievalFailure
from arsenal.models import ConfigDropoff, Configuration, Weapon, WeaponAmmoStats
from arsenal.registry import normalize_name

logger = logging.getLogger(__name__)

RowT = TypeVar("RowT")


class Entity(StrEnum):
    """Result shapes a plan can request."""

    WEAPONS = "weapons"
    CONFIGURATION_DROPOFFS = "configuration_dropoffs"
    AMMO_STATS = "ammo_stats"
    CONFIGURATIONS = "configurations"


class ReloadKind(StrEnum):
    """Which reload time a reload predicate or sort applies to."""

    TACTICAL = "tactical"
    EMPTY = "empty"


CONFIGURATION_SORT_KEYS = ("weapon", "damage", "velocity", "reload")

_ALLOWED_FILTERS: dict[Entity, frozenset[str]] = {
    Entity.WEAPONS: frozenset({"category"}),
    Entity.AMMO_STATS: frozenset({"weapon"}),
    Entity.CONFIGURATION_DROPOFFS: frozenset({"category", "weapon"}),
    Entity.CONFIGURATIONS: frozenset({"category", "weapon", "at_range", "min_damage", "max_reload"}),
}


@dataclass(frozen=True, slots=True)
class WeaponRow:
    """A weapon with its category."""

    weapon_id: int
    name: str
    category_id: int
    category_name: str


@dataclass(frozen=True, slots=True)
class AmmoStatsRow:
    """Ammo compatibility stats of one weapon, with names resolved."""

    weapon_name: str
    ammo_name: str
    magazine_size: int
    empty_reload_time: Decimal | None
    tactical_reload_time: Decimal | None
    headshot_multiplier: Decimal
    pellet_count: int | None


@dataclass(frozen=True, slots=True)
class ConfigurationDropoffRow:
    """One dropoff sample joined with its configuration, barrel, and ammo."""

    config_id: int
    weapon_name: str
    category_name: str
    barrel_name: str
    ammo_name: str
    velocity: int
    rpm_single: int | None
    rpm_burst: int | None
    rpm_auto: int | None
    range: int
    damage: Decimal
    pellet_count: int | None
    headshot_multiplier: Decimal | None


@dataclass(frozen=True, slots=True)
class ConfigurationRow:
    """A configuration matched by a composed filter.

    `effective_range` / `effective_damage` are set only when the plan names a
    target range; ammo stats fields are None when the weapon has no stats row
    for the configuration's ammo.
    """

    config_id: int
    weapon_name: str
    category_name: str
    barrel_name: str
    ammo_name: str
    velocity: int
    rpm_single: int | None
    rpm_burst: int | None
    rpm_auto: int | None
    effective_range: int | None
    effective_damage: Decimal | None
    magazine_size: int | None
    empty_reload_time: Decimal | None
    tactical_reload_time: Decimal | None
    headshot_multiplier: Decimal | None


@dataclass(frozen=True, slots=True)
class QueryPlan:
    """An immutable, validated retrieval request.

    Attributes:
        entity: Result shape.
        category: Restrict to weapons of this category.
        weapon: Restrict to this weapon.
        at_range: Target range for effective damage; configurations with no
            stored range at or below it are excluded.
        min_damage: Minimum effective damage at `at_range`.
        max_reload: Maximum reload time (of `reload_kind`) in seconds.
        reload_kind: Reload time used by `max_reload` and the "reload" sort.
        sort_key: One of CONFIGURATION_SORT_KEYS (configurations only).
        limit: Maximum number of rows.
    """

    entity: Entity
    category: str | None = None
    weapon: str | None = None
    at_range: int | None = None
    min_damage: Decimal | None = None
    max_reload: Decimal | None = None
    reload_kind: ReloadKind = ReloadKind.TACTICAL
    sort_key: str | None = None
    limit: int | None = None

    def __post_init__(self) -> None:
        try:
            entity = Entity(self.entity)
            reload_kind = ReloadKind(self.reload_kind)
        except ValueError as exc:
            raise QueryConstructionFailure(str(exc)) from exc
        object.__setattr__(self, "entity", entity)
        object.__setattr__(self, "reload_kind", reload_kind)
        # Names are stored normalized, so filters must match that form.
        for name in ("category", "weapon"):
            value = getattr(self, name)
            if value is not None:
                object.__setattr__(self, name, normalize_name(str(value)))
        self._validate()

    def _validate(self) -> None:
        used = {
            name
            for name, value in (
                ("category", self.category),
                ("weapon", self.weapon),
                ("at_range", self.at_range),
                ("min_damage", self.min_damage),
                ("max_reload", self.max_reload),
            )
            if value is not None
        }
        unsupported = sorted(used - _ALLOWED_FILTERS[self.entity])
        if unsupported:
            raise QueryConstructionFailure(f"{self.entity} requests do not support filters: {unsupported}.")
        for name in ("category", "weapon"):
            value = getattr(self, name)
            if value is not None and not value:
                raise QueryConstructionFailure(f"{name} filter must not be blank.")
        if self.at_range is not None and self.at_range < 0:
            raise QueryConstructionFailure(f"Range must be non-negative, got {self.at_range}.")
        if self.min_damage is not None:
            if self.at_range is None:
                raise QueryConstructionFailure("A minimum damage filter needs a target range.")
            if self.min_damage < 0:
                raise QueryConstructionFailure(f"Minimum damage must be non-negative, got {self.min_damage}.")
        if self.max_reload is not None and self.max_reload < 0:
            raise QueryConstructionFailure(f"Maximum reload time must be non-negative, got {self.max_reload}.")
        if self.limit is not None and self.limit <= 0:
            raise QueryConstructionFailure(f"Limit must be positive, got {self.limit}.")
        if self.sort_key is not None:
            if self.entity is not Entity.CONFIGURATIONS:
                raise QueryConstructionFailure(f"{self.entity} requests have a fixed order; no sort key allowed.")
            if self.sort_key not in CONFIGURATION_SORT_KEYS:
                raise QueryConstructionFailure(
                    f"Unknown sort key {self.sort_key!r}; expected one of {CONFIGURATION_SORT_KEYS}."
                )
            if self.sort_key == "damage" and self.at_range is None:
                raise QueryConstructionFailure("Sorting by damage needs a target range.")


@dataclass(frozen=True, slots=True)
class ConfigurationFilter:
    """Composable builder for configuration requests.

    Each method returns a new builder; `build()` compiles everything into one
    QueryPlan and validates it without I/O.

    Example:
        >>> plan = (
        ...     ConfigurationFilter()
        ...     .category("Assault Rifles")
        ...     .min_damage_at(30, 18)
        ...     .max_reload_time(2.5)
        ...     .sort_by("damage")
        ...     .limit(5)
        ...     .build()
        ... )
    """

    _params: Mapping[str, Any] = field(default_factory=dict)

    def _with(self, **params: Any) -> ConfigurationFilter:
        return replace(self, _params={**self._params, **params})

    def category(self, name: str) -> ConfigurationFilter:
        return self._with(category=name)

    def weapon(self, name: str) -> ConfigurationFilter:
        return self._with(weapon=name)

    def at_range(self, at_range: int) -> ConfigurationFilter:
        return self._with(at_range=at_range)

    def min_damage_at(self, at_range: int, damage: Decimal | float | int) -> ConfigurationFilter:
        return self._with(at_range=at_range, min_damage=Decimal(str(damage)))

    def max_reload_time(self, seconds: Decimal | float | int, *, kind: str = "tactical") -> ConfigurationFilter:
        return self._with(max_reload=Decimal(str(seconds)), reload_kind=kind)

    def sort_by(self, key: str) -> ConfigurationFilter:
        return self._with(sort_key=key)

    def limit(self, count: int) -> ConfigurationFilter:
        return self._with(limit=count)

    def build(self) -> QueryPlan:
        """Compile the builder into a validated plan.

        Raises:
            QueryConstructionFailure: If the combination is invalid.
        """

        return QueryPlan(entity=Entity.CONFIGURATIONS, **self._params)


def _stats_subquery(weapon_ref: str, ammo_ref: str) -> QuerySet:
    return WeaponAmmoStats.objects.filter(weapon=OuterRef(weapon_ref), ammo=OuterRef(ammo_ref))


def _weapons_queryset(plan: QueryPlan, using: str) -> QuerySet:
    queryset = Weapon.objects.using(using)
    if plan.category is not None:
        queryset = queryset.filter(category__name=plan.category)
    return queryset.order_by("name").values(
        "name",
        "category_id",
        weapon_id=F("id"),
        category_name=F("category__name"),
    )


def _ammo_stats_queryset(plan: QueryPlan, using: str) -> QuerySet:
    queryset = WeaponAmmoStats.objects.using(using)
    if plan.weapon is not None:
        queryset = queryset.filter(weapon__name=plan.weapon)
    return queryset.order_by("weapon__name", "ammo__name").values(
        "magazine_size",
        "empty_reload_time",
        "tactical_reload_time",
        "headshot_multiplier",
        "pellet_count",
        weapon_name=F("weapon__name"),
        ammo_name=F("ammo__name"),
    )


def _configuration_dropoffs_queryset(plan: QueryPlan, using: str) -> QuerySet:
    queryset = ConfigDropoff.objects.using(using)
    if plan.weapon is not None:
        queryset = queryset.filter(configuration__weapon__name=plan.weapon)
    if plan.category is not None:
        queryset = queryset.filter(configuration__weapon__category__name=plan.category)
    stats = _stats_subquery("configuration__weapon", "configuration__ammo")
    # (weapon, barrel, ammo) is unique, so this order keeps each curve contiguous.
    return queryset.order_by(
        "configuration__weapon__name",
        "configuration__barrel__name",
        "configuration__ammo__name",
        "range",
    ).values(
        "range",
        "damage",
        config_id=F("configuration_id"),
        weapon_name=F("configuration__weapon__name"),
        category_name=F("configuration__weapon__category__name"),
        barrel_name=F("configuration__barrel__name"),
        ammo_name=F("configuration__ammo__name"),
        velocity=F("configuration__velocity"),
        rpm_single=F("configuration__rpm_single"),
        rpm_burst=F("configuration__rpm_burst"),
        rpm_auto=F("configuration__rpm_auto"),
        pellet_count=Subquery(stats.values("pellet_count")[:1]),
        headshot_multiplier=Subquery(stats.values("headshot_multiplier")[:1]),
    )


def _configurations_queryset(plan: QueryPlan, using: str) -> QuerySet:
    stats = _stats_subquery("weapon", "ammo")
    queryset = Configuration.objects.using(using).annotate(
        magazine_size=Subquery(stats.values("magazine_size")[:1]),
        empty_reload_time=Subquery(stats.values("empty_reload_time")[:1]),
        tactical_reload_time=Subquery(stats.values("tactical_reload_time")[:1]),
        headshot_multiplier=Subquery(stats.values("headshot_multiplier")[:1]),
    )
    if plan.category is not None:
        queryset = queryset.filter(weapon__category__name=plan.category)
    if plan.weapon is not None:
        queryset = queryset.filter(weapon__name=plan.weapon)

    effective_fields: tuple[str, ...] = ()
    if plan.at_range is not None:
        effective = ConfigDropoff.objects.filter(
            configuration=OuterRef("pk"),
            range__lte=plan.at_range,
        ).order_by("-range")
        queryset = queryset.annotate(
            effective_range=Subquery(effective.values("range")[:1]),
            effective_damage=Subquery(effective.values("damage")[:1]),
        ).filter(effective_damage__isnull=False)
        effective_fields = ("effective_range", "effective_damage")
        if plan.min_damage is not None:
            queryset = queryset.filter(effective_damage__gte=plan.min_damage)

    reload_field = f"{plan.reload_kind}_reload_time"
    if plan.max_reload is not None:
        queryset = queryset.filter(**{f"{reload_field}__lte": plan.max_reload})

    tiebreak = ("weapon__name", "barrel__name", "ammo__name", "id")
    ordering: tuple[Any, ...]
    if plan.sort_key == "damage":
        ordering = (F("effective_damage").desc(), *tiebreak)
    elif plan.sort_key == "velocity":
        ordering = ("-velocity", *tiebreak)
    elif plan.sort_key == "reload":
        ordering = (F(reload_field).asc(nulls_last=True), *tiebreak)
    else:
        ordering = tiebreak
    queryset = queryset.order_by(*ordering).values(
        "velocity",
        "rpm_single",
        "rpm_burst",
        "rpm_auto",
        "magazine_size",
        "empty_reload_time",
        "tactical_reload_time",
        "headshot_multiplier",
        *effective_fields,
        config_id=F("id"),
        weapon_name=F("weapon__name"),
        category_name=F("weapon__category__name"),
        barrel_name=F("barrel__name"),
        ammo_name=F("ammo__name"),
    )
    if plan.limit is not None:
        queryset = queryset[: plan.limit]
    return queryset


def _configuration_row(record: dict[str, Any]) -> ConfigurationRow:
    record.setdefault("effective_range", None)
    record.setdefault("effective_damage", None)
    return ConfigurationRow(**record)


_COMPILERS: dict[Entity, Callable[[QueryPlan, str], QuerySet]] = {
    Entity.WEAPONS: _weapons_queryset,
    Entity.AMMO_STATS: _ammo_stats_queryset,
    Entity.CONFIGURATION_DROPOFFS: _configuration_dropoffs_queryset,
    Entity.CONFIGURATIONS: _configurations_queryset,
}

_ROW_FACTORIES: dict[Entity, Callable[[dict[str, Any]], Any]] = {
    Entity.WEAPONS: lambda record: WeaponRow(**record),
    Entity.AMMO_STATS: lambda record: AmmoStatsRow(**record),
    Entity.CONFIGURATION_DROPOFFS: lambda record: ConfigurationDropoffRow(**record),
    Entity.CONFIGURATIONS: _configuration_row,
}


def compile_plan(plan: QueryPlan, *, using: str = DEFAULT_DB_ALIAS) -> QuerySet:
    """Translate a plan into an unevaluated Django QuerySet (no I/O)."""

    queryset = _COMPILERS[plan.entity](plan, using)
    if plan.limit is not None and plan.entity is not Entity.CONFIGURATIONS:
        queryset = queryset[: plan.limit]
    return queryset


class LazyRows(Generic[RowT]):
    """A re-iterable, lazily fetched sequence of typed rows.

    Each call to `iter()` starts an independent retrieval. Iterators fetch
    `chunk_size` rows per round trip and close their cursor when exhausted,
    closed, or garbage collected.
    """

    def __init__(self, plan: QueryPlan, *, using: str, chunk_size: int) -> None:
        self.plan = plan
        self.using = using
        self.chunk_size = chunk_size

    def __repr__(self) -> str:
        return f"LazyRows(plan={self.plan!r}, using={self.using!r})"

    def __iter__(self) -> Iterator[RowT]:
        return self._fetch()

    def take(self, count: int) -> list[RowT]:
        """Return at most `count` rows, fetching no further than needed."""

        rows = iter(self)
        try:
            return list(islice(rows, count))
        finally:
            rows.close()

    def first(self) -> RowT | None:
        """Return the first row, or None when the sequence is empty."""

        taken = self.take(1)
        return taken[0] if taken else None

    def _fetch(self) -> Iterator[RowT]:
        ensure_connection(self.using)
        queryset = compile_plan(self.plan, using=self.using)
        factory = _ROW_FACTORIES[self.plan.entity]
        logger.debug("fetching %s (chunk_size=%d): %s", self.plan.entity, self.chunk_size, self.plan)
        records = queryset.iterator(chunk_size=self.chunk_size)
        try:
            while True:
                try:
                    record = next(records)
                except StopIteration:
                    return
                except DatabaseError as exc:
                    raise RetrievalFailure(f"Fetching {self.plan.entity} failed: {exc}") from exc
                yield factory(record)
        finally:
            records.close()


@dataclass(frozen=True, slots=True)
class WeaponDetails:
    """A weapon with lazily fetched configurations and ammo stats."""

    weapon: WeaponRow
    configurations: LazyRows[ConfigurationDropoffRow]
    ammo_stats: LazyRows[AmmoStatsRow]


class QueryEngine:
    """Build plans for the supported request shapes and execute them lazily.

    Args:
        using: Database alias to read from.
        chunk_size: Rows fetched per round trip while iterating.
    """

    def __init__(self, *, using: str = DEFAULT_DB_ALIAS, chunk_size: int | None = None) -> None:
        self.using = using
        self.chunk_size = chunk_size or settings.WEAPON_STATS["QUERY_CHUNK_SIZE"]
        if self.chunk_size <= 0:
            raise QueryConstructionFailure("chunk_size must be positive.")

    def select(self, plan: QueryPlan) -> LazyRows[Any]:
        """Return a lazy sequence for an already validated plan."""

        return LazyRows(plan, using=self.using, chunk_size=self.chunk_size)

    def weapons_by_category(self, category: str) -> LazyRows[WeaponRow]:
        """Weapons of a category, ordered by name."""

        return self.select(QueryPlan(entity=Entity.WEAPONS, category=category))

    def weapon_configurations(self, weapon: str) -> LazyRows[ConfigurationDropoffRow]:
        """Every dropoff sample of a weapon's configurations, by barrel, ammo, range."""

        return self.select(QueryPlan(entity=Entity.CONFIGURATION_DROPOFFS, weapon=weapon))

    def weapon_ammo_stats(self, weapon: str) -> LazyRows[AmmoStatsRow]:
        """Ammo compatibility stats of a weapon, ordered by ammo name."""

        return self.select(QueryPlan(entity=Entity.AMMO_STATS, weapon=weapon))

    def configuration_curves(
        self,
        *,
        category: str | None = None,
        weapon: str | None = None,
    ) -> LazyRows[ConfigurationDropoffRow]:
        """Dropoff rows grouped contiguously per configuration (analytics feed)."""

        return self.select(QueryPlan(entity=Entity.CONFIGURATION_DROPOFFS, category=category, weapon=weapon))

    def configurations(self, request: ConfigurationFilter) -> LazyRows[ConfigurationRow]:
        """Execute a composed configuration filter."""

        return self.select(request.build())

    def best_configs_in_category(self, category: str, at_range: int, limit: int) -> LazyRows[ConfigurationRow]:
        """Highest effective damage at a range within a category."""

        return self.configurations(
            ConfigurationFilter().category(category).at_range(at_range).sort_by("damage").limit(limit)
        )

    def damage_at_range(self, weapon: str, at_range: int) -> LazyRows[ConfigurationRow]:
        """Effective damage of each of a weapon's configurations at a range."""

        return self.configurations(ConfigurationFilter().weapon(weapon).at_range(at_range).sort_by("damage"))

    def weapon_details(self, weapon: str) -> WeaponDetails:
        """Fetch a weapon row now, with lazy configuration and stats sequences.

        Raises:
            RetrievalFailure: If no weapon has that name.
        """

        weapon = normalize_name(weapon)
        plan = QueryPlan(entity=Entity.WEAPONS)
        queryset = compile_plan(plan, using=self.using).filter(name=weapon)
        ensure_connection(self.using)
        try:
            record = queryset.first()
        except DatabaseError as exc:
            raise RetrievalFailure(f"Fetching weapon {weapon!r} failed: {exc}") from exc
        if record is None:
            raise RetrievalFailure(f"Weapon {weapon!r} not found.")
        return WeaponDetails(
            weapon=WeaponRow(**record),
            configurations=self.weapon_configurations(weapon),
            ammo_stats=self.weapon_ammo_stats(weapon),
        )
