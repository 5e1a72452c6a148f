"""Parse the nested weapon source document into typed, immutable values.

The source document is a single JSON object:

    {"categories": [{"name": ..., "weapons": [{
        "name": ...,
        "ammoStats": {<ammo name>: {"magSize", "headshotMultiplier",
                      "emptyReload"?, "tacticalReload"?, "pelletCount"?}},
        "stats": [{"barrelType", "ammoType", "velocity",
                   "rpmSingle"?, "rpmBurst"?, "rpmAuto"?,
                   "dropoffs": [{"range", "damage"}]}]}]}]}

`ammoStats` may also be a list of objects carrying an `ammoType` key. Parsing
is strict about shapes and types and raises `ParseFailure` with the JSON path
of the offending value. Semantic checks (negative values, duplicates,
conflicts) belong to the ingestion pipeline.
"""

from __future__ import annotations

import json
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

from arsenal.errors import ParseFailure
from arsenal.registry import normalize_name


@dataclass(frozen=True, slots=True)
class DropoffSample:
    """A single (range, damage) point of a dropoff curve."""

    range: int
    damage: Decimal


@dataclass(frozen=True, slots=True)
class ConfigurationSource:
    """One barrel x ammo configuration of a weapon.

    Attributes:
        barrel: Barrel name.
        ammo: Ammo type name.
        velocity: Projectile velocity.
        rpm_single: Single-fire rate, or None when the mode is unavailable.
        rpm_burst: Burst-fire rate, or None when the mode is unavailable.
        rpm_auto: Automatic-fire rate, or None when the mode is unavailable.
        dropoffs: Dropoff samples in document order.
    """

    barrel: str
    ammo: str
    velocity: int
    rpm_single: int | None
    rpm_burst: int | None
    rpm_auto: int | None
    dropoffs: tuple[DropoffSample, ...]


@dataclass(frozen=True, slots=True)
class AmmoStatSource:
    """Ammo compatibility stats for one weapon."""

    ammo: str
    magazine_size: int
    headshot_multiplier: Decimal
    empty_reload_time: Decimal | None
    tactical_reload_time: Decimal | None
    pellet_count: int | None


@dataclass(frozen=True, slots=True)
class WeaponSource:
    """A weapon with its ammo stats and configurations."""

    name: str
    ammo_stats: tuple[AmmoStatSource, ...]
    configurations: tuple[ConfigurationSource, ...]


@dataclass(frozen=True, slots=True)
class CategorySource:
    """A category and the weapons listed under it."""

    name: str
    weapons: tuple[WeaponSource, ...]


@dataclass(frozen=True, slots=True)
class SourceDocument:
    """The whole parsed source document."""

    categories: tuple[CategorySource, ...]

    def iter_weapons(self) -> Iterator[tuple[CategorySource, WeaponSource]]:
        """Yield (category, weapon) pairs in document order."""

        for category in self.categories:
            for weapon in category.weapons:
                yield category, weapon


def _reject_duplicate_keys(pairs: list[tuple[str, Any]]) -> dict[str, Any]:
    """`json` object hook that refuses objects with repeated keys."""

    result: dict[str, Any] = {}
    for key, value in pairs:
        if key in result:
            raise ParseFailure(f"Duplicate key {key!r} in JSON object.")
        result[key] = value
    return result


def parse_document_text(text: str) -> SourceDocument:
    """Parse a JSON string into a SourceDocument.

    Raises:
        ParseFailure: If the text is not valid JSON or has the wrong shape.
    """

    try:
        payload = json.loads(text, object_pairs_hook=_reject_duplicate_keys)
    except json.JSONDecodeError as exc:
        raise ParseFailure(f"Invalid JSON: {exc}") from exc
    return parse_document(payload)


def load_document(path: str | Path) -> SourceDocument:
    """Read and parse a source document from disk.

    Raises:
        ParseFailure: If the file cannot be read or is malformed.
    """

    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise ParseFailure(f"Cannot read source document {str(path)!r}: {exc}") from exc
    return parse_document_text(text)


def parse_document(payload: object) -> SourceDocument:
    """Convert a decoded JSON payload into a SourceDocument.

    Args:
        payload: Result of `json.loads` (or an equivalent in-memory mapping).

    Returns:
        The parsed document.

    Raises:
        ParseFailure: If any required key is missing or has the wrong type.
    """

    root = _mapping(payload, "$")
    categories = _sequence(_required(root, "categories", "$"), "$.categories")
    return SourceDocument(
        categories=tuple(
            _parse_category(item, f"$.categories[{idx}]") for idx, item in enumerate(categories)
        )
    )


def _parse_category(value: object, path: str) -> CategorySource:
    data = _mapping(value, path)
    weapons = _sequence(_required(data, "weapons", path), f"{path}.weapons")
    return CategorySource(
        name=_name(_required(data, "name", path), f"{path}.name"),
        weapons=tuple(_parse_weapon(item, f"{path}.weapons[{idx}]") for idx, item in enumerate(weapons)),
    )


def _parse_weapon(value: object, path: str) -> WeaponSource:
    data = _mapping(value, path)
    stats = _sequence(_required(data, "stats", path), f"{path}.stats")
    raw_ammo_stats = data.get("ammoStats")
    ammo_stats: list[AmmoStatSource] = []
    if raw_ammo_stats is None:
        pass
    elif isinstance(raw_ammo_stats, Mapping):
        for ammo_name, entry in raw_ammo_stats.items():
            entry_path = f"{path}.ammoStats[{ammo_name!r}]"
            ammo_stats.append(_parse_ammo_stat(_name(ammo_name, entry_path), entry, entry_path))
    else:
        for idx, entry in enumerate(_sequence(raw_ammo_stats, f"{path}.ammoStats")):
            entry_path = f"{path}.ammoStats[{idx}]"
            entry_data = _mapping(entry, entry_path)
            ammo_name = _name(_required(entry_data, "ammoType", entry_path), f"{entry_path}.ammoType")
            ammo_stats.append(_parse_ammo_stat(ammo_name, entry_data, entry_path))

    return WeaponSource(
        name=_name(_required(data, "name", path), f"{path}.name"),
        ammo_stats=tuple(ammo_stats),
        configurations=tuple(
            _parse_configuration(item, f"{path}.stats[{idx}]") for idx, item in enumerate(stats)
        ),
    )


def _parse_ammo_stat(ammo: str, value: object, path: str) -> AmmoStatSource:
    data = _mapping(value, path)
    return AmmoStatSource(
        ammo=ammo,
        magazine_size=_integer(_required(data, "magSize", path), f"{path}.magSize"),
        headshot_multiplier=_decimal(
            _required(data, "headshotMultiplier", path), f"{path}.headshotMultiplier"
        ),
        empty_reload_time=_optional_decimal(data.get("emptyReload"), f"{path}.emptyReload"),
        tactical_reload_time=_optional_decimal(data.get("tacticalReload"), f"{path}.tacticalReload"),
        pellet_count=_optional_integer(data.get("pelletCount"), f"{path}.pelletCount"),
    )


def _parse_configuration(value: object, path: str) -> ConfigurationSource:
    data = _mapping(value, path)
    dropoffs = _sequence(_required(data, "dropoffs", path), f"{path}.dropoffs")
    return ConfigurationSource(
        barrel=_name(_required(data, "barrelType", path), f"{path}.barrelType"),
        ammo=_name(_required(data, "ammoType", path), f"{path}.ammoType"),
        velocity=_integer(_required(data, "velocity", path), f"{path}.velocity"),
        rpm_single=_optional_integer(data.get("rpmSingle"), f"{path}.rpmSingle"),
        rpm_burst=_optional_integer(data.get("rpmBurst"), f"{path}.rpmBurst"),
        rpm_auto=_optional_integer(data.get("rpmAuto"), f"{path}.rpmAuto"),
        dropoffs=tuple(_parse_dropoff(item, f"{path}.dropoffs[{idx}]") for idx, item in enumerate(dropoffs)),
    )


def _parse_dropoff(value: object, path: str) -> DropoffSample:
    data = _mapping(value, path)
    return DropoffSample(
        range=_integer(_required(data, "range", path), f"{path}.range"),
        damage=_decimal(_required(data, "damage", path), f"{path}.damage"),
    )


def _required(data: Mapping[str, Any], key: str, path: str) -> Any:
    if key not in data:
        raise ParseFailure(f"{path}: missing required key {key!r}.")
    return data[key]


def _mapping(value: object, path: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ParseFailure(f"{path}: expected an object, got {type(value).__name__}.")
    return value


def _sequence(value: object, path: str) -> Sequence[Any]:
    if isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
        raise ParseFailure(f"{path}: expected a list, got {type(value).__name__}.")
    return value


def _name(value: object, path: str) -> str:
    if not isinstance(value, str):
        raise ParseFailure(f"{path}: expected a string, got {type(value).__name__}.")
    name = normalize_name(value)
    if not name:
        raise ParseFailure(f"{path}: name must not be blank.")
    return name


def _integer(value: object, path: str) -> int:
    if isinstance(value, bool):
        raise ParseFailure(f"{path}: expected an integer, got bool.")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    raise ParseFailure(f"{path}: expected an integer, got {value!r}.")


def _optional_integer(value: object, path: str) -> int | None:
    if value is None:
        return None
    return _integer(value, path)


def _decimal(value: object, path: str) -> Decimal:
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise ParseFailure(f"{path}: expected a number, got {type(value).__name__}.")
    try:
        result = Decimal(str(value))
    except InvalidOperation as exc:
        raise ParseFailure(f"{path}: expected a number, got {value!r}.") from exc
    if not result.is_finite():
        raise ParseFailure(f"{path}: expected a finite number, got {value!r}.")
    return result


def _optional_decimal(value: object, path: str) -> Decimal | None:
    if value is None:
        return None
    return _decimal(value, path)
