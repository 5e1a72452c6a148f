"""Scenario projections and rankings over configuration curves.

Every function here consumes an iterable of configurations exactly once.
Per-item projections are generators; rankings with a `limit` keep only the
best `limit` results in a bounded heap instead of materializing the input.
Configurations with no defined value for a scenario (no stored range at or
below the target, or no rate of fire for the requested mode) are excluded,
never scored as zero.
"""

from __future__ import annotations

import heapq
from collections.abc import Callable, Iterable, Iterator
from decimal import Decimal
from itertools import groupby
from typing import Protocol, TypeVar

from .combat import damage_per_shot, shots_to_kill, time_to_kill_ms
from .dropoff import DropoffCurve
from .dto import ConfigurationCurve, DamageAtRange, FireMode, TimeToKill

T = TypeVar("T")


class CurveRowLike(Protocol):
    """One dropoff sample row joined with its configuration (duck-typed)."""

    config_id: int
    weapon_name: str
    category_name: str | None
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


def group_curves(rows: Iterable[CurveRowLike]) -> Iterator[ConfigurationCurve]:
    """Fold dropoff rows into one ConfigurationCurve per configuration.

    Args:
        rows: Rows ordered by `config_id` (then range). Rows of one
            configuration must be contiguous.

    Yields:
        Curves lazily, one per run of equal `config_id`.
    """

    for _, group in groupby(rows, key=lambda row: row.config_id):
        samples = list(group)
        head = samples[0]
        yield ConfigurationCurve(
            config_id=head.config_id,
            weapon_name=head.weapon_name,
            category_name=head.category_name,
            barrel_name=head.barrel_name,
            ammo_name=head.ammo_name,
            velocity=head.velocity,
            rpm_single=head.rpm_single,
            rpm_burst=head.rpm_burst,
            rpm_auto=head.rpm_auto,
            curve=DropoffCurve.from_samples((row.range, row.damage) for row in samples),
            pellet_count=head.pellet_count,
            headshot_multiplier=head.headshot_multiplier,
        )


def _name_key(configuration: ConfigurationCurve) -> tuple[str, str, str]:
    return (configuration.weapon_name, configuration.barrel_name, configuration.ammo_name)


def _top(items: Iterable[T], *, key: Callable[[T], object], limit: int | None) -> list[T]:
    """Sort ascending by `key`, keeping at most `limit` items."""

    if limit is None:
        return sorted(items, key=key)
    if limit < 0:
        raise ValueError("limit must be non-negative.")
    return heapq.nsmallest(limit, items, key=key)


def damage_at_range(curves: Iterable[ConfigurationCurve], *, at_range: int) -> Iterator[DamageAtRange]:
    """Yield effective damage at `at_range` for each configuration that has one."""

    for configuration in curves:
        sample = configuration.curve.sample_at(at_range)
        if sample is None:
            continue
        yield DamageAtRange(
            configuration=configuration,
            target_range=at_range,
            effective_range=sample[0],
            damage=sample[1],
        )


def rank_by_damage(
    curves: Iterable[ConfigurationCurve],
    *,
    at_range: int,
    limit: int | None = None,
) -> list[DamageAtRange]:
    """Rank configurations by effective damage at a range, highest first.

    Ties are broken by weapon, barrel, and ammo name for a stable order.
    """

    return _top(
        damage_at_range(curves, at_range=at_range),
        key=lambda result: (-result.damage, _name_key(result.configuration)),
        limit=limit,
    )


def _ttk_for_mode(
    configuration: ConfigurationCurve,
    *,
    mode: FireMode,
    at_range: int,
    damage: Decimal,
    health: Decimal | int,
    headshots: bool,
) -> TimeToKill | None:
    rpm = configuration.rpm_for(mode)
    per_shot = damage_per_shot(
        damage,
        pellet_count=configuration.pellet_count,
        headshot_multiplier=configuration.headshot_multiplier,
        headshot=headshots,
    )
    shots = shots_to_kill(health=health, damage=per_shot)
    ttk = time_to_kill_ms(shots=shots, rpm=rpm)
    if ttk is None or shots is None or rpm is None:
        return None
    return TimeToKill(
        configuration=configuration,
        target_range=at_range,
        damage_per_shot=per_shot,
        shots=shots,
        fire_mode=mode,
        rpm=rpm,
        time_to_kill_ms=ttk,
    )


def time_to_kill(
    curves: Iterable[ConfigurationCurve],
    *,
    at_range: int,
    health: Decimal | int,
    fire_mode: FireMode | None = None,
    headshots: bool = False,
) -> Iterator[TimeToKill]:
    """Yield the time-to-kill of each configuration at a range.

    Args:
        curves: Configurations to evaluate.
        at_range: Target distance.
        health: Target health.
        fire_mode: Evaluate only this mode; when None, the fastest available
            mode of each configuration is used.
        headshots: Apply each configuration's headshot multiplier.

    Yields:
        One TimeToKill per configuration with a defined value.
    """

    for configuration in curves:
        damage = configuration.curve.damage_at(at_range)
        if damage is None:
            continue
        modes = (fire_mode,) if fire_mode is not None else configuration.available_modes()
        candidates: list[TimeToKill] = []
        for mode in modes:
            result = _ttk_for_mode(
                configuration,
                mode=mode,
                at_range=at_range,
                damage=damage,
                health=health,
                headshots=headshots,
            )
            if result is not None:
                candidates.append(result)
        if candidates:
            yield min(candidates, key=lambda result: result.time_to_kill_ms)


def rank_by_ttk(
    curves: Iterable[ConfigurationCurve],
    *,
    at_range: int,
    health: Decimal | int,
    fire_mode: FireMode | None = None,
    headshots: bool = False,
    limit: int | None = None,
) -> list[TimeToKill]:
    """Rank configurations by time-to-kill at a range, fastest first."""

    return _top(
        time_to_kill(curves, at_range=at_range, health=health, fire_mode=fire_mode, headshots=headshots),
        key=lambda result: (result.time_to_kill_ms, result.shots, _name_key(result.configuration)),
        limit=limit,
    )
