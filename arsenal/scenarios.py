"""Scenario reports that feed lazy query sequences into `analysis`.

Curves stream from the database one configuration at a time; only the ranked
results (bounded by `limit`) are held in memory.
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings

from analysis import DamageAtRange, FireMode, TimeToKill, group_curves, rank_by_damage, rank_by_ttk
from arsenal.errors import QueryConstructionFailure
from arsenal.queries import QueryEngine


def _validated(at_range: int, limit: int | None) -> None:
    if at_range < 0:
        raise QueryConstructionFailure(f"Range must be non-negative, got {at_range}.")
    if limit is not None and limit <= 0:
        raise QueryConstructionFailure(f"Limit must be positive, got {limit}.")


def best_damage_at_range(
    engine: QueryEngine,
    *,
    at_range: int,
    category: str | None = None,
    limit: int | None = None,
) -> list[DamageAtRange]:
    """Rank configurations by effective damage at `at_range`, highest first."""

    _validated(at_range, limit)
    curves = group_curves(engine.configuration_curves(category=category))
    return rank_by_damage(curves, at_range=at_range, limit=limit)


def fastest_time_to_kill(
    engine: QueryEngine,
    *,
    at_range: int,
    category: str | None = None,
    health: Decimal | int | None = None,
    fire_mode: FireMode | str | None = None,
    headshots: bool = False,
    limit: int | None = None,
) -> list[TimeToKill]:
    """Rank configurations by time-to-kill at `at_range`, fastest first.

    Args:
        engine: Query engine to read curves from.
        at_range: Target distance.
        category: Restrict to one weapon category.
        health: Target health; defaults to `WEAPON_STATS["DEFAULT_TARGET_HEALTH"]`.
        fire_mode: Single fire mode to evaluate; None picks each configuration's
            fastest mode.
        headshots: Apply headshot multipliers.
        limit: Maximum number of results.

    Raises:
        QueryConstructionFailure: On a negative range, non-positive health or
            limit, or an unknown fire mode.
    """

    _validated(at_range, limit)
    if health is None:
        health = settings.WEAPON_STATS["DEFAULT_TARGET_HEALTH"]
    if Decimal(health) <= 0:
        raise QueryConstructionFailure(f"Target health must be positive, got {health}.")
    if fire_mode is not None:
        try:
            fire_mode = FireMode(fire_mode)
        except ValueError as exc:
            raise QueryConstructionFailure(f"Unknown fire mode {fire_mode!r}.") from exc
    curves = group_curves(engine.configuration_curves(category=category))
    return rank_by_ttk(
        curves,
        at_range=at_range,
        health=health,
        fire_mode=fire_mode,
        headshots=headshots,
        limit=limit,
    )
