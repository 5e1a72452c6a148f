"""Shots-to-kill and time-to-kill calculations.

Shots are discrete: a target with 100 health hit for 25 damage needs exactly
4 shots, never 4.0 of a continuous quantity. The first shot lands at t=0, so
the time-to-kill of `n` shots is `n - 1` fire intervals.
"""

from __future__ import annotations

import math
from decimal import Decimal

MS_PER_MINUTE = 60_000


def damage_per_shot(
    damage: Decimal,
    *,
    pellet_count: int | None = None,
    headshot_multiplier: Decimal | None = None,
    headshot: bool = False,
) -> Decimal:
    """Scale per-projectile damage to per-shot damage.

    Args:
        damage: Effective damage of one projectile.
        pellet_count: Projectiles per shot; None or 0 means one projectile.
        headshot_multiplier: Multiplier applied when `headshot` is True.
        headshot: Whether every shot is assumed to hit the head.

    Returns:
        Damage dealt by one shot.
    """

    total = Decimal(damage) * max(pellet_count or 1, 1)
    if headshot and headshot_multiplier is not None:
        total *= Decimal(headshot_multiplier)
    return total


def shots_to_kill(*, health: Decimal | int, damage: Decimal | int) -> int | None:
    """Return the integral number of shots needed to deplete `health`.

    Formula:
        shots = ceil(health / damage)

    Returns:
        The shot count, or None when damage is not positive.
    """

    health = Decimal(health)
    damage = Decimal(damage)
    if damage <= 0:
        return None
    if health <= 0:
        return 0
    return math.ceil(health / damage)


def time_to_kill_ms(*, shots: int | None, rpm: int | None) -> float | None:
    """Convert a shot count to milliseconds at a rate of fire.

    Args:
        shots: Integral shots needed (see `shots_to_kill`).
        rpm: Rounds per minute of the fire mode; None when the mode is absent.

    Returns:
        `(shots - 1) * 60000 / rpm`, or None when either input is missing or
        not positive.
    """

    if shots is None or shots <= 0:
        return None
    if rpm is None or rpm <= 0:
        return None
    return (shots - 1) * MS_PER_MINUTE / rpm
