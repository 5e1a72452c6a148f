"""DTO types returned by the analytics layer.

DTOs are plain data containers used to transport scenario results to callers.
They intentionally avoid any Django/ORM dependencies.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import StrEnum

from .dropoff import DropoffCurve


class FireMode(StrEnum):
    """Fire modes that carry their own optional rate of fire."""

    SINGLE = "single"
    BURST = "burst"
    AUTO = "auto"


@dataclass(frozen=True, slots=True)
class ConfigurationCurve:
    """A configuration with its fire profile and full dropoff curve.

    Attributes:
        config_id: Surrogate id of the configuration row.
        weapon_name: Weapon name.
        category_name: Category of the weapon, when known.
        barrel_name: Barrel name.
        ammo_name: Ammo type name.
        velocity: Projectile velocity.
        rpm_single: Single-fire RPM, or None if the mode is unavailable.
        rpm_burst: Burst-fire RPM, or None if the mode is unavailable.
        rpm_auto: Automatic-fire RPM, or None if the mode is unavailable.
        curve: The dropoff curve.
        pellet_count: Pellets per shot from the weapon's ammo stats, if any.
        headshot_multiplier: Headshot multiplier from the ammo stats, if any.
    """

    config_id: int
    weapon_name: str
    category_name: str | None
    barrel_name: str
    ammo_name: str
    velocity: int
    rpm_single: int | None
    rpm_burst: int | None
    rpm_auto: int | None
    curve: DropoffCurve
    pellet_count: int | None = None
    headshot_multiplier: Decimal | None = None

    def rpm_for(self, mode: FireMode) -> int | None:
        """Return the rate of fire for `mode`, or None if unavailable."""

        return {
            FireMode.SINGLE: self.rpm_single,
            FireMode.BURST: self.rpm_burst,
            FireMode.AUTO: self.rpm_auto,
        }[mode]

    def available_modes(self) -> tuple[FireMode, ...]:
        """Fire modes with a positive rate of fire, in enum order."""

        return tuple(mode for mode in FireMode if (self.rpm_for(mode) or 0) > 0)


@dataclass(frozen=True, slots=True)
class DamageAtRange:
    """Effective damage of one configuration at a target range.

    Attributes:
        configuration: The evaluated configuration.
        target_range: The requested range.
        effective_range: The stored range whose sample applies.
        damage: Effective damage at `target_range`.
    """

    configuration: ConfigurationCurve
    target_range: int
    effective_range: int
    damage: Decimal


@dataclass(frozen=True, slots=True)
class TimeToKill:
    """Time-to-kill of one configuration in one fire mode at a range.

    Attributes:
        configuration: The evaluated configuration.
        target_range: The requested range.
        damage_per_shot: Damage each shot deals after pellets/headshots.
        shots: Integral number of shots needed.
        fire_mode: Fire mode used.
        rpm: Rate of fire for `fire_mode`.
        time_to_kill_ms: Milliseconds from first to killing shot.
    """

    configuration: ConfigurationCurve
    target_range: int
    damage_per_shot: Decimal
    shots: int
    fire_mode: FireMode
    rpm: int
    time_to_kill_ms: float
