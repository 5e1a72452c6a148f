"""Unit tests for dropoff curves, time-to-kill and rankings."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

import pytest

from analysis import (
    ConfigurationCurve,
    DropoffCurve,
    FireMode,
    effective_damage,
    group_curves,
    rank_by_damage,
    rank_by_ttk,
)
from analysis.combat import damage_per_shot, shots_to_kill, time_to_kill_ms

pytestmark = pytest.mark.unit


def _curve(
    *,
    config_id: int = 1,
    weapon: str = "AK-24",
    barrel: str = "Factory",
    ammo: str = "Standard",
    samples: list[tuple[int, str]],
    rpm_single: int | None = None,
    rpm_burst: int | None = None,
    rpm_auto: int | None = 600,
    pellet_count: int | None = None,
    headshot_multiplier: str | None = None,
) -> ConfigurationCurve:
    """Build a ConfigurationCurve with sensible defaults."""

    return ConfigurationCurve(
        config_id=config_id,
        weapon_name=weapon,
        category_name="Assault Rifles",
        barrel_name=barrel,
        ammo_name=ammo,
        velocity=600,
        rpm_single=rpm_single,
        rpm_burst=rpm_burst,
        rpm_auto=rpm_auto,
        curve=DropoffCurve.from_samples((r, Decimal(d)) for r, d in samples),
        pellet_count=pellet_count,
        headshot_multiplier=None if headshot_multiplier is None else Decimal(headshot_multiplier),
    )


def test_effective_damage_is_a_step_function() -> None:
    """Damage holds the value of the greatest stored range not beyond the target."""

    samples = [(10, Decimal("20.0")), (50, Decimal("14.0"))]

    assert effective_damage(samples, 30) == Decimal("20.0")
    assert effective_damage(samples, 60) == Decimal("14.0")
    assert effective_damage(samples, 50) == Decimal("14.0")
    assert effective_damage(samples, 10) == Decimal("20.0")
    assert effective_damage(samples, 5) is None


def test_dropoff_curve_sorts_and_rejects_duplicate_ranges() -> None:
    curve = DropoffCurve.from_samples([(50, Decimal("14.0")), (10, Decimal("20.0"))])
    assert curve.ranges == (10, 50)
    assert curve.is_non_increasing()

    with pytest.raises(ValueError, match="unique"):
        DropoffCurve.from_samples([(10, Decimal("20.0")), (10, Decimal("18.0"))])


def test_shots_to_kill_is_integral() -> None:
    """100 health at 25 damage is exactly 4 shots."""

    shots = shots_to_kill(health=100, damage=Decimal("25"))

    assert shots == 4
    assert isinstance(shots, int)
    assert shots_to_kill(health=100, damage=Decimal("24.0")) == 5
    assert shots_to_kill(health=100, damage=0) is None


def test_time_to_kill_counts_intervals_after_first_shot() -> None:
    """Four shots at 600 rpm take three 100 ms intervals."""

    assert time_to_kill_ms(shots=4, rpm=600) == pytest.approx(300.0)
    assert time_to_kill_ms(shots=1, rpm=600) == 0
    assert time_to_kill_ms(shots=4, rpm=None) is None


def test_damage_per_shot_applies_pellets_and_headshots() -> None:
    assert damage_per_shot(Decimal("8.0"), pellet_count=8) == Decimal("64.0")
    assert damage_per_shot(Decimal("20.0"), headshot_multiplier=Decimal("1.5"), headshot=True) == Decimal("30.00")
    assert damage_per_shot(Decimal("20.0"), headshot_multiplier=Decimal("1.5")) == Decimal("20.0")


def test_rank_by_damage_excludes_configurations_without_value() -> None:
    """Curves starting beyond the target range are excluded, not scored zero."""

    near = _curve(config_id=1, barrel="Factory", samples=[(10, "20.0"), (50, "14.0")])
    far = _curve(config_id=2, barrel="Extended", samples=[(40, "30.0")])

    at_5 = rank_by_damage([near, far], at_range=5)
    at_30 = rank_by_damage([near, far], at_range=30)
    at_60 = rank_by_damage([near, far], at_range=60)

    assert at_5 == []
    assert [(r.configuration.config_id, r.damage) for r in at_30] == [(1, Decimal("20.0"))]
    assert [(r.configuration.config_id, r.damage, r.effective_range) for r in at_60] == [
        (2, Decimal("30.0"), 40),
        (1, Decimal("14.0"), 50),
    ]


def test_rank_by_damage_limit_breaks_ties_by_name() -> None:
    curves = [
        _curve(config_id=1, barrel="Factory", samples=[(0, "20.0")]),
        _curve(config_id=2, barrel="Extended", samples=[(0, "20.0")]),
        _curve(config_id=3, barrel="Compact", samples=[(0, "18.0")]),
    ]

    ranked = rank_by_damage(iter(curves), at_range=10, limit=2)

    assert [r.configuration.barrel_name for r in ranked] == ["Extended", "Factory"]


def test_rank_by_ttk_uses_four_shots_for_25_damage() -> None:
    curve = _curve(samples=[(0, "25.0")], rpm_auto=600)

    (result,) = rank_by_ttk([curve], at_range=10, health=100)

    assert result.shots == 4
    assert result.fire_mode is FireMode.AUTO
    assert result.time_to_kill_ms == pytest.approx(300.0)


def test_rank_by_ttk_picks_fastest_available_mode() -> None:
    curve = _curve(samples=[(0, "25.0")], rpm_single=300, rpm_burst=900, rpm_auto=600)

    (fastest,) = rank_by_ttk([curve], at_range=0, health=100)
    (single,) = rank_by_ttk([curve], at_range=0, health=100, fire_mode=FireMode.SINGLE)

    assert fastest.fire_mode is FireMode.BURST
    assert fastest.time_to_kill_ms == pytest.approx(200.0)
    assert single.time_to_kill_ms == pytest.approx(600.0)


def test_rank_by_ttk_excludes_missing_fire_mode() -> None:
    auto_only = _curve(samples=[(0, "25.0")], rpm_auto=600)

    assert rank_by_ttk([auto_only], at_range=0, health=100, fire_mode=FireMode.BURST) == []


def test_rank_by_ttk_orders_fastest_first_with_pellets() -> None:
    rifle = _curve(config_id=1, samples=[(0, "25.0")], rpm_auto=600)
    shotgun = _curve(
        config_id=2,
        weapon="MCS-880",
        ammo="Buckshot",
        samples=[(0, "12.0")],
        rpm_auto=None,
        rpm_single=75,
        pellet_count=8,
    )

    ranked = rank_by_ttk([rifle, shotgun], at_range=0, health=100)

    assert [r.configuration.config_id for r in ranked] == [1, 2]
    assert ranked[1].shots == 2
    assert ranked[1].time_to_kill_ms == pytest.approx(800.0)


@dataclass(frozen=True)
class _Row:
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


def test_group_curves_folds_contiguous_rows() -> None:
    def row(config_id: int, at_range: int, damage: str) -> _Row:
        return _Row(config_id, "AK-24", "Assault Rifles", f"B{config_id}", "Standard", 600, None, None, 600,
                    at_range, Decimal(damage), None, Decimal("1.5"))

    rows = [row(1, 0, "24.0"), row(1, 20, "20.0"), row(2, 0, "26.0")]

    curves = list(group_curves(iter(rows)))

    assert [c.config_id for c in curves] == [1, 2]
    assert curves[0].curve.ranges == (0, 20)
    assert curves[0].headshot_multiplier == Decimal("1.5")
    assert curves[1].curve.damage_at(100) == Decimal("26.0")
