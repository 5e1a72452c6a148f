"""Integration tests for populating the normalized schema."""

from __future__ import annotations

import logging
from decimal import Decimal

import pytest

from arsenal.errors import DataConflict
from arsenal.ingestion import IngestionPipeline
from arsenal.models import (
    AmmoType,
    Barrel,
    Category,
    ConfigDropoff,
    Configuration,
    Weapon,
    WeaponAmmoStats,
)
from arsenal.schema import CORE_MODELS
from arsenal.source import parse_document

pytestmark = pytest.mark.integration

SAMPLE_COUNTS = {
    "categories": 3,
    "barrels": 2,
    "ammo_types": 4,
    "weapons": 4,
    "weapon_ammo_stats": 6,
    "configurations": 7,
    "config_dropoffs": 20,
}


def _table_counts() -> dict[str, int]:
    return {model._meta.db_table: model.objects.count() for model in CORE_MODELS}


def _natural_rows() -> dict[str, set[tuple]]:
    """Return every stored row keyed by natural keys instead of surrogate ids."""

    return {
        "categories": set(Category.objects.values_list("name")),
        "barrels": set(Barrel.objects.values_list("name")),
        "ammo_types": set(AmmoType.objects.values_list("name")),
        "weapons": set(Weapon.objects.values_list("name", "category__name")),
        "weapon_ammo_stats": set(
            WeaponAmmoStats.objects.values_list(
                "weapon__name",
                "ammo__name",
                "magazine_size",
                "empty_reload_time",
                "tactical_reload_time",
                "headshot_multiplier",
                "pellet_count",
            )
        ),
        "configurations": set(
            Configuration.objects.values_list(
                "weapon__name", "barrel__name", "ammo__name", "velocity", "rpm_single", "rpm_burst", "rpm_auto"
            )
        ),
        "config_dropoffs": set(
            ConfigDropoff.objects.values_list(
                "configuration__weapon__name",
                "configuration__barrel__name",
                "configuration__ammo__name",
                "range",
                "damage",
            )
        ),
    }


def _single_weapon_document(*, stats: list[dict] | None = None) -> dict:
    return {
        "categories": [
            {
                "name": "Assault Rifles",
                "weapons": [
                    {
                        "name": "AK-24",
                        "ammoStats": {"Standard": {"magSize": 30, "headshotMultiplier": 1.5}},
                        "stats": stats
                        if stats is not None
                        else [
                            {
                                "barrelType": "Factory",
                                "ammoType": "Standard",
                                "velocity": 660,
                                "rpmAuto": 600,
                                "dropoffs": [{"range": 10, "damage": 20.0}, {"range": 50, "damage": 14.0}],
                            }
                        ],
                    }
                ],
            }
        ]
    }


@pytest.mark.django_db
def test_populate_writes_every_table(stats_client, sample_document) -> None:
    summary = stats_client.populate(sample_document)

    assert summary.as_counts() == SAMPLE_COUNTS
    assert _table_counts() == SAMPLE_COUNTS
    assert summary.warnings == ()


@pytest.mark.django_db
def test_repeated_natural_keys_exist_once(populated) -> None:
    """Ammo and barrels repeated across weapons are stored once."""

    assert AmmoType.objects.filter(name="Standard").count() == 1
    assert Barrel.objects.filter(name="Factory").count() == 1
    ak = Weapon.objects.select_related("category").get(name="AK-24")
    assert ak.category.name == "Assault Rifles"
    assert ak.configurations.count() == 3


@pytest.mark.django_db
def test_absent_fire_modes_are_stored_null(populated) -> None:
    shotgun = Configuration.objects.get(weapon__name="MCS-880", ammo__name="Slug")

    assert shotgun.rpm_single == 75
    assert shotgun.rpm_burst is None
    assert shotgun.rpm_auto is None


@pytest.mark.django_db
def test_weapon_in_two_categories_aborts_without_rows(stats_client, sample_payload) -> None:
    ak = sample_payload["categories"][0]["weapons"][0]
    sample_payload["categories"][2]["weapons"].append(ak)

    message = "'AK-24' is listed under both 'Assault Rifles' and 'Sidearms'"
    with pytest.raises(DataConflict, match=message) as excinfo:
        stats_client.populate(parse_document(sample_payload))

    assert "category_id" in str(excinfo.value.__cause__)
    assert sum(_table_counts().values()) == 0


@pytest.mark.django_db
def test_duplicate_dropoff_range_conflicts(stats_client) -> None:
    document = _single_weapon_document(
        stats=[
            {
                "barrelType": "Factory",
                "ammoType": "Standard",
                "velocity": 660,
                "dropoffs": [{"range": 10, "damage": 20.0}, {"range": 10, "damage": 18.0}],
            }
        ]
    )

    with pytest.raises(DataConflict, match="range 10 more than once"):
        stats_client.populate(parse_document(document))
    assert sum(_table_counts().values()) == 0


@pytest.mark.django_db
def test_empty_dropoff_curve_conflicts(stats_client) -> None:
    document = _single_weapon_document(
        stats=[{"barrelType": "Factory", "ammoType": "Standard", "velocity": 660, "dropoffs": []}]
    )

    with pytest.raises(DataConflict, match="no dropoff samples"):
        stats_client.populate(parse_document(document))


@pytest.mark.django_db
def test_negative_numbers_conflict(stats_client) -> None:
    document = _single_weapon_document()
    document["categories"][0]["weapons"][0]["stats"][0]["velocity"] = -1

    with pytest.raises(DataConflict, match="velocity must be non-negative"):
        stats_client.populate(parse_document(document))


@pytest.mark.django_db
def test_damage_finer_than_column_conflicts_instead_of_rounding(stats_client, caplog) -> None:
    document = _single_weapon_document()
    document["categories"][0]["weapons"][0]["stats"][0]["dropoffs"] = [
        {"range": 0, "damage": 20.2},
        {"range": 10, "damage": 20.25},
    ]

    with caplog.at_level(logging.WARNING, logger="arsenal.ingestion"):
        with pytest.raises(DataConflict, match=r"at range 10 does not fit column config_dropoffs\.damage"):
            stats_client.populate(parse_document(document))

    assert "increases with range" not in caplog.text
    assert sum(_table_counts().values()) == 0


@pytest.mark.django_db
def test_reload_time_wider_than_column_conflicts(stats_client) -> None:
    document = _single_weapon_document()
    document["categories"][0]["weapons"][0]["ammoStats"]["Standard"]["tacticalReload"] = 100

    message = r"tacticalReload does not fit column weapon_ammo_stats\.tactical_reload_time"
    with pytest.raises(DataConflict, match=message):
        stats_client.populate(parse_document(document))
    assert sum(_table_counts().values()) == 0


@pytest.mark.django_db
def test_identical_repeated_configuration_is_deduplicated(stats_client) -> None:
    document = _single_weapon_document()
    weapon = document["categories"][0]["weapons"][0]
    weapon["stats"].append(dict(weapon["stats"][0]))

    summary = stats_client.populate(parse_document(document))

    assert summary.configurations == 1
    assert summary.dropoffs == 2


@pytest.mark.django_db
def test_repeated_configuration_with_other_curve_conflicts(stats_client) -> None:
    document = _single_weapon_document()
    weapon = document["categories"][0]["weapons"][0]
    repeat = dict(weapon["stats"][0], dropoffs=[{"range": 10, "damage": 19.0}])
    weapon["stats"].append(repeat)

    with pytest.raises(DataConflict, match="different dropoff curves"):
        stats_client.populate(parse_document(document))


@pytest.mark.django_db
def test_repeated_configuration_with_other_velocity_conflicts(stats_client) -> None:
    document = _single_weapon_document()
    weapon = document["categories"][0]["weapons"][0]
    weapon["stats"].append(dict(weapon["stats"][0], velocity=700))

    with pytest.raises(DataConflict, match="velocity"):
        stats_client.populate(parse_document(document))


@pytest.mark.django_db
def test_increasing_damage_is_logged_not_rejected(stats_client, caplog) -> None:
    document = _single_weapon_document()
    document["categories"][0]["weapons"][0]["stats"][0]["dropoffs"] = [
        {"range": 10, "damage": 14.0},
        {"range": 50, "damage": 20.0},
    ]

    with caplog.at_level(logging.WARNING, logger="arsenal.ingestion"):
        summary = stats_client.populate(parse_document(document))

    assert summary.dropoffs == 2
    assert len(summary.warnings) == 1
    assert "increases with range" in caplog.text


@pytest.mark.django_db
def test_check_rolls_back(stats_client, sample_document) -> None:
    summary = stats_client.check(sample_document)

    assert summary.as_counts() == SAMPLE_COUNTS
    assert sum(_table_counts().values()) == 0


@pytest.mark.django_db
def test_check_replacing_existing_keeps_data(stats_client, sample_document, populated) -> None:
    before = _natural_rows()

    summary = stats_client.pipeline.check(sample_document, replace_existing=True)

    assert summary.as_counts() == SAMPLE_COUNTS
    assert _natural_rows() == before


@pytest.mark.django_db
def test_batch_size_does_not_change_rows(sample_document) -> None:
    IngestionPipeline(batch_size=1).populate(sample_document)
    small_batches = _natural_rows()

    assert small_batches["config_dropoffs"]
    assert len(small_batches["config_dropoffs"]) == SAMPLE_COUNTS["config_dropoffs"]
    assert (
        "AK-24",
        "Factory",
        "High Power",
        30,
        Decimal("22.0"),
    ) in small_batches["config_dropoffs"]


def test_invalid_batch_size() -> None:
    with pytest.raises(ValueError, match="batch_size"):
        IngestionPipeline(batch_size=-1)


@pytest.mark.django_db(transaction=True)
def test_refresh_twice_yields_identical_rows(stats_client, sample_document) -> None:
    stats_client.refresh(sample_document)
    first = _natural_rows()

    stats_client.refresh(sample_document)
    second = _natural_rows()

    assert first == second
    assert _table_counts() == SAMPLE_COUNTS


@pytest.mark.django_db(transaction=True)
def test_failed_refresh_leaves_no_partial_dataset(stats_client, sample_document, sample_payload) -> None:
    stats_client.refresh(sample_document)
    sample_payload["categories"][1]["weapons"].append(sample_payload["categories"][0]["weapons"][0])

    with pytest.raises(DataConflict):
        stats_client.refresh(parse_document(sample_payload))

    counts = _table_counts()
    # SQLite commits the reset before populating; other engines keep the old dataset.
    assert counts in (SAMPLE_COUNTS, dict.fromkeys(SAMPLE_COUNTS, 0))


@pytest.mark.django_db
def test_ensure_initialized_populates_only_once(stats_client, sample_document) -> None:
    first = stats_client.ensure_initialized(sample_document)
    second = stats_client.ensure_initialized(sample_document)

    assert first is not None
    assert first.as_counts() == SAMPLE_COUNTS
    assert second is None
    assert _table_counts() == SAMPLE_COUNTS
