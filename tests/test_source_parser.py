"""Unit tests for parsing the nested weapon source document."""

from __future__ import annotations

from decimal import Decimal

import pytest

from arsenal.errors import ParseFailure
from arsenal.source import load_document, parse_document, parse_document_text

pytestmark = pytest.mark.unit


def test_parse_document_reads_nested_shape(sample_payload) -> None:
    """Categories, weapons, ammo stats and configurations keep document order."""

    document = parse_document(sample_payload)

    assert [category.name for category in document.categories] == ["Assault Rifles", "Shotguns", "Sidearms"]
    ak = document.categories[0].weapons[0]
    assert ak.name == "AK-24"
    assert [stats.ammo for stats in ak.ammo_stats] == ["Standard", "High Power"]
    assert ak.ammo_stats[0].tactical_reload_time == Decimal("2.0")
    assert ak.ammo_stats[0].pellet_count is None

    factory = ak.configurations[0]
    assert (factory.barrel, factory.ammo, factory.velocity) == ("Factory", "Standard", 660)
    assert factory.rpm_burst is None
    assert [(sample.range, sample.damage) for sample in factory.dropoffs] == [
        (0, Decimal("24.0")),
        (20, Decimal("20.0")),
        (50, Decimal("16.0")),
    ]


def test_parse_document_accepts_ammo_stats_as_list(sample_document) -> None:
    """List-shaped ammoStats entries carry their ammo name under ammoType."""

    shotgun = sample_document.categories[1].weapons[0]
    assert [stats.ammo for stats in shotgun.ammo_stats] == ["Buckshot", "Slug"]
    assert shotgun.ammo_stats[0].pellet_count == 8
    assert shotgun.ammo_stats[0].empty_reload_time is None


def test_parse_document_normalizes_whitespace_in_names() -> None:
    """Names are trimmed and internal runs of whitespace collapse."""

    document = parse_document({"categories": [{"name": "  Light   Machine Guns ", "weapons": []}]})

    assert document.categories[0].name == "Light Machine Guns"


def test_parse_document_reports_path_of_missing_key(sample_payload) -> None:
    """A missing required key names the JSON path that lacks it."""

    del sample_payload["categories"][0]["weapons"][1]["stats"][0]["velocity"]

    with pytest.raises(ParseFailure, match=r"\$\.categories\[0\]\.weapons\[1\]\.stats\[0\]: missing required key 'velocity'"):
        parse_document(sample_payload)


@pytest.mark.parametrize(
    ("value", "message"),
    [
        ("fast", "expected an integer"),
        (True, "got bool"),
        (12.5, "expected an integer"),
    ],
)
def test_parse_document_rejects_non_integer_velocity(sample_payload, value, message) -> None:
    """Integer fields refuse strings, booleans and fractional numbers."""

    sample_payload["categories"][0]["weapons"][0]["stats"][0]["velocity"] = value

    with pytest.raises(ParseFailure, match=message):
        parse_document(sample_payload)


def test_parse_document_rejects_wrong_container_types() -> None:
    """Objects and lists are checked before their contents are read."""

    with pytest.raises(ParseFailure, match=r"\$: expected an object"):
        parse_document([])
    with pytest.raises(ParseFailure, match=r"\$\.categories: expected a list"):
        parse_document({"categories": "Assault Rifles"})


def test_parse_document_text_rejects_invalid_json() -> None:
    """Malformed JSON is a ParseFailure, not a decoder error."""

    with pytest.raises(ParseFailure, match="Invalid JSON"):
        parse_document_text('{"categories": [')


def test_parse_document_text_rejects_duplicate_keys() -> None:
    """Repeated keys in one JSON object would silently drop data."""

    text = '{"categories": [{"name": "Sidearms", "name": "Pistols", "weapons": []}]}'

    with pytest.raises(ParseFailure, match="Duplicate key 'name'"):
        parse_document_text(text)


def test_load_document_wraps_missing_file(tmp_path) -> None:
    """An unreadable path is reported as a ParseFailure."""

    with pytest.raises(ParseFailure, match="Cannot read source document"):
        load_document(tmp_path / "missing.json")


def test_load_document_reads_file(tmp_path) -> None:
    """Documents load from disk as UTF-8 JSON."""

    path = tmp_path / "weapons.json"
    path.write_text('{"categories": [{"name": "Sidearms", "weapons": []}]}', encoding="utf-8")

    document = load_document(path)

    assert document.categories[0].name == "Sidearms"
    assert list(document.iter_weapons()) == []
