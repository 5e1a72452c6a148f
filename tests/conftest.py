"""Pytest fixtures shared across weapon statistics tests."""

from __future__ import annotations

import copy
import json
from collections.abc import Sequence
from pathlib import Path

import pytest
from django.db import DEFAULT_DB_ALIAS, OperationalError, connections

from arsenal.client import WeaponStatsClient
from arsenal.source import SourceDocument, parse_document

SAMPLE_PATH = Path(__file__).resolve().parent.parent / "arsenal" / "data" / "weapons.json"


@pytest.fixture(scope="session")
def _sample_payload_pristine() -> dict:
    return json.loads(SAMPLE_PATH.read_text(encoding="utf-8"))


@pytest.fixture
def sample_payload(_sample_payload_pristine) -> dict:
    """Return a mutable copy of the bundled sample document."""

    return copy.deepcopy(_sample_payload_pristine)


@pytest.fixture
def sample_document(sample_payload) -> SourceDocument:
    """Return the bundled sample document, parsed."""

    return parse_document(sample_payload)


@pytest.fixture
def stats_client() -> WeaponStatsClient:
    """Return a client bound to the default test database."""

    return WeaponStatsClient(chunk_size=2, batch_size=3)


@pytest.fixture
def populated(db, stats_client, sample_document):
    """Populate the test database with the sample document."""

    return stats_client.populate(sample_document)


@pytest.fixture
def unreachable_database(monkeypatch):
    """Make every attempt to open the default connection fail.

    The backend class is patched so that undoing it restores the database
    access guard pytest-django installs.
    """

    def _refuse(self) -> None:
        raise OperationalError("could not connect to server: Connection refused")

    monkeypatch.setattr(type(connections[DEFAULT_DB_ALIAS]), "ensure_connection", _refuse)


def pytest_collection_modifyitems(items: Sequence[pytest.Item]) -> None:
    """Enforce that every test has exactly one speed marker.

    - `unit`: pure, fast tests with no database access.
    - `integration`: tests touching Django, database, commands, or IO.

    Each test must have exactly one of these markers.
    """

    invalid: list[str] = []
    for item in items:
        has_unit = item.get_closest_marker("unit") is not None
        has_integration = item.get_closest_marker("integration") is not None
        if has_unit == has_integration:
            markers = []
            if has_unit:
                markers.append("unit")
            if has_integration:
                markers.append("integration")
            invalid.append(f"{item.nodeid} (markers={markers or 'none'})")

    if invalid:
        joined = "\n".join(f"- {nodeid}" for nodeid in invalid)
        raise pytest.UsageError(
            "Each test must have exactly one speed marker: `@pytest.mark.unit` or "
            "`@pytest.mark.integration`.\n"
            f"Offending tests:\n{joined}"
        )
