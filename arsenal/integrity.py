"""Post-ingestion integrity audit of the stored dataset.

The audit reports soft problems that the ingestion pipeline does not reject:
damage that rises with range, configurations without any dropoff row (only
possible when rows were edited outside the pipeline), and configurations
whose ammo has no stats row for their weapon.
"""

from __future__ import annotations

from dataclasses import dataclass

from django.db import DEFAULT_DB_ALIAS, DatabaseError
from django.db.models import Exists, OuterRef

from analysis import group_curves
from arsenal.errors import RetrievalFailure
from arsenal.models import Configuration, WeaponAmmoStats
from arsenal.queries import QueryEngine
from arsenal.schema import CORE_MODELS


@dataclass(frozen=True, slots=True)
class IntegrityReport:
    """Result of an integrity audit.

    Attributes:
        issues: Human-readable descriptions of each problem found.
        table_counts: Row count per core table.
    """

    issues: tuple[str, ...]
    table_counts: dict[str, int]

    @property
    def is_valid(self) -> bool:
        return not self.issues


def _label(configuration: Configuration) -> str:
    return f"{configuration.weapon.name} / {configuration.barrel.name} / {configuration.ammo.name}"


def audit_dataset(*, using: str = DEFAULT_DB_ALIAS) -> IntegrityReport:
    """Audit the stored dataset on `using`.

    Raises:
        RetrievalFailure: If the audit queries fail.
    """

    issues: list[str] = []
    try:
        table_counts = {
            model._meta.db_table: model._default_manager.using(using).count() for model in CORE_MODELS
        }
        configurations = Configuration.objects.using(using).select_related("weapon", "barrel", "ammo")
        for configuration in configurations.filter(dropoffs__isnull=True).order_by("id"):
            issues.append(f"Configuration {_label(configuration)} has no dropoff rows.")

        stats = WeaponAmmoStats.objects.using(using).filter(weapon=OuterRef("weapon"), ammo=OuterRef("ammo"))
        for configuration in configurations.filter(~Exists(stats)).order_by("id"):
            issues.append(f"Configuration {_label(configuration)} has no ammo stats for its weapon.")
    except DatabaseError as exc:
        raise RetrievalFailure(f"Integrity audit failed on {using!r}: {exc}") from exc

    for curve in group_curves(QueryEngine(using=using).configuration_curves()):
        if not curve.curve.is_non_increasing():
            issues.append(
                f"Configuration {curve.weapon_name} / {curve.barrel_name} / {curve.ammo_name} "
                "damage increases with range."
            )

    if table_counts["weapons"] and not table_counts["config_dropoffs"]:
        issues.append("Weapons are stored but no dropoff data is present.")
    return IntegrityReport(issues=tuple(issues), table_counts=table_counts)
