"""Database models for the normalized weapon statistics schema.

The table and column names match the relational contract consumed by other
tools (`categories`, `weapons`, `barrels`, `ammo_types`, `weapon_ammo_stats`,
`configurations`, `config_dropoffs`). Rows are created once per ingestion pass
and never updated individually; a refresh drops and recreates every table.
"""

from __future__ import annotations

from django.db import models


class Category(models.Model):
    """Weapon category lookup (ex: "Assault Rifles")."""

    id = models.AutoField(primary_key=True, db_column="category_id")
    name = models.CharField(max_length=50, unique=True, db_column="category_name")

    class Meta:
        db_table = "categories"
        verbose_name_plural = "Categories"

    def __str__(self) -> str:
        """Return the category name for display contexts."""

        return self.name


class Barrel(models.Model):
    """Barrel attachment lookup."""

    id = models.AutoField(primary_key=True, db_column="barrel_id")
    name = models.CharField(max_length=100, unique=True, db_column="barrel_name")

    class Meta:
        db_table = "barrels"

    def __str__(self) -> str:
        """Return the barrel name for display contexts."""

        return self.name


class AmmoType(models.Model):
    """Ammunition type lookup."""

    id = models.AutoField(primary_key=True, db_column="ammo_id")
    name = models.CharField(max_length=100, unique=True, db_column="ammo_type_name")

    class Meta:
        db_table = "ammo_types"

    def __str__(self) -> str:
        """Return the ammo type name for display contexts."""

        return self.name


class Weapon(models.Model):
    """A weapon; each weapon belongs to exactly one category."""

    id = models.AutoField(primary_key=True, db_column="weapon_id")
    name = models.CharField(max_length=100, unique=True, db_column="weapon_name")
    category = models.ForeignKey(
        Category,
        on_delete=models.PROTECT,
        related_name="weapons",
        db_column="category_id",
        db_index=False,
    )

    class Meta:
        db_table = "weapons"
        indexes = [
            models.Index(fields=["category"], name="idx_weapons_category"),
        ]

    def __str__(self) -> str:
        """Return the weapon name for display contexts."""

        return self.name


class WeaponAmmoStats(models.Model):
    """Per weapon x ammo compatibility stats.

    Reload times and pellet counts are optional in the source data and are
    stored as NULL when absent.
    """

    weapon = models.ForeignKey(
        Weapon,
        on_delete=models.CASCADE,
        related_name="ammo_stats",
        db_column="weapon_id",
        db_index=False,
    )
    ammo = models.ForeignKey(
        AmmoType,
        on_delete=models.PROTECT,
        related_name="weapon_stats",
        db_column="ammo_id",
    )
    magazine_size = models.PositiveSmallIntegerField()
    empty_reload_time = models.DecimalField(max_digits=4, decimal_places=2, null=True, blank=True)
    tactical_reload_time = models.DecimalField(max_digits=4, decimal_places=2, null=True, blank=True)
    headshot_multiplier = models.DecimalField(max_digits=3, decimal_places=1)
    pellet_count = models.PositiveSmallIntegerField(null=True, blank=True)

    class Meta:
        db_table = "weapon_ammo_stats"
        verbose_name_plural = "Weapon ammo stats"
        constraints = [
            models.UniqueConstraint(fields=["weapon", "ammo"], name="uniq_weapon_ammo_stats"),
        ]
        indexes = [
            models.Index(fields=["weapon"], name="idx_weapon_ammo_stats_weapon"),
        ]

    def __str__(self) -> str:
        """Return a concise display string for debug usage."""

        return f"WeaponAmmoStats(weapon={self.weapon_id}, ammo={self.ammo_id}, mag={self.magazine_size})"


class Configuration(models.Model):
    """A weapon x barrel x ammo combination with its fire-rate profile.

    Fire modes are individually optional: an absent mode is NULL, never zero.
    """

    id = models.AutoField(primary_key=True, db_column="config_id")
    weapon = models.ForeignKey(
        Weapon,
        on_delete=models.CASCADE,
        related_name="configurations",
        db_column="weapon_id",
        db_index=False,
    )
    barrel = models.ForeignKey(
        Barrel,
        on_delete=models.PROTECT,
        related_name="configurations",
        db_column="barrel_id",
    )
    ammo = models.ForeignKey(
        AmmoType,
        on_delete=models.PROTECT,
        related_name="configurations",
        db_column="ammo_id",
    )
    velocity = models.PositiveSmallIntegerField()
    rpm_single = models.PositiveSmallIntegerField(null=True, blank=True)
    rpm_burst = models.PositiveSmallIntegerField(null=True, blank=True)
    rpm_auto = models.PositiveSmallIntegerField(null=True, blank=True)

    class Meta:
        db_table = "configurations"
        constraints = [
            models.UniqueConstraint(
                fields=["weapon", "barrel", "ammo"],
                name="uniq_configuration_combo",
            ),
        ]
        indexes = [
            models.Index(fields=["weapon"], name="idx_configurations_weapon"),
        ]

    def __str__(self) -> str:
        """Return a concise display string for debug usage."""

        return (
            "Configuration("
            f"weapon={self.weapon_id}, barrel={self.barrel_id}, ammo={self.ammo_id}, velocity={self.velocity}"
            ")"
        )


class ConfigDropoff(models.Model):
    """One (range, damage) sample of a configuration's damage falloff curve."""

    configuration = models.ForeignKey(
        Configuration,
        on_delete=models.CASCADE,
        related_name="dropoffs",
        db_column="config_id",
        db_index=False,
    )
    range = models.PositiveSmallIntegerField()
    damage = models.DecimalField(max_digits=5, decimal_places=1)

    class Meta:
        db_table = "config_dropoffs"
        constraints = [
            models.UniqueConstraint(fields=["configuration", "range"], name="uniq_config_dropoff_range"),
        ]
        indexes = [
            models.Index(fields=["configuration"], name="idx_config_dropoffs_config"),
            models.Index(fields=["range"], name="idx_config_dropoffs_range"),
            models.Index(fields=["-damage"], name="idx_config_dropoffs_damage"),
        ]

    def __str__(self) -> str:
        """Return a concise display string for debug usage."""

        return f"ConfigDropoff(config={self.configuration_id}, range={self.range}, damage={self.damage})"
