"""Rank weapon configurations by damage or time-to-kill at a range."""

from __future__ import annotations

from django.core.management.base import BaseCommand

from analysis import FireMode
from arsenal.client import WeaponStatsClient
from arsenal.management.commands._common import command_errors
from arsenal.scenarios import best_damage_at_range, fastest_time_to_kill


class Command(BaseCommand):
    """Print a ranked scenario report (read-only)."""

    help = "Rank configurations by effective damage or time-to-kill at a target range."

    def add_arguments(self, parser) -> None:
        """Add command arguments."""

        parser.add_argument("--range", dest="at_range", type=int, required=True, help="Target range.")
        parser.add_argument("--category", default=None, help="Restrict to one weapon category.")
        parser.add_argument(
            "--by",
            choices=("damage", "ttk"),
            default="ttk",
            help="Ranking metric (default: ttk).",
        )
        parser.add_argument(
            "--health",
            type=int,
            default=None,
            help="Target health for time-to-kill (default: WEAPON_STATS['DEFAULT_TARGET_HEALTH']).",
        )
        parser.add_argument(
            "--mode",
            choices=[mode.value for mode in FireMode],
            default=None,
            help="Fire mode for time-to-kill (default: fastest available).",
        )
        parser.add_argument("--headshots", action="store_true", help="Apply headshot multipliers.")
        parser.add_argument("--limit", type=int, default=10, help="Maximum rows to print.")
        parser.add_argument("--database", default="default", help="Database alias to use.")

    def handle(self, *args, **options) -> str | None:
        """Run the command."""

        engine = WeaponStatsClient(using=options["database"]).queries
        at_range: int = options["at_range"]
        with command_errors():
            if options["by"] == "damage":
                results = best_damage_at_range(
                    engine,
                    at_range=at_range,
                    category=options["category"],
                    limit=options["limit"],
                )
                for rank, result in enumerate(results, start=1):
                    config = result.configuration
                    self.stdout.write(
                        f"{rank}. {config.weapon_name} / {config.barrel_name} / {config.ammo_name}: "
                        f"damage={result.damage} (from range {result.effective_range})"
                    )
            else:
                results = fastest_time_to_kill(
                    engine,
                    at_range=at_range,
                    category=options["category"],
                    health=options["health"],
                    fire_mode=options["mode"],
                    headshots=options["headshots"],
                    limit=options["limit"],
                )
                for rank, result in enumerate(results, start=1):
                    config = result.configuration
                    self.stdout.write(
                        f"{rank}. {config.weapon_name} / {config.barrel_name} / {config.ammo_name}: "
                        f"ttk={result.time_to_kill_ms:.0f}ms shots={result.shots} "
                        f"mode={result.fire_mode} rpm={result.rpm}"
                    )
        if not results:
            self.stdout.write("No configuration has damage data at that range.")
        return None
