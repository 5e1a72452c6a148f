"""Helpers shared by the weapon statistics management commands."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from django.core.management.base import CommandError

from arsenal.errors import WeaponStatsError


@contextmanager
def command_errors() -> Iterator[None]:
    """Report weapon statistics failures as `CommandError` (exit code 1)."""

    try:
        yield
    except WeaponStatsError as exc:
        raise CommandError(f"{type(exc).__name__}: {exc}") from exc


def resolve_mode(*, check: bool, write: bool) -> str:
    """Validate the --check/--write pair and return the mode label."""

    if check and write:
        raise CommandError("Use either --check or --write, not both.")
    if not check and not write:
        raise CommandError("Refusing to write without explicit intent; pass --check or --write.")
    return "CHECK" if check else "WRITE"


def add_source_arguments(parser) -> None:
    """Add the --file/--check/--write arguments used by loading commands."""

    parser.add_argument(
        "--file",
        default=None,
        help="Source JSON document (default: WEAPON_STATS['SOURCE_PATH']).",
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Dry-run: validate the document against the database, then roll back.",
    )
    parser.add_argument(
        "--write",
        action="store_true",
        help="Write changes to the database.",
    )
