"""Pure analytics package for weaponStats.

This package contains deterministic, testable computations (effective damage
at range, time-to-kill, rankings) that operate on in-memory inputs and return
DTOs. It must not import Django or perform any database I/O.
"""

from .dropoff import DropoffCurve, effective_damage
from .dto import ConfigurationCurve, DamageAtRange, FireMode, TimeToKill
from .ranking import group_curves, rank_by_damage, rank_by_ttk

__all__ = [
    "ConfigurationCurve",
    "DamageAtRange",
    "DropoffCurve",
    "FireMode",
    "TimeToKill",
    "effective_damage",
    "group_curves",
    "rank_by_damage",
    "rank_by_ttk",
]
