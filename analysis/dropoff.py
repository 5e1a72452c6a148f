"""Dropoff curves and effective damage at range.

A dropoff curve is a set of (range, damage) samples. Damage at an arbitrary
range follows a right-continuous step function: the value of the greatest
stored range that does not exceed the requested range. Below the first sample
there is no defined value, and callers must exclude the curve rather than
treat it as zero damage.
"""

from __future__ import annotations

from bisect import bisect_right
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True, slots=True)
class DropoffCurve:
    """An immutable, range-sorted dropoff curve.

    Attributes:
        ranges: Strictly increasing sample ranges.
        damages: Damage values aligned with `ranges`.
    """

    ranges: tuple[int, ...]
    damages: tuple[Decimal, ...]

    @classmethod
    def from_samples(cls, samples: Iterable[tuple[int, Decimal]]) -> DropoffCurve:
        """Build a curve from (range, damage) pairs in any order.

        Raises:
            ValueError: If two samples share a range.
        """

        ordered = sorted(samples, key=lambda sample: sample[0])
        ranges = tuple(sample[0] for sample in ordered)
        if len(set(ranges)) != len(ranges):
            raise ValueError(f"Dropoff ranges must be unique, got {ranges}.")
        return cls(ranges=ranges, damages=tuple(Decimal(sample[1]) for sample in ordered))

    def __len__(self) -> int:
        return len(self.ranges)

    def sample_at(self, at_range: int) -> tuple[int, Decimal] | None:
        """Return the (range, damage) sample that applies at `at_range`.

        Args:
            at_range: Target distance.

        Returns:
            The sample with the greatest range <= `at_range`, or None when
            every stored range is beyond it.
        """

        idx = bisect_right(self.ranges, at_range)
        if idx == 0:
            return None
        return self.ranges[idx - 1], self.damages[idx - 1]

    def damage_at(self, at_range: int) -> Decimal | None:
        """Return the effective damage at `at_range`, or None if undefined."""

        sample = self.sample_at(at_range)
        return None if sample is None else sample[1]

    def is_non_increasing(self) -> bool:
        """True when damage never goes up as range increases."""

        return all(later <= earlier for earlier, later in zip(self.damages, self.damages[1:]))


def effective_damage(samples: Iterable[tuple[int, Decimal]], at_range: int) -> Decimal | None:
    """Compute effective damage at a range directly from raw samples.

    Example:
        >>> effective_damage([(10, Decimal("20.0")), (50, Decimal("14.0"))], 30)
        Decimal('20.0')
    """

    return DropoffCurve.from_samples(samples).damage_at(at_range)
