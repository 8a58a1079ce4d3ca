"""Ranking of owners.

Each dimension scores an owner in [0, 1], 1 being best. The total score is the
weighted sum over all dimensions.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Hashable, Iterable, Sequence, TypeVar

K = TypeVar("K", bound=Hashable)


@dataclass(frozen=True)
class ScoreDimension:
    name: str
    weight: int
    lower_is_better: bool
    # None: the max value depends on the context and is given per scoring
    max_value: int | None = None


# Distance between the file and the folder of the config that defines the owner.
DISTANCE = ScoreDimension("DISTANCE", weight=1, lower_is_better=True)
# Whether the owner already reviews the change.
IS_REVIEWER = ScoreDimension("IS_REVIEWER", weight=2, lower_is_better=False, max_value=1)

DIMENSIONS = (DISTANCE, IS_REVIEWER)

IS_REVIEWER_SCORING_VALUE = 1
NO_REVIEWER_SCORING_VALUE = 0


class Scoring:
    """Values of one dimension; the best value per owner counts."""

    def __init__(self, dimension: ScoreDimension, max_value: int | None = None):
        if dimension.max_value is not None and max_value is not None:
            raise ValueError(f"{dimension.name} has a fixed max value")
        if dimension.max_value is None and max_value is None:
            raise ValueError(f"{dimension.name} requires a max value")
        self.dimension = dimension
        self.max_value = dimension.max_value if max_value is None else max_value
        if self.max_value < 0:
            raise ValueError(f"max value cannot be negative: {self.max_value}")
        self._best: dict = {}

    def put_value(self, owner: K, value: int) -> "Scoring":
        if value < 0:
            raise ValueError(f"value cannot be negative: {value}")
        if value > self.max_value:
            raise ValueError(f"value cannot be greater than max value {self.max_value}: {value}")
        best = self._best.get(owner)
        if best is None or (value < best if self.dimension.lower_is_better else value > best):
            self._best[owner] = value
        return self

    def best_value(self, owner: K) -> int | None:
        return self._best.get(owner)

    def scoring(self, owner: K) -> float:
        """Normalized score of ``owner``; 0.0 if it has no value."""
        value = self._best.get(owner)
        if value is None:
            return 0.0
        score = value / self.max_value if self.max_value else 0.0
        return 1.0 - score if self.dimension.lower_is_better else score

    def weighted_scoring(self, owner: K) -> float:
        return self.dimension.weight * self.scoring(owner)

    def sort_key(self, owner: K) -> float:
        if owner not in self._best:
            raise ValueError(f"{owner} has no {self.dimension.name} value")
        return -self.scoring(owner)

    def sort(self, owners: Iterable[K]) -> list[K]:
        """Best first. Raises ValueError for owners without a value."""
        return sorted(owners, key=self.sort_key)


class Scorings:
    """Combines the scorings of several dimensions."""

    def __init__(self, *scorings: Scoring):
        for s in scorings:
            if s.dimension not in DIMENSIONS:
                raise ValueError(f"unknown dimension: {s.dimension.name}")
        names = [s.dimension.name for s in scorings]
        if len(set(names)) != len(names):
            raise ValueError(f"duplicate dimensions: {names}")
        self.scorings: Sequence[Scoring] = scorings

    def total(self, owner: K) -> float:
        return sum(s.weighted_scoring(owner) for s in self.scorings)

    def sort(self, owners: Iterable[K]) -> list[K]:
        """Best first; owners with equal totals keep their input order."""
        return sorted(owners, key=lambda o: -self.total(o))


@dataclass(frozen=True)
class ScoredOwner:
    owner: object
    score: float
