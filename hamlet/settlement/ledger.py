"""Ledger -- resource balances, aggregate stats and settlement level.

The ledger is the settlement's economic state.  Channels are addressed by
name through the theme's schema, so the same ledger serves every skin.
Only the building registry and the tick driver write to it.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from hamlet.errors import InsufficientResources, UnknownKind

if TYPE_CHECKING:
    from hamlet.catalogs.buildings import BuildingData
    from hamlet.catalogs.theme import Theme

logger = logging.getLogger(__name__)

STRUCTURES_PER_LEVEL = 3


class LevelPolicy(Enum):
    """How the settlement level is derived."""

    STRUCTURE_COUNT = "structure_count"
    ELAPSED_TICKS = "elapsed_ticks"


def level_for_structures(count: int) -> int:
    """Level reached with ``count`` placed structures."""
    return max(1, count // STRUCTURES_PER_LEVEL + 1)


def level_for_ticks(ticks: int, interval: int) -> int:
    """Level reached after ``ticks`` elapsed ticks, one level per interval."""
    if interval <= 0:
        msg = f"level interval must be positive, got {interval}"
        raise ValueError(msg)
    return 1 + ticks // interval


@dataclass
class SettlementLedger:
    """Mutable economic state of one settlement.

    Attributes:
        theme: Channel schema the ledger is keyed by.
        resources: Resource balances by channel name.
        stats: Aggregate stats by channel name.
        level: Settlement level (never decreases).
        baseline_stats: Stats at creation, before any structure bonus.
        remainders: Fractional part of signed changes not yet applied,
            per resource.
    """

    theme: Theme
    resources: dict[str, int] = field(default_factory=dict)
    stats: dict[str, float] = field(default_factory=dict)
    level: int = 1
    baseline_stats: dict[str, float] = field(init=False)
    remainders: dict[str, float] = field(init=False, default_factory=dict)

    def __post_init__(self) -> None:
        """Fill missing channels from the theme and record the baseline.

        Raises:
            UnknownKind: If an override names an unknown channel.
            ValueError: If a starting balance is below its channel floor.
        """
        for name in self.resources:
            self._require_resource(name)
        for name in self.stats:
            self._require_stat(name)
        self.resources = {
            name: int(self.resources.get(name, channel.initial))
            for name, channel in self.theme.resources.items()
        }
        for name, balance in self.resources.items():
            floor = self.theme.resources[name].floor
            if floor is not None and balance < floor:
                msg = f"starting {name} {balance} is below its floor {floor}"
                raise ValueError(msg)
        self.stats = {
            name: float(self.stats.get(name, initial))
            for name, initial in self.theme.stats.items()
        }
        self.baseline_stats = dict(self.stats)

    # -- Resources -----------------------------------------------------------

    def floor(self, name: str) -> int | None:
        """Return the lowest allowed balance for ``name`` (None = unbounded)."""
        self._require_resource(name)
        return self.theme.resources[name].floor

    def credit(self, name: str, amount: int) -> None:
        """Add a non-negative ``amount`` to resource ``name``."""
        self._require_resource(name)
        if amount < 0:
            msg = f"credit amount must be >= 0, got {amount}"
            raise ValueError(msg)
        self.resources[name] += amount

    def debit(self, name: str, amount: int) -> None:
        """Remove a non-negative ``amount`` from resource ``name``.

        Raises:
            InsufficientResources: If the balance would drop below the
                channel floor.
        """
        self._require_resource(name)
        if amount < 0:
            msg = f"debit amount must be >= 0, got {amount}"
            raise ValueError(msg)
        floor = self.theme.resources[name].floor
        if floor is not None and self.resources[name] - amount < floor:
            msg = f"need {amount} {name}, have {self.resources[name]}"
            raise InsufficientResources(msg)
        self.resources[name] -= amount

    def adjust(self, name: str, delta: float) -> int:
        """Apply a signed change, stopping at the channel floor.

        Only whole units move; the fractional part is carried in
        ``remainders`` and added to the next change of the same channel.
        A change stopped by the floor drops its remainder.

        Returns:
            The change actually applied.
        """
        self._require_resource(name)
        total = round(self.remainders.get(name, 0.0) + delta, 9)
        whole = math.trunc(total)
        self.remainders[name] = total - whole
        before = self.resources[name]
        after = before + whole
        floor = self.theme.resources[name].floor
        if floor is not None and after < floor:
            after = min(before, floor)
            self.remainders[name] = 0.0
        self.resources[name] = after
        return after - before

    def shortfall(self, cost: Mapping[str, int]) -> dict[str, int]:
        """Return how much of each resource in ``cost`` is missing."""
        missing: dict[str, int] = {}
        for name, amount in cost.items():
            self._require_resource(name)
            floor = self.theme.resources[name].floor
            if floor is None:
                continue
            gap = amount - (self.resources[name] - floor)
            if gap > 0:
                missing[name] = gap
        return missing

    def can_afford(self, cost: Mapping[str, int]) -> bool:
        return not self.shortfall(cost)

    def debit_all(self, cost: Mapping[str, int]) -> None:
        """Debit every resource in ``cost``, or nothing at all.

        Raises:
            InsufficientResources: If any resource falls short.
        """
        missing = self.shortfall(cost)
        if missing:
            detail = ", ".join(f"{amount} {name}" for name, amount in missing.items())
            msg = f"short by {detail}"
            raise InsufficientResources(msg)
        for name, amount in cost.items():
            self.resources[name] -= amount

    def credit_all(self, amounts: Mapping[str, int]) -> None:
        for name, amount in amounts.items():
            self.credit(name, amount)

    # -- Stats ---------------------------------------------------------------

    @property
    def net_income(self) -> float:
        """Aggregate income minus aggregate upkeep."""
        return (
            self.stats[self.theme.income_stat] - self.stats[self.theme.upkeep_stat]
        )

    def stat_deltas(self, building: BuildingData) -> dict[str, float]:
        """Return the stat changes a completed ``building`` contributes.

        Capacity provisions raise both the live count and its capacity;
        flat provisions raise one stat; income and upkeep go to their
        aggregate stats.
        """
        deltas: dict[str, float] = {}
        for name, amount in building.provides.items():
            provision = self.theme.provisions.get(name)
            if provision is None:
                msg = f"building {building.kind!r}: unknown provision {name!r}"
                raise UnknownKind(msg)
            deltas[provision.stat] = deltas.get(provision.stat, 0.0) + amount
            if provision.capacity_stat is not None:
                cap = provision.capacity_stat
                deltas[cap] = deltas.get(cap, 0.0) + amount
        if building.income:
            stat = self.theme.income_stat
            deltas[stat] = deltas.get(stat, 0.0) + building.income
        if building.upkeep:
            stat = self.theme.upkeep_stat
            deltas[stat] = deltas.get(stat, 0.0) + building.upkeep
        return deltas

    def apply_completion_bonuses(self, building: BuildingData) -> None:
        for stat, delta in self.stat_deltas(building).items():
            self.stats[stat] += delta

    def reverse_completion_bonuses(self, building: BuildingData) -> None:
        for stat, delta in self.stat_deltas(building).items():
            self.stats[stat] -= delta

    # -- Level ---------------------------------------------------------------

    def raise_level(self, level: int) -> bool:
        """Move the level up to ``level`` if it is higher.

        Returns:
            True if the level changed.
        """
        if level <= self.level:
            return False
        logger.info("Settlement level %d -> %d", self.level, level)
        self.level = level
        return True

    def _require_resource(self, name: str) -> None:
        if name not in self.theme.resources:
            msg = f"unknown resource {name!r}"
            raise UnknownKind(msg)

    def _require_stat(self, name: str) -> None:
        if name not in self.theme.stats:
            msg = f"unknown stat {name!r}"
            raise UnknownKind(msg)
