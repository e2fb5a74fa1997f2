"""Config -- load engine parameters from YAML files.

Every tunable of the engine (grid size, seed, tick policy, accrual rates,
construction speed) lives in YAML and is parsed into a typed dataclass
here.  Theme data (channels, catalogs) is separate: the config only names
the theme and may override its starting balances and terrain weights.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import Enum
from pathlib import Path

import yaml

from hamlet.settlement.ledger import LevelPolicy


class TickPolicy(Enum):
    """How simulated time advances.  Never mixed within one engine."""

    EXPLICIT = "explicit"
    PASSIVE = "passive"


@dataclass
class EngineConfig:
    """Top-level engine configuration.

    Attributes:
        seed: RNG seed for deterministic grid generation.
        theme: Shipped theme name or path to a theme YAML file.
        grid_width: Number of grid columns.
        grid_height: Number of grid rows.
        infrastructure_lines: Straight fast-terrain lines to carve; None
            means ``min(width, height) // 2``.
        reserve_radius: Half-width of the buildable block forced around
            the grid center.
        tick_policy: ``explicit`` turns or ``passive`` accrual; None uses
            the theme default.
        level_policy: ``structure_count`` or ``elapsed_ticks``; None uses
            the theme default.
        level_interval: Ticks per level under ``elapsed_ticks``.
        progress_per_tick: Construction points added to each pending
            structure per tick; None scales by each kind's build time.
        construction_delay: When False, structures complete on placement.
        terrain_yield: Credit the passive yield of terrain under completed
            structures each tick.
        accrual_interval: Seconds between passive accrual ticks.
        accrual_rate: Currency credited per accrual tick.
        accrual_rate_step: Rate increase bought by one accrual upgrade.
        accrual_upgrade_cost: Currency per accrual level for an upgrade.
        consumption_per_capita: Consumable drawn per population per turn.
        starting_resources: Overrides for the theme's starting balances.
        starting_stats: Overrides for the theme's starting stats.
        terrain_weights: Overrides the theme's generation weights.
    """

    seed: int = 42
    theme: str = "kingdom"
    grid_width: int = 50
    grid_height: int = 50
    infrastructure_lines: int | None = None
    reserve_radius: int = 2

    tick_policy: TickPolicy | None = None
    level_policy: LevelPolicy | None = None
    level_interval: int = 10
    progress_per_tick: int | None = 5
    construction_delay: bool = True
    terrain_yield: bool = True

    # Passive accrual
    accrual_interval: float = 1.0
    accrual_rate: int = 10
    accrual_rate_step: int = 10
    accrual_upgrade_cost: int = 1000

    # Explicit turns
    consumption_per_capita: float = 1.0

    starting_resources: dict[str, int] = field(default_factory=dict)
    starting_stats: dict[str, float] = field(default_factory=dict)
    terrain_weights: dict[str, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Coerce policy names and reject impossible values."""
        if isinstance(self.tick_policy, str):
            self.tick_policy = TickPolicy(self.tick_policy)
        if isinstance(self.level_policy, str):
            self.level_policy = LevelPolicy(self.level_policy)

        if self.grid_width <= 0 or self.grid_height <= 0:
            msg = (
                "grid dimensions must be positive, "
                f"got {self.grid_width}x{self.grid_height}"
            )
            raise ValueError(msg)
        for name in ("reserve_radius", "accrual_rate", "accrual_rate_step",
                     "accrual_upgrade_cost", "consumption_per_capita"):
            if getattr(self, name) < 0:
                msg = f"{name} must be >= 0, got {getattr(self, name)}"
                raise ValueError(msg)
        if self.infrastructure_lines is not None and self.infrastructure_lines < 0:
            msg = f"infrastructure_lines must be >= 0, got {self.infrastructure_lines}"
            raise ValueError(msg)
        if self.level_interval <= 0:
            msg = f"level_interval must be positive, got {self.level_interval}"
            raise ValueError(msg)
        if self.accrual_interval <= 0:
            msg = f"accrual_interval must be positive, got {self.accrual_interval}"
            raise ValueError(msg)
        if self.progress_per_tick is not None and self.progress_per_tick <= 0:
            msg = f"progress_per_tick must be positive, got {self.progress_per_tick}"
            raise ValueError(msg)

    @classmethod
    def from_yaml(cls, path: str | Path) -> EngineConfig:
        """Load configuration from a YAML file.

        Unknown keys are ignored; missing keys keep their defaults.

        Args:
            path: Path to the YAML config file.

        Returns:
            A populated EngineConfig instance.

        Raises:
            FileNotFoundError: If the config file does not exist.
            ValueError: If a value is out of range.
        """
        path = Path(path)
        with path.open("r") as f:
            data = yaml.safe_load(f) or {}

        known = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in data.items() if key in known})
