"""Theme -- one skin of the settlement game, loaded from YAML.

A theme bundles everything that differs between skins: the named resource
and stat channels, how building provisions map onto those stats, the
terrain and building catalogs, and the default generation weights.  The
engine only ever looks channels up by name, so a new skin is a new YAML
file rather than new code.

Every cross reference is checked in ``Theme.validate`` so a typo in a
catalog surfaces as ``UnknownKind`` when the theme is loaded instead of as
a silent zero during play.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from hamlet.catalogs.buildings import BuildingCatalog, BuildingData
from hamlet.catalogs.terrain import TerrainCatalog, TerrainData
from hamlet.errors import UnknownKind

THEMES_DIR = Path(__file__).resolve().parent / "themes"


@dataclass(frozen=True)
class ResourceChannel:
    """A named resource balance.

    Attributes:
        name: Channel key.
        initial: Starting balance.
        floor: Lowest allowed balance, or None when the channel may go
            arbitrarily negative (used as a shortage signal).
    """

    name: str
    initial: int = 0
    floor: int | None = 0


@dataclass(frozen=True)
class Provision:
    """How one ``provides`` entry of a building maps onto stats.

    A capacity provision raises both ``stat`` (the live count) and
    ``capacity_stat``; a flat provision only raises ``stat``.
    """

    name: str
    stat: str
    capacity_stat: str | None = None

    @property
    def is_capacity(self) -> bool:
        return self.capacity_stat is not None


@dataclass(frozen=True)
class Theme:
    """Channel schema, catalogs and defaults for one skin.

    Attributes:
        name: Theme key (the YAML file stem).
        title: Display title.
        resources: Resource channels by name.
        stats: Initial value of each stat channel.
        provisions: Provision schema by provision name.
        terrain: Terrain catalog.
        buildings: Building catalog.
        terrain_weights: Default sampling weights for grid generation.
        currency: Resource credited by passive accrual and charged for
            accrual upgrades.
        income_resource: Resource credited with net income each tick;
            defaults to the currency.
        income_stat: Stat holding aggregate income.
        upkeep_stat: Stat holding aggregate upkeep.
        population_stat: Stat that scales consumable draw, if any.
        consumable: Resource drained each turn by the population, if any.
        fast_terrain: Terrain used for infrastructure lines.
        reserve_terrain: Buildable terrain forced around the grid center.
        starter: Exempt building placed at the grid center.
        tick_policy: Default tick policy name.
        level_policy: Default level policy name.
    """

    name: str
    title: str
    resources: Mapping[str, ResourceChannel]
    stats: Mapping[str, float]
    provisions: Mapping[str, Provision]
    terrain: TerrainCatalog
    buildings: BuildingCatalog
    terrain_weights: Mapping[str, float]
    currency: str
    income_resource: str | None = None
    income_stat: str = "income"
    upkeep_stat: str = "upkeep"
    population_stat: str | None = None
    consumable: str | None = None
    fast_terrain: str = ""
    reserve_terrain: str = ""
    starter: str = ""
    tick_policy: str = "explicit"
    level_policy: str = "structure_count"
    labels: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """Check every cross reference between schema and catalogs.

        Raises:
            UnknownKind: If any catalog entry names a channel, provision,
                terrain or building kind the theme does not define.
            ValueError: If a resource starts below its floor, the reserve
                terrain is not buildable or the starter is not marked
                exempt.
        """
        for channel in self.resources.values():
            if channel.floor is not None and channel.initial < channel.floor:
                msg = (
                    f"resource {channel.name!r} starts at {channel.initial}, "
                    f"below its floor {channel.floor}"
                )
                raise ValueError(msg)
        self._require_resource(self.currency, "currency")
        if self.income_resource is not None:
            self._require_resource(self.income_resource, "income_resource")
        if self.consumable is not None:
            self._require_resource(self.consumable, "consumable")
        for stat in (self.income_stat, self.upkeep_stat):
            self._require_stat(stat, "theme")
        if self.population_stat is not None:
            self._require_stat(self.population_stat, "population_stat")

        for provision in self.provisions.values():
            self._require_stat(provision.stat, f"provision {provision.name!r}")
            if provision.capacity_stat is not None:
                self._require_stat(
                    provision.capacity_stat,
                    f"provision {provision.name!r}",
                )

        for terrain in self.terrain.values():
            for resource in terrain.passive_yield:
                self._require_resource(resource, f"terrain {terrain.kind!r}")
        for kind in self.terrain_weights:
            self.terrain.lookup(kind)
        self.terrain.lookup(self.fast_terrain)
        reserve = self.terrain.lookup(self.reserve_terrain)
        if not reserve.buildable:
            msg = f"reserve terrain {reserve.kind!r} must be buildable"
            raise ValueError(msg)

        for building in self.buildings.values():
            where = f"building {building.kind!r}"
            for resource in (*building.cost, *building.produces):
                self._require_resource(resource, where)
            for name in building.provides:
                if name not in self.provisions:
                    msg = f"{where}: unknown provision {name!r}"
                    raise UnknownKind(msg)
            for required in building.prerequisites:
                self.buildings.lookup(required)
        if not self.buildings.lookup(self.starter).exempt:
            msg = f"starter {self.starter!r} must be marked exempt"
            raise ValueError(msg)

    @property
    def net_income_resource(self) -> str:
        """Resource that receives income minus upkeep."""
        return self.income_resource or self.currency

    def label(self, channel: str) -> str:
        """Return the display label for a resource or stat channel."""
        return self.labels.get(channel, channel.replace("_", " ").title())

    def _require_resource(self, name: str, where: str) -> None:
        if name not in self.resources:
            msg = f"{where}: unknown resource {name!r}"
            raise UnknownKind(msg)

    def _require_stat(self, name: str, where: str) -> None:
        if name not in self.stats:
            msg = f"{where}: unknown stat {name!r}"
            raise UnknownKind(msg)

    @classmethod
    def from_dict(cls, name: str, data: Mapping[str, Any]) -> Theme:
        """Build a theme from parsed YAML.

        Args:
            name: Theme key to record.
            data: The mapping produced by ``yaml.safe_load``.
        """
        resources: dict[str, ResourceChannel] = {}
        for key, entry in (data.get("resources") or {}).items():
            if isinstance(entry, Mapping):
                floor = entry.get("floor", 0)
                resources[key] = ResourceChannel(
                    name=key,
                    initial=int(entry.get("initial", 0)),
                    floor=None if floor is None else int(floor),
                )
            else:
                resources[key] = ResourceChannel(name=key, initial=int(entry))

        provisions: dict[str, Provision] = {}
        for key, entry in (data.get("provisions") or {}).items():
            if "capacity" in entry:
                live, capacity = entry["capacity"]
                provisions[key] = Provision(key, stat=live, capacity_stat=capacity)
            else:
                provisions[key] = Provision(key, stat=entry.get("stat", key))

        terrain = TerrainCatalog(
            {
                key: TerrainData.from_dict(key, entry or {})
                for key, entry in (data.get("terrain") or {}).items()
            },
        )
        buildings = BuildingCatalog(
            {
                key: BuildingData.from_dict(key, entry or {})
                for key, entry in (data.get("buildings") or {}).items()
            },
        )
        weights = data.get("terrain_weights") or {k: 1.0 for k in terrain}

        return cls(
            name=name,
            title=data.get("title", name.title()),
            resources=resources,
            stats={k: float(v) for k, v in (data.get("stats") or {}).items()},
            provisions=provisions,
            terrain=terrain,
            buildings=buildings,
            terrain_weights={k: float(v) for k, v in weights.items()},
            currency=data["currency"],
            income_resource=data.get("income_resource"),
            income_stat=data.get("income_stat", "income"),
            upkeep_stat=data.get("upkeep_stat", "upkeep"),
            population_stat=data.get("population_stat"),
            consumable=data.get("consumable"),
            fast_terrain=data["fast_terrain"],
            reserve_terrain=data["reserve_terrain"],
            starter=data["starter"],
            tick_policy=data.get("tick_policy", "explicit"),
            level_policy=data.get("level_policy", "structure_count"),
            labels=dict(data.get("labels") or {}),
        )


def available_themes() -> list[str]:
    """Return the names of the themes shipped with the package."""
    return sorted(p.stem for p in THEMES_DIR.glob("*.yaml"))


def load_theme(name_or_path: str | Path) -> Theme:
    """Load a shipped theme by name, or any theme YAML by path.

    Args:
        name_or_path: A shipped theme name (``"kingdom"``) or a path to a
            YAML file.

    Returns:
        The validated Theme.

    Raises:
        UnknownKind: If a bare name matches no shipped theme, or the file
            contains a dangling reference.
    """
    path = Path(name_or_path)
    if path.suffix not in (".yaml", ".yml"):
        path = THEMES_DIR / f"{name_or_path}.yaml"
        if not path.exists():
            msg = f"unknown theme {name_or_path!r}; available: {available_themes()}"
            raise UnknownKind(msg)
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    return Theme.from_dict(path.stem, data)
