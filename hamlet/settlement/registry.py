"""Building registry -- placement, construction progress and demolition.

The registry is the only place structures are created, advanced or
destroyed.  Each of those operations touches the grid and the ledger
together, so the registry validates everything up front and commits in
one step: a rejected request leaves both exactly as they were.

Construction lifecycle::

    place ──> Pending (progress 0-99) ──advance──> Complete (progress 100)
                 │                                      │
                 └──────────────── remove ──────────────┘

Completion bonuses are applied on the single Pending -> Complete
transition (or at placement for instantly complete kinds) and reversed
on removal, so the ledger's stats always equal the baseline plus the
contributions of the structures that are currently complete.
"""

from __future__ import annotations

import itertools
import logging
from collections import Counter
from collections.abc import Iterator
from dataclasses import dataclass, field

from hamlet.catalogs.buildings import BuildingCatalog, BuildingData
from hamlet.errors import (
    BelowUnlockLevel,
    NotFound,
    OutOfBounds,
    PrerequisiteMissing,
    ProtectedStructure,
    TerrainNotBuildable,
    TileOccupied,
)
from hamlet.settlement.ledger import LevelPolicy, SettlementLedger, level_for_structures
from hamlet.settlement.structure import (
    COMPLETE,
    Coord,
    Orientation,
    PlacedStructure,
    footprint_tiles,
)
from hamlet.world.grid import Grid

logger = logging.getLogger(__name__)


@dataclass
class BuildingRegistry:
    """All placed structures of one settlement.

    Attributes:
        grid: Tile grid the structures occupy.
        ledger: Ledger charged for costs and credited with bonuses.
        catalog: Building catalog.
        level_policy: When STRUCTURE_COUNT, the level is recomputed after
            every placement and removal.
        construction_delay: When False, every structure is complete on
            placement regardless of its build time.
        starter_id: Id of the protected starting structure, once placed.
    """

    grid: Grid
    ledger: SettlementLedger
    catalog: BuildingCatalog
    level_policy: LevelPolicy = LevelPolicy.STRUCTURE_COUNT
    construction_delay: bool = True
    starter_id: str | None = field(init=False, default=None)
    _structures: dict[str, PlacedStructure] = field(
        init=False,
        default_factory=dict,
        repr=False,
    )
    _serial: Iterator[int] = field(
        init=False,
        default_factory=lambda: itertools.count(1),
        repr=False,
    )

    # -- Queries -------------------------------------------------------------

    def get(self, structure_id: str) -> PlacedStructure:
        """Return the structure with ``structure_id``.

        Raises:
            NotFound: If no such structure exists.
        """
        try:
            return self._structures[structure_id]
        except KeyError:
            msg = f"no structure with id {structure_id!r}"
            raise NotFound(msg) from None

    def structures(self) -> list[PlacedStructure]:
        """Return all structures in placement order."""
        return list(self._structures.values())

    def pending(self) -> list[PlacedStructure]:
        return [s for s in self._structures.values() if not s.complete]

    def completed(self) -> list[PlacedStructure]:
        return [s for s in self._structures.values() if s.complete]

    def completed_kinds(self) -> set[str]:
        return {s.kind for s in self._structures.values() if s.complete}

    def count_of(self, kind: str) -> int:
        return sum(1 for s in self._structures.values() if s.kind == kind)

    def contributions(self) -> Counter[str]:
        """Sum the stat deltas of every complete structure."""
        totals: Counter[str] = Counter()
        for structure in self.completed():
            building = self.catalog.lookup(structure.kind)
            totals.update(self.ledger.stat_deltas(building))
        return totals

    def __len__(self) -> int:
        return len(self._structures)

    def __contains__(self, structure_id: object) -> bool:
        return structure_id in self._structures

    # -- Placement -----------------------------------------------------------

    def place(
        self,
        kind: str,
        origin: Coord,
        orientation: Orientation = Orientation.NORTH,
    ) -> str:
        """Validate and place a structure.

        Checks run in a fixed order and the first failure is raised:
        unknown kind, bounds, occupancy, terrain, unlock level,
        prerequisites, cost.  Nothing changes unless every check passes.

        Args:
            kind: Building kind key.
            origin: Minimum-corner tile of the footprint.
            orientation: Cardinal rotation.

        Returns:
            The new structure's id.

        Raises:
            UnknownKind, OutOfBounds, TileOccupied, TerrainNotBuildable,
            BelowUnlockLevel, PrerequisiteMissing, InsufficientResources.
        """
        building = self.catalog.lookup(kind)
        tiles = footprint_tiles(origin, orientation, building.footprint)
        self._check_site(building, tiles, exempt=False)
        self._check_unlocked(building)
        self.ledger.debit_all(building.cost)
        return self._commit(building, origin, orientation, tiles, exempt=False)

    def place_starter(
        self,
        kind: str,
        origin: Coord,
        orientation: Orientation = Orientation.NORTH,
    ) -> str:
        """Place the settlement's free, protected starting structure.

        The starter skips the terrain and cost checks, is complete at once
        and can never be removed.  Only one starter may exist.

        Raises:
            ValueError: If a starter was already placed or ``kind`` is not
                marked exempt in the catalog.
        """
        if self.starter_id is not None:
            msg = f"starter already placed as {self.starter_id!r}"
            raise ValueError(msg)
        building = self.catalog.lookup(kind)
        if not building.exempt:
            msg = f"building {kind!r} is not marked exempt"
            raise ValueError(msg)
        tiles = footprint_tiles(origin, orientation, building.footprint)
        self._check_site(building, tiles, exempt=True)
        self._check_unlocked(building)
        structure_id = self._commit(building, origin, orientation, tiles, exempt=True)
        self.starter_id = structure_id
        return structure_id

    def _check_site(
        self,
        building: BuildingData,
        tiles: list[Coord],
        *,
        exempt: bool,
    ) -> None:
        for x, z in tiles:
            if not self.grid.in_bounds(x, z):
                msg = f"{building.name} does not fit: ({x}, {z}) is off the grid"
                raise OutOfBounds(msg)
        for x, z in tiles:
            occupant = self.grid.tile_at(x, z).occupant_id
            if occupant is not None:
                msg = f"tile ({x}, {z}) is occupied by {occupant}"
                raise TileOccupied(msg)
        if exempt:
            return
        for x, z in tiles:
            if not self.grid.is_buildable(x, z):
                terrain = self.grid.tile_at(x, z).terrain
                msg = f"tile ({x}, {z}) is not buildable ({terrain})"
                raise TerrainNotBuildable(msg)

    def _check_unlocked(self, building: BuildingData) -> None:
        if self.ledger.level < building.unlock_level:
            msg = (
                f"{building.name} unlocks at level {building.unlock_level}, "
                f"settlement is level {self.ledger.level}"
            )
            raise BelowUnlockLevel(msg)
        missing = sorted(building.prerequisites - self.completed_kinds())
        if missing:
            msg = f"{building.name} requires completed {', '.join(missing)}"
            raise PrerequisiteMissing(msg)

    def _commit(
        self,
        building: BuildingData,
        origin: Coord,
        orientation: Orientation,
        tiles: list[Coord],
        *,
        exempt: bool,
    ) -> str:
        structure_id = f"{building.kind}-{next(self._serial)}"
        instant = exempt or building.build_ticks == 0 or not self.construction_delay
        structure = PlacedStructure(
            id=structure_id,
            kind=building.kind,
            origin=origin,
            orientation=orientation,
            tiles=tuple(tiles),
            progress=COMPLETE if instant else 0,
        )
        self.grid.occupy(tiles, structure_id)
        self._structures[structure_id] = structure
        if structure.complete:
            self.ledger.apply_completion_bonuses(building)
        logger.info(
            "Placed %s at %s facing %s%s",
            structure_id,
            origin,
            orientation.name,
            "" if structure.complete else " (under construction)",
        )
        self.refresh_level()
        return structure_id

    # -- Progress ------------------------------------------------------------

    def advance_progress(
        self,
        structure_id: str,
        amount: int,
        *,
        absolute: bool = False,
    ) -> bool:
        """Move a structure's construction forward.

        Args:
            structure_id: Structure to advance.
            amount: Progress points to add, or the new progress value when
                ``absolute`` is True.  Clamped to 100.
            absolute: Treat ``amount`` as a target instead of a delta.
                Progress never moves backwards.

        Returns:
            True if this call completed the structure.

        Raises:
            NotFound: If the id is unknown.
        """
        if amount < 0:
            msg = f"progress amount must be >= 0, got {amount}"
            raise ValueError(msg)
        structure = self.get(structure_id)
        if structure.complete:
            return False
        target = amount if absolute else structure.progress + amount
        structure.progress = min(COMPLETE, max(structure.progress, target))
        if not structure.complete:
            return False
        self.ledger.apply_completion_bonuses(self.catalog.lookup(structure.kind))
        logger.info("Completed %s", structure_id)
        return True

    def advance_all(self, amount: int | None) -> list[str]:
        """Advance every pending structure.

        Args:
            amount: Fixed progress per call, or None to scale each
                structure by its build time (``ceil(100 / build_ticks)``).

        Returns:
            Ids of the structures completed by this call.
        """
        completed: list[str] = []
        for structure in self.pending():
            step = amount
            if step is None:
                ticks = self.catalog.lookup(structure.kind).build_ticks
                step = -(-COMPLETE // ticks) if ticks else COMPLETE
            if self.advance_progress(structure.id, step):
                completed.append(structure.id)
        return completed

    # -- Removal -------------------------------------------------------------

    def remove(self, structure_id: str) -> PlacedStructure:
        """Demolish a structure and undo its contributions.

        Returns:
            The removed structure.

        Raises:
            ProtectedStructure: For the starting structure.
            NotFound: If the id is unknown.
        """
        if structure_id is not None and structure_id == self.starter_id:
            msg = f"{structure_id} is the settlement's starting structure"
            raise ProtectedStructure(msg)
        structure = self.get(structure_id)
        self.grid.vacate(structure.tiles)
        if structure.complete:
            self.ledger.reverse_completion_bonuses(self.catalog.lookup(structure.kind))
        del self._structures[structure_id]
        logger.info("Removed %s", structure_id)
        self.refresh_level()
        return structure

    def refresh_level(self) -> bool:
        """Recompute a structure-count level; other policies are tick-driven."""
        if self.level_policy is not LevelPolicy.STRUCTURE_COUNT:
            return False
        return self.ledger.raise_level(level_for_structures(len(self._structures)))
