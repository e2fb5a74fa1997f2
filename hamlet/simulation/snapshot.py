"""Snapshot -- immutable read-only view of the engine for renderers.

A snapshot is taken under the engine lock, so it reflects the last
committed state and nothing half-applied.  Renderers may keep it for a
whole frame without worrying about a tick landing mid-draw.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from hamlet.catalogs.buildings import BuildingCatalog
    from hamlet.settlement.ledger import SettlementLedger
    from hamlet.settlement.structure import PlacedStructure
    from hamlet.world.grid import Grid


@dataclass(frozen=True)
class TileView:
    x: int
    z: int
    terrain: str
    occupant_id: str | None


@dataclass(frozen=True)
class StructureView:
    """A placed structure as the renderer sees it."""

    id: str
    kind: str
    name: str
    origin: tuple[int, int]
    orientation: int
    tiles: tuple[tuple[int, int], ...]
    progress: int
    complete: bool

    @classmethod
    def of(cls, structure: PlacedStructure, catalog: BuildingCatalog) -> StructureView:
        return cls(
            id=structure.id,
            kind=structure.kind,
            name=catalog.lookup(structure.kind).name,
            origin=structure.origin,
            orientation=structure.orientation.value,
            tiles=structure.tiles,
            progress=structure.progress,
            complete=structure.complete,
        )


@dataclass(frozen=True)
class SettlementSnapshot:
    """Everything a frame needs to draw the settlement.

    Attributes:
        player_name: Player's display name.
        settlement_name: Settlement's display name.
        theme: Theme key.
        tick: Ticks elapsed.
        level: Settlement level.
        resources: Resource balances.
        stats: Aggregate stats.
        buildings: Placed structures in placement order.
        tiles: Tile rows, indexed ``tiles[z][x]``.
        selected_kind: Building kind chosen for placement, if any.
        selected_structure: Structure chosen for inspection, if any.
        accrual_rate: Currency per passive accrual tick.
        accruing: Whether passive accrual is running.
    """

    player_name: str
    settlement_name: str
    theme: str
    tick: int
    level: int
    resources: Mapping[str, int]
    stats: Mapping[str, float]
    buildings: tuple[StructureView, ...]
    tiles: tuple[tuple[TileView, ...], ...]
    selected_kind: str | None = None
    selected_structure: str | None = None
    accrual_rate: int = 0
    accruing: bool = False

    @classmethod
    def capture(
        cls,
        *,
        ledger: SettlementLedger,
        grid: Grid,
        structures: list[PlacedStructure],
        catalog: BuildingCatalog,
        **meta: object,
    ) -> SettlementSnapshot:
        """Copy the mutable engine state into a frozen snapshot."""
        return cls(
            resources=MappingProxyType(dict(ledger.resources)),
            stats=MappingProxyType(dict(ledger.stats)),
            level=ledger.level,
            buildings=tuple(StructureView.of(s, catalog) for s in structures),
            tiles=tuple(
                tuple(TileView(t.x, t.z, t.terrain, t.occupant_id) for t in row)
                for row in grid.tiles
            ),
            **meta,
        )

    def building(self, structure_id: str) -> StructureView | None:
        for view in self.buildings:
            if view.id == structure_id:
                return view
        return None
