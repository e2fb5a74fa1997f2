"""Grid -- the tile field a settlement is built on.

The Grid owns terrain assignment and occupancy.  It answers spatial
queries for the building registry and exposes bulk ``occupy``/``vacate``
so a structure's whole footprint changes in one step.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field

from hamlet.catalogs.terrain import TerrainCatalog
from hamlet.errors import OutOfBounds
from hamlet.world.tile import Tile

logger = logging.getLogger(__name__)

Coord = tuple[int, int]


@dataclass
class Grid:
    """A 2D grid of tiles indexed as ``tiles[z][x]``.

    Attributes:
        width: Number of columns (x axis).
        height: Number of rows (z axis).
        catalog: Terrain catalog used for buildability and yields.
        tiles: 2D list of Tile objects.
    """

    width: int
    height: int
    catalog: TerrainCatalog
    fill: str | None = None
    tiles: list[list[Tile]] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        """Fill the grid with a single terrain kind."""
        if self.width <= 0 or self.height <= 0:
            msg = f"grid dimensions must be positive, got {self.width}x{self.height}"
            raise ValueError(msg)
        terrain = self.fill if self.fill is not None else self.catalog.kinds[0]
        self.catalog.lookup(terrain)
        self.tiles = [
            [Tile(x=x, z=z, terrain=terrain) for x in range(self.width)]
            for z in range(self.height)
        ]

    def in_bounds(self, x: int, z: int) -> bool:
        return 0 <= x < self.width and 0 <= z < self.height

    def tile_at(self, x: int, z: int) -> Tile:
        """Return the tile at ``(x, z)``.

        Raises:
            OutOfBounds: If the coordinates lie outside the grid.
        """
        if not self.in_bounds(x, z):
            msg = f"({x}, {z}) out of bounds for {self.width}x{self.height}"
            raise OutOfBounds(msg)
        return self.tiles[z][x]

    def is_free(self, x: int, z: int) -> bool:
        return self.tile_at(x, z).is_free

    def is_buildable(self, x: int, z: int) -> bool:
        """Return True if the terrain at ``(x, z)`` allows construction."""
        return self.catalog.lookup(self.tile_at(x, z).terrain).buildable

    def set_terrain(self, x: int, z: int, terrain: str) -> None:
        self.catalog.lookup(terrain)
        self.tile_at(x, z).terrain = terrain

    def reserve_center(self, cx: int, cz: int, radius: int, terrain: str) -> None:
        """Overwrite a square block around ``(cx, cz)`` with ``terrain``.

        Cells outside the grid are skipped, so a block near the edge is
        clipped rather than rejected.

        Args:
            cx: Centre column.
            cz: Centre row.
            radius: Half-width of the square block.
            terrain: Terrain kind to force.
        """
        if radius < 0:
            msg = f"radius must be >= 0, got {radius}"
            raise ValueError(msg)
        self.catalog.lookup(terrain)
        for z in range(cz - radius, cz + radius + 1):
            for x in range(cx - radius, cx + radius + 1):
                if self.in_bounds(x, z):
                    self.tiles[z][x].terrain = terrain
        logger.debug(
            "Reserved %s around (%d, %d) radius %d",
            terrain,
            cx,
            cz,
            radius,
        )

    def occupy(self, coords: Iterable[Coord], structure_id: str) -> None:
        """Mark every tile in ``coords`` as covered by ``structure_id``.

        Raises:
            OutOfBounds: If any tile is outside the grid.  No tile is
                modified in that case.
        """
        tiles = self._resolve(coords)
        for tile in tiles:
            tile.occupant_id = structure_id

    def vacate(self, coords: Iterable[Coord]) -> None:
        """Clear the occupant of every tile in ``coords``.

        Raises:
            OutOfBounds: If any tile is outside the grid.  No tile is
                modified in that case.
        """
        tiles = self._resolve(coords)
        for tile in tiles:
            tile.occupant_id = None

    def yield_of(self, coords: Iterable[Coord]) -> dict[str, int]:
        """Sum the terrain passive yield over ``coords``."""
        totals: dict[str, int] = {}
        for tile in self._resolve(coords):
            for resource, amount in self.catalog.lookup(tile.terrain).passive_yield.items():
                totals[resource] = totals.get(resource, 0) + amount
        return totals

    def terrain_counts(self) -> Counter[str]:
        """Return how many tiles carry each terrain kind."""
        return Counter(tile.terrain for row in self.tiles for tile in row)

    def layout(self) -> tuple[tuple[str, ...], ...]:
        """Return terrain keys as immutable rows (``layout[z][x]``)."""
        return tuple(tuple(tile.terrain for tile in row) for row in self.tiles)

    def _resolve(self, coords: Iterable[Coord]) -> list[Tile]:
        coords = list(coords)
        for x, z in coords:
            if not self.in_bounds(x, z):
                msg = f"({x}, {z}) out of bounds for {self.width}x{self.height}"
                raise OutOfBounds(msg)
        return [self.tiles[z][x] for x, z in coords]
