"""Tile -- a single cell of the settlement grid.

A tile only records its terrain key and which structure, if any, covers
it.  Terrain properties live in the theme's ``TerrainCatalog``.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class Tile:
    """A single grid cell.

    Attributes:
        x: Column position.
        z: Row position (depth axis in the 3D client).
        terrain: Terrain kind key.
        occupant_id: Id of the structure covering this tile, if any.
    """

    x: int
    z: int
    terrain: str
    occupant_id: str | None = None

    @property
    def is_free(self) -> bool:
        """Return True if no structure covers this tile."""
        return self.occupant_id is None
