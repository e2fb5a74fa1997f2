"""Structure -- a building placed on the grid and its footprint geometry."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from hamlet.catalogs.buildings import Footprint

Coord = tuple[int, int]

COMPLETE = 100


class Orientation(Enum):
    """Cardinal rotation of a structure, in degrees."""

    NORTH = 0
    EAST = 90
    SOUTH = 180
    WEST = 270

    @classmethod
    def from_degrees(cls, degrees: int) -> Orientation:
        """Snap any multiple of 90 degrees to an orientation."""
        if degrees % 90:
            msg = f"orientation must be a multiple of 90 degrees, got {degrees}"
            raise ValueError(msg)
        return cls(degrees % 360)

    def rotated(self) -> Orientation:
        """Return the next orientation clockwise."""
        return Orientation((self.value + 90) % 360)

    @property
    def is_quarter_turn(self) -> bool:
        return self in (Orientation.EAST, Orientation.WEST)


def footprint_tiles(
    origin: Coord,
    orientation: Orientation,
    footprint: Footprint,
) -> list[Coord]:
    """Return the tiles covered by a footprint anchored at ``origin``.

    The origin is the minimum corner.  Quarter turns swap width and
    length; the covered area always extends toward +x and +z.
    """
    width, length = footprint.width, footprint.length
    if orientation.is_quarter_turn:
        width, length = length, width
    ox, oz = origin
    return [(x, z) for z in range(oz, oz + length) for x in range(ox, ox + width)]


@dataclass
class PlacedStructure:
    """A structure standing on the grid.

    Attributes:
        id: Globally unique id, never reused.
        kind: Building kind key.
        origin: Minimum-corner tile.
        orientation: Cardinal rotation.
        tiles: Footprint tiles, fixed at placement.
        progress: Construction progress, 0 to 100.
    """

    id: str
    kind: str
    origin: Coord
    orientation: Orientation
    tiles: tuple[Coord, ...]
    progress: int = 0

    @property
    def complete(self) -> bool:
        return self.progress >= COMPLETE
