"""Grid generation -- seeded terrain sampling and infrastructure lines.

Generation is a pure function of ``(width, height, weights, seed)``: it
builds its own ``numpy`` generator from the seed and never touches global
random state, so the same inputs always yield the same layout.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

import numpy as np

from hamlet.catalogs.terrain import TerrainCatalog
from hamlet.world.grid import Grid

logger = logging.getLogger(__name__)


def sample_terrain(
    rng: np.random.Generator,
    width: int,
    height: int,
    weights: Mapping[str, float],
) -> np.ndarray:
    """Draw a ``(height, width)`` array of indices into ``list(weights)``.

    Each cell takes the first kind whose cumulative probability exceeds a
    uniform draw.  Weights are normalised, so they need not sum to one.

    Raises:
        ValueError: If any weight is negative or all weights are zero.
    """
    values = np.fromiter(weights.values(), dtype=np.float64, count=len(weights))
    if values.size == 0 or (values < 0).any() or values.sum() <= 0:
        msg = f"terrain weights must be non-negative with a positive sum: {dict(weights)}"
        raise ValueError(msg)
    cumulative = np.cumsum(values / values.sum())
    draws = rng.random((height, width))
    indices = np.searchsorted(cumulative, draws, side="right")
    return np.minimum(indices, values.size - 1)


def generate_grid(
    width: int,
    height: int,
    weights: Mapping[str, float],
    seed: int,
    catalog: TerrainCatalog,
    *,
    fast_terrain: str,
    lines: int | None = None,
) -> Grid:
    """Generate a terrain grid.

    Every cell is sampled from ``weights``; then ``lines`` straight
    infrastructure lines, each horizontal or vertical at a random offset,
    overwrite the terrain they cross with ``fast_terrain``.

    Args:
        width: Number of columns.
        height: Number of rows.
        weights: Terrain kind -> relative probability.
        seed: Seed for the generator.
        catalog: Terrain catalog the kinds belong to.
        fast_terrain: Terrain kind used for infrastructure lines.
        lines: Number of lines to carve (default ``min(width, height) // 2``).

    Returns:
        A freshly generated Grid.

    Raises:
        ValueError: On non-positive dimensions, a negative line count or
            invalid weights.
        UnknownKind: If a weighted or fast kind is not in the catalog.
    """
    if width <= 0 or height <= 0:
        msg = f"grid dimensions must be positive, got {width}x{height}"
        raise ValueError(msg)
    if lines is None:
        lines = min(width, height) // 2
    if lines < 0:
        msg = f"lines must be >= 0, got {lines}"
        raise ValueError(msg)

    kinds = list(weights)
    for kind in (*kinds, fast_terrain):
        catalog.lookup(kind)

    rng = np.random.default_rng(seed)
    indices = sample_terrain(rng, width, height, weights)

    grid = Grid(width=width, height=height, catalog=catalog, fill=kinds[0])
    for z, row in enumerate(grid.tiles):
        for x, tile in enumerate(row):
            tile.terrain = kinds[int(indices[z, x])]

    for _ in range(lines):
        horizontal = bool(rng.random() > 0.5)
        offset = int(rng.integers(0, height if horizontal else width))
        if horizontal:
            for tile in grid.tiles[offset]:
                tile.terrain = fast_terrain
        else:
            for row in grid.tiles:
                row[offset].terrain = fast_terrain

    logger.debug(
        "Generated %dx%d grid (seed=%d, lines=%d)",
        width,
        height,
        seed,
        lines,
    )
    return grid
