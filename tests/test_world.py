"""Tests for hamlet.world - tiles, grid queries and generation."""

import pytest

from hamlet.catalogs.theme import Theme
from hamlet.errors import OutOfBounds, UnknownKind
from hamlet.world.generation import generate_grid
from hamlet.world.grid import Grid
from hamlet.world.tile import Tile


class TestTile:
    """Tests for the Tile dataclass."""

    def test_default_values(self) -> None:
        tile = Tile(x=1, z=2, terrain="grass")
        assert tile.occupant_id is None
        assert tile.is_free


class TestGrid:
    """Tests for Grid queries and occupancy."""

    def test_dimensions(self, grid: Grid) -> None:
        assert grid.width == 10
        assert grid.height == 10
        assert len(grid.tiles) == 10
        assert len(grid.tiles[0]) == 10

    def test_tile_at_valid(self, grid: Grid) -> None:
        tile = grid.tile_at(3, 7)
        assert tile.x == 3
        assert tile.z == 7

    def test_tile_at_out_of_bounds(self, grid: Grid) -> None:
        with pytest.raises(OutOfBounds):
            grid.tile_at(10, 0)
        with pytest.raises(OutOfBounds):
            grid.tile_at(0, -1)

    def test_in_bounds(self, grid: Grid) -> None:
        assert grid.in_bounds(0, 0)
        assert grid.in_bounds(9, 9)
        assert not grid.in_bounds(10, 9)

    def test_non_positive_dimensions(self, theme: Theme) -> None:
        with pytest.raises(ValueError):
            Grid(width=0, height=5, catalog=theme.terrain)

    def test_is_buildable(self, grid: Grid) -> None:
        grid.set_terrain(2, 2, "rock")
        assert not grid.is_buildable(2, 2)
        assert grid.is_buildable(3, 2)

    def test_set_unknown_terrain(self, grid: Grid) -> None:
        with pytest.raises(UnknownKind):
            grid.set_terrain(0, 0, "lava")

    def test_occupy_and_vacate(self, grid: Grid) -> None:
        grid.occupy([(1, 1), (2, 1)], "hut-1")
        assert not grid.is_free(1, 1)
        assert grid.tile_at(2, 1).occupant_id == "hut-1"
        grid.vacate([(1, 1), (2, 1)])
        assert grid.is_free(1, 1)
        assert grid.is_free(2, 1)

    def test_occupy_out_of_bounds_changes_nothing(self, grid: Grid) -> None:
        with pytest.raises(OutOfBounds):
            grid.occupy([(9, 9), (10, 9)], "tower-1")
        assert grid.is_free(9, 9)

    def test_vacate_out_of_bounds(self, grid: Grid) -> None:
        grid.occupy([(0, 0)], "hut-1")
        with pytest.raises(OutOfBounds):
            grid.vacate([(0, 0), (-1, 0)])
        assert grid.tile_at(0, 0).occupant_id == "hut-1"

    def test_reserve_center(self, grid: Grid) -> None:
        for row in grid.tiles:
            for tile in row:
                tile.terrain = "rock"
        grid.reserve_center(5, 5, 1, "grass")
        assert grid.tile_at(4, 4).terrain == "grass"
        assert grid.tile_at(6, 6).terrain == "grass"
        assert grid.tile_at(3, 3).terrain == "rock"
        assert grid.terrain_counts()["grass"] == 9

    def test_reserve_center_clipped_at_edge(self, grid: Grid) -> None:
        grid.reserve_center(0, 0, 2, "meadow")
        assert grid.terrain_counts()["meadow"] == 9

    def test_yield_of(self, grid: Grid) -> None:
        grid.set_terrain(0, 0, "meadow")
        grid.set_terrain(1, 0, "meadow")
        assert grid.yield_of([(0, 0), (1, 0), (2, 0)]) == {"wood": 4}


class TestGeneration:
    """Tests for seeded grid generation."""

    def test_same_seed_same_layout(self, theme: Theme) -> None:
        a = generate_grid(16, 12, theme.terrain_weights, 99, theme.terrain, fast_terrain="road")
        b = generate_grid(16, 12, theme.terrain_weights, 99, theme.terrain, fast_terrain="road")
        assert a.layout() == b.layout()

    def test_different_seeds_differ(self, theme: Theme) -> None:
        a = generate_grid(20, 20, theme.terrain_weights, 1, theme.terrain, fast_terrain="road")
        b = generate_grid(20, 20, theme.terrain_weights, 2, theme.terrain, fast_terrain="road")
        assert a.layout() != b.layout()

    def test_dimensions(self, theme: Theme) -> None:
        grid = generate_grid(7, 3, {"grass": 1.0}, 0, theme.terrain, fast_terrain="road")
        assert grid.width == 7
        assert grid.height == 3
        assert grid.tile_at(6, 2).z == 2

    def test_single_weight_no_lines(self, theme: Theme) -> None:
        grid = generate_grid(
            8, 8, {"rock": 1.0}, 3, theme.terrain, fast_terrain="road", lines=0,
        )
        assert grid.terrain_counts() == {"rock": 64}

    def test_zero_weight_kind_never_sampled(self, theme: Theme) -> None:
        grid = generate_grid(
            12, 12, {"grass": 0.0, "rock": 2.0}, 5, theme.terrain,
            fast_terrain="road", lines=0,
        )
        assert grid.terrain_counts()["grass"] == 0

    def test_one_line_spans_grid(self, theme: Theme) -> None:
        grid = generate_grid(
            10, 10, {"grass": 1.0}, 11, theme.terrain, fast_terrain="road", lines=1,
        )
        assert grid.terrain_counts()["road"] == 10
        full_row = any(all(t.terrain == "road" for t in row) for row in grid.tiles)
        full_col = any(
            all(grid.tiles[z][x].terrain == "road" for z in range(10))
            for x in range(10)
        )
        assert full_row or full_col

    def test_default_line_count_carves_roads(self, theme: Theme) -> None:
        grid = generate_grid(10, 10, {"grass": 1.0}, 4, theme.terrain, fast_terrain="road")
        assert grid.terrain_counts()["road"] >= 10

    def test_invalid_weights(self, theme: Theme) -> None:
        with pytest.raises(ValueError):
            generate_grid(4, 4, {"grass": 0.0}, 0, theme.terrain, fast_terrain="road")
        with pytest.raises(ValueError):
            generate_grid(4, 4, {"grass": -1.0, "rock": 2.0}, 0, theme.terrain, fast_terrain="road")

    def test_unknown_weighted_kind(self, theme: Theme) -> None:
        with pytest.raises(UnknownKind):
            generate_grid(4, 4, {"lava": 1.0}, 0, theme.terrain, fast_terrain="road")

    def test_non_positive_dimensions(self, theme: Theme) -> None:
        with pytest.raises(ValueError):
            generate_grid(0, 4, {"grass": 1.0}, 0, theme.terrain, fast_terrain="road")

    def test_reserved_center_on_hostile_map(self, theme: Theme) -> None:
        """A 10x10 map of mostly rock still gets a buildable 5x5 center."""
        grid = generate_grid(
            10, 10, {"rock": 0.9, "grass": 0.1}, 21, theme.terrain, fast_terrain="road",
        )
        grid.reserve_center(5, 5, 2, "grass")
        for z in range(3, 8):
            for x in range(3, 8):
                assert grid.is_buildable(x, z)
