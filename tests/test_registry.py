"""Tests for hamlet.settlement.registry - the placement state machine."""

import pytest

from hamlet.catalogs.theme import Theme
from hamlet.errors import (
    BelowUnlockLevel,
    HamletError,
    InsufficientResources,
    NotFound,
    OutOfBounds,
    PrerequisiteMissing,
    ProtectedStructure,
    TerrainNotBuildable,
    TileOccupied,
    UnknownKind,
)
from hamlet.settlement.ledger import LevelPolicy, SettlementLedger
from hamlet.settlement.registry import BuildingRegistry
from hamlet.settlement.structure import Orientation, footprint_tiles
from hamlet.world.grid import Grid


def _state(registry: BuildingRegistry) -> tuple:
    """Everything a failed request must leave untouched."""
    ledger = registry.ledger
    occupancy = tuple(
        tuple(tile.occupant_id for tile in row) for row in registry.grid.tiles
    )
    return (
        occupancy,
        registry.grid.layout(),
        dict(ledger.resources),
        dict(ledger.stats),
        ledger.level,
        len(registry),
    )


def _assert_invariant(registry: BuildingRegistry) -> None:
    ledger = registry.ledger
    contributions = registry.contributions()
    for stat, value in ledger.stats.items():
        assert value - ledger.baseline_stats[stat] == contributions.get(stat, 0)


def _complete(registry: BuildingRegistry, structure_id: str) -> None:
    registry.advance_progress(structure_id, 100, absolute=True)


class TestFootprint:
    """Tests for footprint geometry."""

    def test_north(self, theme: Theme) -> None:
        tiles = footprint_tiles((2, 3), Orientation.NORTH, theme.buildings["tower"].footprint)
        assert tiles == [(2, 3), (2, 4)]

    def test_quarter_turn_swaps(self, theme: Theme) -> None:
        tiles = footprint_tiles((2, 3), Orientation.EAST, theme.buildings["tower"].footprint)
        assert tiles == [(2, 3), (3, 3)]

    def test_orientation_from_degrees(self) -> None:
        assert Orientation.from_degrees(450) is Orientation.EAST
        assert Orientation.WEST.rotated() is Orientation.NORTH
        with pytest.raises(ValueError):
            Orientation.from_degrees(45)


class TestPlace:
    """Tests for successful placement."""

    def test_place_occupies_footprint(self, registry: BuildingRegistry) -> None:
        structure_id = registry.place("tower", (4, 4))
        structure = registry.get(structure_id)
        assert structure.tiles == ((4, 4), (4, 5))
        for x, z in structure.tiles:
            assert registry.grid.tile_at(x, z).occupant_id == structure_id
            assert not registry.grid.is_free(x, z)

    def test_place_debits_cost(self, registry: BuildingRegistry) -> None:
        registry.place("house", (0, 0))
        assert registry.ledger.resources["gold"] == 450
        assert registry.ledger.resources["wood"] == 90

    def test_pending_until_progress(self, registry: BuildingRegistry) -> None:
        structure_id = registry.place("house", (0, 0))
        structure = registry.get(structure_id)
        assert structure.progress == 0
        assert not structure.complete
        assert registry.ledger.stats["population"] == 4

    def test_instant_kind_completes_with_bonuses(self, registry: BuildingRegistry) -> None:
        structure_id = registry.place("hut", (0, 0))
        assert registry.get(structure_id).complete
        assert registry.ledger.stats["happiness"] == 11

    def test_no_construction_delay(self, grid: Grid, ledger: SettlementLedger, theme: Theme) -> None:
        registry = BuildingRegistry(
            grid=grid,
            ledger=ledger,
            catalog=theme.buildings,
            construction_delay=False,
        )
        structure_id = registry.place("house", (0, 0))
        assert registry.get(structure_id).progress == 100
        assert ledger.stats["housing"] == 6

    def test_ids_never_reused(self, registry: BuildingRegistry) -> None:
        first = registry.place("hut", (0, 0))
        registry.remove(first)
        second = registry.place("hut", (0, 0))
        assert first != second

    def test_rotated_placement_fits_at_edge(self, registry: BuildingRegistry) -> None:
        structure_id = registry.place("tower", (8, 9), Orientation.EAST)
        assert registry.get(structure_id).tiles == ((8, 9), (9, 9))


class TestPlaceRejections:
    """Every rejection leaves grid and ledger exactly as they were."""

    def test_unknown_kind(self, registry: BuildingRegistry) -> None:
        before = _state(registry)
        with pytest.raises(UnknownKind):
            registry.place("spaceport", (0, 0))
        assert _state(registry) == before

    def test_out_of_bounds(self, registry: BuildingRegistry) -> None:
        before = _state(registry)
        with pytest.raises(OutOfBounds):
            registry.place("tower", (9, 9))
        with pytest.raises(OutOfBounds):
            registry.place("hut", (-1, 0))
        assert _state(registry) == before

    def test_tile_occupied(self, registry: BuildingRegistry) -> None:
        registry.place("hut", (4, 5))
        before = _state(registry)
        with pytest.raises(TileOccupied):
            registry.place("tower", (4, 4))
        assert _state(registry) == before

    def test_terrain_not_buildable(self, registry: BuildingRegistry) -> None:
        registry.grid.set_terrain(3, 4, "rock")
        before = _state(registry)
        with pytest.raises(TerrainNotBuildable):
            registry.place("tavern", (2, 3))
        assert _state(registry) == before

    def test_below_unlock_level(self, registry: BuildingRegistry) -> None:
        before = _state(registry)
        with pytest.raises(BelowUnlockLevel):
            registry.place("vault", (0, 0))
        assert _state(registry) == before

    def test_prerequisite_missing_until_complete(self, registry: BuildingRegistry) -> None:
        before = _state(registry)
        with pytest.raises(PrerequisiteMissing):
            registry.place("tavern", (5, 5))
        assert _state(registry) == before

        house = registry.place("house", (0, 0))
        with pytest.raises(PrerequisiteMissing):
            registry.place("tavern", (5, 5))

        _complete(registry, house)
        tavern = registry.place("tavern", (5, 5))
        assert tavern in registry

    def test_insufficient_resources(self, grid: Grid, theme: Theme) -> None:
        ledger = SettlementLedger(theme=theme, resources={"gold": 50})
        registry = BuildingRegistry(grid=grid, ledger=ledger, catalog=theme.buildings)
        before = _state(registry)
        with pytest.raises(InsufficientResources):
            registry.place("tower", (0, 0))
        assert ledger.resources["gold"] == 50
        assert _state(registry) == before

    def test_check_order(self, grid: Grid, theme: Theme) -> None:
        """Occupancy is reported before cost when both fail."""
        ledger = SettlementLedger(theme=theme, resources={"gold": 0})
        registry = BuildingRegistry(grid=grid, ledger=ledger, catalog=theme.buildings)
        registry.place_starter("keep", (0, 0))
        with pytest.raises(TileOccupied):
            registry.place("tower", (1, 1))
        grid.set_terrain(5, 5, "rock")
        with pytest.raises(TerrainNotBuildable):
            registry.place("tower", (5, 4))
        with pytest.raises(InsufficientResources):
            registry.place("tower", (7, 7))

    def test_all_rejections_share_base(self) -> None:
        for exc in (UnknownKind, OutOfBounds, TileOccupied, TerrainNotBuildable,
                    BelowUnlockLevel, PrerequisiteMissing, InsufficientResources,
                    ProtectedStructure, NotFound):
            assert issubclass(exc, HamletError)


class TestStarter:
    """Tests for the exempt, protected starting structure."""

    def test_starter_ignores_terrain_and_cost(self, registry: BuildingRegistry) -> None:
        for x in range(3):
            registry.grid.set_terrain(x, 0, "rock")
        starter = registry.place_starter("keep", (0, 0))
        assert registry.get(starter).complete
        assert registry.starter_id == starter
        assert registry.ledger.resources["gold"] == 500
        assert registry.ledger.stats["security"] == 5

    def test_starter_cannot_be_removed(self, registry: BuildingRegistry) -> None:
        starter = registry.place_starter("keep", (4, 4))
        for z in range(3):
            registry.place("hut", (0, z))
        with pytest.raises(ProtectedStructure):
            registry.remove(starter)
        assert starter in registry

    def test_only_one_starter(self, registry: BuildingRegistry) -> None:
        registry.place_starter("keep", (0, 0))
        with pytest.raises(ValueError):
            registry.place_starter("keep", (5, 5))

    def test_starter_kind_pays_when_placed_normally(self, registry: BuildingRegistry) -> None:
        registry.place_starter("keep", (0, 0))
        with pytest.raises(InsufficientResources):
            registry.place("keep", (5, 5))

    def test_non_exempt_starter_rejected(self, registry: BuildingRegistry) -> None:
        with pytest.raises(ValueError):
            registry.place_starter("house", (0, 0))


class TestProgress:
    """Tests for construction progress and the completion transition."""

    def test_advance_and_clamp(self, registry: BuildingRegistry) -> None:
        structure_id = registry.place("house", (0, 0))
        assert not registry.advance_progress(structure_id, 40)
        assert registry.get(structure_id).progress == 40
        assert registry.advance_progress(structure_id, 90)
        assert registry.get(structure_id).progress == 100

    def test_bonuses_applied_exactly_once(self, registry: BuildingRegistry) -> None:
        structure_id = registry.place("house", (0, 0))
        registry.advance_progress(structure_id, 100)
        for _ in range(5):
            assert not registry.advance_progress(structure_id, 100)
            assert not registry.advance_progress(structure_id, 100, absolute=True)
        assert registry.ledger.stats["housing"] == 6
        assert registry.ledger.stats["population"] == 6

    def test_absolute_never_moves_backwards(self, registry: BuildingRegistry) -> None:
        structure_id = registry.place("house", (0, 0))
        registry.advance_progress(structure_id, 60)
        registry.advance_progress(structure_id, 30, absolute=True)
        assert registry.get(structure_id).progress == 60

    def test_unknown_id(self, registry: BuildingRegistry) -> None:
        with pytest.raises(NotFound):
            registry.advance_progress("ghost-1", 10)

    def test_negative_amount(self, registry: BuildingRegistry) -> None:
        structure_id = registry.place("house", (0, 0))
        with pytest.raises(ValueError):
            registry.advance_progress(structure_id, -5)

    def test_advance_all_fixed(self, registry: BuildingRegistry) -> None:
        house = registry.place("house", (0, 0))
        tower = registry.place("tower", (2, 0))
        assert registry.advance_all(60) == []
        assert set(registry.advance_all(60)) == {house, tower}
        assert registry.pending() == []

    def test_advance_all_scaled_by_build_time(self, registry: BuildingRegistry) -> None:
        house = registry.place("house", (0, 0))
        for _ in range(4):
            assert registry.advance_all(None) == []
        assert registry.advance_all(None) == [house]


class TestRemove:
    """Tests for demolition."""

    def test_remove_vacates(self, registry: BuildingRegistry) -> None:
        structure_id = registry.place("tower", (3, 3))
        registry.remove(structure_id)
        assert registry.grid.is_free(3, 3)
        assert registry.grid.is_free(3, 4)
        assert structure_id not in registry

    def test_remove_unknown(self, registry: BuildingRegistry) -> None:
        with pytest.raises(NotFound):
            registry.remove("ghost-1")

    def test_remove_complete_restores_stats(self, registry: BuildingRegistry) -> None:
        before = dict(registry.ledger.stats)
        tower = registry.place("tower", (3, 3))
        _complete(registry, tower)
        assert registry.ledger.stats["security"] == before["security"] + 10
        assert registry.ledger.stats["income"] == before["income"] + 5
        registry.remove(tower)
        assert registry.ledger.stats == before

    def test_remove_pending_leaves_stats(self, registry: BuildingRegistry) -> None:
        before = dict(registry.ledger.stats)
        house = registry.place("house", (0, 0))
        registry.advance_progress(house, 50)
        registry.remove(house)
        assert registry.ledger.stats == before

    def test_remove_does_not_refund(self, registry: BuildingRegistry) -> None:
        house = registry.place("house", (0, 0))
        registry.remove(house)
        assert registry.ledger.resources["gold"] == 450


class TestInvariants:
    """Ledger stats always equal baseline plus complete contributions."""

    def test_contributions_match_after_mixed_sequence(self, registry: BuildingRegistry) -> None:
        registry.place_starter("keep", (7, 7))
        _assert_invariant(registry)
        house = registry.place("house", (0, 0))
        tower = registry.place("tower", (1, 0))
        hut = registry.place("hut", (2, 0))
        _assert_invariant(registry)
        _complete(registry, house)
        _assert_invariant(registry)
        tavern = registry.place("tavern", (4, 0))
        registry.advance_all(50)
        _assert_invariant(registry)
        registry.remove(hut)
        registry.remove(tower)
        _assert_invariant(registry)
        registry.advance_all(50)
        registry.remove(tavern)
        _assert_invariant(registry)

    def test_repeated_place_remove_cycles(self, registry: BuildingRegistry) -> None:
        before = dict(registry.ledger.stats)
        for _ in range(4):
            tower = registry.place("tower", (3, 3))
            _complete(registry, tower)
            registry.remove(tower)
        assert registry.ledger.stats == before


class TestLevelPolicy:
    """Tests for structure-count levelling."""

    def test_level_follows_structure_count(self, registry: BuildingRegistry) -> None:
        registry.place_starter("keep", (7, 7))
        registry.place("hut", (0, 0))
        assert registry.ledger.level == 1
        hut = registry.place("hut", (1, 0))
        assert registry.ledger.level == 2
        registry.place("vault", (2, 0))
        registry.remove(hut)
        assert registry.ledger.level == 2

    def test_elapsed_policy_ignores_count(self, grid: Grid, ledger: SettlementLedger, theme: Theme) -> None:
        registry = BuildingRegistry(
            grid=grid,
            ledger=ledger,
            catalog=theme.buildings,
            level_policy=LevelPolicy.ELAPSED_TICKS,
        )
        for x in range(6):
            registry.place("hut", (x, 0))
        assert ledger.level == 1
