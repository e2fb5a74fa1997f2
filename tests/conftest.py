"""Shared fixtures for the Hamlet test suite."""

from __future__ import annotations

from typing import Any

import pytest

from hamlet.catalogs.theme import Theme
from hamlet.settlement.ledger import SettlementLedger
from hamlet.settlement.registry import BuildingRegistry
from hamlet.simulation.config import EngineConfig
from hamlet.world.grid import Grid

TEST_THEME: dict[str, Any] = {
    "title": "Testland",
    "currency": "gold",
    "consumable": "food",
    "population_stat": "population",
    "fast_terrain": "road",
    "reserve_terrain": "grass",
    "starter": "keep",
    "resources": {
        "gold": 500,
        "wood": 100,
        "food": {"initial": 50, "floor": None},
    },
    "stats": {
        "population": 4,
        "housing": 4,
        "security": 0,
        "happiness": 10,
        "income": 0,
        "upkeep": 0,
    },
    "provisions": {
        "housing": {"capacity": ["population", "housing"]},
        "security": {"stat": "security"},
        "happiness": {"stat": "happiness"},
    },
    "terrain_weights": {"grass": 0.7, "rock": 0.3},
    "terrain": {
        "grass": {"buildable": True},
        "meadow": {"buildable": True, "yield": {"wood": 2}},
        "rock": {"buildable": False, "movement_cost": 3},
        "road": {"buildable": False, "movement_cost": 0.5},
    },
    "buildings": {
        "keep": {
            "size": {"width": 3, "length": 3},
            "cost": {"gold": 10000},
            "exempt": True,
            "provides": {"housing": 5, "security": 5},
        },
        "house": {
            "cost": {"gold": 50, "wood": 10},
            "build_ticks": 5,
            "provides": {"housing": 2},
        },
        "hut": {"cost": {"gold": 10}, "provides": {"happiness": 1}},
        "tower": {
            "size": {"width": 1, "length": 2},
            "cost": {"gold": 100},
            "build_ticks": 4,
            "income": 5,
            "provides": {"security": 10},
        },
        "tavern": {
            "size": {"width": 2, "length": 2},
            "cost": {"gold": 100},
            "build_ticks": 2,
            "upkeep": 2,
            "provides": {"happiness": 5},
            "requires": ["house"],
        },
        "vault": {"cost": {"gold": 100}, "unlock_level": 2},
        "mill": {
            "size": {"width": 2, "length": 1},
            "cost": {"gold": 20},
            "produces": {"food": 3},
        },
    },
}


@pytest.fixture
def theme() -> Theme:
    """A small in-memory theme with every kind of building rule."""
    return Theme.from_dict("testland", TEST_THEME)


@pytest.fixture
def grid(theme: Theme) -> Grid:
    """A 10x10 all-grass grid."""
    return Grid(width=10, height=10, catalog=theme.terrain, fill="grass")


@pytest.fixture
def ledger(theme: Theme) -> SettlementLedger:
    """A ledger with the test theme's starting values."""
    return SettlementLedger(theme=theme)


@pytest.fixture
def registry(grid: Grid, ledger: SettlementLedger, theme: Theme) -> BuildingRegistry:
    """An empty registry over the 10x10 grid."""
    return BuildingRegistry(grid=grid, ledger=ledger, catalog=theme.buildings)


@pytest.fixture
def kingdom_config() -> EngineConfig:
    """A 20x20 all-grass kingdom with no roads."""
    return EngineConfig(
        seed=7,
        theme="kingdom",
        grid_width=20,
        grid_height=20,
        infrastructure_lines=0,
        terrain_weights={"grass": 1.0},
    )


@pytest.fixture
def startup_config() -> EngineConfig:
    """A 20x20 startup campus whose timer never fires on its own."""
    return EngineConfig(
        seed=7,
        theme="startup",
        grid_width=20,
        grid_height=20,
        accrual_interval=3600.0,
    )
