"""SettlementEngine -- the facade the UI layer talks to.

Owns the grid, ledger, registry and tick driver of one settlement and
serialises every mutation behind a single re-entrant lock, so passive
accrual ticks and player actions never interleave.

Expected rejections (occupied tile, missing gold, protected castle...)
come back as an ``Outcome`` rather than an exception; the UI branches on
``outcome.ok`` and shows ``outcome.message``.  Only programming errors,
such as bad configuration or calling the wrong tick operation, raise.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any

from hamlet.catalogs.theme import Theme, load_theme
from hamlet.errors import HamletError, NotFound, TickPolicyError
from hamlet.settlement.ledger import LevelPolicy, SettlementLedger
from hamlet.settlement.registry import BuildingRegistry
from hamlet.settlement.structure import Coord, Orientation
from hamlet.simulation.config import EngineConfig, TickPolicy
from hamlet.simulation.snapshot import SettlementSnapshot
from hamlet.simulation.ticks import AccrualTimer, TickDriver, TickReport
from hamlet.world.generation import generate_grid
from hamlet.world.grid import Grid

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Outcome:
    """Result of one requested operation.

    Attributes:
        ok: Whether the operation was applied.
        value: Operation result on success (e.g. a structure id).
        error: Error code on failure (see ``hamlet.errors``).
        message: Human-readable reason on failure.
    """

    ok: bool
    value: Any = None
    error: str | None = None
    message: str = ""

    @classmethod
    def success(cls, value: Any = None) -> Outcome:
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, exc: HamletError) -> Outcome:
        return cls(ok=False, error=exc.code, message=str(exc))

    def __bool__(self) -> bool:
        return self.ok

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "value": self.value,
            "error": self.error,
            "message": self.message,
        }


@dataclass
class SettlementEngine:
    """Drives one settlement.

    Attributes:
        config: Loaded engine configuration.
        player_name: Player's display name.
        settlement_name: Settlement's display name.
        theme: Loaded theme (catalogs and channel schema).
        tick_policy: Resolved tick policy.
        grid: The tile grid.
        ledger: Resource and stat ledger.
        registry: Placed structures.
        driver: Tick driver.
        selected_kind: Building kind chosen for placement.
        selected_structure: Structure chosen for inspection.
    """

    config: EngineConfig
    player_name: str = ""
    settlement_name: str = ""
    theme: Theme = field(init=False)
    tick_policy: TickPolicy = field(init=False)
    grid: Grid = field(init=False)
    ledger: SettlementLedger = field(init=False)
    registry: BuildingRegistry = field(init=False)
    driver: TickDriver = field(init=False)
    selected_kind: str | None = field(init=False, default=None)
    selected_structure: str | None = field(init=False, default=None)
    _lock: threading.RLock = field(init=False, repr=False, default_factory=threading.RLock)
    _timer: AccrualTimer | None = field(init=False, repr=False, default=None)

    def __post_init__(self) -> None:
        """Load the theme, generate the grid and reset the ledger."""
        self.theme = load_theme(self.config.theme)
        self.tick_policy = self.config.tick_policy or TickPolicy(self.theme.tick_policy)
        level_policy = self.config.level_policy or LevelPolicy(self.theme.level_policy)

        weights = self.config.terrain_weights or self.theme.terrain_weights
        self.grid = generate_grid(
            self.config.grid_width,
            self.config.grid_height,
            weights,
            self.config.seed,
            self.theme.terrain,
            fast_terrain=self.theme.fast_terrain,
            lines=self.config.infrastructure_lines,
        )
        self.grid.reserve_center(
            *self.center,
            self.config.reserve_radius,
            self.theme.reserve_terrain,
        )
        self.ledger = SettlementLedger(
            theme=self.theme,
            resources=dict(self.config.starting_resources),
            stats=dict(self.config.starting_stats),
        )
        self.registry = BuildingRegistry(
            grid=self.grid,
            ledger=self.ledger,
            catalog=self.theme.buildings,
            level_policy=level_policy,
            construction_delay=self.config.construction_delay,
        )
        self.driver = TickDriver(
            theme=self.theme,
            config=self.config,
            ledger=self.ledger,
            registry=self.registry,
        )

    @property
    def center(self) -> Coord:
        return self.config.grid_width // 2, self.config.grid_height // 2

    @property
    def tick(self) -> int:
        return self.driver.tick

    # -- Lifecycle -----------------------------------------------------------

    def start(self) -> str:
        """Place the starting structure at the grid center and start time.

        The starter's footprint is centered on the grid center, inside the
        reserved block.  Under the passive policy accrual starts too.

        Returns:
            The starter's id.
        """
        building = self.theme.buildings.lookup(self.theme.starter)
        cx, cz = self.center
        origin = (
            cx - building.footprint.width // 2,
            cz - building.footprint.length // 2,
        )
        with self._lock:
            starter_id = self.registry.place_starter(self.theme.starter, origin)
        logger.info(
            "%s founded %s (%s) with %s",
            self.player_name or "Player",
            self.settlement_name or "a settlement",
            self.theme.title,
            starter_id,
        )
        if self.tick_policy is TickPolicy.PASSIVE:
            self.start_accrual()
        return starter_id

    def close(self) -> None:
        """Stop background accrual, if any."""
        if self._timer is not None:
            self._timer.stop()

    def __enter__(self) -> SettlementEngine:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # -- Player actions ------------------------------------------------------

    def request_placement(
        self,
        kind: str,
        tile: Coord,
        orientation: Orientation | int = Orientation.NORTH,
    ) -> Outcome:
        """Try to place ``kind`` with its minimum corner at ``tile``.

        Args:
            kind: Building kind key.
            tile: Minimum-corner tile of the footprint.
            orientation: An ``Orientation`` or a multiple of 90 degrees.

        Returns:
            An Outcome whose value is the new structure id.

        Raises:
            ValueError: If ``orientation`` is not a multiple of 90 degrees.
                This is a caller error, not a rejected placement.
        """
        if not isinstance(orientation, Orientation):
            orientation = Orientation.from_degrees(orientation)
        with self._lock:
            try:
                structure_id = self.registry.place(kind, tuple(tile), orientation)
            except HamletError as exc:
                logger.debug("Placement of %s at %s rejected: %s", kind, tile, exc)
                return Outcome.failure(exc)
        return Outcome.success(structure_id)

    def request_removal(self, structure_id: str) -> Outcome:
        """Try to demolish a structure."""
        with self._lock:
            try:
                self.registry.remove(structure_id)
            except HamletError as exc:
                logger.debug("Removal of %s rejected: %s", structure_id, exc)
                return Outcome.failure(exc)
            if self.selected_structure == structure_id:
                self.selected_structure = None
        return Outcome.success()

    def advance_progress(
        self,
        structure_id: str,
        amount: int,
        *,
        absolute: bool = False,
    ) -> Outcome:
        """Push construction of one structure; the value is True on completion."""
        with self._lock:
            try:
                done = self.registry.advance_progress(
                    structure_id,
                    amount,
                    absolute=absolute,
                )
            except HamletError as exc:
                return Outcome.failure(exc)
        return Outcome.success(done)

    def select_building_kind(self, kind: str | None) -> Outcome:
        """Choose a building kind to place; clears the structure selection."""
        with self._lock:
            if kind is not None:
                try:
                    self.theme.buildings.lookup(kind)
                except HamletError as exc:
                    return Outcome.failure(exc)
                self.selected_structure = None
            self.selected_kind = kind
        return Outcome.success(kind)

    def select_structure(self, structure_id: str | None) -> Outcome:
        """Choose a placed structure; clears the building kind selection."""
        with self._lock:
            if structure_id is not None:
                if structure_id not in self.registry:
                    return Outcome.failure(
                        NotFound(f"no structure with id {structure_id!r}"),
                    )
                self.selected_kind = None
            self.selected_structure = structure_id
        return Outcome.success(structure_id)

    def available_kinds(self) -> list[str]:
        """Building kinds unlocked at the current level."""
        with self._lock:
            level = self.ledger.level
        return [b.kind for b in self.theme.buildings.unlocked_at(level)]

    # -- Time ----------------------------------------------------------------

    def advance_tick(self) -> TickReport:
        """Advance one explicit turn.

        Raises:
            TickPolicyError: If this engine uses passive accrual.
        """
        self._require_policy(TickPolicy.EXPLICIT, "advance_tick")
        with self._lock:
            return self.driver.advance_turn()

    def run(self, turns: int) -> list[TickReport]:
        """Advance a fixed number of explicit turns."""
        return [self.advance_tick() for _ in range(turns)]

    def accrue(self) -> TickReport:
        """Run one passive accrual tick immediately, outside the timer."""
        self._require_policy(TickPolicy.PASSIVE, "accrue")
        with self._lock:
            return self.driver.accrue()

    def start_accrual(self) -> AccrualTimer:
        """Start passive accrual; returns the running timer handle.

        Calling it again while running returns the same handle without
        starting a second stream.

        Raises:
            TickPolicyError: If this engine uses explicit turns.
        """
        self._require_policy(TickPolicy.PASSIVE, "start_accrual")
        with self._lock:
            if self._timer is None:
                self._timer = AccrualTimer(
                    self.config.accrual_interval,
                    self.driver.accrue,
                    self._lock,
                )
        return self._timer.start()

    def stop_accrual(self) -> None:
        """Stop passive accrual; a no-op when already stopped."""
        self._require_policy(TickPolicy.PASSIVE, "stop_accrual")
        if self._timer is not None:
            self._timer.stop()

    def upgrade_accrual(self) -> Outcome:
        """Spend currency to raise the passive accrual rate."""
        self._require_policy(TickPolicy.PASSIVE, "upgrade_accrual")
        with self._lock:
            try:
                rate = self.driver.upgrade_accrual()
            except HamletError as exc:
                logger.debug("Accrual upgrade rejected: %s", exc)
                return Outcome.failure(exc)
        return Outcome.success(rate)

    @property
    def accruing(self) -> bool:
        return self._timer is not None and self._timer.running

    # -- Views ---------------------------------------------------------------

    def snapshot(self) -> SettlementSnapshot:
        """Return a frozen copy of the current committed state."""
        with self._lock:
            return SettlementSnapshot.capture(
                ledger=self.ledger,
                grid=self.grid,
                structures=self.registry.structures(),
                catalog=self.theme.buildings,
                player_name=self.player_name,
                settlement_name=self.settlement_name,
                theme=self.theme.name,
                tick=self.driver.tick,
                selected_kind=self.selected_kind,
                selected_structure=self.selected_structure,
                accrual_rate=self.driver.accrual_rate,
                accruing=self.accruing,
            )

    def _require_policy(self, policy: TickPolicy, operation: str) -> None:
        if self.tick_policy is not policy:
            msg = f"{operation} needs the {policy.value} tick policy, engine uses {self.tick_policy.value}"
            raise TickPolicyError(msg)


def initialize(
    player_name: str,
    settlement_name: str,
    config: EngineConfig | None = None,
) -> SettlementEngine:
    """Create a settlement, place its starter and start its clock.

    Args:
        player_name: Player's display name.
        settlement_name: Settlement's display name.
        config: Engine configuration (defaults if omitted).

    Returns:
        A started SettlementEngine.  Passive engines are already accruing;
        call ``close()`` when done.
    """
    engine = SettlementEngine(
        config=config or EngineConfig(),
        player_name=player_name,
        settlement_name=settlement_name,
    )
    engine.start()
    return engine
