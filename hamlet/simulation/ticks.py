"""Tick driver -- advances time for the settlement.

Two policies exist and an engine uses exactly one:

- **Explicit turns**: the caller asks for one period at a time.  Each
  turn credits net income, collects production, draws the consumable for
  the population, advances construction and updates the level.
- **Passive accrual**: an ``AccrualTimer`` fires on a wall-clock interval
  and credits a fixed currency rate, collects production and advances
  construction.

Both routes change the ledger only through ``SettlementLedger`` methods
and change construction only through ``BuildingRegistry.advance_all``.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field

from hamlet.catalogs.theme import Theme
from hamlet.settlement.ledger import LevelPolicy, SettlementLedger, level_for_ticks
from hamlet.settlement.registry import BuildingRegistry
from hamlet.simulation.config import EngineConfig

logger = logging.getLogger(__name__)


@dataclass
class TickReport:
    """What a single tick changed.

    Attributes:
        tick: Tick number after advancing.
        credited: Resource amounts added (income, production, accrual).
        consumed: Consumable drawn by the population.
        completed: Ids of structures completed this tick.
        level: Settlement level after the tick.
        level_changed: Whether the level went up.
    """

    tick: int
    credited: dict[str, int] = field(default_factory=dict)
    consumed: int = 0
    completed: list[str] = field(default_factory=list)
    level: int = 1
    level_changed: bool = False

    def add(self, resource: str, amount: int) -> None:
        if amount:
            self.credited[resource] = self.credited.get(resource, 0) + amount


@dataclass
class TickDriver:
    """Advances the economy of one settlement.

    Attributes:
        theme: Channel schema.
        config: Engine configuration.
        ledger: Settlement ledger.
        registry: Building registry.
        tick: Ticks elapsed so far.
        accrual_rate: Current currency credited per accrual tick.
        accrual_level: Number of accrual upgrades bought, plus one.
    """

    theme: Theme
    config: EngineConfig
    ledger: SettlementLedger
    registry: BuildingRegistry
    tick: int = 0
    accrual_rate: int = field(init=False)
    accrual_level: int = 1

    def __post_init__(self) -> None:
        self.accrual_rate = self.config.accrual_rate

    def advance_turn(self) -> TickReport:
        """Run one explicit turn.

        Order: net income, production, consumption, construction, level.
        """
        self.tick += 1
        report = TickReport(tick=self.tick)

        resource = self.theme.net_income_resource
        report.add(resource, self.ledger.adjust(resource, self.ledger.net_income))
        self._collect_production(report)

        consumable = self.theme.consumable
        population = self.theme.population_stat
        if consumable is not None and population is not None:
            draw = self.ledger.stats[population] * self.config.consumption_per_capita
            report.consumed = -self.ledger.adjust(consumable, -draw)

        report.completed = self.registry.advance_all(self.config.progress_per_tick)
        self._finish(report)
        logger.debug("Turn %d: %s", self.tick, report)
        return report

    def accrue(self) -> TickReport:
        """Run one passive accrual tick."""
        self.tick += 1
        report = TickReport(tick=self.tick)
        self.ledger.credit(self.theme.currency, self.accrual_rate)
        report.add(self.theme.currency, self.accrual_rate)

        resource = self.theme.net_income_resource
        report.add(resource, self.ledger.adjust(resource, self.ledger.net_income))
        self._collect_production(report)

        report.completed = self.registry.advance_all(self.config.progress_per_tick)
        self._finish(report)
        return report

    def upgrade_accrual(self) -> int:
        """Buy one accrual upgrade with the currency.

        The price is ``accrual_upgrade_cost`` times the current accrual
        level; each upgrade raises the rate by ``accrual_rate_step``.

        Returns:
            The new accrual rate.

        Raises:
            InsufficientResources: If the currency cannot cover the price.
        """
        price = self.config.accrual_upgrade_cost * self.accrual_level
        self.ledger.debit(self.theme.currency, price)
        self.accrual_level += 1
        self.accrual_rate += self.config.accrual_rate_step
        logger.info(
            "Accrual upgraded to level %d (%d per tick)",
            self.accrual_level,
            self.accrual_rate,
        )
        return self.accrual_rate

    def _collect_production(self, report: TickReport) -> None:
        for structure in self.registry.completed():
            building = self.registry.catalog.lookup(structure.kind)
            for resource, amount in building.produces.items():
                self.ledger.credit(resource, amount)
                report.add(resource, amount)
            if self.config.terrain_yield:
                for resource, amount in self.registry.grid.yield_of(structure.tiles).items():
                    self.ledger.credit(resource, amount)
                    report.add(resource, amount)

    def _finish(self, report: TickReport) -> None:
        if self.registry.level_policy is LevelPolicy.ELAPSED_TICKS:
            changed = self.ledger.raise_level(
                level_for_ticks(self.tick, self.config.level_interval),
            )
        else:
            changed = self.registry.refresh_level()
        report.level = self.ledger.level
        report.level_changed = changed


class AccrualTimer:
    """Owned handle for a repeating wall-clock callback.

    The callback runs on a daemon thread while holding ``lock``, the same
    lock that guards player actions, so the two never interleave.
    ``start`` and ``stop`` are both idempotent, and once ``stop`` returns
    no further callback will run.
    """

    def __init__(
        self,
        interval: float,
        callback: Callable[[], object],
        lock: threading.RLock,
        *,
        name: str = "hamlet-accrual",
    ) -> None:
        if interval <= 0:
            msg = f"interval must be positive, got {interval}"
            raise ValueError(msg)
        self.interval = interval
        self._callback = callback
        self._lock = lock
        self._name = name
        self._guard = threading.Lock()
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()
        self.fired = 0

    @property
    def running(self) -> bool:
        return self._thread is not None

    def start(self) -> AccrualTimer:
        """Start firing; a second call while running does nothing."""
        with self._guard:
            if self._thread is not None:
                return self
            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._run,
                args=(self._stop_event,),
                name=self._name,
                daemon=True,
            )
            self._thread.start()
        logger.info("Started accrual every %.2fs", self.interval)
        return self

    def stop(self) -> None:
        """Stop firing; stopping a stopped timer is a no-op."""
        with self._guard:
            thread = self._thread
            if thread is None:
                return
            self._thread = None
            self._stop_event.set()
        # Wait out a callback already holding the lock.
        with self._lock:
            pass
        if thread is not threading.current_thread():
            thread.join(timeout=self.interval + 1.0)
        logger.info("Stopped accrual after %d ticks", self.fired)

    def _run(self, stop_event: threading.Event) -> None:
        while not stop_event.wait(self.interval):
            with self._lock:
                if stop_event.is_set():
                    break
                try:
                    self._callback()
                except Exception:
                    logger.exception("Accrual callback failed; stopping timer")
                    stop_event.set()
                    break
                self.fired += 1
        with self._guard:
            if self._thread is threading.current_thread():
                self._thread = None
