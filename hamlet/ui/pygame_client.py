"""Pygame 2D client for the settlement engine.

Draws the grid top-down from engine snapshots and turns mouse and key
input into engine requests.  It never touches engine state directly:
every change goes through ``request_placement``, ``request_removal``,
``advance_tick`` and friends, and every frame is drawn from a snapshot.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import pygame

from hamlet.settlement.structure import Orientation, footprint_tiles
from hamlet.simulation.config import TickPolicy

if TYPE_CHECKING:
    from hamlet.simulation.engine import Outcome, SettlementEngine
    from hamlet.simulation.snapshot import SettlementSnapshot

logger = logging.getLogger(__name__)

# Colour palette
_BG = (24, 24, 28)
_PANEL = (36, 36, 42)
_TEXT = (210, 210, 210)
_DIM = (130, 130, 130)
_COMPLETE = (230, 200, 120)
_PENDING = (150, 120, 70)
_SELECTED = (255, 255, 255)
_PREVIEW_OK = (120, 255, 120, 90)
_PREVIEW_BAD = (255, 90, 90, 90)

_KIND_KEYS = [
    pygame.K_1,
    pygame.K_2,
    pygame.K_3,
    pygame.K_4,
    pygame.K_5,
    pygame.K_6,
    pygame.K_7,
    pygame.K_8,
    pygame.K_9,
]


def hex_to_rgb(value: str) -> tuple[int, int, int]:
    """Convert ``#RRGGBB`` to an RGB tuple."""
    value = value.lstrip("#")
    return int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16)


class PygameRenderer:
    """Renders a SettlementEngine and forwards player input to it.

    Attributes:
        engine: The engine to visualise and control.
        cell_size: Pixel size of each grid tile.
        screen: The Pygame display surface.
    """

    def __init__(self, engine: SettlementEngine, cell_size: int = 14) -> None:
        """Initialise the window.

        Args:
            engine: The engine to render.
            cell_size: Pixel width/height per grid tile.
        """
        self.engine = engine
        self.cell_size = cell_size
        self.orientation = Orientation.NORTH
        self.message = ""
        self._terrain_colours = {
            kind: hex_to_rgb(data.display) if data.display else _DIM
            for kind, data in engine.theme.terrain.items()
        }

        self._panel_width = 260
        self._map_w = engine.grid.width * cell_size
        self._map_h = engine.grid.height * cell_size

        pygame.init()
        self.screen = pygame.display.set_mode(
            (self._map_w + self._panel_width, max(self._map_h, 560)),
        )
        pygame.display.set_caption(f"Hamlet - {engine.theme.title}")
        self.clock = pygame.time.Clock()
        self.font = pygame.font.SysFont("monospace", 14)
        self.running = True

    def run(self, fps: int = 30) -> None:
        """Main loop: handle events, render.

        Args:
            fps: Target frames per second.
        """
        while self.running:
            self.clock.tick(fps)
            self._handle_events()
            self._draw(self.engine.snapshot())
        pygame.quit()

    # -- Input ---------------------------------------------------------------

    def _handle_events(self) -> None:
        """Process Pygame input events."""
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                self.running = False
            elif event.type == pygame.KEYDOWN:
                self._handle_key(event.key)
            elif event.type == pygame.MOUSEBUTTONDOWN:
                tile = self._tile_under(event.pos)
                if tile is None:
                    continue
                if event.button == 1:
                    self._place_at(tile)
                elif event.button == 3:
                    self._select_at(tile)

    def _handle_key(self, key: int) -> None:
        engine = self.engine
        if key == pygame.K_ESCAPE:
            self.running = False
        elif key in _KIND_KEYS:
            kinds = engine.available_kinds()
            index = _KIND_KEYS.index(key)
            if index < len(kinds):
                self._report(engine.select_building_kind(kinds[index]))
        elif key == pygame.K_0:
            engine.select_building_kind(None)
        elif key == pygame.K_r:
            self.orientation = self.orientation.rotated()
        elif key in (pygame.K_DELETE, pygame.K_BACKSPACE):
            if engine.selected_structure is not None:
                self._report(engine.request_removal(engine.selected_structure))
        elif key == pygame.K_SPACE and engine.tick_policy is TickPolicy.EXPLICIT:
            report = engine.advance_tick()
            self.message = f"Turn {report.tick}"
        elif key == pygame.K_u and engine.tick_policy is TickPolicy.PASSIVE:
            self._report(engine.upgrade_accrual(), "Accrual upgraded")

    def _place_at(self, tile: tuple[int, int]) -> None:
        kind = self.engine.selected_kind
        if kind is None:
            return
        self._report(
            self.engine.request_placement(kind, tile, self.orientation),
            f"Placed {kind}",
        )

    def _select_at(self, tile: tuple[int, int]) -> None:
        x, z = tile
        occupant = self.engine.snapshot().tiles[z][x].occupant_id
        self._report(self.engine.select_structure(occupant))

    def _report(self, outcome: Outcome, success: str = "") -> None:
        if not outcome.ok:
            logger.debug("Request refused (%s): %s", outcome.error, outcome.message)
        self.message = success if outcome.ok else outcome.message

    def _tile_under(self, pos: tuple[int, int]) -> tuple[int, int] | None:
        px, py = pos
        if px >= self._map_w or py >= self._map_h:
            return None
        return px // self.cell_size, py // self.cell_size

    # -- Drawing -------------------------------------------------------------

    def _draw(self, snap: SettlementSnapshot) -> None:
        """Render one frame."""
        self.screen.fill(_BG)
        self._draw_terrain(snap)
        self._draw_buildings(snap)
        self._draw_preview(snap)
        self._draw_info_panel(snap)
        pygame.display.flip()

    def _draw_terrain(self, snap: SettlementSnapshot) -> None:
        cs = self.cell_size
        for row in snap.tiles:
            for tile in row:
                pygame.draw.rect(
                    self.screen,
                    self._terrain_colours.get(tile.terrain, _DIM),
                    (tile.x * cs, tile.z * cs, cs, cs),
                )

    def _draw_buildings(self, snap: SettlementSnapshot) -> None:
        """Draw structures; pending ones fill up with their progress."""
        cs = self.cell_size
        for view in snap.buildings:
            xs = [x for x, _ in view.tiles]
            zs = [z for _, z in view.tiles]
            rect = pygame.Rect(
                min(xs) * cs,
                min(zs) * cs,
                (max(xs) - min(xs) + 1) * cs,
                (max(zs) - min(zs) + 1) * cs,
            )
            if view.complete:
                pygame.draw.rect(self.screen, _COMPLETE, rect)
            else:
                pygame.draw.rect(self.screen, _PENDING, rect)
                filled = rect.copy()
                filled.height = max(1, rect.height * view.progress // 100)
                filled.bottom = rect.bottom
                pygame.draw.rect(self.screen, _COMPLETE, filled)
            border = _SELECTED if view.id == snap.selected_structure else _BG
            pygame.draw.rect(self.screen, border, rect, width=2)

    def _draw_preview(self, snap: SettlementSnapshot) -> None:
        """Shade the footprint the selected kind would cover at the cursor."""
        if snap.selected_kind is None:
            return
        tile = self._tile_under(pygame.mouse.get_pos())
        if tile is None:
            return
        building = self.engine.theme.buildings.lookup(snap.selected_kind)
        cs = self.cell_size
        overlay = pygame.Surface((self._map_w, self._map_h), pygame.SRCALPHA)
        for x, z in footprint_tiles(tile, self.orientation, building.footprint):
            inside = 0 <= z < len(snap.tiles) and 0 <= x < len(snap.tiles[0])
            free = inside and snap.tiles[z][x].occupant_id is None
            colour = _PREVIEW_OK if free else _PREVIEW_BAD
            pygame.draw.rect(overlay, colour, (x * cs, z * cs, cs, cs))
        self.screen.blit(overlay, (0, 0))

    def _draw_info_panel(self, snap: SettlementSnapshot) -> None:
        """Draw ledger, building menu and controls on the right side."""
        theme = self.engine.theme
        panel_x = self._map_w
        pygame.draw.rect(
            self.screen,
            _PANEL,
            (panel_x, 0, self._panel_width, self.screen.get_height()),
        )

        lines: list[tuple[str, tuple[int, int, int]]] = [
            (f"{snap.settlement_name}", _TEXT),
            (f"Tick {snap.tick}  Level {snap.level}", _TEXT),
            ("", _TEXT),
        ]
        lines += [
            (f"{theme.label(k):<14}{v:>8}", _TEXT) for k, v in snap.resources.items()
        ]
        lines.append(("", _TEXT))
        lines += [
            (f"{theme.label(k):<14}{v:>8.0f}", _DIM) for k, v in snap.stats.items()
        ]
        lines.append(("", _TEXT))

        for index, kind in enumerate(self.engine.available_kinds()[: len(_KIND_KEYS)]):
            data = theme.buildings.lookup(kind)
            marker = ">" if kind == snap.selected_kind else " "
            cost = " ".join(f"{v}{k[0]}" for k, v in data.cost.items())
            lines.append((f"{marker}{index + 1} {data.name[:12]:<12} {cost}", _TEXT))

        if snap.selected_structure is not None:
            view = snap.building(snap.selected_structure)
            if view is not None:
                lines += [("", _TEXT), (f"{view.name} {view.progress}%", _SELECTED)]

        controls = ["R: rotate", "DEL: demolish", "ESC: quit"]
        if self.engine.tick_policy is TickPolicy.EXPLICIT:
            controls.insert(0, "SPACE: next turn")
        else:
            controls.insert(0, f"U: upgrade (+{snap.accrual_rate}/t)")
        lines += [("", _TEXT), (f"Facing {self.orientation.name}", _DIM)]
        lines += [(c, _DIM) for c in controls]
        if self.message:
            lines += [("", _TEXT), (self.message[:32], _SELECTED)]

        y = 10
        for text, colour in lines:
            surf = self.font.render(text, True, colour)
            self.screen.blit(surf, (panel_x + 10, y))
            y += 17
