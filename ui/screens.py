"""
TribeSim: ui/screens.py
Implementations of the UI screen states.
"""

import logging
import textwrap
from pathlib import Path
from typing import List, Optional

import tcod
from tcod import libtcodpy

from simcore.config import SimulationConfig
from simcore.errors import CorruptSaveError
from simcore.events import GameEvent
from simcore.loop import GameSpeed, SimulationLoop
from simcore.storage import GameStorage
from simcore.tech import TechDef, get_available_techs
from ui.renderer import MapView, Renderer, tiles_per_cell
from ui.states import BaseState, Engine

logger = logging.getLogger(__name__)

SIDEBAR_WIDTH = 26
FOOTER_HEIGHT = 2
RECENT_EVENTS_SHOWN = 8
ZOOM_LEVELS = (0.25, 0.5, 1.0)

MOVE_KEYS = {
    tcod.event.KeySym.UP: (0, -1), tcod.event.KeySym.W: (0, -1),
    tcod.event.KeySym.DOWN: (0, 1), tcod.event.KeySym.S: (0, 1),
    tcod.event.KeySym.LEFT: (-1, 0), tcod.event.KeySym.A: (-1, 0),
    tcod.event.KeySym.RIGHT: (1, 0), tcod.event.KeySym.D: (1, 0),
}

SPEED_KEYS = {
    tcod.event.KeySym.N1: GameSpeed.NORMAL,
    tcod.event.KeySym.N2: GameSpeed.FAST,
    tcod.event.KeySym.N3: GameSpeed.ULTRA,
}

PRIORITY_COLORS = {5: (200, 200, 200), 7: (255, 170, 60), 8: (255, 90, 60), 9: (255, 40, 40)}


class MainMenuState(BaseState):
    """The title screen."""

    def __init__(
        self,
        engine: Engine,
        config: SimulationConfig,
        storage: Optional[GameStorage] = None,
        chronicle_path: Optional[Path] = None,
    ):
        super().__init__(engine)
        self.config = config
        self.storage = storage
        self.chronicle_path = chronicle_path
        self.message = ""

    def _new_sim(self) -> SimulationLoop:
        return SimulationLoop(config=self.config, storage=self.storage, chronicle_path=self.chronicle_path)

    def on_render(self, renderer: Renderer) -> None:
        console = renderer.root_console
        cx, cy = renderer.width // 2, renderer.height // 2
        console.print(cx, cy - 5, "TribeSim", fg=(255, 255, 0), alignment=libtcodpy.CENTER)
        console.print(cx, cy, "[N]ew World", alignment=libtcodpy.CENTER)
        console.print(cx, cy + 1, "[R]esume Quicksave", alignment=libtcodpy.CENTER)
        console.print(cx, cy + 2, "[Q]uit", alignment=libtcodpy.CENTER)
        if self.message:
            console.print(cx, cy + 4, self.message, fg=(255, 80, 80), alignment=libtcodpy.CENTER)

    def ev_keydown(self, event: tcod.event.KeyDown) -> None:
        if event.sym == tcod.event.KeySym.Q:
            self.engine.running = False
        elif event.sym == tcod.event.KeySym.N:
            sim = self._new_sim()
            sim.init()
            sim.open_session()
            sim.start()
            self.engine.change_state(MapState(self.engine, sim, self))
        elif event.sym == tcod.event.KeySym.R:
            sim = self._new_sim()
            try:
                loaded = sim.quick_load()
            except CorruptSaveError as exc:
                logger.warning("Failed to resume: %s", exc)
                self.message = f"Quicksave is corrupt ({exc.kind})"
                return
            if not loaded:
                self.message = "No quicksave found"
                return
            sim.open_session()
            self.engine.change_state(MapState(self.engine, sim, self))


class MapState(BaseState):
    """The main simulation screen: map, sidebar and command keys."""

    def __init__(self, engine: Engine, sim: SimulationLoop, menu: Optional[MainMenuState] = None):
        super().__init__(engine)
        self.sim = sim
        self.menu = menu
        renderer = engine.renderer
        self.view = MapView(0, 0, renderer.width - SIDEBAR_WIDTH, renderer.height - FOOTER_HEIGHT)
        self.follow_selected = True
        self.flash = ""

    # ----------------------------------------------------------
    # Frame hooks
    # ----------------------------------------------------------

    def on_update(self) -> None:
        self.sim.update()

    def on_exit(self) -> None:
        self.sim.close_session()

    def on_render(self, renderer: Renderer) -> None:
        world = self.sim.world
        camera = self.sim.camera
        selected = self.sim.get_selected_tribe()
        if self.follow_selected and selected is not None:
            self.view.center_on(camera, selected.position, world)

        self.view.draw(renderer.root_console, world, self.sim.tribes, camera, self.sim.selected_tribe_id)
        self._render_sidebar(renderer)
        self._render_footer(renderer)

    def _render_sidebar(self, renderer: Renderer) -> None:
        console = renderer.root_console
        x = renderer.width - SIDEBAR_WIDTH + 1
        status = self.sim.status()

        console.print(x, 0, f"Tick {status['tick']}", fg=(255, 255, 0))
        speed = "PAUSED" if status["is_paused"] else f"x{status['game_speed']}"
        console.print(x, 1, f"Speed: {speed}")
        console.print(x, 2, f"Tribes: {status['tribe_count']}")
        console.print(x, 3, f"Your people: {status['player_population']}")

        y = 5
        tribe = self.sim.get_selected_tribe()
        if tribe is not None:
            console.print(x, y, tribe.name[:SIDEBAR_WIDTH - 2], fg=(0, 255, 255))
            console.print(x, y + 1, f"Pop {tribe.population}  {tribe.state.value}")
            for i, (resource, amount) in enumerate(tribe.resources.items()):
                console.print(x, y + 2 + i, f"{resource.value:<6}{amount:>8}")
            console.print(x, y + 6, f"Techs: {len(tribe.discovered_techs)}")
            console.print(x, y + 7, f"Cooldown: {tribe.action_cooldown}")
        else:
            console.print(x, y, "(no tribe selected)", fg=(128, 128, 128))

        y = 15
        console.print(x, y, "--- EVENTS ---", fg=(255, 255, 0))
        recent = list(self.sim.event_log)[-RECENT_EVENTS_SHOWN:]
        row = y + 1
        for event in reversed(recent):
            fg = PRIORITY_COLORS.get(event.priority, (200, 200, 200))
            marker = " " if event.resolved else "*"
            for line in textwrap.wrap(f"{marker}{event.title}", SIDEBAR_WIDTH - 2)[:2]:
                if row >= renderer.height - FOOTER_HEIGHT:
                    return
                console.print(x, row, line, fg=fg)
                row += 1

    def _render_footer(self, renderer: Renderer) -> None:
        console = renderer.root_console
        help_text = (
            "[WASD] Move [E] Settle [G] Gather [R] Research [V] Events [Tab] Next tribe "
            "[Space] Pause [1-3] Speed [+/-] Zoom [F5/F9] Save/Load [ESC] Menu"
        )
        console.print(0, renderer.height - 2, help_text[:renderer.width], fg=(150, 150, 150))
        if self.flash:
            console.print(0, renderer.height - 1, self.flash[:renderer.width], fg=(255, 255, 255))

    # ----------------------------------------------------------
    # Input
    # ----------------------------------------------------------

    def ev_keydown(self, event: tcod.event.KeyDown) -> None:
        sym = event.sym
        if sym == tcod.event.KeySym.ESCAPE:
            self.sim.quick_save()
            self.sim.close_session()
            self.engine.change_state(self.menu if self.menu is not None else MainMenuState(self.engine, self.sim.config))
        elif sym in MOVE_KEYS:
            dx, dy = MOVE_KEYS[sym]
            if not self.sim.move_selected(dx, dy):
                self.flash = "Cannot move there"
        elif sym == tcod.event.KeySym.E:
            self.flash = "Settled" if self.sim.settle_selected() else "Cannot settle here"
        elif sym == tcod.event.KeySym.G:
            self._gather_here()
        elif sym == tcod.event.KeySym.R:
            if self.sim.get_selected_tribe() is not None:
                self.engine.change_state(TechState(self.engine, self))
        elif sym == tcod.event.KeySym.V:
            self.engine.change_state(EventsState(self.engine, self))
        elif sym == tcod.event.KeySym.TAB:
            self._cycle_selection()
        elif sym == tcod.event.KeySym.P:
            if self.sim.player_tribe_id is not None:
                self.sim.select_tribe(self.sim.player_tribe_id)
        elif sym == tcod.event.KeySym.F:
            self.follow_selected = not self.follow_selected
        elif sym == tcod.event.KeySym.SPACE:
            self.sim.toggle_pause()
        elif sym in SPEED_KEYS:
            self.sim.set_speed(SPEED_KEYS[sym])
        elif sym in (tcod.event.KeySym.EQUALS, tcod.event.KeySym.KP_PLUS):
            self._zoom(1)
        elif sym in (tcod.event.KeySym.MINUS, tcod.event.KeySym.KP_MINUS):
            self._zoom(-1)
        elif sym == tcod.event.KeySym.F5:
            self.flash = "Quicksaved" if self.sim.quick_save() else "No storage configured"
        elif sym == tcod.event.KeySym.F9:
            self._quick_load()

    def ev_mousebuttondown(self, event: tcod.event.MouseButtonDown) -> None:
        sx, sy = int(event.position.x), int(event.position.y)
        if sx >= self.view.width or sy >= self.view.height:
            return
        pos = self.view.screen_to_world(self.sim.camera, sx, sy)
        step = tiles_per_cell(self.sim.camera.zoom)
        for tribe in self.sim.tribes.values():
            if pos.x <= tribe.position.x < pos.x + step and pos.y <= tribe.position.y < pos.y + step:
                self.sim.select_tribe(tribe.id)
                return

    def _gather_here(self) -> None:
        tribe = self.sim.get_selected_tribe()
        if tribe is None:
            return
        if tribe.action_cooldown > 0:
            self.flash = f"Busy for {tribe.action_cooldown} more ticks"
            return
        tile = self.sim.world.get_tile(tribe.position)
        for deposit in tile.resources:
            if deposit.amount > 0:
                taken = self.sim.gather(deposit.type.value)
                self.flash = f"Gathered {taken} {deposit.type.value}"
                return
        self.flash = "Nothing to gather here"

    def _cycle_selection(self) -> None:
        ids = sorted(self.sim.tribes)
        if not ids:
            return
        current = self.sim.selected_tribe_id
        later = [i for i in ids if current is None or i > current]
        self.sim.select_tribe(later[0] if later else ids[0])

    def _zoom(self, direction: int) -> None:
        camera = self.sim.camera
        index = min(range(len(ZOOM_LEVELS)), key=lambda i: abs(ZOOM_LEVELS[i] - camera.zoom))
        index = max(0, min(len(ZOOM_LEVELS) - 1, index + direction))
        camera.zoom = ZOOM_LEVELS[index]

    def _quick_load(self) -> None:
        try:
            loaded = self.sim.quick_load()
        except CorruptSaveError as exc:
            logger.warning("Quick load failed: %s", exc)
            self.flash = f"Quicksave is corrupt ({exc.kind})"
            return
        self.flash = "Loaded quicksave" if loaded else "No quicksave found"


class EventsState(BaseState):
    """Overlay listing pending events; resolves the highlighted one."""

    def __init__(self, engine: Engine, parent_state: MapState):
        super().__init__(engine)
        self.parent_state = parent_state
        self.sim = parent_state.sim
        self.cursor_pos = 0
        self.events: List[GameEvent] = []
        self._refresh()

    def _refresh(self) -> None:
        player_id = self.sim.player_tribe_id
        self.events = sorted(
            self.sim.pending_events(),
            key=lambda e: (e.tribe_id != player_id, -e.priority, e.timestamp),
        )
        if self.cursor_pos >= len(self.events):
            self.cursor_pos = max(0, len(self.events) - 1)

    def on_update(self) -> None:
        self.parent_state.on_update()
        self._refresh()

    def on_exit(self) -> None:
        self.parent_state.on_exit()

    def on_render(self, renderer: Renderer) -> None:
        self.parent_state.on_render(renderer)
        console = renderer.root_console
        x, y = 6, 3
        w, h = renderer.width - 12, renderer.height - 6
        console.draw_frame(x, y, w, h, "Pending Events", clear=True, fg=(255, 255, 0), bg=(0, 0, 0))

        if not self.events:
            console.print(x + 2, y + 2, "(Nothing pending)", fg=(128, 128, 128))
        for i, event in enumerate(self.events[: h - 8]):
            fg = (0, 255, 255) if i == self.cursor_pos else PRIORITY_COLORS.get(event.priority, (255, 255, 255))
            console.print(x + 2, y + 2 + i, f"[{event.priority}] {event.title} (tribe {event.tribe_id})"[: w - 4], fg=fg)

        if self.events:
            selected = self.events[self.cursor_pos]
            detail_y = y + h - 6
            console.print(x + 2, detail_y, selected.description[: w - 4], fg=(255, 255, 255))
            for i, choice in enumerate(selected.choices):
                console.print(x + 2, detail_y + 1 + i, f"[{i + 1}] {choice.label}", fg=(0, 255, 255))

        console.print(x + 2, y + h - 2, "[Up/Down] Select  [1-2] Choose  [Enter] Acknowledge  [ESC] Close", fg=(200, 200, 200))

    def ev_keydown(self, event: tcod.event.KeyDown) -> None:
        sym = event.sym
        if sym in (tcod.event.KeySym.ESCAPE, tcod.event.KeySym.V):
            self.engine.change_state(self.parent_state)
        elif sym == tcod.event.KeySym.UP:
            self.cursor_pos = max(0, self.cursor_pos - 1)
        elif sym == tcod.event.KeySym.DOWN:
            self.cursor_pos = min(max(0, len(self.events) - 1), self.cursor_pos + 1)
        elif not self.events:
            return
        elif sym == tcod.event.KeySym.RETURN:
            self.sim.resolve_event(self.events[self.cursor_pos].id)
            self._refresh()
        elif sym in (tcod.event.KeySym.N1, tcod.event.KeySym.N2):
            index = 0 if sym == tcod.event.KeySym.N1 else 1
            target = self.events[self.cursor_pos]
            if index < len(target.choices):
                self.sim.resolve_event(target.id, index)
                self._refresh()


class TechState(BaseState):
    """Overlay listing techs the selected tribe can research now."""

    def __init__(self, engine: Engine, parent_state: MapState):
        super().__init__(engine)
        self.parent_state = parent_state
        self.sim = parent_state.sim
        self.cursor_pos = 0
        self.techs: List[TechDef] = []
        self.message = ""
        self._refresh()

    def on_update(self) -> None:
        self.parent_state.on_update()
        if self.sim.get_selected_tribe() is None:
            self.engine.change_state(self.parent_state)

    def _refresh(self) -> None:
        tribe = self.sim.get_selected_tribe()
        self.techs = get_available_techs(tribe.discovered_techs) if tribe is not None else []
        if self.cursor_pos >= len(self.techs):
            self.cursor_pos = max(0, len(self.techs) - 1)

    def on_exit(self) -> None:
        self.parent_state.on_exit()

    def on_render(self, renderer: Renderer) -> None:
        self.parent_state.on_render(renderer)
        console = renderer.root_console
        x, y = 10, 5
        w, h = renderer.width - 20, renderer.height - 10
        console.draw_frame(x, y, w, h, "Research", clear=True, fg=(0, 255, 255), bg=(0, 0, 0))

        if not self.techs:
            console.print(x + 2, y + 2, "(Nothing available)", fg=(128, 128, 128))
        for i, tech in enumerate(self.techs):
            cost = ", ".join(f"{k} {v}" for k, v in tech.cost.amounts().items())
            fg = (0, 255, 255) if i == self.cursor_pos else (255, 255, 255)
            console.print(x + 2, y + 2 + i, f"{tech.name:<16} {tech.era.value:<11} {cost}"[: w - 4], fg=fg)

        if self.techs:
            tech = self.techs[self.cursor_pos]
            console.print(x + 2, y + h - 4, tech.description[: w - 4], fg=(200, 200, 200))
        if self.message:
            console.print(x + 2, y + h - 3, self.message, fg=(255, 200, 0))
        console.print(x + 2, y + h - 2, "[Enter] Research  [ESC/R] Close", fg=(200, 200, 200))

    def ev_keydown(self, event: tcod.event.KeyDown) -> None:
        sym = event.sym
        if sym in (tcod.event.KeySym.ESCAPE, tcod.event.KeySym.R):
            self.engine.change_state(self.parent_state)
        elif sym in (tcod.event.KeySym.UP, tcod.event.KeySym.W):
            self.cursor_pos = max(0, self.cursor_pos - 1)
        elif sym in (tcod.event.KeySym.DOWN, tcod.event.KeySym.S):
            self.cursor_pos = min(max(0, len(self.techs) - 1), self.cursor_pos + 1)
        elif sym == tcod.event.KeySym.RETURN and self.techs:
            tech = self.techs[self.cursor_pos]
            if self.sim.research(tech.id):
                self.message = f"Discovered {tech.name}"
            else:
                self.message = f"Cannot afford {tech.name}"
            self._refresh()
