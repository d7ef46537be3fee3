"""
TribeSim: ui/renderer.py
TCOD Renderer: root console plus the read-only world map view.
==============================================================
Stack:       Python 3.11+ | tcod
Status:      Rendering collaborator. Reads the simulation, never mutates it.

The camera's (x, y) is the world coordinate drawn at the top-left cell of
the map viewport. zoom < 1 samples every round(1 / zoom)-th tile so the
whole map fits on screen; zoom >= 1 draws one tile per cell.
"""

from __future__ import annotations

from typing import Dict, Mapping, Optional, Tuple

import tcod

from simcore.config import COLORS
from simcore.loop import Camera
from simcore.tribe import Tribe
from terrain.world import Position, TileType, World

RGB = Tuple[int, int, int]

TILE_GLYPHS: Dict[TileType, str] = {
    TileType.WATER: "~",
    TileType.SAND: ".",
    TileType.GRASS: '"',
    TileType.FOREST: "T",
    TileType.HILL: "n",
    TileType.MOUNTAIN: "^",
    TileType.SWAMP: ",",
}

PLAYER_GLYPH = "@"
TRIBE_GLYPH = "&"
HOME_GLYPH = "#"


def hex_to_rgb(value: str) -> RGB:
    value = value.lstrip("#")
    return int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16)


def tiles_per_cell(zoom: float) -> int:
    if zoom >= 1.0:
        return 1
    return max(1, int(round(1.0 / zoom)))


class Renderer:
    """Manages the tcod root console."""

    def __init__(self, width: int, height: int, title: str = "TribeSim"):
        self.width = width
        self.height = height
        self.title = title
        self.root_console = tcod.console.Console(width, height)
        self.context: Optional[tcod.context.Context] = None

    def clear(self) -> None:
        self.root_console.clear()

    def present(self, context: tcod.context.Context) -> None:
        context.present(self.root_console)


class MapView:
    """
    Draws terrain and tribes into a rectangular region of a console.

    Terrain colours come from COLORS; tribes use their own hex colour and
    the selected tribe gets the "selected" background.
    """

    def __init__(self, x: int = 0, y: int = 0, width: int = 80, height: int = 40):
        self.x = x
        self.y = y
        self.width = width
        self.height = height
        self._terrain_fg: Dict[TileType, RGB] = {t: hex_to_rgb(COLORS[t.value]) for t in TileType}

    def screen_to_world(self, camera: Camera, sx: int, sy: int) -> Position:
        step = tiles_per_cell(camera.zoom)
        return Position(int(camera.x) + (sx - self.x) * step, int(camera.y) + (sy - self.y) * step)

    def world_to_screen(self, camera: Camera, pos: Position) -> Optional[Tuple[int, int]]:
        step = tiles_per_cell(camera.zoom)
        dx = pos.x - int(camera.x)
        dy = pos.y - int(camera.y)
        if dx < 0 or dy < 0:
            return None
        sx, sy = dx // step, dy // step
        if sx >= self.width or sy >= self.height:
            return None
        return self.x + sx, self.y + sy

    def center_on(self, camera: Camera, pos: Position, world: World) -> None:
        step = tiles_per_cell(camera.zoom)
        max_x = max(0, world.width - self.width * step)
        max_y = max(0, world.height - self.height * step)
        camera.x = float(min(max(0, pos.x - (self.width * step) // 2), max_x))
        camera.y = float(min(max(0, pos.y - (self.height * step) // 2), max_y))

    def draw(
        self,
        console: tcod.console.Console,
        world: World,
        tribes: Mapping[int, Tribe],
        camera: Camera,
        selected_id: Optional[int] = None,
    ) -> None:
        # Terrain
        for sy in range(self.height):
            for sx in range(self.width):
                tile = world.get_tile(self.screen_to_world(camera, self.x + sx, self.y + sy))
                if tile is None:
                    continue
                console.print(self.x + sx, self.y + sy, TILE_GLYPHS[tile.type], fg=self._terrain_fg[tile.type])

        # Settlements under tribes
        for tribe in tribes.values():
            if tribe.home_tile is None:
                continue
            cell = self.world_to_screen(camera, tribe.home_tile)
            if cell is not None:
                console.print(cell[0], cell[1], HOME_GLYPH, fg=hex_to_rgb(tribe.config.color))

        # Tribes, selected one last so it stays on top
        ordered = sorted(tribes.values(), key=lambda t: t.id == selected_id)
        for tribe in ordered:
            cell = self.world_to_screen(camera, tribe.position)
            if cell is None:
                continue
            glyph = PLAYER_GLYPH if tribe.is_player else TRIBE_GLYPH
            bg = hex_to_rgb(COLORS["selected"]) if tribe.id == selected_id else None
            console.print(cell[0], cell[1], glyph, fg=hex_to_rgb(tribe.config.color), bg=bg)
