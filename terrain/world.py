"""
TribeSim: terrain/world.py
World grid model and its query interface.
=========================================
Stack:       Python 3.11+ | NumPy (generation fields only)

The grid is row-major: world.tiles[y][x]. Shape never changes after
creation; tile contents (deposit amounts, owner) do.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

import numpy as np


class TileType(str, Enum):
    WATER = "water"
    SAND = "sand"
    GRASS = "grass"
    FOREST = "forest"
    HILL = "hill"
    MOUNTAIN = "mountain"
    SWAMP = "swamp"


class ResourceType(str, Enum):
    FOOD = "food"
    WOOD = "wood"
    STONE = "stone"
    METAL = "metal"


# N, S, W, E. Order is relied on by get_adjacent_tiles callers.
CARDINAL_DIRECTIONS = ((0, -1), (0, 1), (-1, 0), (1, 0))


@dataclass(frozen=True)
class Position:
    x: int
    y: int

    def offset(self, dx: int, dy: int) -> "Position":
        return Position(self.x + dx, self.y + dy)

    def to_dict(self) -> Dict[str, int]:
        return {"x": self.x, "y": self.y}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Position":
        return cls(x=int(data["x"]), y=int(data["y"]))


@dataclass
class Deposit:
    type: ResourceType
    amount: int


@dataclass
class Tile:
    type: TileType
    resources: List[Deposit] = field(default_factory=list)
    tribe_id: Optional[int] = None

    def find_deposit(self, resource_type: ResourceType) -> Optional[Deposit]:
        for deposit in self.resources:
            if deposit.type == resource_type:
                return deposit
        return None


@dataclass
class World:
    width: int
    height: int
    tiles: List[List[Tile]]
    sea_level: float = 0.3
    # Generation-time scalar fields, (height, width). Not persisted.
    elevation: Optional[np.ndarray] = field(default=None, repr=False, compare=False)
    moisture: Optional[np.ndarray] = field(default=None, repr=False, compare=False)

    def in_bounds(self, pos: Position) -> bool:
        return 0 <= pos.x < self.width and 0 <= pos.y < self.height

    def get_tile(self, pos: Position) -> Optional[Tile]:
        """Bounds-checked lookup. Returns None outside the grid."""
        if not self.in_bounds(pos):
            return None
        return self.tiles[pos.y][pos.x]

    def get_adjacent_tiles(self, pos: Position) -> List[Tile]:
        adjacent = []
        for dx, dy in CARDINAL_DIRECTIONS:
            tile = self.get_tile(pos.offset(dx, dy))
            if tile is not None:
                adjacent.append(tile)
        return adjacent

    def find_passable_nearby(self, pos: Position, radius: int = 5) -> Optional[Position]:
        """
        Scans square rings r = 1..radius around pos, row by row, and
        returns the first passable cell. Scan order decides the winner,
        so the result is not necessarily the closest cell.
        """
        for r in range(1, radius + 1):
            for dy in range(-r, r + 1):
                for dx in range(-r, r + 1):
                    if abs(dx) != r and abs(dy) != r:
                        continue
                    candidate = pos.offset(dx, dy)
                    tile = self.get_tile(candidate)
                    if tile is not None and is_passable(tile):
                        return candidate
        return None

    def iter_positions(self):
        for y in range(self.height):
            for x in range(self.width):
                yield Position(x, y)

    # ----------------------------------------------------------
    # Plain-structure export (snapshots)
    # ----------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "width": self.width,
            "height": self.height,
            "sea_level": self.sea_level,
            "tiles": [
                [
                    {
                        "type": tile.type.value,
                        "resources": [{"type": d.type.value, "amount": d.amount} for d in tile.resources],
                        "tribe_id": tile.tribe_id,
                    }
                    for tile in row
                ]
                for row in self.tiles
            ],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "World":
        tiles = [
            [
                Tile(
                    type=TileType(t["type"]),
                    resources=[Deposit(ResourceType(d["type"]), int(d["amount"])) for d in t.get("resources", [])],
                    tribe_id=t.get("tribe_id"),
                )
                for t in row
            ]
            for row in data["tiles"]
        ]
        return cls(
            width=int(data["width"]),
            height=int(data["height"]),
            tiles=tiles,
            sea_level=float(data.get("sea_level", 0.3)),
        )


def is_passable(tile: Tile) -> bool:
    return tile.type is not TileType.WATER
