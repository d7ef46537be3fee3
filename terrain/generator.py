"""
TribeSim: terrain/generator.py
Procedural terrain: layered value noise, biome classification, deposits.
========================================================================
Stack:       Python 3.11+ | NumPy

Pipeline
--------
  1. elevation = fractal noise (4 octaves, seed); moisture = fractal
     noise (3 octaves, seed + MOISTURE_SEED_OFFSET)
  2. elevation smoothed with BLUR_PASSES passes of a 3x3 box blur
  3. each cell classified by elevation thresholds, moisture splits the
     lowland band
  4. deposits rolled per terrain type from RESOURCE_SPAWN_TABLE

One random.Random seeded from the world seed drives every deposit roll,
so generate() is fully reproducible for a given seed.
"""

from __future__ import annotations

import logging
import random
from typing import Dict, List, Optional, Tuple

from simcore.config import MAP_HEIGHT, MAP_WIDTH, SEA_LEVEL
from terrain.noise import box_blur, noise_field
from terrain.world import Deposit, ResourceType, Tile, TileType, World

logger = logging.getLogger(__name__)

ELEVATION_OCTAVES: int = 4
MOISTURE_OCTAVES: int = 3
MOISTURE_SEED_OFFSET: int = 1000
BLUR_PASSES: int = 2

# Elevation bands (upper bounds, exclusive)
SAND_LEVEL: float = 0.35
LOWLAND_LEVEL: float = 0.6
HILL_LEVEL: float = 0.8

# Moisture splits inside the lowland band
SWAMP_MOISTURE: float = 0.6
GRASS_MOISTURE: float = 0.3

# terrain -> ((resource, probability, min_amount, max_amount), ...)
# Amounts are inclusive. Roll order is part of the determinism contract.
RESOURCE_SPAWN_TABLE: Dict[TileType, Tuple[Tuple[ResourceType, float, int, int], ...]] = {
    TileType.FOREST: (
        (ResourceType.WOOD, 0.8, 50, 99),
        (ResourceType.FOOD, 0.4, 20, 49),
    ),
    TileType.GRASS: (
        (ResourceType.FOOD, 0.6, 30, 69),
    ),
    TileType.HILL: (
        (ResourceType.STONE, 0.5, 20, 49),
        (ResourceType.WOOD, 0.3, 10, 29),
    ),
    TileType.MOUNTAIN: (
        (ResourceType.STONE, 0.7, 30, 79),
        (ResourceType.METAL, 0.4, 10, 29),
    ),
    TileType.SWAMP: (
        (ResourceType.WOOD, 0.5, 20, 49),
        (ResourceType.FOOD, 0.3, 10, 29),
    ),
}


def classify_terrain(elevation: float, moisture: float, sea_level: float = SEA_LEVEL) -> TileType:
    if elevation < sea_level:
        return TileType.WATER
    if elevation < SAND_LEVEL:
        return TileType.SAND
    if elevation < LOWLAND_LEVEL:
        if moisture > SWAMP_MOISTURE:
            return TileType.SWAMP
        if moisture > GRASS_MOISTURE:
            return TileType.GRASS
        return TileType.FOREST
    if elevation < HILL_LEVEL:
        return TileType.HILL
    return TileType.MOUNTAIN


def spawn_deposits(tile_type: TileType, rng: random.Random) -> List[Deposit]:
    """Independent roll per table row; a cell may get zero, one or several deposits."""
    deposits = []
    for resource, chance, low, high in RESOURCE_SPAWN_TABLE.get(tile_type, ()):
        if rng.random() < chance:
            deposits.append(Deposit(type=resource, amount=rng.randint(low, high)))
    return deposits


class TerrainGenerator:
    """
    Builds a World of width x height cells from a seed.
    Same seed, same size -> identical tiles and deposits.
    """
    def __init__(self, seed: Optional[float] = None, width: int = MAP_WIDTH, height: int = MAP_HEIGHT, sea_level: float = SEA_LEVEL):
        if seed is None:
            seed = random.randint(1, 100000)
        self.seed = seed
        self.width = width
        self.height = height
        self.sea_level = sea_level
        self.rng = random.Random(seed)

    def generate(self) -> World:
        elevation = noise_field(self.width, self.height, self.seed, ELEVATION_OCTAVES)
        moisture = noise_field(self.width, self.height, self.seed + MOISTURE_SEED_OFFSET, MOISTURE_OCTAVES)
        elevation = box_blur(elevation, passes=BLUR_PASSES)

        tiles: List[List[Tile]] = []
        for y in range(self.height):
            row = []
            for x in range(self.width):
                tile_type = classify_terrain(float(elevation[y, x]), float(moisture[y, x]), self.sea_level)
                row.append(Tile(type=tile_type, resources=spawn_deposits(tile_type, self.rng)))
            tiles.append(row)

        logger.debug("Generated %dx%d world (seed=%s)", self.width, self.height, self.seed)
        return World(
            width=self.width,
            height=self.height,
            tiles=tiles,
            sea_level=self.sea_level,
            elevation=elevation,
            moisture=moisture,
        )


def generate_world(seed: Optional[float] = None, width: int = MAP_WIDTH, height: int = MAP_HEIGHT) -> World:
    return TerrainGenerator(seed=seed, width=width, height=height).generate()
