import random

import pytest

from terrain.generator import (
    RESOURCE_SPAWN_TABLE,
    TerrainGenerator,
    classify_terrain,
    generate_world,
    spawn_deposits,
)
from terrain.world import Deposit, Position, ResourceType, Tile, TileType, World, is_passable


def make_world(width=7, height=7, water=()):
    tiles = [
        [Tile(TileType.WATER if (x, y) in water else TileType.GRASS) for x in range(width)]
        for y in range(height)
    ]
    return World(width=width, height=height, tiles=tiles)


# ---------------------------------------------------------------- classification

@pytest.mark.parametrize("elevation, moisture, expected", [
    (0.0, 0.9, TileType.WATER),
    (0.299, 0.5, TileType.WATER),
    (0.30, 0.5, TileType.SAND),
    (0.349, 0.9, TileType.SAND),
    (0.35, 0.61, TileType.SWAMP),
    (0.35, 0.6, TileType.GRASS),
    (0.5, 0.31, TileType.GRASS),
    (0.5, 0.3, TileType.FOREST),
    (0.59, 0.0, TileType.FOREST),
    (0.6, 0.9, TileType.HILL),
    (0.799, 0.1, TileType.HILL),
    (0.8, 0.5, TileType.MOUNTAIN),
])
def test_classify_terrain_bands(elevation, moisture, expected):
    assert classify_terrain(elevation, moisture) is expected


def test_spawn_deposits_ranges_and_empty_types():
    rng = random.Random(3)
    assert spawn_deposits(TileType.WATER, rng) == []
    assert spawn_deposits(TileType.SAND, rng) == []

    for tile_type, rows in RESOURCE_SPAWN_TABLE.items():
        bounds = {resource: (low, high) for resource, _, low, high in rows}
        for _ in range(200):
            for deposit in spawn_deposits(tile_type, rng):
                low, high = bounds[deposit.type]
                assert low <= deposit.amount <= high


def test_forest_mostly_gets_wood():
    rng = random.Random(99)
    hits = sum(
        1 for _ in range(1000)
        if any(d.type is ResourceType.WOOD for d in spawn_deposits(TileType.FOREST, rng))
    )
    assert 700 < hits < 900


# ---------------------------------------------------------------- generation

def test_generation_is_deterministic():
    a = generate_world(seed=42, width=40, height=30)
    b = generate_world(seed=42, width=40, height=30)
    assert a.tiles == b.tiles


def test_different_seeds_differ():
    a = generate_world(seed=1, width=40, height=30)
    b = generate_world(seed=2, width=40, height=30)
    assert a.tiles != b.tiles


def test_generated_world_invariants():
    world = TerrainGenerator(seed=1234, width=60, height=40).generate()
    assert world.width == 60 and world.height == 40
    assert len(world.tiles) == 40 and all(len(row) == 60 for row in world.tiles)
    assert world.elevation.shape == (40, 60)

    for pos in world.iter_positions():
        tile = world.get_tile(pos)
        if world.elevation[pos.y, pos.x] < 0.3:
            assert tile.type is TileType.WATER
        for deposit in tile.resources:
            assert deposit.amount >= 0
        if tile.type in (TileType.WATER, TileType.SAND):
            assert tile.resources == []


def test_generator_without_seed_picks_one():
    gen = TerrainGenerator(width=5, height=5)
    assert 1 <= gen.seed <= 100000


# ---------------------------------------------------------------- queries

def test_get_tile_bounds():
    world = make_world(4, 3)
    assert world.get_tile(Position(3, 2)) is not None
    assert world.get_tile(Position(4, 0)) is None
    assert world.get_tile(Position(0, 3)) is None
    assert world.get_tile(Position(-1, 0)) is None


def test_adjacent_tiles_order_and_edges():
    world = make_world(3, 3)
    world.tiles[0][1].type = TileType.HILL      # north of centre
    world.tiles[2][1].type = TileType.SAND      # south
    world.tiles[1][0].type = TileType.FOREST    # west
    world.tiles[1][2].type = TileType.MOUNTAIN  # east
    types = [t.type for t in world.get_adjacent_tiles(Position(1, 1))]
    assert types == [TileType.HILL, TileType.SAND, TileType.FOREST, TileType.MOUNTAIN]

    assert len(world.get_adjacent_tiles(Position(0, 0))) == 2


def test_passability():
    assert not is_passable(Tile(TileType.WATER))
    for tile_type in TileType:
        if tile_type is not TileType.WATER:
            assert is_passable(Tile(tile_type))


def test_find_passable_nearby_scan_order():
    everything = {(x, y) for x in range(7) for y in range(7)}
    world = make_world(7, 7, water=everything - {(4, 3), (2, 2)})
    # Ring 1 is scanned row by row from the top, so (2, 2) beats the closer-looking (4, 3).
    assert world.find_passable_nearby(Position(3, 3)) == Position(2, 2)


def test_find_passable_nearby_outer_ring_and_miss():
    everything = {(x, y) for x in range(7) for y in range(7)}
    world = make_world(7, 7, water=everything - {(6, 6)})
    assert world.find_passable_nearby(Position(3, 3), radius=2) is None
    assert world.find_passable_nearby(Position(3, 3), radius=3) == Position(6, 6)


def test_world_dict_round_trip():
    world = generate_world(seed=8, width=12, height=9)
    world.tiles[2][3].tribe_id = 5
    restored = World.from_dict(world.to_dict())
    assert restored == world
    assert restored.get_tile(Position(3, 2)).tribe_id == 5


def test_find_deposit():
    tile = Tile(TileType.FOREST, [Deposit(ResourceType.WOOD, 60)])
    assert tile.find_deposit(ResourceType.WOOD).amount == 60
    assert tile.find_deposit(ResourceType.METAL) is None
