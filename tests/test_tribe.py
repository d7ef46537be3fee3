import random

import pytest

from simcore.tribe import Tribe, TribeActionType, TribeConfig, TribeState
from terrain.world import Deposit, Position, ResourceType, Tile, TileType, World


class FixedRandom(random.Random):
    """Random whose random() always returns the same roll."""

    def __init__(self, roll):
        super().__init__(0)
        self.roll = roll

    def random(self):
        return self.roll


def make_world(width=5, height=5, water=()):
    tiles = [
        [Tile(TileType.WATER if (x, y) in water else TileType.GRASS) for x in range(width)]
        for y in range(height)
    ]
    return World(width=width, height=height, tiles=tiles)


def make_tribe(tribe_id=1, population=100, pos=(2, 2), is_player=True, food=100, rng=None):
    config = TribeConfig(id=tribe_id, name=f"Tribe{tribe_id}", is_player=is_player, color="#ffffff")
    tribe = Tribe(config, Position(*pos), population=population, rng=rng or random.Random(1))
    tribe.resources[ResourceType.FOOD] = food
    return tribe


# ---------------------------------------------------------------- construction

def test_new_tribe_defaults():
    config = TribeConfig(id=7, name="Ashkin", is_player=False, color="#123456")
    tribe = Tribe(config, Position(0, 0), rng=random.Random(5))
    assert 10 <= tribe.population < 500
    assert tribe.resources == {
        ResourceType.FOOD: 100,
        ResourceType.WOOD: 0,
        ResourceType.STONE: 0,
        ResourceType.METAL: 0,
    }
    assert tribe.state is TribeState.NOMADIC
    assert tribe.relations == {}
    assert tribe.discovered_techs == set()
    assert tribe.home_tile is None
    assert tribe.id == 7 and tribe.name == "Ashkin" and not tribe.is_player


# ---------------------------------------------------------------- tick

def test_starving_small_tribe_keeps_population():
    world = make_world()
    tribe = make_tribe(population=40, food=0)
    tribe.tick(world)
    assert tribe.population == 40
    assert tribe.resources[ResourceType.FOOD] == 0


def test_food_shortfall_resets_stock_and_blocks_births():
    world = make_world()
    tribe = make_tribe(population=100, food=60)
    tribe.tick(world)
    assert tribe.population == 100
    assert tribe.resources[ResourceType.FOOD] == 0


def test_births_and_deaths_with_plenty_of_food():
    world = make_world()
    tribe = make_tribe(population=1000, food=2000)
    tribe.tick(world)
    # 1000 eaten, 1000 left > 50 -> +2 births, then floor(1002 * 0.001) = 1 death
    assert tribe.resources[ResourceType.FOOD] == 1000
    assert tribe.population == 1001


def test_starvation_loss():
    world = make_world()
    tribe = make_tribe(population=1000, food=0)
    tribe.tick(world)
    assert tribe.population == 995


def test_population_never_negative():
    world = make_world()
    tribe = make_tribe(population=3, food=0)
    for _ in range(500):
        tribe.tick(world)
        assert tribe.population >= 0


def test_tick_decrements_cooldown():
    world = make_world()
    tribe = make_tribe()
    tribe.action_cooldown = 3
    tribe.tick(world)
    assert tribe.action_cooldown == 2


def test_extinct_tribe_takes_no_action():
    world = make_world()
    tribe = make_tribe(population=0, is_player=False)
    tribe.tick(world)
    assert tribe.last_action is None
    assert tribe.position == Position(2, 2)


def test_ai_gathers_first_non_empty_deposit():
    world = make_world()
    world.tiles[2][2].resources = [Deposit(ResourceType.FOOD, 0), Deposit(ResourceType.WOOD, 80)]
    tribe = make_tribe(population=100, food=500, is_player=False)
    tribe.tick(world)
    assert tribe.last_action is TribeActionType.GATHER
    assert tribe.resources[ResourceType.WOOD] == 50
    assert world.tiles[2][2].resources[1].amount == 30
    assert tribe.action_cooldown == 5


def test_ai_explores_when_nothing_to_gather():
    world = make_world()
    tribe = make_tribe(population=100, food=500, is_player=False)
    tribe.tick(world)
    assert tribe.last_action is TribeActionType.EXPLORE
    assert tribe.action_cooldown == 3
    assert abs(tribe.position.x - 2) + abs(tribe.position.y - 2) == 1


def test_player_tribe_has_no_ai():
    world = make_world()
    world.tiles[2][2].resources = [Deposit(ResourceType.FOOD, 80)]
    tribe = make_tribe(population=100, food=500, is_player=True)
    tribe.tick(world)
    assert tribe.last_action is None
    assert world.tiles[2][2].resources[0].amount == 80


# ---------------------------------------------------------------- actions

def test_gather_takes_half_population_capped_by_deposit():
    world = make_world()
    world.tiles[2][2].resources = [Deposit(ResourceType.STONE, 100)]
    tribe = make_tribe(population=50)
    assert tribe.gather_resources(world, ResourceType.STONE) == 25
    assert world.tiles[2][2].resources[0].amount == 75
    assert tribe.resources[ResourceType.STONE] == 25

    world.tiles[2][2].resources[0].amount = 10
    assert tribe.gather_resources(world, ResourceType.STONE) == 10
    assert world.tiles[2][2].resources[0].amount == 0
    assert tribe.gather_resources(world, ResourceType.STONE) == 0


def test_gather_missing_deposit_is_noop():
    world = make_world()
    tribe = make_tribe()
    assert tribe.gather_resources(world, ResourceType.METAL) == 0
    assert tribe.action_cooldown == 0
    assert tribe.last_action is None


def test_gather_never_leaves_negative_deposit():
    rng = random.Random(17)
    for _ in range(200):
        world = make_world()
        amount = rng.randint(0, 120)
        world.tiles[2][2].resources = [Deposit(ResourceType.FOOD, amount)]
        tribe = make_tribe(population=rng.randint(0, 400))
        taken = tribe.gather_resources(world, ResourceType.FOOD)
        left = world.tiles[2][2].resources[0].amount
        assert left >= 0
        assert taken + left == amount


def test_move_success_sets_cooldown():
    world = make_world()
    tribe = make_tribe()
    assert tribe.move(world, (1, 0))
    assert tribe.position == Position(3, 2)
    assert tribe.action_cooldown == 2
    assert tribe.last_action is TribeActionType.MOVE


def test_move_blocked_by_water_and_edges():
    world = make_world(water={(2, 1)})
    tribe = make_tribe(pos=(2, 2))
    assert not tribe.move(world, (0, -1))
    edge = make_tribe(pos=(0, 0))
    assert not edge.move(world, (-1, 0))
    assert edge.position == Position(0, 0)


@pytest.mark.parametrize("roll, delta", [(0.1, 5), (0.29, 5), (0.3, -10), (0.49, -10), (0.5, 0), (0.9, 0)])
def test_move_into_owned_tile_triggers_encounter(roll, delta):
    world = make_world()
    world.tiles[2][3].tribe_id = 9
    tribe = make_tribe(pos=(2, 2), rng=FixedRandom(roll))
    assert not tribe.move(world, (1, 0))
    assert tribe.position == Position(2, 2)
    assert tribe.get_relation(9) == delta


def test_move_onto_own_tile_is_allowed():
    world = make_world()
    world.tiles[2][3].tribe_id = 1
    tribe = make_tribe(tribe_id=1)
    assert tribe.move(world, (1, 0))


def test_explore_fails_when_surrounded_by_water():
    world = make_world(water={(2, 1), (2, 3), (1, 2), (3, 2)})
    tribe = make_tribe()
    assert not tribe.explore(world)
    assert tribe.position == Position(2, 2)


def test_settle_requires_population():
    world = make_world()
    tribe = make_tribe(population=25)
    assert not tribe.settle(world)
    assert tribe.state is TribeState.NOMADIC


def test_settle_claims_home_tile_once():
    world = make_world()
    tribe = make_tribe(population=30)
    assert tribe.settle(world)
    assert tribe.state is TribeState.SETTLING
    assert tribe.home_tile == Position(2, 2)
    assert world.tiles[2][2].tribe_id == tribe.id
    assert not tribe.settle(world)


# ---------------------------------------------------------------- state & relations

def test_state_transitions():
    tribe = make_tribe()
    assert not tribe.transition(TribeState.EXPANDING)
    assert tribe.transition(TribeState.AT_WAR)
    assert not tribe.transition(TribeState.SETTLING)
    assert tribe.transition(TribeState.ALLIANCE)
    assert tribe.transition(TribeState.AT_WAR)
    assert tribe.state is TribeState.AT_WAR


@pytest.mark.parametrize("diplomacy", [TribeState.AT_WAR, TribeState.ALLIANCE])
def test_diplomatic_state_blocks_settling(diplomacy):
    world = make_world()
    tribe = make_tribe()
    assert tribe.transition(diplomacy)
    assert not tribe.settle(world)
    assert tribe.home_tile is None
    assert world.get_tile(tribe.position).tribe_id is None


def test_settled_tribe_going_to_war_keeps_home_tile():
    world = make_world()
    tribe = make_tribe()
    assert tribe.settle(world)
    assert tribe.transition(TribeState.AT_WAR)
    assert tribe.state is TribeState.AT_WAR
    assert tribe.home_tile == Position(2, 2)
    assert not tribe.settle(world)


def test_relations_stay_clamped():
    rng = random.Random(4)
    tribe = make_tribe()
    for _ in range(1000):
        value = tribe.add_relation(2, rng.randint(-60, 60))
        assert -100 <= value <= 100
        assert -100 <= tribe.get_relation(2) <= 100
    assert tribe.get_relation(3) == 0


def test_techs():
    tribe = make_tribe()
    assert not tribe.has_tech("fire")
    tribe.discover_tech("fire")
    tribe.discover_tech("fire")
    assert tribe.has_tech("fire")
    assert tribe.discovered_techs == {"fire"}


# ---------------------------------------------------------------- serialization

def test_round_trip():
    world = make_world()
    tribe = make_tribe(population=123, food=77)
    tribe.resources[ResourceType.METAL] = 4
    tribe.add_relation(5, -30)
    tribe.add_relation(2, 40)
    tribe.discover_tech("fire")
    tribe.discover_tech("basic_tools")
    tribe.settle(world)
    tribe.action_cooldown = 4

    data = tribe.to_dict()
    assert data["relations"] == [[2, 40], [5, -30]]
    assert data["discovered_techs"] == ["basic_tools", "fire"]

    restored = Tribe.from_dict(data)
    assert restored.config == tribe.config
    assert restored.population == 123
    assert restored.resources == tribe.resources
    assert restored.state is TribeState.SETTLING
    assert restored.relations == tribe.relations
    assert restored.discovered_techs == tribe.discovered_techs
    assert restored.action_cooldown == 4
    assert restored.home_tile == Position(2, 2)
    assert restored.last_action is TribeActionType.SETTLE
