"""
TribeSim: simcore/tribe.py
Tribe entity: demographics, gathering, movement, diplomacy, tech set.
=====================================================================
Stack:       Python 3.11+
Status:      Core entity.

Tick order (one call to Tribe.tick)
-----------------------------------
  1. food consumption (shortfall -> starvation loss, food reset to 0)
  2. births, only while food stock > BIRTH_FOOD_THRESHOLD
  3. baseline deaths, population floored at 0
  4. cooldown decrement
  5. extinct tribes stop here
  6. non-player tribes with no cooldown take one AI action

State machine
-------------
  nomadic  -> settling | at_war | alliance
  settling -> at_war | alliance
  alliance -> at_war
  at_war   -> alliance
  expanding is reserved: declared for saves and display, reached by no
  transition.

  One field carries both settlement and diplomacy. A nomadic tribe that
  is drawn into a war or accepts an alliance can no longer settle, and a
  settling tribe that goes to war leaves the settling state; its
  home_tile is kept.
"""

from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Set, Tuple

from simcore.config import (
    BIRTH_FOOD_THRESHOLD,
    BIRTH_RATE,
    DEATH_RATE,
    ENCOUNTER_CONFLICT_CHANCE,
    ENCOUNTER_CONFLICT_DELTA,
    ENCOUNTER_TRADE_CHANCE,
    ENCOUNTER_TRADE_DELTA,
    EXPLORE_COOLDOWN,
    FOOD_CONSUMPTION,
    GATHER_COOLDOWN,
    GATHER_FACTOR,
    MAX_TRIBE_SIZE,
    MIN_TRIBE_SIZE,
    MOVE_COOLDOWN,
    RELATION_MAX,
    RELATION_MIN,
    SETTLE_MIN_POPULATION,
    STARTING_FOOD,
    STARVATION_RATE,
)
from terrain.world import CARDINAL_DIRECTIONS, Position, ResourceType, World, is_passable

logger = logging.getLogger(__name__)


class TribeState(str, Enum):
    NOMADIC = "nomadic"
    SETTLING = "settling"
    EXPANDING = "expanding"
    AT_WAR = "at_war"
    ALLIANCE = "alliance"


class TribeActionType(str, Enum):
    MOVE = "move"
    GATHER = "gather"
    EXPLORE = "explore"
    SETTLE = "settle"


STATE_TRANSITIONS: Dict[TribeState, Set[TribeState]] = {
    TribeState.NOMADIC: {TribeState.SETTLING, TribeState.AT_WAR, TribeState.ALLIANCE},
    TribeState.SETTLING: {TribeState.AT_WAR, TribeState.ALLIANCE},
    TribeState.ALLIANCE: {TribeState.AT_WAR},
    TribeState.AT_WAR: {TribeState.ALLIANCE},
    TribeState.EXPANDING: set(),
}


@dataclass(frozen=True)
class TribeConfig:
    id: int
    name: str
    is_player: bool
    color: str


def clamp_relation(value: int) -> int:
    return max(RELATION_MIN, min(RELATION_MAX, value))


class Tribe:
    """
    One society. Mutated by its own tick, by player commands routed
    through the orchestrator, and by event effects.
    """

    def __init__(
        self,
        config: TribeConfig,
        position: Position,
        population: Optional[int] = None,
        rng: Optional[random.Random] = None,
    ):
        self.rng = rng if rng is not None else random.Random()
        self.config = config
        if population is None:
            population = self.rng.randrange(MIN_TRIBE_SIZE, MAX_TRIBE_SIZE)
        self.population: int = population
        self.position: Position = position
        self.resources: Dict[ResourceType, int] = {
            ResourceType.FOOD: STARTING_FOOD,
            ResourceType.WOOD: 0,
            ResourceType.STONE: 0,
            ResourceType.METAL: 0,
        }
        self.state: TribeState = TribeState.NOMADIC
        self.relations: Dict[int, int] = {}
        self.discovered_techs: Set[str] = set()
        self.action_cooldown: int = 0
        self.last_action: Optional[TribeActionType] = None
        self.home_tile: Optional[Position] = None

    def __repr__(self) -> str:
        return f"Tribe(id={self.id}, name={self.name!r}, population={self.population}, state={self.state.value})"

    @property
    def id(self) -> int:
        return self.config.id

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def is_player(self) -> bool:
        return self.config.is_player

    @property
    def is_extinct(self) -> bool:
        return self.population <= 0

    # ----------------------------------------------------------
    # Per-tick update
    # ----------------------------------------------------------

    def tick(self, world: World) -> None:
        food_needed = self.population * FOOD_CONSUMPTION
        if self.resources[ResourceType.FOOD] >= food_needed:
            self.resources[ResourceType.FOOD] -= food_needed
        else:
            starvation_loss = math.floor(self.population * STARVATION_RATE)
            self.population = max(0, self.population - starvation_loss)
            self.resources[ResourceType.FOOD] = 0

        # Births read the post-consumption stock
        if self.resources[ResourceType.FOOD] > BIRTH_FOOD_THRESHOLD:
            self.population += math.floor(self.population * BIRTH_RATE)

        deaths = math.floor(self.population * DEATH_RATE)
        self.population = max(0, self.population - deaths)

        if self.action_cooldown > 0:
            self.action_cooldown -= 1

        if self.is_extinct:
            return

        if not self.is_player and self.action_cooldown <= 0:
            self._ai_step(world)

    def _ai_step(self, world: World) -> None:
        """
        Gathers the first deposit on the tile that still holds something;
        exhausted deposits are passed over, and with nothing left to take
        the tribe explores instead of idling on an empty tile.
        """
        tile = world.get_tile(self.position)
        if tile is None:
            return

        for deposit in tile.resources:
            if deposit.amount > 0:
                self.gather_resources(world, deposit.type)
                return
        self.explore(world)

    # ----------------------------------------------------------
    # Actions
    # ----------------------------------------------------------

    def gather_resources(self, world: World, resource_type: ResourceType) -> int:
        """Harvests from the current tile. Returns the amount taken (0 on no-op)."""
        tile = world.get_tile(self.position)
        if tile is None:
            return 0

        deposit = tile.find_deposit(ResourceType(resource_type))
        if deposit is None or deposit.amount <= 0:
            return 0

        amount = min(deposit.amount, math.floor(self.population * GATHER_FACTOR))
        deposit.amount -= amount
        self.resources[deposit.type] += amount
        self.last_action = TribeActionType.GATHER
        self.action_cooldown = GATHER_COOLDOWN
        return amount

    def explore(self, world: World) -> bool:
        """Random single step onto any passable neighbour. Does not trigger encounters."""
        directions = list(CARDINAL_DIRECTIONS)
        self.rng.shuffle(directions)

        for dx, dy in directions:
            candidate = self.position.offset(dx, dy)
            tile = world.get_tile(candidate)
            if tile is not None and is_passable(tile):
                self.position = candidate
                self.last_action = TribeActionType.EXPLORE
                self.action_cooldown = EXPLORE_COOLDOWN
                return True
        return False

    def move(self, world: World, direction: Tuple[int, int]) -> bool:
        dx, dy = direction
        candidate = self.position.offset(dx, dy)
        tile = world.get_tile(candidate)
        if tile is None or not is_passable(tile):
            return False

        if tile.tribe_id is not None and tile.tribe_id != self.id:
            self.handle_encounter(tile.tribe_id)
            return False

        self.position = candidate
        self.last_action = TribeActionType.MOVE
        self.action_cooldown = MOVE_COOLDOWN
        return True

    def handle_encounter(self, other_id: int) -> int:
        """One roll: trade improves the relation, conflict worsens it, else nothing. Returns the delta."""
        roll = self.rng.random()
        if roll < ENCOUNTER_TRADE_CHANCE:
            delta = ENCOUNTER_TRADE_DELTA
        elif roll < ENCOUNTER_CONFLICT_CHANCE:
            delta = ENCOUNTER_CONFLICT_DELTA
        else:
            return 0
        self.add_relation(other_id, delta)
        logger.debug("Tribe %d met tribe %d: relation %+d", self.id, other_id, delta)
        return delta

    def settle(self, world: World) -> bool:
        if self.state is not TribeState.NOMADIC:
            return False
        if self.population < SETTLE_MIN_POPULATION:
            return False

        tile = world.get_tile(self.position)
        if tile is None or not is_passable(tile):
            return False

        self.transition(TribeState.SETTLING)
        self.home_tile = self.position
        tile.tribe_id = self.id
        self.last_action = TribeActionType.SETTLE
        return True

    def transition(self, new_state: TribeState) -> bool:
        """Moves along STATE_TRANSITIONS. Returns False for a disallowed edge."""
        new_state = TribeState(new_state)
        if new_state not in STATE_TRANSITIONS[self.state]:
            return False
        self.state = new_state
        return True

    # ----------------------------------------------------------
    # Diplomacy & tech
    # ----------------------------------------------------------

    def get_relation(self, other_id: int) -> int:
        return self.relations.get(other_id, 0)

    def add_relation(self, other_id: int, delta: int) -> int:
        value = clamp_relation(self.get_relation(other_id) + delta)
        self.relations[other_id] = value
        return value

    def discover_tech(self, tech_id: str) -> None:
        self.discovered_techs.add(tech_id)

    def has_tech(self, tech_id: str) -> bool:
        return tech_id in self.discovered_techs

    # ----------------------------------------------------------
    # Serialization
    # ----------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "config": {
                "id": self.config.id,
                "name": self.config.name,
                "is_player": self.config.is_player,
                "color": self.config.color,
            },
            "population": self.population,
            "position": self.position.to_dict(),
            "resources": {r.value: amount for r, amount in self.resources.items()},
            "state": self.state.value,
            "relations": [[other_id, value] for other_id, value in sorted(self.relations.items())],
            "discovered_techs": sorted(self.discovered_techs),
            "action_cooldown": self.action_cooldown,
            "last_action": self.last_action.value if self.last_action else None,
            "home_tile": self.home_tile.to_dict() if self.home_tile else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], rng: Optional[random.Random] = None) -> "Tribe":
        config = TribeConfig(**data["config"])
        tribe = cls(config, Position.from_dict(data["position"]), population=int(data["population"]), rng=rng)
        tribe.resources = {ResourceType(k): int(v) for k, v in data["resources"].items()}
        for resource in ResourceType:
            tribe.resources.setdefault(resource, 0)
        tribe.state = TribeState(data["state"])
        tribe.relations = {int(other_id): int(value) for other_id, value in data["relations"]}
        tribe.discovered_techs = set(data["discovered_techs"])
        tribe.action_cooldown = int(data["action_cooldown"])
        last_action = data.get("last_action")
        tribe.last_action = TribeActionType(last_action) if last_action else None
        home_tile = data.get("home_tile")
        tribe.home_tile = Position.from_dict(home_tile) if home_tile else None
        return tribe
