"""
TribeSim: simcore/events.py
Event Generator: weighted random narrative events with a pending queue.
=======================================================================
Stack:       Python 3.11+ | Pydantic v2
Status:      Core system.

Architecture notes
------------------
- Archetypes are an EventType enum. Weights live in the static
  EVENT_WEIGHTS table; select_archetype() is a plain cumulative draw.
- Effects are data (EventEffect), never closures. They name tribes by id
  and are applied by apply_effects() against whatever tribe collection
  the caller passes in, so a tribe that has left the live collection is
  skipped instead of being mutated.
- Choice-less events (disease, drought, birth boom) take effect when
  they are generated; their `effects` list records what was applied and
  resolving them only acknowledges. Events with choices wait in the
  pending queue until resolved or expired.
- War declarations move both tribes to at_war at generation time and
  carry no further mechanical effect.

Relation gates
--------------
  raid      relation(target -> attacker) <= RAID_RELATION_MAX     (-50)
  alliance  relation(target -> partner)  >= ALLIANCE_RELATION_MIN (20)
  war       relation(target -> enemy)    <= WAR_RELATION_MAX      (-70)
"""

from __future__ import annotations

import logging
import math
import random
import time
from enum import Enum
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from pydantic import BaseModel, Field

from simcore.config import EVENT_CHANCE, EVENT_TTL
from simcore.tribe import Tribe, TribeState
from terrain.world import ResourceType, World

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    HARVEST = "harvest"
    DISEASE = "disease"
    DISCOVERY = "discovery"
    BIRTH_BOOM = "birth_boom"
    DROUGHT = "drought"
    RAID = "raid"
    ALLIANCE = "alliance"
    WAR = "war"


# ============================================================
# DESIGN VARIABLE DEFAULTS
# ============================================================

EVENT_WEIGHTS: Tuple[Tuple[EventType, float], ...] = (
    (EventType.HARVEST, 0.20),
    (EventType.DISEASE, 0.15),
    (EventType.DISCOVERY, 0.15),
    (EventType.BIRTH_BOOM, 0.15),
    (EventType.DROUGHT, 0.15),
    (EventType.RAID, 0.10),
    (EventType.ALLIANCE, 0.05),
    (EventType.WAR, 0.05),
)

PRIORITY_NEUTRAL: int = 5
PRIORITY_HARMFUL: int = 7
PRIORITY_RAID: int = 8
PRIORITY_WAR: int = 9

RAID_RELATION_MAX: int = -50
ALLIANCE_RELATION_MIN: int = 20
WAR_RELATION_MAX: int = -70

HARVEST_FACTOR: float = 2.0          # bonus food = floor(pop * 2)
DISEASE_FACTOR: float = 0.1          # loss = floor(pop * 0.1) + 1
BIRTH_BOOM_FACTOR: float = 0.15      # gain = floor(pop * 0.15) + 2
DROUGHT_FACTOR: float = 0.3          # food loss = floor(food * 0.3)

RAID_ATTACK_FACTOR: float = 0.3
RAID_DEFENSE_FACTOR: float = 0.4
RAID_PLUNDER_CAP: int = 50
TRIBUTE_CAP: int = 30
TRIBUTE_RELATION_BONUS: int = 10
ALLIANCE_ACCEPT_BONUS: int = 30
ALLIANCE_DECLINE_PENALTY: int = -10


# ============================================================
# EFFECT & EVENT MODELS
# ============================================================

class EffectOp(str, Enum):
    ADD_FOOD = "add_food"                # tribe += amount, floored at 0
    ADD_POPULATION = "add_population"    # tribe += amount, floored at 0
    ADD_RELATION = "add_relation"        # tribe's view of other += amount
    TRANSFER_FOOD = "transfer_food"      # min(amount, tribe food) tribe -> other
    RAID_DEFENSE = "raid_defense"        # tribe defends against other; loser pays up to amount
    SET_STATE = "set_state"              # tribe transitions to state


class EventEffect(BaseModel):
    op: EffectOp
    tribe_id: int
    other_id: Optional[int] = None
    amount: int = 0
    state: Optional[TribeState] = None


class EventChoice(BaseModel):
    label: str
    effects: List[EventEffect] = Field(default_factory=list)


class GameEvent(BaseModel):
    id: str
    type: EventType
    title: str
    description: str
    tribe_id: Optional[int] = None
    other_tribe_id: Optional[int] = None
    timestamp: float
    priority: int = Field(ge=1, le=10)
    resolved: bool = False
    choices: List[EventChoice] = Field(default_factory=list)
    effects: List[EventEffect] = Field(default_factory=list)


# ============================================================
# PURE HELPERS
# ============================================================

def select_archetype(roll: float, weights: Sequence[Tuple[EventType, float]] = EVENT_WEIGHTS) -> EventType:
    """Cumulative-weight draw. A roll past the total (rounding) falls back to the first entry."""
    cumulative = 0.0
    for event_type, weight in weights:
        cumulative += weight
        if roll < cumulative:
            return event_type
    return weights[0][0]


def is_eligible(event_type: EventType, relation: int) -> bool:
    """Relation gate for the two-tribe archetypes. Single-tribe archetypes always pass."""
    if event_type is EventType.RAID:
        return relation <= RAID_RELATION_MAX
    if event_type is EventType.ALLIANCE:
        return relation >= ALLIANCE_RELATION_MIN
    if event_type is EventType.WAR:
        return relation <= WAR_RELATION_MAX
    return True


def apply_effect(effect: EventEffect, tribes: Mapping[int, Tribe]) -> bool:
    """
    Applies one effect against the given collection. Returns False (and
    changes nothing) when a referenced tribe is not in the collection.
    """
    tribe = tribes.get(effect.tribe_id)
    other = tribes.get(effect.other_id) if effect.other_id is not None else None
    if tribe is None or (effect.other_id is not None and other is None):
        logger.info("Skipping %s effect: tribe %s / %s no longer present", effect.op.value, effect.tribe_id, effect.other_id)
        return False

    food = ResourceType.FOOD
    if effect.op is EffectOp.ADD_FOOD:
        tribe.resources[food] = max(0, tribe.resources[food] + effect.amount)
    elif effect.op is EffectOp.ADD_POPULATION:
        tribe.population = max(0, tribe.population + effect.amount)
    elif effect.op is EffectOp.ADD_RELATION:
        tribe.add_relation(effect.other_id, effect.amount)
    elif effect.op is EffectOp.TRANSFER_FOOD:
        paid = min(effect.amount, tribe.resources[food])
        tribe.resources[food] -= paid
        other.resources[food] += paid
    elif effect.op is EffectOp.RAID_DEFENSE:
        attack = other.population * RAID_ATTACK_FACTOR
        defense = tribe.population * RAID_DEFENSE_FACTOR
        if attack > defense:
            stolen = min(effect.amount, tribe.resources[food])
            tribe.resources[food] -= stolen
            other.resources[food] += stolen
    elif effect.op is EffectOp.SET_STATE:
        if effect.state is not None:
            tribe.transition(effect.state)
    return True


def apply_effects(effects: Sequence[EventEffect], tribes: Mapping[int, Tribe]) -> int:
    """Applies effects in order; returns how many were applied."""
    return sum(1 for effect in effects if apply_effect(effect, tribes))


# ============================================================
# EVENT GENERATOR
# ============================================================

class EventGenerator:
    """
    Rolls events for living tribes each tick and keeps the pending queue.

    clock returns wall-clock seconds; it stamps events and drives the
    time-to-live sweep. Inject a fake clock in tests.
    """

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.time,
        event_chance: float = EVENT_CHANCE,
        ttl: float = EVENT_TTL,
    ):
        self.rng = rng if rng is not None else random.Random()
        self.clock = clock
        self.event_chance = event_chance
        self.ttl = ttl
        self.queue: List[GameEvent] = []
        self.counter = 0
        self._builders: Dict[EventType, Callable[[Tribe, Mapping[int, Tribe]], Optional[GameEvent]]] = {
            EventType.HARVEST: self._create_harvest,
            EventType.DISEASE: self._create_disease,
            EventType.DISCOVERY: self._create_discovery,
            EventType.BIRTH_BOOM: self._create_birth_boom,
            EventType.DROUGHT: self._create_drought,
            EventType.RAID: self._create_raid,
            EventType.ALLIANCE: self._create_alliance,
            EventType.WAR: self._create_war,
        }

    # ----------------------------------------------------------
    # Public API
    # ----------------------------------------------------------

    def generate_tick(self, world: World, tribes: Mapping[int, Tribe]) -> List[GameEvent]:
        new_events = []
        for tribe in list(tribes.values()):
            if tribe.population <= 0:
                continue
            if self.rng.random() < self.event_chance:
                event = self.generate_for(tribe, tribes, select_archetype(self.rng.random()))
                if event is not None:
                    new_events.append(event)

        self.collect_garbage()
        return new_events

    def generate_for(self, tribe: Tribe, tribes: Mapping[int, Tribe], event_type: EventType) -> Optional[GameEvent]:
        """Runs one archetype for one tribe. Queues and returns the event, or None if it declined."""
        event = self._builders[EventType(event_type)](tribe, tribes)
        if event is not None:
            self.queue.append(event)
        return event

    def collect_garbage(self) -> None:
        now = self.clock()
        self.queue = [e for e in self.queue if not e.resolved and now - e.timestamp < self.ttl]

    def pending_events(self) -> List[GameEvent]:
        return [e for e in self.queue if not e.resolved]

    def get_event(self, event_id: str) -> Optional[GameEvent]:
        for event in self.queue:
            if event.id == event_id:
                return event
        return None

    def resolve_event(self, event_id: str, choice_index: Optional[int], tribes: Mapping[int, Tribe]) -> bool:
        """
        Applies the chosen option (if the index is valid) against `tribes`
        and marks the event resolved. Returns False for a missing or
        already-resolved event.
        """
        event = self.get_event(event_id)
        if event is None or event.resolved:
            return False

        if choice_index is not None and 0 <= choice_index < len(event.choices):
            apply_effects(event.choices[choice_index].effects, tribes)

        event.resolved = True
        return True

    def restore(self, events: Sequence[GameEvent], counter: Optional[int] = None) -> None:
        """Reloads the queue from a snapshot; the id counter never goes backwards."""
        self.queue = [e.model_copy(deep=True) for e in events]
        highest = max((_event_number(e.id) for e in self.queue), default=0)
        self.counter = max(counter or 0, highest)

    # ----------------------------------------------------------
    # Archetype builders
    # ----------------------------------------------------------

    def _new_event(
        self,
        event_type: EventType,
        title: str,
        description: str,
        tribe: Tribe,
        priority: int,
        choices: Sequence[EventChoice] = (),
        effects: Sequence[EventEffect] = (),
        other: Optional[Tribe] = None,
    ) -> GameEvent:
        self.counter += 1
        return GameEvent(
            id=f"event_{self.counter}",
            type=event_type,
            title=title,
            description=description,
            tribe_id=tribe.id,
            other_tribe_id=other.id if other is not None else None,
            timestamp=self.clock(),
            priority=priority,
            choices=list(choices),
            effects=list(effects),
        )

    def _pick_other(self, tribe: Tribe, tribes: Mapping[int, Tribe]) -> Optional[Tribe]:
        others = [t for t in tribes.values() if t.id != tribe.id and t.population > 0]
        if not others:
            return None
        return self.rng.choice(others)

    def _create_harvest(self, tribe: Tribe, tribes: Mapping[int, Tribe]) -> GameEvent:
        bonus = math.floor(tribe.population * HARVEST_FACTOR)
        return self._new_event(
            EventType.HARVEST,
            "Bountiful Harvest",
            f'The "{tribe.name}" brought in a rich harvest! +{bonus} food.',
            tribe,
            PRIORITY_NEUTRAL,
            choices=[
                EventChoice(
                    label="Gather the harvest",
                    effects=[EventEffect(op=EffectOp.ADD_FOOD, tribe_id=tribe.id, amount=bonus)],
                )
            ],
        )

    def _create_disease(self, tribe: Tribe, tribes: Mapping[int, Tribe]) -> GameEvent:
        loss = math.floor(tribe.population * DISEASE_FACTOR) + 1
        effects = [EventEffect(op=EffectOp.ADD_POPULATION, tribe_id=tribe.id, amount=-loss)]
        apply_effects(effects, tribes)
        return self._new_event(
            EventType.DISEASE,
            "Disease",
            f'Sickness broke out among the "{tribe.name}"! {loss} died.',
            tribe,
            PRIORITY_HARMFUL,
            effects=effects,
        )

    def _create_discovery(self, tribe: Tribe, tribes: Mapping[int, Tribe]) -> GameEvent:
        return self._new_event(
            EventType.DISCOVERY,
            "Discovery",
            f'The "{tribe.name}" found new lands!',
            tribe,
            PRIORITY_NEUTRAL,
        )

    def _create_birth_boom(self, tribe: Tribe, tribes: Mapping[int, Tribe]) -> GameEvent:
        gain = math.floor(tribe.population * BIRTH_BOOM_FACTOR) + 2
        effects = [EventEffect(op=EffectOp.ADD_POPULATION, tribe_id=tribe.id, amount=gain)]
        apply_effects(effects, tribes)
        return self._new_event(
            EventType.BIRTH_BOOM,
            "Baby Boom",
            f'A wave of births among the "{tribe.name}"! +{gain} people.',
            tribe,
            PRIORITY_NEUTRAL,
            effects=effects,
        )

    def _create_drought(self, tribe: Tribe, tribes: Mapping[int, Tribe]) -> GameEvent:
        loss = math.floor(tribe.resources[ResourceType.FOOD] * DROUGHT_FACTOR)
        effects = [EventEffect(op=EffectOp.ADD_FOOD, tribe_id=tribe.id, amount=-loss)]
        apply_effects(effects, tribes)
        return self._new_event(
            EventType.DROUGHT,
            "Drought",
            f'Drought struck the "{tribe.name}"! {loss} food lost.',
            tribe,
            PRIORITY_HARMFUL,
            effects=effects,
        )

    def _create_raid(self, tribe: Tribe, tribes: Mapping[int, Tribe]) -> Optional[GameEvent]:
        attacker = self._pick_other(tribe, tribes)
        if attacker is None or not is_eligible(EventType.RAID, tribe.get_relation(attacker.id)):
            return None

        return self._new_event(
            EventType.RAID,
            "Raid!",
            f'The "{attacker.name}" raided the "{tribe.name}"!',
            tribe,
            PRIORITY_RAID,
            other=attacker,
            choices=[
                EventChoice(
                    label="Defend",
                    effects=[EventEffect(op=EffectOp.RAID_DEFENSE, tribe_id=tribe.id, other_id=attacker.id, amount=RAID_PLUNDER_CAP)],
                ),
                EventChoice(
                    label="Pay tribute",
                    effects=[
                        EventEffect(op=EffectOp.TRANSFER_FOOD, tribe_id=tribe.id, other_id=attacker.id, amount=TRIBUTE_CAP),
                        EventEffect(op=EffectOp.ADD_RELATION, tribe_id=tribe.id, other_id=attacker.id, amount=TRIBUTE_RELATION_BONUS),
                    ],
                ),
            ],
        )

    def _create_alliance(self, tribe: Tribe, tribes: Mapping[int, Tribe]) -> Optional[GameEvent]:
        partner = self._pick_other(tribe, tribes)
        if partner is None or not is_eligible(EventType.ALLIANCE, tribe.get_relation(partner.id)):
            return None

        return self._new_event(
            EventType.ALLIANCE,
            "Alliance Offered",
            f'The "{partner.name}" propose an alliance to the "{tribe.name}"!',
            tribe,
            PRIORITY_NEUTRAL,
            other=partner,
            choices=[
                EventChoice(
                    label="Accept",
                    effects=[
                        EventEffect(op=EffectOp.ADD_RELATION, tribe_id=tribe.id, other_id=partner.id, amount=ALLIANCE_ACCEPT_BONUS),
                        EventEffect(op=EffectOp.ADD_RELATION, tribe_id=partner.id, other_id=tribe.id, amount=ALLIANCE_ACCEPT_BONUS),
                        EventEffect(op=EffectOp.SET_STATE, tribe_id=tribe.id, state=TribeState.ALLIANCE),
                        EventEffect(op=EffectOp.SET_STATE, tribe_id=partner.id, state=TribeState.ALLIANCE),
                    ],
                ),
                EventChoice(
                    label="Decline",
                    effects=[EventEffect(op=EffectOp.ADD_RELATION, tribe_id=tribe.id, other_id=partner.id, amount=ALLIANCE_DECLINE_PENALTY)],
                ),
            ],
        )

    def _create_war(self, tribe: Tribe, tribes: Mapping[int, Tribe]) -> Optional[GameEvent]:
        enemy = self._pick_other(tribe, tribes)
        if enemy is None or not is_eligible(EventType.WAR, tribe.get_relation(enemy.id)):
            return None

        effects = [
            EventEffect(op=EffectOp.SET_STATE, tribe_id=tribe.id, state=TribeState.AT_WAR),
            EventEffect(op=EffectOp.SET_STATE, tribe_id=enemy.id, state=TribeState.AT_WAR),
        ]
        apply_effects(effects, tribes)
        return self._new_event(
            EventType.WAR,
            "War Declared!",
            f'The "{enemy.name}" declared war on the "{tribe.name}"!',
            tribe,
            PRIORITY_WAR,
            other=enemy,
            effects=effects,
        )


def _event_number(event_id: str) -> int:
    _, _, number = event_id.rpartition("_")
    return int(number) if number.isdigit() else 0
