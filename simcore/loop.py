"""
TribeSim: simcore/loop.py
Simulation Orchestrator: owns the world, the live tribes and the event queue.
============================================================================
Stack:       Python 3.11+ | Pydantic v2 | bespoke EventBus
Status:      Integration entry point.

Architecture notes
------------------
- No module-level instance. Construct a SimulationLoop, call init(),
  then drive it with update(now) from a frame loop or tick() directly.
- Single-threaded. Every tick runs to completion before control returns.
- The tribe map is authoritative. Event effects are resolved against it,
  so a tribe that has been pruned can no longer be mutated.
- Commands return False (or 0) on invalid input and change nothing.

Per-tick order
--------------
  1. tick counter += 1
  2. each live tribe ticks; its current tile is stamped with its id
  3. extinct tribes are pruned (player / selection references cleared)
  4. the event generator rolls over the survivors; new events go to the
     rolling log; tribes zeroed by an event are pruned as well
  5. every autosave_interval ticks: last_save refreshed, autosave written
"""

from __future__ import annotations

import logging
import random
import time
from collections import deque
from dataclasses import asdict, dataclass
from enum import IntEnum
from pathlib import Path
from typing import Any, Callable, Deque, Dict, List, Optional

from simcore.bus import (
    EVT_EVENT_GENERATED,
    EVT_EVENT_RESOLVED,
    EVT_GAME_LOADED,
    EVT_GAME_SAVED,
    EVT_SESSION_CLOSED,
    EVT_SESSION_OPENED,
    EVT_TECH_DISCOVERED,
    EVT_TICK_ADVANCED,
    EVT_TRIBE_EXTINCT,
    EVT_TRIBE_SETTLED,
    EventBus,
)
from simcore.chronicle import ChronicleInscriber
from simcore.config import PLACEMENT_ATTEMPTS, PLAYER_SEARCH_RADIUS, SimulationConfig
from simcore.events import EventGenerator, GameEvent
from simcore.names import TribeNameGenerator
from simcore.storage import QUICKSAVE_SLOT, GameSnapshot, GameStorage
from simcore.tech import can_research, get_tech, pay_cost
from simcore.tribe import Tribe, TribeConfig
from terrain.generator import TerrainGenerator
from terrain.world import Position, ResourceType, World, is_passable

logger = logging.getLogger(__name__)

SOURCE = "simulation"
CAMERA_SETTING = "camera"


class GameSpeed(IntEnum):
    PAUSED = 0
    NORMAL = 1
    FAST = 2
    ULTRA = 3


@dataclass
class Camera:
    x: float = 0.0
    y: float = 0.0
    zoom: float = 1.0

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Camera":
        return cls(x=float(data.get("x", 0.0)), y=float(data.get("y", 0.0)), zoom=float(data.get("zoom", 1.0)))


class SimulationLoop:
    """
    Core executor. Wires the EventBus, the optional ChronicleInscriber and
    the optional GameStorage around one world and its tribes.
    """

    def __init__(
        self,
        config: Optional[SimulationConfig] = None,
        storage: Optional[GameStorage] = None,
        chronicle_path: Optional[Path] = None,
        clock: Callable[[], float] = time.time,
        rng: Optional[random.Random] = None,
        bus: Optional[EventBus] = None,
    ):
        self.config = config or SimulationConfig()
        self.rng = rng if rng is not None else random.Random(self.config.seed)
        self.clock = clock
        self.bus = bus or EventBus()
        self.storage = storage
        self.inscriber = ChronicleInscriber(self.bus, chronicle_path) if chronicle_path else None

        self.events = EventGenerator(
            rng=self.rng,
            clock=clock,
            event_chance=self.config.event_chance,
            ttl=self.config.event_ttl,
        )
        self.names = TribeNameGenerator(self.rng)
        self.camera = Camera()

        self.seed: Optional[float] = None
        self.world: Optional[World] = None
        self.tribes: Dict[int, Tribe] = {}
        self.player_tribe_id: Optional[int] = None
        self.selected_tribe_id: Optional[int] = None
        self.tick_count = 0
        self.is_paused = True
        self.game_speed = GameSpeed.NORMAL
        self.last_tick_time = 0.0
        self.last_save = 0.0
        self.event_log: Deque[GameEvent] = deque(maxlen=self.config.event_log_size)
        self._next_tribe_id = 1

    # ----------------------------------------------------------
    # Lifecycle
    # ----------------------------------------------------------

    def init(self, player_start: Optional[Position] = None, world: Optional[World] = None) -> None:
        """Builds (or adopts) a world and populates it with up to max_tribes tribes."""
        if world is None:
            self.seed = self.config.seed if self.config.seed is not None else self.rng.randint(1, 100000)
            world = TerrainGenerator(
                seed=self.seed,
                width=self.config.map_width,
                height=self.config.map_height,
            ).generate()
        self.world = world

        self.tribes = {}
        self.player_tribe_id = None
        self.selected_tribe_id = None
        self.tick_count = 0
        self.event_log.clear()
        self.events.restore([], 0)
        self._next_tribe_id = 1

        taken: set = set()
        for index in range(self.config.max_tribes):
            is_player = index == 0
            if is_player and player_start is not None:
                position = self._player_position(player_start, taken)
            else:
                position = self._random_position(taken)
            if position is None:
                logger.debug("No free tile for tribe #%d after %d attempts; skipped", index, PLACEMENT_ATTEMPTS)
                continue

            tribe = self._spawn_tribe(position, is_player)
            taken.add(position)
            if is_player:
                self.player_tribe_id = tribe.id
                self.selected_tribe_id = tribe.id

        logger.info("World ready: seed=%s, %d tribes", self.seed, len(self.tribes))

    def _spawn_tribe(self, position: Position, is_player: bool) -> Tribe:
        config = TribeConfig(
            id=self._next_tribe_id,
            name=self.names.generate_name(),
            is_player=is_player,
            color=self.names.generate_color(is_player),
        )
        self._next_tribe_id += 1
        population = self.rng.randrange(self.config.min_tribe_size, self.config.max_tribe_size)
        tribe = Tribe(config, position, population=population, rng=self.rng)
        self.tribes[tribe.id] = tribe
        return tribe

    def _player_position(self, start: Position, taken: set) -> Optional[Position]:
        tile = self.world.get_tile(start)
        if tile is not None and is_passable(tile):
            return start
        nearby = self.world.find_passable_nearby(start, PLAYER_SEARCH_RADIUS)
        if nearby is not None:
            return nearby
        return self._random_position(taken)

    def _random_position(self, taken: set) -> Optional[Position]:
        for _ in range(PLACEMENT_ATTEMPTS):
            candidate = Position(self.rng.randrange(self.world.width), self.rng.randrange(self.world.height))
            tile = self.world.get_tile(candidate)
            if is_passable(tile) and candidate not in taken:
                return candidate
        return None

    def open_session(self) -> None:
        if self.storage is not None:
            saved = self.storage.get_setting(CAMERA_SETTING)
            if saved:
                self.camera = Camera.from_dict(saved)
        self.bus.publish(EVT_SESSION_OPENED, SOURCE, self.tick_count, {"seed": self.seed, "tribes": len(self.tribes)})

    def close_session(self) -> None:
        """Persists the camera and detaches the chronicle. Does not write a save slot."""
        if self.storage is not None:
            self.storage.set_setting(CAMERA_SETTING, self.camera.to_dict())
        self.bus.publish(EVT_SESSION_CLOSED, SOURCE, self.tick_count, {"tribes": len(self.tribes)})
        if self.inscriber is not None:
            self.inscriber.detach()

    # ----------------------------------------------------------
    # Time control
    # ----------------------------------------------------------

    def start(self) -> None:
        self.is_paused = False
        if self.game_speed is GameSpeed.PAUSED:
            self.game_speed = GameSpeed.NORMAL
        self.last_tick_time = self.clock()

    def pause(self) -> None:
        self.is_paused = True

    def toggle_pause(self) -> None:
        if self.is_paused:
            self.start()
        else:
            self.pause()

    def set_speed(self, speed: int) -> bool:
        """Speed 0 pauses; any other speed also resumes a paused game."""
        try:
            speed = GameSpeed(speed)
        except ValueError:
            return False
        self.game_speed = speed
        if speed is GameSpeed.PAUSED:
            self.pause()
        elif self.is_paused:
            self.start()
        return True

    def update(self, now: Optional[float] = None) -> bool:
        """
        Frame callback. Fires at most one tick once tick_rate / speed
        seconds have passed since the last one; leftover time is dropped.
        """
        if self.is_paused or self.game_speed is GameSpeed.PAUSED or self.world is None:
            return False

        now = self.clock() if now is None else now
        if now - self.last_tick_time < self.config.tick_rate / int(self.game_speed):
            return False

        self.tick()
        self.last_tick_time = now
        return True

    # ----------------------------------------------------------
    # Tick
    # ----------------------------------------------------------

    def tick(self) -> None:
        """Advance the simulation by exactly one step."""
        if self.world is None:
            raise RuntimeError("SimulationLoop.tick() called before init()")

        self.tick_count += 1

        for tribe in list(self.tribes.values()):
            tribe.tick(self.world)
            if not tribe.is_extinct:
                tile = self.world.get_tile(tribe.position)
                if tile is not None:
                    tile.tribe_id = tribe.id

        self._prune_extinct()

        for event in self.events.generate_tick(self.world, self.tribes):
            self.event_log.append(event)
            self.bus.publish(EVT_EVENT_GENERATED, SOURCE, self.tick_count, {
                "event_id": event.id,
                "type": event.type.value,
                "tribe_id": event.tribe_id,
                "priority": event.priority,
                "title": event.title,
            })

        self._prune_extinct()

        if self.tick_count % self.config.autosave_interval == 0:
            self.autosave()

        self.bus.publish(EVT_TICK_ADVANCED, SOURCE, self.tick_count, {"tribes": len(self.tribes)})

    def _prune_extinct(self) -> List[int]:
        extinct = [tribe_id for tribe_id, tribe in self.tribes.items() if tribe.is_extinct]
        for tribe_id in extinct:
            tribe = self.tribes.pop(tribe_id)
            if self.player_tribe_id == tribe_id:
                self.player_tribe_id = None
            if self.selected_tribe_id == tribe_id:
                self.selected_tribe_id = None
            logger.info("Tribe %d (%s) died out at tick %d", tribe_id, tribe.name, self.tick_count)
            self.bus.publish(EVT_TRIBE_EXTINCT, SOURCE, self.tick_count, {"tribe_id": tribe_id, "name": tribe.name})
        return extinct

    # ----------------------------------------------------------
    # Commands
    # ----------------------------------------------------------

    def select_tribe(self, tribe_id: int) -> bool:
        if tribe_id not in self.tribes:
            logger.debug("select_tribe: unknown tribe %s", tribe_id)
            return False
        self.selected_tribe_id = tribe_id
        return True

    def get_selected_tribe(self) -> Optional[Tribe]:
        if self.selected_tribe_id is None:
            return None
        return self.tribes.get(self.selected_tribe_id)

    def get_player_tribe(self) -> Optional[Tribe]:
        if self.player_tribe_id is None:
            return None
        return self.tribes.get(self.player_tribe_id)

    def move_selected(self, dx: int, dy: int) -> bool:
        tribe = self.get_selected_tribe()
        if tribe is None or self.world is None:
            return False
        return tribe.move(self.world, (dx, dy))

    def settle_selected(self) -> bool:
        tribe = self.get_selected_tribe()
        if tribe is None or self.world is None:
            return False
        if not tribe.settle(self.world):
            return False
        self.bus.publish(EVT_TRIBE_SETTLED, SOURCE, self.tick_count, {
            "tribe_id": tribe.id,
            "x": tribe.position.x,
            "y": tribe.position.y,
        })
        return True

    def gather(self, resource: str, tribe_id: Optional[int] = None) -> int:
        """Gathers for the given tribe (default: selected). Returns the amount taken."""
        tribe = self.tribes.get(tribe_id) if tribe_id is not None else self.get_selected_tribe()
        if tribe is None or self.world is None:
            return 0
        try:
            resource_type = ResourceType(resource)
        except ValueError:
            logger.debug("gather: unknown resource %r", resource)
            return 0
        return tribe.gather_resources(self.world, resource_type)

    def research(self, tech_id: str, tribe_id: Optional[int] = None) -> bool:
        """
        Discovers a tech for the given tribe (default: selected, then player).
        Prerequisites are always checked; cost only when the config says so.
        """
        if tribe_id is not None:
            tribe = self.tribes.get(tribe_id)
        else:
            tribe = self.get_selected_tribe() or self.get_player_tribe()
        if tribe is None or not can_research(tribe.discovered_techs, tech_id):
            return False

        tech = get_tech(tech_id)
        if self.config.enforce_research_cost:
            wallet = {resource.value: amount for resource, amount in tribe.resources.items()}
            if not pay_cost(wallet, tech):
                logger.debug("research: tribe %d cannot afford %s", tribe.id, tech_id)
                return False
            tribe.resources = {ResourceType(key): amount for key, amount in wallet.items()}

        tribe.discover_tech(tech_id)
        self.bus.publish(EVT_TECH_DISCOVERED, SOURCE, self.tick_count, {"tribe_id": tribe.id, "tech_id": tech_id})
        return True

    def resolve_event(self, event_id: str, choice_index: Optional[int] = None) -> bool:
        if not self.events.resolve_event(event_id, choice_index, self.tribes):
            return False
        self.bus.publish(EVT_EVENT_RESOLVED, SOURCE, self.tick_count, {"event_id": event_id, "choice": choice_index})
        self._prune_extinct()
        return True

    def pending_events(self) -> List[GameEvent]:
        return self.events.pending_events()

    def status(self) -> Dict[str, Any]:
        player = self.get_player_tribe()
        return {
            "tick": self.tick_count,
            "player_population": player.population if player else 0,
            "tribe_count": len(self.tribes),
            "is_paused": self.is_paused,
            "game_speed": int(self.game_speed),
            "pending_events": len(self.pending_events()),
        }

    # ----------------------------------------------------------
    # Snapshots & persistence
    # ----------------------------------------------------------

    def export_state(self) -> GameSnapshot:
        if self.world is None:
            raise RuntimeError("Nothing to export before init()")
        return GameSnapshot.model_validate({
            "world": self.world.to_dict(),
            "tribes": [tribe.to_dict() for tribe in self.tribes.values()],
            "events": [event.model_dump(mode="json") for event in self.events.pending_events()],
            "event_counter": self.events.counter,
            "player_tribe_id": self.player_tribe_id,
            "tick": self.tick_count,
            "is_paused": self.is_paused,
            "game_speed": int(self.game_speed),
            "last_save": self.last_save,
        })

    def import_state(self, snapshot: GameSnapshot) -> None:
        self.world = World.from_dict(snapshot.world.model_dump(mode="json"))
        self.tribes = {}
        for entry in snapshot.tribes:
            tribe = Tribe.from_dict(entry.model_dump(mode="json"), rng=self.rng)
            self.tribes[tribe.id] = tribe

        self.events.restore(snapshot.events, snapshot.event_counter)
        self.event_log.clear()
        self.event_log.extend(self.events.pending_events())

        self.player_tribe_id = snapshot.player_tribe_id if snapshot.player_tribe_id in self.tribes else None
        self.selected_tribe_id = self.player_tribe_id
        self.tick_count = snapshot.tick
        self.is_paused = snapshot.is_paused
        self.game_speed = GameSpeed(snapshot.game_speed)
        self.last_save = snapshot.last_save
        self.last_tick_time = self.clock()
        self._next_tribe_id = max(self.tribes, default=0) + 1

    def save_game(self, slot: str, name: Optional[str] = None) -> bool:
        if self.storage is None or self.world is None:
            return False
        self.last_save = self.clock()
        self.storage.save_game(slot, self.export_state(), name=name)
        self.bus.publish(EVT_GAME_SAVED, SOURCE, self.tick_count, {"slot": slot})
        return True

    def load_game(self, slot: str) -> bool:
        """Returns False for a missing slot. A corrupt slot raises CorruptSaveError."""
        if self.storage is None:
            return False
        snapshot = self.storage.load_game(slot)
        if snapshot is None:
            return False
        self.import_state(snapshot)
        self.bus.publish(EVT_GAME_LOADED, SOURCE, self.tick_count, {"slot": slot})
        return True

    def quick_save(self) -> bool:
        return self.save_game(QUICKSAVE_SLOT, name="Quicksave")

    def quick_load(self) -> bool:
        return self.load_game(QUICKSAVE_SLOT)

    def autosave(self) -> None:
        self.last_save = self.clock()
        if self.storage is None:
            return
        self.storage.autosave(self.export_state())
        logger.debug("Autosaved at tick %d", self.tick_count)
        self.bus.publish(EVT_GAME_SAVED, SOURCE, self.tick_count, {"slot": "autosave"})
