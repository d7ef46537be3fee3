"""
TribeSim: simcore/config.py
Design variables and the runtime simulation configuration.
=========================================================
Stack:       Python 3.11+ | Pydantic v2 | tomllib
Status:      Core configuration layer.

Design Variables (must not be hardcoded elsewhere)
---------------------------------------------------
  Map            MAP_WIDTH 200, MAP_HEIGHT 150, SEA_LEVEL 0.3
  Population     MIN_TRIBE_SIZE 10, MAX_TRIBE_SIZE 500, MAX_TRIBES_COUNT 500
  Demographics   BIRTH_RATE 0.002, DEATH_RATE 0.001, STARVATION_RATE 0.005,
                 FOOD_CONSUMPTION 1, BIRTH_FOOD_THRESHOLD 50
  Actions        GATHER_FACTOR 0.5, cooldowns gather 5 / move 2 / explore 3,
                 SETTLE_MIN_POPULATION 30
  Timing         TICK_RATE 1.0 s, EVENT_TTL 300 s, AUTOSAVE_INTERVAL 100 ticks
"""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

# ============================================================
# DESIGN VARIABLE DEFAULTS
# Change here or override via SimulationConfig. Never hardcode elsewhere.
# ============================================================

# Map
MAP_WIDTH: int = 200
MAP_HEIGHT: int = 150
SEA_LEVEL: float = 0.3

# Tribes
MAX_TRIBES_COUNT: int = 500
MIN_TRIBE_SIZE: int = 10
MAX_TRIBE_SIZE: int = 500
STARTING_FOOD: int = 100
PLACEMENT_ATTEMPTS: int = 100
PLAYER_SEARCH_RADIUS: int = 5

# Demographics (per tick)
BIRTH_RATE: float = 0.002
DEATH_RATE: float = 0.001
STARVATION_RATE: float = 0.005
FOOD_CONSUMPTION: int = 1           # food per head per tick
BIRTH_FOOD_THRESHOLD: int = 50      # births only above this stock

# Actions
GATHER_FACTOR: float = 0.5          # harvest = floor(population * factor)
GATHER_COOLDOWN: int = 5
MOVE_COOLDOWN: int = 2
EXPLORE_COOLDOWN: int = 3
SETTLE_MIN_POPULATION: int = 30

# Encounters (single roll in [0, 1))
ENCOUNTER_TRADE_CHANCE: float = 0.3     # roll below: relation +5
ENCOUNTER_CONFLICT_CHANCE: float = 0.5  # roll below (and >= trade): relation -10
ENCOUNTER_TRADE_DELTA: int = 5
ENCOUNTER_CONFLICT_DELTA: int = -10

RELATION_MIN: int = -100
RELATION_MAX: int = 100

# Timing (seconds)
TICK_RATE: float = 1.0
EVENT_TTL: float = 300.0
EVENT_CHANCE: float = 0.1
AUTOSAVE_INTERVAL: int = 100
EVENT_LOG_SIZE: int = 200

# Rendering palette (hex)
COLORS: Dict[str, str] = {
    "water": "#4a90d9",
    "sand": "#d4c685",
    "grass": "#7cb342",
    "forest": "#2e7d32",
    "hill": "#8d6e63",
    "mountain": "#616161",
    "swamp": "#558b2f",
    "tribe": "#ff5722",
    "player": "#2196f3",
    "selected": "#ffeb3b",
}

TRIBE_PALETTE = ("#e91e63", "#9c27b0", "#673ab7", "#3f51b5", "#009688", "#ff9800", "#795548")


# ============================================================
# RUNTIME CONFIG
# ============================================================

class SimulationConfig(BaseModel):
    """Per-run overrides for the orchestrator. Defaults mirror the design variables."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    map_width: int = Field(default=MAP_WIDTH, gt=0)
    map_height: int = Field(default=MAP_HEIGHT, gt=0)
    seed: Optional[float] = None
    max_tribes: int = Field(default=MAX_TRIBES_COUNT, ge=0)
    min_tribe_size: int = Field(default=MIN_TRIBE_SIZE, ge=1)
    max_tribe_size: int = Field(default=MAX_TRIBE_SIZE, ge=2)
    tick_rate: float = Field(default=TICK_RATE, gt=0)
    event_chance: float = Field(default=EVENT_CHANCE, ge=0.0, le=1.0)
    event_ttl: float = Field(default=EVENT_TTL, gt=0)
    event_log_size: int = Field(default=EVENT_LOG_SIZE, ge=1)
    autosave_interval: int = Field(default=AUTOSAVE_INTERVAL, ge=1)
    enforce_research_cost: bool = True


def load_config(path: Path) -> SimulationConfig:
    """Reads a [simulation] table from TOML. Unknown keys are rejected."""
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, "rb") as f:
        data = tomllib.load(f)

    return SimulationConfig(**data.get("simulation", {}))
