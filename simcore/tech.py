"""
TribeSim: simcore/tech.py
Technology catalog: TOML seed data validated by Pydantic, loaded once.
=====================================================================
Stack:       Python 3.11+ | Pydantic v2 | tomllib
Status:      Read-only reference data. Only the set of discovered ids is
             per-tribe state; nothing in here mutates a tribe except
             pay_cost(), which operates on a plain resource mapping.
"""

from __future__ import annotations

import tomllib
from enum import Enum
from pathlib import Path
from typing import AbstractSet, Dict, List, Mapping, MutableMapping, Optional

from pydantic import BaseModel, ConfigDict, Field

# ================================================================================
# SCHEMAS
# ================================================================================

class TechEra(str, Enum):
    STONE_AGE = "stone_age"
    BRONZE_AGE = "bronze_age"
    IRON_AGE = "iron_age"


class TechEffectType(str, Enum):
    GATHER_RATE = "gather_rate"
    BIRTH_RATE = "birth_rate"
    MOVE_SPEED = "move_speed"
    STORAGE = "storage"
    COMBAT = "combat"
    UNLOCK_BUILDING = "unlock_building"
    UNLOCK_UNIT = "unlock_unit"


class TechCost(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")
    food: int = 0
    wood: int = 0
    stone: int = 0
    metal: int = 0

    def amounts(self) -> Dict[str, int]:
        return {k: v for k, v in self.model_dump().items() if v > 0}


class TechEffect(BaseModel):
    model_config = ConfigDict(frozen=True)
    type: TechEffectType
    value: float
    target: Optional[str] = None


class TechDef(BaseModel):
    model_config = ConfigDict(frozen=True)
    id: str
    name: str
    description: str
    era: TechEra
    prerequisites: List[str] = Field(default_factory=list)
    cost: TechCost = Field(default_factory=TechCost)
    effect: TechEffect


class TechCollectionDef(BaseModel):
    model_config = ConfigDict(frozen=True)
    techs: List[TechDef]


# ================================================================================
# LOADER & CACHE (JIT)
# ================================================================================

DATA_DIR = Path(__file__).parent / "data"
TECH_TREE_PATH = DATA_DIR / "techs.toml"

_TECH_CACHE: Optional[Dict[str, TechDef]] = None


def load_tech_tree(path: Path = TECH_TREE_PATH) -> Dict[str, TechDef]:
    """Parses and validates a tech tree file. Insertion order follows the file."""
    if not path.exists():
        raise FileNotFoundError(f"Tech tree definition not found: {path}")

    with open(path, "rb") as f:
        data = tomllib.load(f)

    collection = TechCollectionDef(**data)
    tree = {tech.id: tech for tech in collection.techs}
    for tech in tree.values():
        missing = [p for p in tech.prerequisites if p not in tree]
        if missing:
            raise ValueError(f"Tech '{tech.id}' has unknown prerequisites: {missing}")
    return tree


def get_tech_tree() -> Dict[str, TechDef]:
    """Loads the bundled tech tree. Cached globally."""
    global _TECH_CACHE
    if _TECH_CACHE is None:
        _TECH_CACHE = load_tech_tree()
    return _TECH_CACHE


# ================================================================================
# QUERIES
# ================================================================================

def get_tech(tech_id: str) -> Optional[TechDef]:
    return get_tech_tree().get(tech_id)


def can_research(discovered: AbstractSet[str], tech_id: str) -> bool:
    """Known, not yet discovered, and every prerequisite discovered."""
    tech = get_tech(tech_id)
    if tech is None or tech_id in discovered:
        return False
    return all(prereq in discovered for prereq in tech.prerequisites)


def get_available_techs(discovered: AbstractSet[str]) -> List[TechDef]:
    return [tech for tech in get_tech_tree().values() if can_research(discovered, tech.id)]


def get_techs_by_era(era: TechEra) -> List[TechDef]:
    return [tech for tech in get_tech_tree().values() if tech.era == TechEra(era)]


def can_afford(resources: Mapping[str, int], tech: TechDef) -> bool:
    return all(resources.get(key, 0) >= amount for key, amount in tech.cost.amounts().items())


def pay_cost(resources: MutableMapping[str, int], tech: TechDef) -> bool:
    """Deducts the cost in place. Returns False and leaves resources untouched if short."""
    if not can_afford(resources, tech):
        return False
    for key, amount in tech.cost.amounts().items():
        resources[key] -= amount
    return True
